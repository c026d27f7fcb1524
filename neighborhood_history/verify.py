"""
Conservation checks for interpolated totals.

No people may be invented or lost between the tract tables and the
neighborhood table. Each attribute gets its own verdict so a caller can see
exactly which count drifted. A known shortfall (for example tracts whose
geometry is missing from a historical vintage) is declared up front as an
expected discrepancy and reported separately from an unexplained mismatch.
"""

import enum
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

import pandas as pd

from neighborhood_history.errors import ConservationMismatch

ExpectedDiscrepancy = Union[None, float, Mapping[str, float]]


class Verdict(enum.Enum):
    CONSERVED = "conserved"
    EXPECTED_SHORTFALL = "expected_shortfall"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class AttributeVerdict:
    attribute: str
    source_total: float
    target_total: float
    discrepancy: float
    expected_discrepancy: Optional[float]
    verdict: Verdict

    @property
    def conserved(self) -> bool:
        return self.verdict is Verdict.CONSERVED

    @property
    def passed(self) -> bool:
        return self.verdict is not Verdict.MISMATCH


@dataclass(frozen=True)
class VerificationReport:
    verdicts: Tuple[AttributeVerdict, ...]

    @property
    def passed(self) -> bool:
        return all(v.passed for v in self.verdicts)

    @property
    def failures(self) -> Tuple[AttributeVerdict, ...]:
        return tuple(v for v in self.verdicts if not v.passed)

    def __getitem__(self, attribute: str) -> AttributeVerdict:
        for v in self.verdicts:
            if v.attribute == attribute:
                return v
        raise KeyError(attribute)

    def __iter__(self):
        return iter(self.verdicts)

    def __len__(self):
        return len(self.verdicts)

    def to_frame(self) -> pd.DataFrame:
        """One row per attribute, suitable for logging or a CSV report."""
        return pd.DataFrame([
            {
                "attribute": v.attribute,
                "source_total": v.source_total,
                "target_total": v.target_total,
                "discrepancy": v.discrepancy,
                "expected_discrepancy": v.expected_discrepancy,
                "verdict": v.verdict.value,
            }
            for v in self.verdicts
        ])

    def raise_for_failures(self, year=None):
        if not self.passed:
            raise ConservationMismatch(self.failures, year=year)


def _expected_for(expected: ExpectedDiscrepancy, attribute: str) -> Optional[float]:
    if expected is None:
        return None
    if isinstance(expected, Mapping):
        value = expected.get(attribute)
        return None if value is None else float(value)
    return float(expected)


def verify_conservation(
    source_totals: Mapping[str, float],
    target_totals: Mapping[str, float],
    rtol: float = 1e-6,
    atol: float = 1e-6,
    expected_discrepancy: ExpectedDiscrepancy = None,
) -> VerificationReport:
    """
    Compare per-attribute totals before and after interpolation.

    ``expected_discrepancy`` is either one number applied to every attribute
    or a mapping of attribute to number. A declared discrepancy only excuses
    a shortfall of that size; a mismatch of any other magnitude still fails.
    """
    verdicts = []
    for attribute, source_total in dict(source_totals).items():
        source_total = float(source_total)
        target_total = float(target_totals[attribute])
        discrepancy = source_total - target_total
        expected = _expected_for(expected_discrepancy, attribute)

        if math.isclose(source_total, target_total, rel_tol=rtol, abs_tol=atol):
            verdict = Verdict.CONSERVED
        elif expected is not None and math.isclose(
            discrepancy, expected, rel_tol=rtol, abs_tol=max(atol, rtol * abs(source_total))
        ):
            verdict = Verdict.EXPECTED_SHORTFALL
        else:
            verdict = Verdict.MISMATCH

        verdicts.append(AttributeVerdict(
            attribute=attribute,
            source_total=source_total,
            target_total=target_total,
            discrepancy=discrepancy,
            expected_discrepancy=expected,
            verdict=verdict,
        ))

    return VerificationReport(tuple(verdicts))


def summarize_verdicts(report: VerificationReport) -> Dict[str, int]:
    """Count attributes per verdict."""
    counts = {v.value: 0 for v in Verdict}
    for item in report:
        counts[item.verdict.value] += 1
    return counts
