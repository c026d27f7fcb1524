"""Per-year estimates and their combination into one neighborhood time series."""

import logging
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, Optional

import pandas as pd

from neighborhood_history.errors import ConfigurationError
from neighborhood_history.interpolate import areal_interpolate
from neighborhood_history.redistribute import totals, validate_attributes
from neighborhood_history.verify import VerificationReport
from neighborhood_history.vintages import TRACT_ID, read_vintage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YearEstimate:
    year: int
    table: pd.DataFrame
    report: VerificationReport
    note: Optional[str] = None


def estimate_year(spec, neighborhoods, id_col, settings) -> YearEstimate:
    """
    Load one vintage and interpolate its counts onto the neighborhoods.

    Conservation is checked against the whole count table, so counts of
    tracts without a surviving boundary show up as a shortfall.
    """
    vintage = read_vintage(spec, settings.projected_crs)
    validate_attributes(vintage.counts, spec.attribute_names)
    result = areal_interpolate(
        vintage.tracts,
        neighborhoods,
        TRACT_ID,
        id_col,
        spec.attribute_names,
        expected_discrepancy=spec.expected_discrepancy,
        settings=settings,
        source_totals=totals(vintage.counts, spec.attribute_names),
    )
    return YearEstimate(year=spec.year, table=result.table, report=result.report, note=spec.note)


def combine_years(estimates: Iterable[YearEstimate]) -> pd.DataFrame:
    """Outer-join yearly tables on the neighborhood identifier as ``<attribute>_<year>`` columns."""
    estimates = sorted(estimates, key=lambda e: e.year)
    if not estimates:
        raise ConfigurationError("No yearly estimates to combine")

    years = [e.year for e in estimates]
    repeated = sorted({y for y in years if years.count(y) > 1})
    if repeated:
        raise ConfigurationError(f"More than one estimate for years {repeated}")

    frames = [e.table.add_suffix(f"_{e.year}") for e in estimates]
    combined = reduce(lambda left, right: left.join(right, how="outer"), frames)
    logger.info(f"Combined {len(estimates)} years into {len(combined)} rows x {len(combined.columns)} columns")
    return combined.sort_index()


def to_long(combined: pd.DataFrame) -> pd.DataFrame:
    """Wide ``<attribute>_<year>`` table to rows of (neighborhood, year, attribute, value)."""
    id_col = combined.index.name or "index"
    long = combined.reset_index().melt(id_vars=id_col, var_name="column", value_name="value")
    parts = long["column"].str.rsplit("_", n=1, expand=True)
    long["attribute"] = parts[0]
    long["year"] = parts[1].astype(int)
    return long[[id_col, "year", "attribute", "value"]]
