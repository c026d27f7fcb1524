"""Areal interpolation of extensive counts from tracts onto neighborhoods."""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

import geopandas as gpd
import pandas as pd

from neighborhood_history.errors import ConfigurationError
from neighborhood_history.overlay import (
    build_weights,
    partially_covered,
    validate_crs,
    validate_geometry,
    validate_identifiers,
)
from neighborhood_history.redistribute import redistribute, totals, validate_attributes
from neighborhood_history.settings import Settings
from neighborhood_history.verify import ExpectedDiscrepancy, VerificationReport, verify_conservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterpolationResult:
    table: pd.DataFrame
    weights: pd.DataFrame
    report: VerificationReport


def areal_interpolate(
    source: gpd.GeoDataFrame,
    target: gpd.GeoDataFrame,
    source_id: str,
    target_id: str,
    attributes: Iterable[str],
    area_epsilon: Optional[float] = None,
    rtol: Optional[float] = None,
    atol: Optional[float] = None,
    expected_discrepancy: ExpectedDiscrepancy = None,
    workers: Optional[int] = None,
    settings: Optional[Settings] = None,
    source_totals: Optional[Mapping[str, float]] = None,
) -> InterpolationResult:
    """
    Redistribute ``attributes`` from ``source`` polygons onto ``target`` polygons.

    Inputs are validated before any overlay work: identifiers first, then
    attribute content, then CRS and geometry. The returned table is indexed
    by the target identifier with one float column per attribute. The
    verification report is returned rather than raised; deciding whether a
    mismatch is fatal is up to the caller.

    ``source_totals`` replaces the column sums of ``source`` as the reference
    for verification. Pass the totals of the complete count table when some
    counted units had no polygon to overlay, so their loss is reported.
    """
    settings = settings or Settings()
    area_epsilon = settings.area_epsilon if area_epsilon is None else area_epsilon
    rtol = settings.rtol if rtol is None else rtol
    atol = settings.atol if atol is None else atol
    workers = settings.workers if workers is None else workers
    attributes = list(attributes)

    validate_identifiers(source, source_id, "source")
    validate_identifiers(target, target_id, "target")
    validate_attributes(source, attributes)
    if source_totals is not None:
        missing = [a for a in attributes if a not in source_totals]
        if missing:
            raise ConfigurationError(f"No source totals given for attributes: {missing}")
    validate_crs(source, target)
    validate_geometry(source, source_id, "source")
    validate_geometry(target, target_id, "target")

    weights = build_weights(source, target, source_id, target_id, area_epsilon, workers)

    partial = partially_covered(weights, source[source_id], tolerance=rtol)
    if not partial.empty:
        logger.warning(
            f"{len(partial)} of {len(source)} source polygons are not fully covered by targets; "
            f"the uncovered share of their counts is dropped"
        )
        logger.debug(f"Coverage of partially covered sources: {partial.round(4).to_dict()}")

    values = pd.DataFrame(source[[source_id] + attributes]).set_index(source_id)
    table = redistribute(weights, values, attributes, target[target_id])

    if source_totals is None:
        reference = totals(values, attributes)
    else:
        reference = pd.Series({a: float(source_totals[a]) for a in attributes})

    report = verify_conservation(
        reference,
        totals(table, attributes),
        rtol=rtol,
        atol=atol,
        expected_discrepancy=expected_discrepancy,
    )
    logger.info(
        f"Interpolated {len(attributes)} attributes from {len(source)} source polygons "
        f"onto {len(target)} targets using {len(weights)} weights"
    )
    return InterpolationResult(table=table, weights=weights, report=report)
