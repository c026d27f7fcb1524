"""
Overlay of census tracts onto neighborhoods.

Builds the weight table used for areal interpolation: one row per
(tract, neighborhood) pair whose intersection has a non-negligible area,
holding the share of the tract's area that falls inside the neighborhood.
"""

import concurrent.futures
import logging

import numpy as np
import pandas as pd
import shapely

from neighborhood_history.errors import GeometryError, IdentifierError

logger = logging.getLogger(__name__)

SOURCE_ID = "source_id"
TARGET_ID = "target_id"
AREA = "area"
FRACTION = "fraction"
WEIGHT_COLUMNS = [SOURCE_ID, TARGET_ID, AREA, FRACTION]

POLYGON_TYPES = ("Polygon", "MultiPolygon")


def _sample(ids, limit=10):
    values = sorted(str(i) for i in pd.unique(ids))
    if len(values) > limit:
        return values[:limit] + [f"... ({len(values) - limit} more)"]
    return values


def validate_identifiers(gdf, id_col, role):
    """Reject missing identifier columns, null identifiers and duplicates."""
    if id_col not in gdf.columns:
        raise IdentifierError(f"{role} polygons have no identifier column '{id_col}'")

    ids = gdf[id_col]
    missing = ids.isna()
    if missing.any():
        raise IdentifierError(f"{int(missing.sum())} {role} polygons have no identifier")

    dups = ids[ids.duplicated(keep=False)]
    if not dups.empty:
        raise IdentifierError(f"Duplicate {role} identifiers: {_sample(dups)}")


def validate_crs(source, target):
    """Both polygon sets must share one projected CRS."""
    if source.crs != target.crs:
        raise GeometryError(
            f"CRS mismatch: source polygons use {source.crs}, target polygons use {target.crs}"
        )
    if source.crs is not None and source.crs.is_geographic:
        raise GeometryError(
            f"{source.crs} is a geographic CRS; project both polygon sets before measuring areas"
        )


def validate_geometry(gdf, id_col, role):
    """Every row must hold a valid polygon with positive area."""
    if gdf.empty:
        raise GeometryError(f"No {role} polygons supplied")

    geoms = gdf.geometry
    ids = gdf[id_col]

    missing = geoms.isna() | geoms.is_empty
    if missing.any():
        raise GeometryError(f"Missing or empty {role} geometry: {_sample(ids[missing])}")

    wrong_type = ~geoms.geom_type.isin(POLYGON_TYPES)
    if wrong_type.any():
        raise GeometryError(f"Non-polygon {role} geometry: {_sample(ids[wrong_type])}")

    # Checked before validity: a collapsed ring is also invalid, but the
    # fraction it would produce is undefined, which is the more useful report.
    zero_area = geoms.area <= 0
    if zero_area.any():
        raise GeometryError(f"Zero-area {role} polygons: {_sample(ids[zero_area])}")

    invalid = ~geoms.is_valid
    if invalid.any():
        raise GeometryError(f"Invalid {role} geometry: {_sample(ids[invalid])}")


def _bucket_weights(source, target, source_id, target_id, area_epsilon):
    src_geoms = np.asarray(source.geometry.values)
    tgt_geoms = np.asarray(target.geometry.values)

    src_pos, tgt_pos = target.sindex.query(src_geoms, predicate="intersects")

    pieces = shapely.intersection(src_geoms[src_pos], tgt_geoms[tgt_pos])
    areas = shapely.area(pieces)
    keep = areas > area_epsilon

    src_pos, tgt_pos, areas = src_pos[keep], tgt_pos[keep], areas[keep]
    src_areas = shapely.area(src_geoms[src_pos])

    return pd.DataFrame({
        SOURCE_ID: source[source_id].to_numpy()[src_pos],
        TARGET_ID: target[target_id].to_numpy()[tgt_pos],
        AREA: areas,
        FRACTION: np.minimum(areas / src_areas, 1.0),
    })


def build_weights(source, target, source_id, target_id, area_epsilon=1e-6, workers=1):
    """
    Compute the areal weight table for two validated polygon sets.

    Candidate pairs come from the target set's spatial index, so only pairs
    with overlapping bounding boxes are intersected. Fragments whose area is
    not above ``area_epsilon`` (square CRS units) are dropped; this removes
    shared-edge slivers and line intersections.

    With ``workers > 1`` the source polygons are split into buckets that are
    overlaid on a thread pool and concatenated afterwards.
    """
    # Build the tree once, before any worker touches it
    target.sindex

    if workers > 1 and len(source) > 1:
        buckets = np.array_split(np.arange(len(source)), min(workers, len(source)))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(
                    _bucket_weights, source.iloc[rows], target, source_id, target_id, area_epsilon
                )
                for rows in buckets
            ]
            frames = [future.result() for future in futures]
    else:
        frames = [_bucket_weights(source, target, source_id, target_id, area_epsilon)]

    weights = pd.concat(frames, ignore_index=True)
    logger.debug(
        f"Built {len(weights)} weights for {len(source)} source and {len(target)} target polygons"
    )
    return weights[WEIGHT_COLUMNS]


def weight_coverage(weights):
    """Sum of outgoing fractions per source polygon."""
    return weights.groupby(SOURCE_ID)[FRACTION].sum()


def partially_covered(weights, source_ids, tolerance=1e-6):
    """Sources whose area is not fully covered by the targets, with their coverage."""
    coverage = weight_coverage(weights).reindex(pd.Index(source_ids), fill_value=0.0)
    return coverage[coverage < 1.0 - tolerance]
