import logging
from pathlib import Path

import geopandas as gpd

from neighborhood_history.errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_neighborhoods(path, id_col, crs, layer=None):
    """Load the fixed neighborhood boundaries every census year is interpolated onto."""
    path = Path(path)
    logger.info(f"Loading neighborhood boundaries from {path}...")

    if not path.exists():
        raise FileNotFoundError(
            f"Neighborhood boundaries not found at {path}. "
            "Point NBHD_NEIGHBORHOODS_PATH at a GeoJSON or shapefile."
        )

    read_kwargs = {"layer": layer} if layer else {}
    neighborhoods = gpd.read_file(path, **read_kwargs)

    if id_col not in neighborhoods.columns:
        raise ConfigurationError(
            f"Neighborhood file has no '{id_col}' column; available: {list(neighborhoods.columns)}"
        )
    if neighborhoods.crs is None:
        raise ConfigurationError(f"Neighborhood file {path} has no CRS")

    unnamed = neighborhoods[id_col].isna()
    if unnamed.any():
        logger.warning(f"Dropping {int(unnamed.sum())} neighborhoods without '{id_col}'")
        neighborhoods = neighborhoods[~unnamed]

    neighborhoods = neighborhoods[[id_col, "geometry"]].to_crs(crs).reset_index(drop=True)
    logger.info(f"Loaded {len(neighborhoods)} neighborhoods")
    return neighborhoods
