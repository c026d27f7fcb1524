import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import pytest
from shapely.geometry import box

# UTM 16N, metres
CRS = "EPSG:32616"


@pytest.fixture
def crs():
    return CRS


@pytest.fixture
def make_polygons():
    """Build a GeoDataFrame from dicts that each carry a ``geometry`` key."""
    def _make(rows, crs=CRS):
        return gpd.GeoDataFrame(rows, geometry="geometry", crs=crs)
    return _make


@pytest.fixture
def tracts(make_polygons):
    """2x2 grid of 10x10 tracts with counts 100..400 (total 1000)."""
    return make_polygons([
        {"tract": "t1", "total": 100, "black": 10, "geometry": box(0, 0, 10, 10)},
        {"tract": "t2", "total": 200, "black": 20, "geometry": box(10, 0, 20, 10)},
        {"tract": "t3", "total": 300, "black": 30, "geometry": box(0, 10, 10, 20)},
        {"tract": "t4", "total": 400, "black": 40, "geometry": box(10, 10, 20, 20)},
    ])


@pytest.fixture
def neighborhoods(make_polygons):
    """Three vertical strips covering the tract grid exactly.

    Expected totals: A = 200, B = 500, C = 300.
    """
    return make_polygons([
        {"neighborhood": "A", "geometry": box(0, 0, 5, 20)},
        {"neighborhood": "B", "geometry": box(5, 0, 15, 20)},
        {"neighborhood": "C", "geometry": box(15, 0, 20, 20)},
    ])
