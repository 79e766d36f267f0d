"""
Shared pytest fixtures for grid aggregation tests.

Provides study polygons and point sets in a projected (metre) coordinate system.
"""

import pytest
import numpy as np
import pandas as pd
import geopandas as gpd
from shapely.geometry import box, Polygon

from src.grid.builder import build_grid
from src.grid.clipper import clip_grid
from src.grid.models import ObservationPoint

UTM_CRS = "EPSG:32750"  # UTM zone 50S


# ============================================================================
# Polygon Fixtures
# ============================================================================

@pytest.fixture
def square_polygon():
    """250 x 250 square home range anchored at the origin."""
    return box(0, 0, 250, 250)


@pytest.fixture
def square_grid(square_polygon):
    """100 x 100 grid over the square (5 x 5 raw cells)."""
    return build_grid(square_polygon, 100, 100)


@pytest.fixture
def square_cells(square_grid, square_polygon):
    """Clipped cells of the square grid (3 x 3)."""
    return clip_grid(square_grid, square_polygon)


@pytest.fixture
def holed_polygon():
    """300 x 300 square with a 100 x 100 hole in the middle."""
    return Polygon(
        [(0, 0), (300, 0), (300, 300), (0, 300)],
        holes=[[(100, 100), (200, 100), (200, 200), (100, 200)]],
    )


@pytest.fixture
def triangle_polygon():
    """Right triangle whose hypotenuse cuts across cells."""
    return Polygon([(0, 0), (330, 0), (0, 270)])


# ============================================================================
# Point Fixtures
# ============================================================================

@pytest.fixture
def single_cell_points():
    """Ten group-size observations inside cell (1, 1) of the square grid.

    Offset by 5 from (10, 10)...(100, 100): (100, 100) sits on the corner
    shared with cell (2, 2), which owns it under half-open membership.
    """
    return [
        ObservationPoint(x=5 + 10 * i, y=5 + 10 * i, attributes={"size": 1.0})
        for i in range(10)
    ]


@pytest.fixture
def ranging_gdf():
    """Ranging fixes with group size in a projected CRS."""
    df = pd.DataFrame({
        "x": [50.0, 60.0, 150.0, 160.0, 240.0, 400.0],
        "y": [50.0, 40.0, 150.0, 140.0, 20.0, 400.0],
        "group_size": [10.0, 14.0, 6.0, 8.0, 3.0, 9.0],
    })
    return gpd.GeoDataFrame(
        df,
        geometry=gpd.points_from_xy(df.x, df.y),
        crs=UTM_CRS,
    )


@pytest.fixture
def tree_gdf():
    """Feeding tree locations in the same CRS as the ranging fixes."""
    xs = [20.0, 30.0, 120.0, 220.0, 230.0, 235.0]
    ys = [20.0, 80.0, 30.0, 220.0, 210.0, 240.0]
    return gpd.GeoDataFrame(
        {"dbh": [30.0, 45.0, 25.0, 60.0, 52.0, 41.0]},
        geometry=gpd.points_from_xy(xs, ys),
        crs=UTM_CRS,
    )


@pytest.fixture
def random_fixes():
    """Normally distributed fixes around (1000, 2000)."""
    rng = np.random.default_rng(42)
    return rng.normal(loc=(1000.0, 2000.0), scale=(120.0, 80.0), size=(200, 2))
