"""
Basic point-pattern density measures for ranging fixes.
"""

from typing import Dict
import logging

import geopandas as gpd
import shapely
from shapely.geometry.base import BaseGeometry

from src.grid.aggregator import ReducerSpec, aggregate_points
from src.grid.builder import build_grid, validate_polygon
from src.grid.clipper import clip_grid
from src.grid.models import CellKey

logger = logging.getLogger(__name__)


def point_intensity(points: gpd.GeoDataFrame, window: BaseGeometry) -> float:
    """
    Average intensity: number of points inside the window per unit area.

    Points on the window boundary count as inside.
    """
    validate_polygon(window)
    inside = shapely.covers(window, points.geometry.to_numpy())
    n_inside = int(inside.sum())
    intensity = n_inside / window.area
    logger.info(f"{n_inside} points in window of area {window.area:.1f}: intensity={intensity:.3g}")
    return intensity


def quadrat_counts(points: gpd.GeoDataFrame, window: BaseGeometry,
                   cell_width: float, cell_height: float) -> Dict[CellKey, int]:
    """
    Count points per quadrat of a grid clipped to the window.

    Returns:
        {(row, col): count} for every clipped quadrat, 0 included
    """
    grid = build_grid(window, cell_width, cell_height)
    cells = clip_grid(grid, window)
    result = aggregate_points(cells, points, [ReducerSpec(None, "count", "n")])
    return {s.key: s.values["n"] for s in result.summaries}
