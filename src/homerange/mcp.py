"""
Minimum convex polygon (MCP) home ranges.

The percent MCP keeps the given share of fixes closest to the mean centre of
all fixes and returns the convex hull of those, the usual way of trimming
outlying excursions from a home range estimate.
"""

from typing import Union
import logging

import numpy as np
import geopandas as gpd
import shapely
from shapely.geometry import MultiPoint
from shapely.geometry.base import BaseGeometry

from src.grid.errors import InvalidGeometryError

logger = logging.getLogger(__name__)

AREA_UNITS = {
    "m2": 1.0,
    "ha": 1e4,
    "km2": 1e6,
}


def _coordinates(points: Union[gpd.GeoDataFrame, gpd.GeoSeries, np.ndarray]) -> np.ndarray:
    """Finite (n, 2) coordinate array from points in any supported form"""
    if isinstance(points, gpd.GeoDataFrame):
        points = points.geometry
    if isinstance(points, gpd.GeoSeries):
        coords = shapely.get_coordinates(points.to_numpy())
    else:
        coords = np.asarray(points, dtype=float).reshape(-1, 2)
    return coords[np.isfinite(coords).all(axis=1)]


def minimum_convex_polygon(points: Union[gpd.GeoDataFrame, gpd.GeoSeries, np.ndarray],
                           percent: float = 100.0) -> BaseGeometry:
    """
    Compute the percent minimum convex polygon of a set of fixes.

    Args:
        points: Point GeoDataFrame/GeoSeries or an (n, 2) coordinate array,
            in a projected CRS
        percent: Share of fixes to keep, in (0, 100]

    Returns:
        Polygon enclosing the retained fixes

    Raises:
        ValueError: if percent is outside (0, 100]
        InvalidGeometryError: if fewer than 3 non-collinear fixes remain
    """
    if not 0 < percent <= 100:
        raise ValueError(f"percent must be in (0, 100], got {percent}")

    coords = _coordinates(points)
    if len(coords) < 3:
        raise InvalidGeometryError(f"MCP needs at least 3 fixes, got {len(coords)}")

    centre = coords.mean(axis=0)
    distances = np.hypot(coords[:, 0] - centre[0], coords[:, 1] - centre[1])
    n_keep = int(np.ceil(len(coords) * percent / 100.0))
    keep = np.argsort(distances, kind="stable")[:max(n_keep, 3)]

    hull = MultiPoint(coords[keep]).convex_hull
    if hull.geom_type != "Polygon" or hull.area <= 0:
        raise InvalidGeometryError("MCP fixes are collinear; hull has no area")

    logger.info(
        f"{percent:g}% MCP from {len(keep)} of {len(coords)} fixes: "
        f"{home_range_area(hull, 'ha'):.2f} ha"
    )
    return hull


def home_range_area(polygon: BaseGeometry, unit: str = "ha") -> float:
    """Area of a projected home range polygon in m2, ha or km2"""
    if unit not in AREA_UNITS:
        raise ValueError(f"Unknown area unit '{unit}', expected one of {list(AREA_UNITS)}")
    return polygon.area / AREA_UNITS[unit]
