"""
Kernel density home ranges.

A bivariate normal kernel utilisation distribution (UD) is evaluated on a
regular grid around the fixes. The home range at a given percent is the
smallest set of grid cells holding that share of the UD volume.
"""

from typing import Optional, Union
from dataclasses import dataclass
import logging

import numpy as np
import geopandas as gpd
import shapely
from rasterio.transform import Affine, from_origin
from shapely.geometry.base import BaseGeometry

from src.grid.errors import InvalidGeometryError
from .mcp import _coordinates

logger = logging.getLogger(__name__)


@dataclass
class KernelHomeRange:
    """Kernel home range estimate"""
    polygon: BaseGeometry  # isopleth polygon (union of UD cells)
    density: np.ndarray  # UD, north-up, sums to 1 over the grid
    transform: Affine  # maps (col, row) of ``density`` to coordinates
    bandwidth: float
    percent: float


def reference_bandwidth(coords: np.ndarray) -> float:
    """Reference bandwidth: sqrt(0.5 * (var(x) + var(y))) * n^(-1/6)"""
    n = len(coords)
    sigma = np.sqrt(0.5 * (coords[:, 0].var(ddof=1) + coords[:, 1].var(ddof=1)))
    return float(sigma * n ** (-1.0 / 6.0))


def utilization_distribution(coords: np.ndarray, bandwidth: float,
                             cell_size: float, extent: float = 1.0):
    """
    Evaluate the normalized UD on a grid padded by ``extent`` times the range.

    Returns:
        (volume array north-up, transform)
    """
    minx, miny = coords.min(axis=0)
    maxx, maxy = coords.max(axis=0)
    pad_x = extent * (maxx - minx)
    pad_y = extent * (maxy - miny)
    minx, maxx = minx - pad_x, maxx + pad_x
    miny, maxy = miny - pad_y, maxy + pad_y

    n_cols = max(1, int(np.ceil((maxx - minx) / cell_size)))
    n_rows = max(1, int(np.ceil((maxy - miny) / cell_size)))
    top = miny + n_rows * cell_size

    xs = minx + (np.arange(n_cols) + 0.5) * cell_size
    ys = top - (np.arange(n_rows) + 0.5) * cell_size
    gx, gy = np.meshgrid(xs, ys)

    density = np.zeros(gx.shape)
    h2 = bandwidth ** 2
    for x, y in coords:
        density += np.exp(-((gx - x) ** 2 + (gy - y) ** 2) / (2.0 * h2))
    density /= 2.0 * np.pi * h2 * len(coords)

    volume = density * cell_size ** 2
    volume /= volume.sum()
    return volume, from_origin(minx, top, cell_size, cell_size)


def kernel_home_range(points: Union[gpd.GeoDataFrame, gpd.GeoSeries, np.ndarray],
                      percent: float = 95.0, bandwidth: Optional[float] = None,
                      cell_size: Optional[float] = None, extent: float = 1.0,
                      grid_size: int = 60) -> KernelHomeRange:
    """
    Estimate a kernel density home range.

    Args:
        points: Fixes in a projected CRS
        percent: UD volume contour to extract, in (0, 100)
        bandwidth: Smoothing parameter; reference bandwidth when None
        cell_size: UD grid resolution; derived from ``grid_size`` when None
        extent: Padding around the fixes as a multiple of their range
        grid_size: Cells along the longer side when ``cell_size`` is None

    Raises:
        ValueError: for a bad percent, bandwidth or cell size
        InvalidGeometryError: if fewer than 3 fixes or all fixes coincide
    """
    if not 0 < percent < 100:
        raise ValueError(f"percent must be in (0, 100), got {percent}")

    coords = _coordinates(points)
    if len(coords) < 3:
        raise InvalidGeometryError(f"Kernel home range needs at least 3 fixes, got {len(coords)}")
    span = max(np.ptp(coords[:, 0]), np.ptp(coords[:, 1]))
    if span <= 0:
        raise InvalidGeometryError("All fixes share one location")

    if bandwidth is None:
        bandwidth = reference_bandwidth(coords)
    if bandwidth <= 0:
        raise ValueError(f"bandwidth must be positive, got {bandwidth}")
    if cell_size is None:
        cell_size = span * (1 + 2 * extent) / grid_size
    if cell_size <= 0:
        raise ValueError(f"cell_size must be positive, got {cell_size}")

    volume, transform = utilization_distribution(coords, bandwidth, cell_size, extent)

    # keep highest-density cells until the requested volume is reached
    flat = volume.ravel()
    order = np.argsort(flat, kind="stable")[::-1]
    cumulative = np.cumsum(flat[order])
    n_keep = min(int(np.searchsorted(cumulative, percent / 100.0)) + 1, flat.size)
    rows, cols = np.unravel_index(order[:n_keep], volume.shape)

    left = transform.c + cols * cell_size
    top = transform.f - rows * cell_size
    cells = shapely.box(left, top - cell_size, left + cell_size, top)
    polygon = shapely.union_all(cells)

    logger.info(
        f"{percent:g}% kernel home range: h={bandwidth:.1f}, "
        f"{n_keep} cells, area={polygon.area:.1f}"
    )
    return KernelHomeRange(
        polygon=polygon,
        density=volume,
        transform=transform,
        bandwidth=float(bandwidth),
        percent=percent,
    )
