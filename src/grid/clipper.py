"""
Clip grid cells against the study polygon.

Cells whose intersection with the polygon has no area are dropped here and
never reach aggregation.
"""

from typing import List
import logging

import numpy as np
import shapely
from shapely.geometry import MultiPolygon
from shapely.geometry.base import BaseGeometry

from .builder import iter_cells, validate_polygon
from .models import ClippedCell, Grid

logger = logging.getLogger(__name__)


def _polygonal_part(geometry: BaseGeometry) -> BaseGeometry:
    """Drop line/point debris that GEOS may return alongside polygon pieces"""
    if geometry.geom_type in ("Polygon", "MultiPolygon"):
        return geometry
    parts = [
        g for g in getattr(geometry, "geoms", [])
        if g.geom_type == "Polygon" and g.area > 0
    ]
    if len(parts) == 1:
        return parts[0]
    return MultiPolygon(parts)


def clip_grid(grid: Grid, polygon: BaseGeometry) -> List[ClippedCell]:
    """
    Intersect every grid cell with the polygon.

    Args:
        grid: Grid built over the polygon
        polygon: Study area the grid is clipped to

    Returns:
        Non-empty clipped cells ordered by (row, col)

    Raises:
        InvalidGeometryError: if the polygon is degenerate
    """
    validate_polygon(polygon)

    raw_cells = list(iter_cells(grid))
    boxes = np.array([c.geometry for c in raw_cells], dtype=object)

    inside = shapely.contains(polygon, boxes)
    clipped = shapely.intersection(boxes, polygon)
    areas = shapely.area(clipped)

    cells: List[ClippedCell] = []
    for cell, is_inside, geometry, area in zip(raw_cells, inside, clipped, areas):
        if area <= 0:
            continue
        if is_inside:
            cells.append(ClippedCell(cell.row, cell.col, cell.geometry, is_full=True))
        else:
            cells.append(ClippedCell(cell.row, cell.col, _polygonal_part(geometry)))

    n_full = sum(c.is_full for c in cells)
    logger.info(
        f"Clipped grid to polygon: kept {len(cells)} of {len(raw_cells)} cells "
        f"({n_full} full, {len(cells) - n_full} partial)"
    )
    return cells
