"""
Grid construction over a study polygon.

The grid tiles the polygon's bounding box padded by one cell on every side so
that points sitting exactly on the extreme coordinates still fall inside a
cell, and so the fringe cells exist for clipping.
"""

from typing import Iterator
import logging
import math

from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from .errors import InvalidGeometryError
from .models import Grid, GridCell

logger = logging.getLogger(__name__)

# Tolerance used when turning a span into a whole number of cells
_SPAN_TOLERANCE = 1e-9


def validate_polygon(polygon: BaseGeometry) -> None:
    """
    Check that a study polygon can be gridded.

    Raises:
        InvalidGeometryError: if the geometry is missing, empty, not polygonal,
            invalid or has no area
    """
    if polygon is None or polygon.is_empty:
        raise InvalidGeometryError("Study polygon is empty")
    if polygon.geom_type not in ("Polygon", "MultiPolygon"):
        raise InvalidGeometryError(
            f"Study area must be a Polygon or MultiPolygon, got {polygon.geom_type}"
        )
    if not polygon.is_valid:
        raise InvalidGeometryError("Study polygon is not a valid geometry")
    if not polygon.area > 0:
        raise InvalidGeometryError("Study polygon has zero area")


def validate_cell_size(cell_width: float, cell_height: float) -> None:
    for name, value in (("cell_width", cell_width), ("cell_height", cell_height)):
        if not math.isfinite(value) or value <= 0:
            raise InvalidGeometryError(f"{name} must be a positive number, got {value}")


def _cells_for_span(span: float, size: float) -> int:
    return max(1, math.ceil(span / size - _SPAN_TOLERANCE))


def build_grid(polygon: BaseGeometry, cell_width: float,
               cell_height: float) -> Grid:
    """
    Build a regular grid covering the polygon's extent plus one cell per side.

    Args:
        polygon: Study area (home range) in a projected CRS
        cell_width: Cell width in the polygon's linear unit
        cell_height: Cell height in the polygon's linear unit

    Returns:
        Grid whose cell (0, 0) covers [minx - w, minx) x [miny - h, miny)

    Raises:
        InvalidGeometryError: for degenerate polygons or non-positive cell sizes
    """
    validate_cell_size(cell_width, cell_height)
    validate_polygon(polygon)

    minx, miny, maxx, maxy = polygon.bounds
    origin_x = minx - cell_width
    origin_y = miny - cell_height
    n_cols = _cells_for_span((maxx + cell_width) - origin_x, cell_width)
    n_rows = _cells_for_span((maxy + cell_height) - origin_y, cell_height)

    grid = Grid(
        origin_x=origin_x,
        origin_y=origin_y,
        cell_width=float(cell_width),
        cell_height=float(cell_height),
        n_rows=n_rows,
        n_cols=n_cols,
    )
    logger.info(
        f"Built {n_rows}x{n_cols} grid ({len(grid)} cells) "
        f"of {cell_width}x{cell_height} from origin ({origin_x}, {origin_y})"
    )
    return grid


def iter_cells(grid: Grid) -> Iterator[GridCell]:
    """Yield every raw cell of the grid ordered by (row, col)"""
    for row in range(grid.n_rows):
        for col in range(grid.n_cols):
            yield GridCell(row=row, col=col, geometry=box(*grid.cell_bounds(row, col)))
