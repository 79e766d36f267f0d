from typing import Dict, Mapping, Optional, Tuple
from dataclasses import dataclass, field, replace
import math

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

# Reducers supported by the point aggregator
REDUCERS = ("mean", "count", "sum")

CellKey = Tuple[int, int]  # (row, col)


def is_absent(value: Optional[float]) -> bool:
    """True for the no-data marker (None) and for NaN coming out of pandas"""
    return value is None or (isinstance(value, float) and math.isnan(value))


@dataclass(frozen=True)
class ObservationPoint:
    """A projected location with its numeric attributes"""
    x: float
    y: float
    attributes: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class GridCell:
    """Unclipped rectangular cell of a Grid"""
    row: int
    col: int
    geometry: Polygon

    @property
    def key(self) -> CellKey:
        return (self.row, self.col)


@dataclass(frozen=True)
class Grid:
    """Regular grid anchored at (origin_x, origin_y), rows growing with y"""
    origin_x: float
    origin_y: float
    cell_width: float
    cell_height: float
    n_rows: int
    n_cols: int

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (
            self.origin_x,
            self.origin_y,
            self.origin_x + self.n_cols * self.cell_width,
            self.origin_y + self.n_rows * self.cell_height,
        )

    def cell_bounds(self, row: int, col: int) -> Tuple[float, float, float, float]:
        minx = self.origin_x + col * self.cell_width
        miny = self.origin_y + row * self.cell_height
        return (minx, miny, minx + self.cell_width, miny + self.cell_height)

    def __len__(self) -> int:
        return self.n_rows * self.n_cols


@dataclass(frozen=True)
class ClippedCell:
    """Grid cell intersected with the study polygon (never zero-area)"""
    row: int
    col: int
    geometry: BaseGeometry
    is_full: bool = False  # True when the whole rectangle lies inside the polygon

    @property
    def key(self) -> CellKey:
        return (self.row, self.col)


@dataclass(frozen=True)
class CellSummary:
    """Aggregated values for one clipped cell.

    ``values`` maps field name to a float, or None when the cell has no
    observation for that field.
    """
    row: int
    col: int
    geometry: BaseGeometry
    values: Mapping[str, Optional[float]]

    @property
    def key(self) -> CellKey:
        return (self.row, self.col)

    def get(self, name: str) -> Optional[float]:
        return self.values[name]

    def with_values(self, **new_values: Optional[float]) -> "CellSummary":
        """Copy of this summary with fields appended or overwritten"""
        merged: Dict[str, Optional[float]] = dict(self.values)
        merged.update(new_values)
        return replace(self, values=merged)
