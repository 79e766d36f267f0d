"""
Point-to-cell aggregation.

Points are assigned to the clipped cell that covers them. When a point lies on
an edge shared by two cells, the cell with the larger (row, col) wins, which is
the half-open [min, max) convention of the grid. Each requested reducer is then
computed per cell with pandas.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
import logging

import numpy as np
import pandas as pd
import geopandas as gpd
import shapely

from .models import (
    REDUCERS,
    CellKey,
    CellSummary,
    ClippedCell,
    ObservationPoint,
)

logger = logging.getLogger(__name__)

PointSet = Union[gpd.GeoDataFrame, Sequence[ObservationPoint]]


@dataclass(frozen=True)
class ReducerSpec:
    """One (attribute, reducer) job and the field name it produces"""
    attribute: Optional[str]
    reducer: str
    name: Optional[str] = None

    def __post_init__(self):
        if self.reducer not in REDUCERS:
            raise ValueError(
                f"Unknown reducer '{self.reducer}', expected one of {REDUCERS}"
            )
        if self.reducer != "count" and not self.attribute:
            raise ValueError(f"Reducer '{self.reducer}' needs an attribute")

    @property
    def field_name(self) -> str:
        if self.name:
            return self.name
        if self.reducer == "count":
            return f"{self.attribute}_count" if self.attribute else "n_points"
        return f"{self.attribute}_{self.reducer}"

    @classmethod
    def from_dict(cls, data: Mapping) -> "ReducerSpec":
        return cls(
            attribute=data.get("attribute"),
            reducer=data["reducer"],
            name=data.get("name"),
        )


@dataclass(frozen=True)
class AggregationResult:
    """Summaries of one aggregation pass plus point accounting"""
    summaries: Tuple[CellSummary, ...]
    field_reducers: Mapping[str, str]  # field name -> reducer kind
    assigned_points: int = 0
    skipped_points: int = 0  # non-finite coordinates
    excluded_points: int = 0  # outside every clipped cell

    def by_key(self) -> Dict[CellKey, CellSummary]:
        return {s.key: s for s in self.summaries}

    def __len__(self) -> int:
        return len(self.summaries)


def _default_for(reducer: str) -> Optional[float]:
    return 0 if reducer == "count" else None


def _points_frame(points: PointSet,
                  attributes: List[str]) -> Tuple[np.ndarray, np.ndarray, pd.DataFrame]:
    """
    Split a point set into coordinate arrays and a frame of attribute values.

    Coordinates stay out of the attribute frame so attributes may use any
    name, including "x" or "y".
    """
    if isinstance(points, gpd.GeoDataFrame):
        missing = [a for a in attributes if a not in points.columns]
        if missing:
            raise ValueError(f"Point data is missing attribute columns: {missing}")
        geoms = points.geometry.to_numpy()
        values = pd.DataFrame(
            {a: points[a].astype(float).to_numpy() for a in attributes},
            index=pd.RangeIndex(len(points)),
            dtype=float,
        )
        return shapely.get_x(geoms), shapely.get_y(geoms), values

    points = list(points)
    x = np.array([p.x for p in points], dtype=float)
    y = np.array([p.y for p in points], dtype=float)
    values = pd.DataFrame(
        {a: [p.attributes.get(a, np.nan) for p in points] for a in attributes},
        index=pd.RangeIndex(len(points)),
        dtype=float,
    )
    return x, y, values


def assign_points(cells: Sequence[ClippedCell], x: np.ndarray,
                  y: np.ndarray) -> np.ndarray:
    """
    Find the clipped cell for every coordinate pair.

    Args:
        cells: Clipped cells ordered by (row, col)
        x: Point x coordinates (finite)
        y: Point y coordinates (finite)

    Returns:
        Array of positions into ``cells``, -1 where no cell covers the point
    """
    assignment = np.full(len(x), -1, dtype=np.int64)
    if len(cells) == 0 or len(x) == 0:
        return assignment

    tree = shapely.STRtree([c.geometry for c in cells])
    point_idx, cell_idx = tree.query(shapely.points(x, y), predicate="covered_by")
    # cells are sorted by key, so the highest position is the half-open owner
    np.maximum.at(assignment, point_idx, cell_idx)
    return assignment


def aggregate_points(cells: Sequence[ClippedCell], points: PointSet,
                     reducers: Sequence[ReducerSpec]) -> AggregationResult:
    """
    Aggregate point attributes into clipped cells.

    Args:
        cells: Output of clip_grid
        points: GeoDataFrame of points or a sequence of ObservationPoint
        reducers: Jobs to run; field names must be unique

    Returns:
        AggregationResult with one CellSummary per clipped cell. Empty cells
        read 0 for count fields and None for mean/sum fields.
    """
    if not reducers:
        raise ValueError("At least one reducer is required")
    field_reducers: Dict[str, str] = {}
    for spec in reducers:
        if spec.field_name in field_reducers:
            raise ValueError(f"Duplicate output field '{spec.field_name}'")
        field_reducers[spec.field_name] = spec.reducer

    cells = sorted(cells, key=lambda c: c.key)
    attributes = sorted({s.attribute for s in reducers if s.reducer != "count"})
    x, y, values_frame = _points_frame(points, attributes)

    finite = np.isfinite(x) & np.isfinite(y)
    n_skipped = int((~finite).sum())
    if n_skipped:
        logger.warning(f"Skipped {n_skipped} points with non-finite coordinates")
    x, y = x[finite], y[finite]
    values_frame = values_frame[finite].reset_index(drop=True)

    positions = assign_points(cells, x, y)
    inside = positions >= 0
    assigned = values_frame[inside]
    assigned_positions = positions[inside]
    n_excluded = int((~inside).sum())
    if n_excluded:
        logger.info(f"{n_excluded} points fall outside the clipped grid and were excluded")

    grouped = assigned.groupby(assigned_positions)
    all_cells = pd.RangeIndex(len(cells))
    columns: Dict[str, pd.Series] = {}
    for spec in reducers:
        if spec.reducer == "count":
            series = grouped.size().reindex(all_cells, fill_value=0)
        elif spec.reducer == "sum":
            series = grouped[spec.attribute].sum(min_count=1).reindex(all_cells)
        else:
            series = grouped[spec.attribute].mean().reindex(all_cells)
        columns[spec.field_name] = series

    summaries = []
    for pos, cell in enumerate(cells):
        values: Dict[str, Optional[float]] = {}
        for name, series in columns.items():
            value = series.iloc[pos]
            if field_reducers[name] == "count":
                values[name] = int(value)
            else:
                values[name] = None if pd.isna(value) else float(value)
        summaries.append(CellSummary(cell.row, cell.col, cell.geometry, values))

    logger.info(
        f"Aggregated {len(assigned)} points into {len(np.unique(assigned_positions))} "
        f"of {len(cells)} cells for fields {list(field_reducers)}"
    )
    return AggregationResult(
        summaries=tuple(summaries),
        field_reducers=field_reducers,
        assigned_points=len(assigned),
        skipped_points=n_skipped,
        excluded_points=n_excluded,
    )


def merge_results(left: AggregationResult,
                  right: AggregationResult) -> AggregationResult:
    """
    Merge two aggregation passes by (row, col) identity.

    The merged result holds the union of both cell sets. Fields from a side
    that lacks a cell are defaulted by reducer: 0 for count, None otherwise.
    Geometry comes from the left side when both sides have the cell.

    Raises:
        ValueError: if both results produce a field with the same name
    """
    clash = set(left.field_reducers) & set(right.field_reducers)
    if clash:
        raise ValueError(f"Cannot merge results with overlapping fields: {sorted(clash)}")

    left_cells = left.by_key()
    right_cells = right.by_key()
    left_defaults = {k: _default_for(r) for k, r in left.field_reducers.items()}
    right_defaults = {k: _default_for(r) for k, r in right.field_reducers.items()}

    merged = []
    for key in sorted(set(left_cells) | set(right_cells)):
        lhs = left_cells.get(key)
        rhs = right_cells.get(key)
        values: Dict[str, Optional[float]] = {}
        values.update(lhs.values if lhs is not None else left_defaults)
        values.update(rhs.values if rhs is not None else right_defaults)
        base = lhs if lhs is not None else rhs
        merged.append(CellSummary(base.row, base.col, base.geometry, values))

    only_left = len(set(left_cells) - set(right_cells))
    only_right = len(set(right_cells) - set(left_cells))
    if only_left or only_right:
        logger.debug(
            f"Merge filled defaults for {only_left} left-only and "
            f"{only_right} right-only cells"
        )

    return AggregationResult(
        summaries=tuple(merged),
        field_reducers={**left.field_reducers, **right.field_reducers},
        assigned_points=left.assigned_points + right.assigned_points,
        skipped_points=left.skipped_points + right.skipped_points,
        excluded_points=left.excluded_points + right.excluded_points,
    )
