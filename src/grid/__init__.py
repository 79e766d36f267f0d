from .errors import GridError, InvalidGeometryError, DomainError
from .models import (
    REDUCERS,
    CellSummary,
    ClippedCell,
    Grid,
    GridCell,
    ObservationPoint,
    is_absent,
)
from .builder import build_grid, iter_cells
from .clipper import clip_grid
from .aggregator import AggregationResult, ReducerSpec, aggregate_points, merge_results
from .derive import add_centroid_distance, drop_absent, log_transform
from .config import DatasetConfig, GridConfig, load_grid_config
from .pipeline import PipelineResult, run_pipeline

__all__ = [
    "GridError",
    "InvalidGeometryError",
    "DomainError",
    "REDUCERS",
    "CellSummary",
    "ClippedCell",
    "Grid",
    "GridCell",
    "ObservationPoint",
    "is_absent",
    "build_grid",
    "iter_cells",
    "clip_grid",
    "AggregationResult",
    "ReducerSpec",
    "aggregate_points",
    "merge_results",
    "add_centroid_distance",
    "drop_absent",
    "log_transform",
    "DatasetConfig",
    "GridConfig",
    "load_grid_config",
    "PipelineResult",
    "run_pipeline",
]
