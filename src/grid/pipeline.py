"""
Build -> Clip -> Aggregate -> Derive.

Each stage is a pure function of its inputs, so a run can be repeated or
split across datasets without shared state.
"""

from typing import Dict, List, Mapping, Tuple
from dataclasses import dataclass
import logging

from shapely.geometry.base import BaseGeometry

from .aggregator import AggregationResult, PointSet, aggregate_points, merge_results
from .builder import build_grid
from .clipper import clip_grid
from .config import GridConfig
from .derive import add_centroid_distance, drop_absent, log_transform
from .models import CellSummary, ClippedCell, Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    grid: Grid
    cells: Tuple[ClippedCell, ...]
    aggregations: Mapping[str, AggregationResult]  # per dataset
    merged: AggregationResult
    summaries: Tuple[CellSummary, ...]  # after derivation and filtering

    @property
    def skipped_points(self) -> int:
        return self.merged.skipped_points


def derive_fields(summaries: List[CellSummary], config: GridConfig) -> List[CellSummary]:
    """Apply the configured distance, log and filter steps in that order"""
    if config.reference_point is not None:
        summaries = add_centroid_distance(
            summaries, config.reference_point, field=config.distance_field
        )
    if config.log_fields:
        summaries = log_transform(summaries, config.log_fields, suffix=config.log_suffix)
    if config.primary_field is not None:
        summaries = drop_absent(summaries, config.primary_field)
    return summaries


def run_pipeline(polygon: BaseGeometry, datasets: Mapping[str, PointSet],
                 config: GridConfig) -> PipelineResult:
    """
    Run the full grid aggregation.

    Args:
        polygon: Study area in a projected CRS
        datasets: Point sets keyed by the dataset names used in ``config``
        config: Grid size, reducers and derived-field settings

    Returns:
        PipelineResult with the final summaries ordered by (row, col)
    """
    missing = [d.name for d in config.datasets if d.name not in datasets]
    if missing:
        raise ValueError(f"No point data supplied for datasets: {missing}")

    grid = build_grid(polygon, config.cell_width, config.cell_height)
    cells = clip_grid(grid, polygon)

    aggregations: Dict[str, AggregationResult] = {}
    merged = None
    for dataset in config.datasets:
        logger.info(f"Aggregating dataset '{dataset.name}'")
        result = aggregate_points(cells, datasets[dataset.name], dataset.reducers)
        aggregations[dataset.name] = result
        merged = result if merged is None else merge_results(merged, result)

    summaries = derive_fields(list(merged.summaries), config)
    logger.info(
        f"Pipeline complete: {len(summaries)} cells in output, "
        f"{merged.skipped_points} points skipped"
    )
    return PipelineResult(
        grid=grid,
        cells=tuple(cells),
        aggregations=aggregations,
        merged=merged,
        summaries=tuple(summaries),
    )
