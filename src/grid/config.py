"""
Configuration for a grid aggregation run.

Configs are plain dataclasses, validated on construction. A JSON file with the
same shape can be loaded with ``load_grid_config``:

    {
        "cell_width": 100,
        "cell_height": 100,
        "datasets": [
            {"name": "ranging", "reducers": [
                {"attribute": "group_size", "reducer": "mean"},
                {"reducer": "count", "name": "n_points"}]},
            {"name": "trees", "reducers": [{"reducer": "count", "name": "n_trees"}]}
        ],
        "primary_field": "group_size_mean",
        "log_fields": ["n_trees"],
        "reference_point": [500120.0, 9170340.0]
    }
"""

from typing import Any, Dict, List, Optional, Tuple, Union
from dataclasses import dataclass
from pathlib import Path
import json
import logging
import math

from .aggregator import ReducerSpec
from .errors import InvalidGeometryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetConfig:
    """Reducers to run over one point dataset"""
    name: str
    reducers: Tuple[ReducerSpec, ...]

    def __post_init__(self):
        if not self.reducers:
            raise ValueError(f"Dataset '{self.name}' has no reducers")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatasetConfig":
        return cls(
            name=data["name"],
            reducers=tuple(ReducerSpec.from_dict(r) for r in data["reducers"]),
        )


@dataclass(frozen=True)
class GridConfig:
    cell_width: float
    cell_height: float
    datasets: Tuple[DatasetConfig, ...]
    primary_field: Optional[str] = None
    log_fields: Tuple[str, ...] = ()
    log_suffix: str = "_log"
    reference_point: Optional[Tuple[float, float]] = None
    distance_field: str = "dist_to_ref"

    def __post_init__(self):
        for name in ("cell_width", "cell_height"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise InvalidGeometryError(f"{name} must be a positive number, got {value}")
        if not self.datasets:
            raise ValueError("At least one dataset must be configured")

        names = [d.name for d in self.datasets]
        if len(set(names)) != len(names):
            raise ValueError(f"Dataset names must be unique: {names}")

        fields = self.field_names()
        if len(set(fields)) != len(fields):
            raise ValueError(f"Output fields must be unique across datasets: {fields}")
        if self.primary_field is not None and self.primary_field not in fields:
            raise ValueError(f"Primary field '{self.primary_field}' is not produced by any reducer")
        unknown = [f for f in self.log_fields if f not in fields]
        if unknown:
            raise ValueError(f"Log fields not produced by any reducer: {unknown}")

    def field_names(self) -> List[str]:
        return [r.field_name for d in self.datasets for r in d.reducers]

    def dataset(self, name: str) -> DatasetConfig:
        for dataset in self.datasets:
            if dataset.name == name:
                return dataset
        raise KeyError(name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GridConfig":
        cell_width = float(data["cell_width"])
        reference = data.get("reference_point")
        return cls(
            cell_width=cell_width,
            cell_height=float(data.get("cell_height", cell_width)),
            datasets=tuple(DatasetConfig.from_dict(d) for d in data["datasets"]),
            primary_field=data.get("primary_field"),
            log_fields=tuple(data.get("log_fields", ())),
            log_suffix=data.get("log_suffix", "_log"),
            reference_point=tuple(reference) if reference is not None else None,
            distance_field=data.get("distance_field", "dist_to_ref"),
        )


def load_grid_config(path: Union[str, Path]) -> GridConfig:
    """
    Load a GridConfig from a JSON file.

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if the file is not valid JSON or fails validation
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file {path}: {e}") from e
    config = GridConfig.from_dict(data)
    logger.info(
        f"Loaded config from {path}: {config.cell_width}x{config.cell_height} cells, "
        f"{len(config.datasets)} datasets"
    )
    return config
