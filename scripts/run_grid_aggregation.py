#!/usr/bin/env python3
"""
Aggregate ranging point attributes into a grid clipped to a home range.

Builds a grid over the study area (a boundary file, or an MCP of the first
dataset's fixes), aggregates every configured point dataset into it, derives
distance/log fields and writes the cell summaries as a vector layer, with
optional GeoTIFFs for thematic maps.

Usage:
    python scripts/run_grid_aggregation.py --config grid.json \
        --points ranging=data/ranging.csv --points trees=data/trees.csv \
        --target-crs EPSG:32750 --output output/grid.gpkg [--study-area PATH]
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Tuple
import sys

import geopandas as gpd

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.data.ranging_points import ensure_projected, load_ranging_points
from src.data.study_area import load_study_area
from src.grid.config import GridConfig, load_grid_config
from src.grid.errors import GridError
from src.grid.pipeline import run_pipeline
from src.grid.raster import summaries_to_geodataframe, write_geotiff
from src.homerange.mcp import home_range_area, minimum_convex_polygon

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_points_argument(value: str) -> Tuple[str, Path]:
    """Parse a NAME=PATH --points argument."""
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"Expected NAME=PATH, got '{value}'")
    name, path = value.split("=", 1)
    if not name or not path:
        raise argparse.ArgumentTypeError(f"Expected NAME=PATH, got '{value}'")
    return name, Path(path)


def attribute_columns(config: GridConfig, dataset_name: str) -> List[str]:
    """Columns a dataset needs for its reducers."""
    dataset = config.dataset(dataset_name)
    return sorted({r.attribute for r in dataset.reducers if r.attribute and r.reducer != "count"})


def load_datasets(args, config: GridConfig) -> Dict[str, gpd.GeoDataFrame]:
    """Load and project every --points dataset named in the config."""
    configured = [d.name for d in config.datasets]
    datasets = {}
    for name, path in args.points:
        if name not in configured:
            logger.warning(f"Dataset '{name}' is not in the config, ignoring")
            continue
        gdf = load_ranging_points(
            path,
            x_column=args.x_column,
            y_column=args.y_column,
            crs=args.crs,
            target_crs=args.target_crs,
            attribute_columns=attribute_columns(config, name),
        )
        ensure_projected(gdf)
        datasets[name] = gdf
    return datasets


def skipped_points(result, datasets: Dict[str, gpd.GeoDataFrame]) -> Dict[str, int]:
    """Rows dropped while loading plus points skipped for non-finite coordinates."""
    return {
        name: aggregation.skipped_points + datasets[name].attrs.get("skipped_rows", 0)
        for name, aggregation in result.aggregations.items()
    }


def resolve_study_area(args, datasets, config: GridConfig):
    """Load the study area file, or fall back to an MCP of the first dataset."""
    first = config.datasets[0].name
    if args.study_area:
        # the area must share the points' projected CRS
        polygon, crs = load_study_area(args.study_area, target_crs=datasets[first].crs)
        if crs is None or not crs.is_projected:
            raise ValueError(f"Study area CRS {crs} is not projected")
        return polygon, crs

    logger.info(f"No study area given, using {args.mcp_percent:g}% MCP of '{first}'")
    polygon = minimum_convex_polygon(datasets[first], percent=args.mcp_percent)
    logger.info(f"  Home range area: {home_range_area(polygon, 'ha'):.2f} ha")
    return polygon, datasets[first].crs


def main():
    parser = argparse.ArgumentParser(
        description="Aggregate point attributes into a grid clipped to a home range"
    )
    parser.add_argument("--config", type=Path, required=True,
                        help="JSON grid config (cell size, datasets, reducers)")
    parser.add_argument("--points", type=parse_points_argument, action="append", required=True,
                        metavar="NAME=PATH", help="Point CSV for a configured dataset")
    parser.add_argument("--study-area", type=Path, default=None,
                        help="Boundary file; defaults to an MCP of the first dataset")
    parser.add_argument("--mcp-percent", type=float, default=100.0,
                        help="MCP percent when no study area is given (default: 100)")
    parser.add_argument("--x-column", default="longitude")
    parser.add_argument("--y-column", default="latitude")
    parser.add_argument("--crs", default="EPSG:4326",
                        help="CRS of the CSV coordinates (default: EPSG:4326)")
    parser.add_argument("--target-crs", default=None,
                        help="Projected CRS to work in, e.g. EPSG:32750")
    parser.add_argument("--output", type=Path, required=True,
                        help="Output vector file (.gpkg or .geojson)")
    parser.add_argument("--raster-dir", type=Path, default=None,
                        help="Write one GeoTIFF per output field to this directory")

    args = parser.parse_args()

    try:
        config = load_grid_config(args.config)
        datasets = load_datasets(args, config)
        polygon, crs = resolve_study_area(args, datasets, config)
        result = run_pipeline(polygon, datasets, config)
    except (FileNotFoundError, ValueError, KeyError, GridError) as e:
        logger.error(f"Grid aggregation failed: {e}")
        return 1

    args.output.parent.mkdir(parents=True, exist_ok=True)
    gdf = summaries_to_geodataframe(result.summaries, crs=crs)
    gdf.to_file(args.output)
    logger.info(f"Saved {len(gdf)} cell summaries to {args.output}")

    if args.raster_dir is not None:
        raster_crs = crs.to_wkt() if crs is not None else None
        fields = [c for c in gdf.columns if c not in ("row", "col", "geometry")]
        for field in fields:
            write_geotiff(args.raster_dir / f"{field}.tif", result.grid,
                          result.summaries, field, crs=raster_crs)

    # Summary
    logger.info("\n✓ Grid aggregation complete!")
    logger.info(f"  Grid: {result.grid.n_rows}x{result.grid.n_cols}, {len(result.cells)} clipped cells")
    skipped = skipped_points(result, datasets)
    for name, aggregation in result.aggregations.items():
        logger.info(
            f"  {name}: {aggregation.assigned_points:,} assigned, "
            f"{aggregation.excluded_points:,} outside, {skipped[name]:,} skipped"
        )
    logger.info(f"  Output cells: {len(result.summaries)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
