"""
Rasterize cell summaries for thematic mapping.

Rasters are north-up: array row 0 is the top (highest y) grid row.
"""

from typing import Optional, Sequence, Tuple, Union
from pathlib import Path
import logging

import numpy as np
import pandas as pd
import geopandas as gpd
import rasterio
from rasterio.transform import Affine, from_origin

from .models import CellSummary, Grid, is_absent

logger = logging.getLogger(__name__)


def grid_transform(grid: Grid) -> Affine:
    """Affine transform mapping raster (col, row) to grid coordinates"""
    _, _, _, maxy = grid.bounds
    return from_origin(grid.origin_x, maxy, grid.cell_width, grid.cell_height)


def summaries_to_array(grid: Grid, summaries: Sequence[CellSummary],
                       field: str) -> Tuple[np.ndarray, Affine]:
    """
    Burn one summary field into a grid-shaped array.

    Cells that were dropped or hold an absent value are NaN.

    Returns:
        (array of shape (n_rows, n_cols), affine transform)
    """
    array = np.full((grid.n_rows, grid.n_cols), np.nan, dtype=np.float64)
    for summary in summaries:
        value = summary.values[field]
        if is_absent(value):
            continue
        array[grid.n_rows - 1 - summary.row, summary.col] = value
    return array, grid_transform(grid)


def write_geotiff(path: Union[str, Path], grid: Grid,
                  summaries: Sequence[CellSummary], field: str,
                  crs: Optional[str] = None) -> Path:
    """
    Write one summary field as a single band float32 GeoTIFF.

    Args:
        path: Output file
        grid: Grid the summaries were built on
        summaries: Cell summaries carrying ``field``
        field: Field to burn
        crs: Projected CRS of the grid (e.g. "EPSG:32750")

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    array, transform = summaries_to_array(grid, summaries, field)

    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=grid.n_rows,
        width=grid.n_cols,
        count=1,
        dtype="float32",
        crs=crs,
        transform=transform,
        nodata=np.nan,
    ) as dst:
        dst.write(array.astype(np.float32), 1)
        dst.set_band_description(1, field)

    logger.info(f"Wrote '{field}' raster ({grid.n_rows}x{grid.n_cols}) to {path}")
    return path


def summaries_to_geodataframe(summaries: Sequence[CellSummary],
                              crs: Optional[str] = None) -> gpd.GeoDataFrame:
    """Flatten summaries into a GeoDataFrame; absent values become NaN"""
    records = []
    for summary in summaries:
        record = {"row": summary.row, "col": summary.col}
        record.update({
            name: (np.nan if is_absent(value) else value)
            for name, value in summary.values.items()
        })
        records.append(record)
    frame = pd.DataFrame.from_records(records, columns=_columns(summaries))
    return gpd.GeoDataFrame(
        frame,
        geometry=[s.geometry for s in summaries],
        crs=crs,
    )


def _columns(summaries: Sequence[CellSummary]):
    columns = ["row", "col"]
    for summary in summaries:
        for name in summary.values:
            if name not in columns:
                columns.append(name)
    return columns
