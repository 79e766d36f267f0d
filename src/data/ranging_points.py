"""
GPS ranging point import.

Loads tabular GPS fixes (one row per observation) into a GeoDataFrame, assigns
the coordinate reference system the coordinates were recorded in and, when
requested, reprojects them into a projected CRS suitable for distance and
area work (e.g. the local UTM zone).
"""

from typing import List, Optional, Sequence, Tuple, Union
from pathlib import Path
import logging

import pandas as pd
import geopandas as gpd

from src.grid.models import ObservationPoint

logger = logging.getLogger(__name__)


def load_ranging_points(
    csv_path: Union[str, Path],
    x_column: str = "longitude",
    y_column: str = "latitude",
    crs: str = "EPSG:4326",
    target_crs: Optional[str] = None,
    attribute_columns: Optional[Sequence[str]] = None,
) -> gpd.GeoDataFrame:
    """
    Load GPS points from a CSV file.

    Args:
        csv_path: Path to the CSV file
        x_column: Column holding x / longitude / easting
        y_column: Column holding y / latitude / northing
        crs: CRS the coordinates were recorded in
        target_crs: Optional CRS to reproject into
        attribute_columns: Numeric columns to keep; all other columns are kept
            as-is when None

    Returns:
        GeoDataFrame of point geometries in ``target_crs`` (or ``crs``)
        with the number of dropped rows in ``attrs["skipped_rows"]``

    Raises:
        FileNotFoundError: if the CSV does not exist
        ValueError: if a required column is missing
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Ranging data not found: {csv_path}")

    df = pd.read_csv(csv_path)
    required = [x_column, y_column] + list(attribute_columns or [])
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{csv_path.name} is missing columns: {missing}")

    df[x_column] = pd.to_numeric(df[x_column], errors="coerce")
    df[y_column] = pd.to_numeric(df[y_column], errors="coerce")
    bad = df[x_column].isna() | df[y_column].isna()
    if bad.any():
        logger.warning(f"Dropping {int(bad.sum())} rows with unparseable coordinates from {csv_path.name}")
        df = df[~bad].reset_index(drop=True)

    if attribute_columns:
        for col in attribute_columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        df = df[[x_column, y_column] + list(attribute_columns)]

    gdf = gpd.GeoDataFrame(
        df,
        geometry=gpd.points_from_xy(df[x_column], df[y_column]),
        crs=crs,
    )
    logger.info(f"Loaded {len(gdf):,} points from {csv_path} ({crs})")

    if target_crs is not None and gdf.crs != target_crs:
        gdf = gdf.to_crs(target_crs)
        logger.info(f"Reprojected points to {target_crs}")
    gdf.attrs["skipped_rows"] = int(bad.sum())
    return gdf


def ensure_projected(gdf: gpd.GeoDataFrame) -> None:
    """
    Check that a layer has a projected CRS (linear units).

    Raises:
        ValueError: if the CRS is missing or geographic
    """
    if gdf.crs is None:
        raise ValueError("Layer has no CRS assigned")
    if not gdf.crs.is_projected:
        raise ValueError(f"Layer CRS {gdf.crs.to_string()} is geographic; reproject first")


def points_from_frame(gdf: gpd.GeoDataFrame,
                      attribute_columns: Sequence[str] = ()) -> Tuple[ObservationPoint, ...]:
    """Convert a point GeoDataFrame into ObservationPoint records"""
    missing = [c for c in attribute_columns if c not in gdf.columns]
    if missing:
        raise ValueError(f"Point data is missing attribute columns: {missing}")

    points: List[ObservationPoint] = []
    for geom, (_, row) in zip(gdf.geometry, gdf.iterrows()):
        x = geom.x if geom is not None and not geom.is_empty else float("nan")
        y = geom.y if geom is not None and not geom.is_empty else float("nan")
        attributes = {c: float(row[c]) for c in attribute_columns if pd.notna(row[c])}
        points.append(ObservationPoint(x=x, y=y, attributes=attributes))
    return tuple(points)
