"""
Study area (home range / reserve boundary) loading.

Reads polygon layers from shapefiles, GeoPackages or GeoJSON and dissolves
them into a single polygon for gridding.
"""

from typing import Any, Dict, Optional, Tuple, Union
from pathlib import Path
import logging

import geopandas as gpd
from shapely.geometry.base import BaseGeometry

from src.grid.errors import InvalidGeometryError

logger = logging.getLogger(__name__)


def load_study_area(
    path: Union[str, Path],
    target_crs: Optional[str] = None,
    layer_filter: Optional[Dict[str, Any]] = None,
) -> Tuple[BaseGeometry, Any]:
    """
    Load a polygon layer and dissolve it into one study polygon.

    Args:
        path: Vector file readable by geopandas (e.g. a .shp)
        target_crs: Optional CRS (string or pyproj CRS) to reproject into
        layer_filter: Optional {column: value} filter, e.g. {"GROUP": "A"}

    Returns:
        (polygon, crs)

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if the layer has no CRS but a target CRS is requested
        InvalidGeometryError: if no polygon features remain
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Study area file not found: {path}")

    gdf = gpd.read_file(path)
    logger.info(f"Loaded {len(gdf)} features from {path}")

    for column, value in (layer_filter or {}).items():
        if column not in gdf.columns:
            raise ValueError(f"Filter column '{column}' not in {path.name}")
        gdf = gdf[gdf[column] == value]

    gdf = gdf[gdf.geometry.notna() & gdf.geom_type.isin(["Polygon", "MultiPolygon"])]
    if gdf.empty:
        raise InvalidGeometryError(f"No polygon features in {path}")

    if target_crs is not None and gdf.crs is None:
        raise ValueError(f"Study area {path.name} has no CRS; cannot reproject to {target_crs}")
    if target_crs is not None and gdf.crs != target_crs:
        gdf = gdf.to_crs(target_crs)
        logger.info(f"Reprojected study area to {target_crs}")

    polygon = gdf.geometry.union_all()
    return polygon, gdf.crs
