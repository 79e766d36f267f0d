"""
Tests for study area loading.
"""
import pytest
from unittest.mock import patch
import geopandas as gpd
from shapely.geometry import Point, box

from src.data.study_area import load_study_area
from src.grid.errors import InvalidGeometryError

UTM_CRS = "EPSG:32750"


@pytest.fixture
def home_range_shapefile(tmp_path):
    """Two adjacent group home ranges written as a shapefile."""
    gdf = gpd.GeoDataFrame(
        {"GROUP": ["A", "B"]},
        geometry=[box(0, 0, 100, 100), box(100, 0, 200, 100)],
        crs=UTM_CRS,
    )
    path = tmp_path / "home_ranges.shp"
    gdf.to_file(path)
    return path


class TestLoadStudyArea:
    """Test load_study_area()."""

    def test_dissolves_features(self, home_range_shapefile):
        polygon, crs = load_study_area(home_range_shapefile)

        assert polygon.area == pytest.approx(20000)
        assert polygon.geom_type == "Polygon"
        assert crs.to_epsg() == 32750

    def test_layer_filter(self, home_range_shapefile):
        polygon, _ = load_study_area(home_range_shapefile, layer_filter={"GROUP": "B"})

        assert polygon.bounds == pytest.approx((100, 0, 200, 100))

    def test_filter_unknown_column(self, home_range_shapefile):
        with pytest.raises(ValueError):
            load_study_area(home_range_shapefile, layer_filter={"TROOP": "A"})

    def test_filter_matches_nothing(self, home_range_shapefile):
        with pytest.raises(InvalidGeometryError):
            load_study_area(home_range_shapefile, layer_filter={"GROUP": "Z"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_study_area(tmp_path / "nothing.shp")

    @patch('src.data.study_area.gpd.read_file')
    def test_point_layer_rejected(self, mock_read_file, tmp_path):
        """A layer without polygons cannot be a study area."""
        path = tmp_path / "points.shp"
        path.touch()
        mock_read_file.return_value = gpd.GeoDataFrame(geometry=[Point(0, 0)], crs=UTM_CRS)

        with pytest.raises(InvalidGeometryError):
            load_study_area(path)
        mock_read_file.assert_called_once_with(path)

    @patch('src.data.study_area.gpd.read_file')
    def test_reprojects(self, mock_read_file, tmp_path):
        path = tmp_path / "area.shp"
        path.touch()
        mock_read_file.return_value = gpd.GeoDataFrame(
            geometry=[box(116.9, -1.0, 117.0, -0.9)], crs="EPSG:4326"
        )

        polygon, crs = load_study_area(path, target_crs=UTM_CRS)

        assert crs.to_epsg() == 32750
        assert polygon.area > 1e7  # roughly 11 km x 11 km in metres

    @patch('src.data.study_area.gpd.read_file')
    def test_missing_crs_rejected_when_reprojecting(self, mock_read_file, tmp_path):
        """A layer without a CRS cannot be aligned with the point data."""
        path = tmp_path / "area.shp"
        path.touch()
        mock_read_file.return_value = gpd.GeoDataFrame(geometry=[box(0, 0, 100, 100)])

        with pytest.raises(ValueError, match="no CRS"):
            load_study_area(path, target_crs=UTM_CRS)

    @patch('src.data.study_area.gpd.read_file')
    def test_missing_crs_kept_without_target(self, mock_read_file, tmp_path):
        path = tmp_path / "area.shp"
        path.touch()
        mock_read_file.return_value = gpd.GeoDataFrame(geometry=[box(0, 0, 100, 100)])

        polygon, crs = load_study_area(path)

        assert crs is None
        assert polygon.area == pytest.approx(10000)
