"""
Tests for run_grid_aggregation.py script.

Runs the CLI end to end on small projected CSVs written to a temp directory.
"""
import argparse
import json
import sys
import importlib.util
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import pandas as pd
import geopandas as gpd
import rasterio
from shapely.geometry import box

from src.grid.aggregator import AggregationResult

# Add scripts directory to path
scripts_dir = Path(__file__).parent.parent / "scripts"
sys.path.insert(0, str(scripts_dir))

# Import the module
spec = importlib.util.spec_from_file_location(
    "run_grid_aggregation",
    scripts_dir / "run_grid_aggregation.py"
)
grid_script = importlib.util.module_from_spec(spec)
spec.loader.exec_module(grid_script)


@pytest.fixture
def workspace(tmp_path):
    """Config plus ranging and tree CSVs in UTM coordinates."""
    ranging = pd.DataFrame({
        "x": [0.0, 250.0, 250.0, 0.0, 50.0, 60.0, 150.0, 160.0, 240.0, 150.0, 50.0, 220.0, 150.0],
        "y": [0.0, 0.0, 250.0, 250.0, 50.0, 40.0, 150.0, 140.0, 20.0, 50.0, 150.0, 150.0, 220.0],
        "group_size": [4, 4, 4, 4, 10, 14, 6, 8, 3, 5, 5, 5, 5],
    })
    trees = pd.DataFrame({
        "x": [20.0, 30.0, 120.0, 220.0],
        "y": [20.0, 80.0, 30.0, 220.0],
    })
    config = {
        "cell_width": 100,
        "datasets": [
            {"name": "ranging", "reducers": [
                {"attribute": "group_size", "reducer": "mean"},
                {"reducer": "count", "name": "n_points"},
            ]},
            {"name": "trees", "reducers": [{"reducer": "count", "name": "n_trees"}]},
        ],
        "primary_field": "group_size_mean",
        "log_fields": ["n_trees"],
        "reference_point": [125.0, 125.0],
    }
    ranging.to_csv(tmp_path / "ranging.csv", index=False)
    trees.to_csv(tmp_path / "trees.csv", index=False)
    (tmp_path / "grid.json").write_text(json.dumps(config))
    return tmp_path


def _argv(workspace, *extra):
    return [
        "run_grid_aggregation.py",
        "--config", str(workspace / "grid.json"),
        "--points", f"ranging={workspace / 'ranging.csv'}",
        "--points", f"trees={workspace / 'trees.csv'}",
        "--x-column", "x",
        "--y-column", "y",
        "--crs", "EPSG:32750",
        "--output", str(workspace / "out" / "grid.gpkg"),
        *extra,
    ]


class TestParsePointsArgument:
    """Test NAME=PATH parsing."""

    def test_valid(self):
        name, path = grid_script.parse_points_argument("trees=data/trees.csv")

        assert name == "trees"
        assert path == Path("data/trees.csv")

    @pytest.mark.parametrize("value", ["trees", "=data.csv", "trees="])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            grid_script.parse_points_argument(value)


class TestMain:
    """Test the script end to end."""

    def test_mcp_study_area(self, workspace):
        """Without a study area the 100% MCP of the ranging fixes is gridded."""
        with patch.object(sys, "argv", _argv(workspace, "--raster-dir", str(workspace / "rasters"))):
            assert grid_script.main() == 0

        gdf = gpd.read_file(workspace / "out" / "grid.gpkg")
        assert len(gdf) == 9  # every cell of the 250 m square has ranging fixes
        assert {"group_size_mean", "n_points", "n_trees", "n_trees_log", "dist_to_ref"} <= set(gdf.columns)
        assert gdf["n_trees"].sum() == 4

        with rasterio.open(workspace / "rasters" / "n_trees.tif") as src:
            assert src.width == 5
            assert src.crs.to_epsg() == 32750

    def test_study_area_file(self, workspace):
        area = gpd.GeoDataFrame(
            geometry=gpd.GeoSeries.from_wkt(["POLYGON ((0 0, 200 0, 200 200, 0 200, 0 0))"]),
            crs="EPSG:32750",
        )
        area.to_file(workspace / "area.gpkg")

        with patch.object(sys, "argv", _argv(workspace, "--study-area", str(workspace / "area.gpkg"))):
            assert grid_script.main() == 0

        gdf = gpd.read_file(workspace / "out" / "grid.gpkg")
        assert len(gdf) == 4

    def test_geographic_study_area_reprojected_to_points(self, workspace):
        """A lon/lat boundary is brought into the projected CRS of the fixes."""
        x0, y0 = 500000.0, 9890000.0
        pd.DataFrame({
            "x": [x0 + 50, x0 + 150, x0 + 50, x0 + 150],
            "y": [y0 + 50, y0 + 50, y0 + 150, y0 + 150],
            "group_size": [2, 4, 6, 8],
        }).to_csv(workspace / "ranging.csv", index=False)
        pd.DataFrame({"x": [x0 + 50], "y": [y0 + 50]}).to_csv(workspace / "trees.csv", index=False)
        area = gpd.GeoDataFrame(geometry=[box(x0, y0, x0 + 200, y0 + 200)], crs="EPSG:32750")
        area.to_crs("EPSG:4326").to_file(workspace / "area_wgs84.gpkg")

        with patch.object(sys, "argv", _argv(workspace, "--study-area", str(workspace / "area_wgs84.gpkg"))):
            assert grid_script.main() == 0

        gdf = gpd.read_file(workspace / "out" / "grid.gpkg")
        assert gdf.crs.to_epsg() == 32750
        assert gdf.geometry.area.sum() == pytest.approx(40000, rel=1e-6)
        assert gdf["n_points"].sum() == 4
        assert gdf["group_size_mean"].notna().sum() == 4

    def test_geographic_points_rejected(self, workspace):
        argv = [a if a != "EPSG:32750" else "EPSG:4326" for a in _argv(workspace)]
        with patch.object(sys, "argv", argv):
            assert grid_script.main() == 1

    def test_missing_config(self, workspace):
        (workspace / "grid.json").unlink()

        with patch.object(sys, "argv", _argv(workspace)):
            assert grid_script.main() == 1

    def test_attribute_columns(self, workspace):
        config = grid_script.load_grid_config(workspace / "grid.json")

        assert grid_script.attribute_columns(config, "ranging") == ["group_size"]
        assert grid_script.attribute_columns(config, "trees") == []

    def test_skipped_points_include_dropped_rows(self, workspace):
        """Rows dropped at load time are reported with the non-finite points."""
        ranging = pd.read_csv(workspace / "ranging.csv")
        bad_row = pd.DataFrame({"x": ["bad"], "y": [10.0], "group_size": [3]})
        pd.concat([ranging, bad_row]).to_csv(workspace / "ranging.csv", index=False)
        config = grid_script.load_grid_config(workspace / "grid.json")
        args = argparse.Namespace(
            points=[("ranging", workspace / "ranging.csv")],
            x_column="x", y_column="y", crs="EPSG:32750", target_crs=None,
        )

        datasets = grid_script.load_datasets(args, config)
        result = SimpleNamespace(aggregations={
            "ranging": AggregationResult(summaries=(), field_reducers={}, skipped_points=2),
        })

        assert grid_script.skipped_points(result, datasets) == {"ranging": 3}
