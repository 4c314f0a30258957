"""
Tests for spatial projection and point-layer QA.

- Missing, non-numeric and out-of-range coordinates are excluded, not errors
- Output layer is EPSG:4326 with numeric latitude/longitude
- Optional study area clips the layer
"""

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from shapely.geometry import Point

from crime_atlas.cleaning import load_and_clean
from crime_atlas.qa import (
    BoundsError,
    CRSError,
    assert_expected_crs,
    check_bounds_epsg4326,
    compute_na_rates,
    crs_info,
    validate_points,
)
from crime_atlas.spatial import coordinate_matrix, project_incidents


def coords(lats, lons):
    return pd.DataFrame({"Latitude": lats, "Longitude": lons})


class TestProjectIncidents:
    """Tests for project_incidents."""

    def test_scenario_gives_four_points(self, scenario_csv):
        cleaned, _ = load_and_clean(scenario_csv)
        gdf, stats = project_incidents(cleaned)
        assert len(gdf) == 4
        assert stats["missing_or_non_numeric"] == 1
        assert stats["points_out"] == 4

    def test_crs_is_wgs84(self):
        gdf, _ = project_incidents(coords(["41.8"], ["-87.6"]))
        assert gdf.crs.to_epsg() == 4326

    def test_geometry_is_lon_lat(self):
        gdf, _ = project_incidents(coords(["41.8"], ["-87.6"]))
        point = gdf.geometry.iloc[0]
        assert point.x == pytest.approx(-87.6)
        assert point.y == pytest.approx(41.8)
        assert gdf["latitude"].dtype == np.float64

    def test_non_numeric_and_missing_excluded(self):
        df = coords(["41.8", "abc", pd.NA, "41.9"], ["-87.6", "-87.6", "-87.6", ""])
        gdf, stats = project_incidents(df)
        assert len(gdf) == 1
        assert stats["missing_or_non_numeric"] == 3

    def test_out_of_range_excluded(self):
        df = coords([41.8, 95.0, -91.0, 41.8], [-87.6, -87.6, -87.6, 200.0])
        gdf, stats = project_incidents(df)
        assert len(gdf) == 1
        assert stats["out_of_range"] == 3

    def test_non_finite_excluded(self):
        df = coords([41.8, np.inf], [-87.6, -87.6])
        gdf, stats = project_incidents(df)
        assert len(gdf) == 1
        assert stats["missing_or_non_numeric"] == 1

    def test_study_area_clips(self):
        df = coords([41.8, 36.1], [-87.6, -86.7])
        gdf, stats = project_incidents(df, bounds=(-87.95, 41.60, -87.50, 42.05))
        assert gdf["latitude"].tolist() == [41.8]
        assert stats["outside_study_area"] == 1

    def test_keeps_row_order_and_columns(self):
        df = coords([41.9, 41.8], [-87.7, -87.6])
        df["ID"] = [7, 8]
        gdf, _ = project_incidents(df)
        assert gdf["ID"].tolist() == [7, 8]

    def test_input_not_modified(self):
        df = coords(["41.8"], ["-87.6"])
        before = df.copy()
        project_incidents(df)
        pd.testing.assert_frame_equal(df, before)

    def test_empty_input(self):
        gdf, stats = project_incidents(coords(pd.Series([], dtype=object), pd.Series([], dtype=object)))
        assert len(gdf) == 0
        assert stats["points_out"] == 0

    def test_missing_column_raises(self):
        with pytest.raises(KeyError):
            project_incidents(pd.DataFrame({"Latitude": [41.8]}))


class TestCoordinateMatrix:
    """Tests for coordinate_matrix."""

    def test_latitude_first(self):
        gdf, _ = project_incidents(coords([41.8, 41.9], [-87.6, -87.7]))
        X = coordinate_matrix(gdf)
        assert X.shape == (2, 2)
        np.testing.assert_allclose(X, [[41.8, -87.6], [41.9, -87.7]])


class TestPointQA:
    """Tests for CRS and bounds checks."""

    @pytest.fixture
    def gdf(self):
        return gpd.GeoDataFrame(
            {"v": [1, 2]},
            geometry=[Point(-87.6, 41.8), Point(-87.7, 41.9)],
            crs="EPSG:4326",
        )

    def test_expected_crs_passes(self, gdf):
        assert_expected_crs(gdf, 4326)

    def test_wrong_crs_raises(self, gdf):
        with pytest.raises(CRSError, match="mismatch"):
            assert_expected_crs(gdf.to_crs("EPSG:3857"), 4326)

    def test_missing_crs_raises(self):
        bare = gpd.GeoDataFrame({"v": [1]}, geometry=[Point(0, 0)])
        with pytest.raises(CRSError, match="no CRS"):
            validate_points(bare)

    def test_bounds_check(self, gdf):
        assert check_bounds_epsg4326(gdf, lon_min=-88, lon_max=-87, lat_min=41, lat_max=42)
        with pytest.raises(BoundsError, match="Latitude"):
            check_bounds_epsg4326(gdf, lat_min=41.85)

    def test_empty_layer_passes_bounds(self, gdf):
        assert check_bounds_epsg4326(gdf.iloc[0:0], lon_min=0, lon_max=1)

    def test_crs_info(self, gdf):
        info = crs_info(gdf)
        assert info["epsg"] == 4326
        assert info["n_points"] == 2
        assert info["bounds"] == pytest.approx([-87.7, 41.8, -87.6, 41.9])

    def test_na_rates(self):
        df = pd.DataFrame({"a": [1, None], "b": [1, 2]})
        assert compute_na_rates(df) == {"a": 0.5, "b": 0.0}
        assert compute_na_rates(df.iloc[0:0]) == {"a": 0.0, "b": 0.0}
