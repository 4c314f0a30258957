"""
Tests for descriptive tables and frame schemas.
"""

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Point

from crime_atlas.schemas import (
    CLUSTERED_INCIDENT_SCHEMA,
    SchemaError,
    missing_columns,
    validate_schema,
)
from crime_atlas.summaries import category_counts, dataset_profile


class TestCategoryCounts:
    """Tests for category_counts."""

    @pytest.fixture
    def df(self):
        return pd.DataFrame({
            "Primary Type": ["theft", "battery", "theft", "assault", "battery", "theft", pd.NA],
        })

    def test_most_frequent_first(self, df):
        table = category_counts(df, "Primary Type")
        assert table["category"].tolist() == ["theft", "battery", "assault"]
        assert table["count"].tolist() == [3, 2, 1]
        assert table["share"].sum() == pytest.approx(1.0)

    def test_ties_alphabetical(self):
        df = pd.DataFrame({"t": ["b", "a", "c", "a", "b"]})
        table = category_counts(df, "t")
        assert table["category"].tolist() == ["a", "b", "c"]

    def test_top_n(self, df):
        table = category_counts(df, "Primary Type", top_n=1)
        assert table["category"].tolist() == ["theft"]
        # share is of all incidents, not of the kept rows
        assert table["share"].iloc[0] == pytest.approx(0.5)

    def test_missing_column_raises(self, df):
        with pytest.raises(KeyError):
            category_counts(df, "Ward")

    def test_profile(self, df):
        profile = dataset_profile(df)
        assert profile["rows"] == 7
        assert profile["na_rates"]["Primary Type"] == pytest.approx(1 / 7)


class TestSchemas:
    """Tests for schema validation."""

    @pytest.fixture
    def clustered(self):
        return gpd.GeoDataFrame(
            {
                "latitude": [41.8, 41.9],
                "longitude": [-87.6, -87.7],
                "cluster_id": pd.Series([0, 1], dtype="int64"),
            },
            geometry=[Point(-87.6, 41.8), Point(-87.7, 41.9)],
            crs="EPSG:4326",
        )

    def test_valid_frame_passes(self, clustered):
        assert validate_schema(clustered, CLUSTERED_INCIDENT_SCHEMA) == []

    def test_missing_column(self, clustered):
        with pytest.raises(SchemaError, match="cluster_id"):
            validate_schema(clustered.drop(columns="cluster_id"), CLUSTERED_INCIDENT_SCHEMA)

    def test_wrong_dtype(self, clustered):
        clustered["cluster_id"] = clustered["cluster_id"].astype("float64")
        errors = validate_schema(clustered, CLUSTERED_INCIDENT_SCHEMA, raise_on_error=False)
        assert any("expected integer" in e for e in errors)

    def test_value_out_of_range(self, clustered):
        clustered["latitude"] = [41.8, 95.0]
        errors = validate_schema(clustered, CLUSTERED_INCIDENT_SCHEMA, raise_on_error=False)
        assert any("above max" in e for e in errors)

    def test_empty_frame_fails_min_rows(self, clustered):
        errors = validate_schema(clustered.iloc[0:0], CLUSTERED_INCIDENT_SCHEMA, raise_on_error=False)
        assert any("at least 1 rows" in e for e in errors)

    def test_null_cluster_id(self, clustered):
        clustered["cluster_id"] = pd.Series([0, None], dtype="Int64")
        errors = validate_schema(clustered, CLUSTERED_INCIDENT_SCHEMA, raise_on_error=False)
        assert errors == ["Column cluster_id: 1 NA values not allowed"]

    def test_missing_columns_order(self):
        df = pd.DataFrame({"b": [1]})
        assert missing_columns(df, ["c", "b", "a"]) == ["c", "a"]
