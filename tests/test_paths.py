"""
Tests for the paths module.

Verify that project root detection and canonical paths work correctly.
"""

import pytest
from pathlib import Path

from crime_atlas.paths import (
    PROJECT_ROOT,
    find_project_root,
    resolve_project_path,
    CONFIG_DIR,
    PARAMS_FILE,
    DATA_DIR,
    RAW_DIR,
    LOGS_DIR,
)


class TestProjectRoot:
    """Tests for project root detection."""

    def test_project_root_exists(self):
        """PROJECT_ROOT should be a valid directory."""
        assert PROJECT_ROOT.exists()
        assert PROJECT_ROOT.is_dir()

    def test_project_root_marker_exists(self):
        """The .project-root marker file should exist."""
        marker = PROJECT_ROOT / ".project-root"
        assert marker.exists(), "Missing .project-root marker file"

    def test_find_project_root_from_subdir(self):
        """find_project_root should work from any subdirectory."""
        subdir = PROJECT_ROOT / "src" / "crime_atlas"
        found_root = find_project_root(subdir)
        assert found_root == PROJECT_ROOT

    def test_find_project_root_raises_on_invalid_path(self, tmp_path):
        """find_project_root should raise if no marker found."""
        with pytest.raises(FileNotFoundError):
            find_project_root(tmp_path)

    def test_find_project_root_with_marker(self, tmp_path):
        (tmp_path / ".project-root").touch()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_project_root(nested) == tmp_path


class TestCanonicalPaths:
    """Tests for canonical path definitions."""

    def test_raw_dir_under_data(self):
        """RAW_DIR should be under data/."""
        assert RAW_DIR.name == "raw"
        assert RAW_DIR.parent == DATA_DIR

    def test_params_file_under_config(self):
        assert PARAMS_FILE.parent == CONFIG_DIR
        assert PARAMS_FILE.name == "params.yml"

    def test_all_paths_absolute(self):
        """All canonical paths should be absolute and free of '..'."""
        for p in [PROJECT_ROOT, CONFIG_DIR, PARAMS_FILE, DATA_DIR, RAW_DIR, LOGS_DIR]:
            assert p.is_absolute(), f"Path is not absolute: {p}"
            assert ".." not in p.parts, f"Path contains '..': {p}"


class TestResolveProjectPath:
    """Tests for config-supplied path resolution."""

    def test_relative_path_joins_root(self):
        assert resolve_project_path("data/raw/crimes.csv") == PROJECT_ROOT / "data" / "raw" / "crimes.csv"

    def test_absolute_path_unchanged(self, tmp_path):
        assert resolve_project_path(tmp_path / "x.csv") == tmp_path / "x.csv"

    def test_accepts_path_objects(self):
        assert resolve_project_path(Path("configs")) == CONFIG_DIR


@pytest.mark.smoke
class TestPathsSmoke:
    """Smoke tests for paths module."""

    def test_import_succeeds(self):
        """Basic import should work."""
        from crime_atlas import paths
        assert paths.PROJECT_ROOT is not None

    def test_directories_exist(self):
        """Key directories should exist in a checkout."""
        assert (PROJECT_ROOT / "src").exists()
        assert CONFIG_DIR.exists()
        assert PARAMS_FILE.exists()
