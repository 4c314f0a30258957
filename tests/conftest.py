"""
Shared fixtures: small incident CSVs written to tmp_path.
"""

import csv

import pytest

from crime_atlas.logging_utils import JSONLLogger


HEADER = ["ID", "Date", "Primary Type", "Location Description", "Year", "Latitude", "Longitude"]

# Six rows: one exact duplicate pair and one placeholder latitude.
# The four valid points form two pairs about 2 degrees apart.
SCENARIO_ROWS = [
    ["1", "01/05/2015 01:00:00 AM", "THEFT", "STREET", "2015", "41.80", "-87.60"],
    ["1", "01/05/2015 01:00:00 AM", "THEFT", "STREET", "2015", "41.80", "-87.60"],
    ["2", "02/10/2015 03:30:00 PM", "BATTERY", "Residence", "2015", "41.81", "-87.61"],
    ["3", "03/15/2015 10:00:00 PM", "NARCOTICS", "Sidewalk", "2015", "43.50", "-89.40"],
    ["4", "04/20/2015 08:15:00 AM", "ASSAULT", "NA", "2015", "43.51", "-89.41"],
    ["5", "05/01/2015 11:45:00 AM", "THEFT", "Alley", "2015", "unknown", "-87.62"],
]


def write_csv(path, rows, header=HEADER):
    """Write rows under a header row and return the path."""
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    return path


@pytest.fixture(autouse=True)
def no_basemap_env(monkeypatch):
    """Keep a developer's exported basemap settings out of the tests."""
    for var in ["CRIME_ATLAS_BASEMAP_TOKEN", "CRIME_ATLAS_BASEMAP_PROVIDER", "CRIME_ATLAS_BASEMAP_ZOOM"]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def scenario_csv(tmp_path):
    """The six-row scenario file."""
    return write_csv(tmp_path / "crimes.csv", SCENARIO_ROWS)


@pytest.fixture
def clean_rows():
    """Rows with no duplicates, gaps or placeholders."""
    return [
        ["10", "01/05/2015 01:00:00 AM", "theft", "street", "2015", "41.80", "-87.60"],
        ["11", "02/10/2015 03:30:00 PM", "battery", "residence", "2015", "41.81", "-87.61"],
        ["12", "12/31/2016 11:59:59 PM", "assault", "alley", "2016", "41.90", "-87.70"],
    ]


@pytest.fixture
def blob_rows():
    """30 incidents in three tight, well-separated location groups."""
    centers = [(41.70, -87.60), (42.70, -88.60), (41.20, -89.60)]
    offsets = [(-0.004, 0.003), (0.002, -0.001), (0.0, 0.0), (0.003, 0.004), (-0.002, -0.003),
               (0.001, -0.004), (-0.003, 0.001), (0.004, 0.002), (-0.001, 0.002), (0.002, 0.003)]
    rows = []
    n = 0
    for lat, lon in centers:
        for dlat, dlon in offsets:
            n += 1
            month = (n % 12) + 1
            rows.append([
                str(n), f"{month:02d}/01/2015 10:00:00 AM", "theft", "street", "2015",
                f"{lat + dlat:.4f}", f"{lon + dlon:.4f}",
            ])
    return rows


@pytest.fixture
def quiet_logger(tmp_path):
    """JSONL logger writing under tmp_path, no console output."""
    logger = JSONLLogger("test_run", log_dir=tmp_path / "logs", console=False)
    yield logger
    if not logger._file_handle.closed:
        logger.close()
