"""
Spatial projection of incidents to a WGS84 point layer.

Rows without usable coordinates are excluded, never errored: a missing
location is an expected condition in incident data.
"""

from typing import Dict, Optional, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd

from crime_atlas.qa import WGS84_BOUNDS, WGS84_EPSG, validate_points


def _in_box(
    lon: pd.Series,
    lat: pd.Series,
    bounds: Tuple[float, float, float, float],
) -> pd.Series:
    lon_min, lat_min, lon_max, lat_max = bounds
    return lon.between(lon_min, lon_max) & lat.between(lat_min, lat_max)


def project_incidents(
    df: pd.DataFrame,
    lat_column: str = "Latitude",
    lon_column: str = "Longitude",
    bounds: Optional[Tuple[float, float, float, float]] = None,
) -> Tuple[gpd.GeoDataFrame, Dict]:
    """
    Build a point layer from incident coordinates.

    A row is kept when both coordinates are present, numeric, finite and
    inside the WGS84 range, and inside `bounds` when one is given.
    Numeric copies of the coordinates are attached as `latitude` and
    `longitude`.

    Args:
        df: Cleaned incident frame (not modified)
        lat_column: Latitude column
        lon_column: Longitude column
        bounds: Optional study area (lon_min, lat_min, lon_max, lat_max)

    Returns:
        Tuple of (GeoDataFrame in EPSG:4326, stats dictionary)

    Raises:
        KeyError: If a coordinate column is absent
    """
    for col in (lat_column, lon_column):
        if col not in df.columns:
            raise KeyError(f"Coordinate column not found: {col}")

    lat = pd.to_numeric(df[lat_column], errors="coerce").astype("float64")
    lon = pd.to_numeric(df[lon_column], errors="coerce").astype("float64")

    present = lat.notna() & lon.notna() & np.isfinite(lat) & np.isfinite(lon)
    in_range = present & _in_box(lon, lat, WGS84_BOUNDS)
    keep = in_range
    if bounds is not None:
        keep = keep & _in_box(lon, lat, bounds)

    stats = {
        "rows_in": len(df),
        "missing_or_non_numeric": int((~present).sum()),
        "out_of_range": int((present & ~in_range).sum()),
        "outside_study_area": int((in_range & ~keep).sum()),
        "points_out": int(keep.sum()),
    }

    points = df[keep].copy()
    points["latitude"] = lat[keep]
    points["longitude"] = lon[keep]

    gdf = gpd.GeoDataFrame(
        points,
        geometry=gpd.points_from_xy(points["longitude"], points["latitude"]),
        crs=f"EPSG:{WGS84_EPSG}",
    )

    validate_points(gdf, bounds=bounds, context="project_incidents")

    return gdf, stats


def coordinate_matrix(gdf: gpd.GeoDataFrame) -> np.ndarray:
    """
    Return an (n, 2) float array of (latitude, longitude) in row order.
    """
    return gdf[["latitude", "longitude"]].to_numpy(dtype="float64")


def log_projection_stats(stats: Dict, logger=None) -> None:
    """
    Log projection statistics.

    Args:
        stats: Statistics dictionary from project_incidents
        logger: Optional logger instance (uses print if None)
    """
    msg = (
        f"Projection stats: "
        f"{stats['rows_in']} rows, "
        f"{stats['missing_or_non_numeric']} missing/non-numeric, "
        f"{stats['out_of_range']} out of range, "
        f"{stats['outside_study_area']} outside study area, "
        f"{stats['points_out']} points"
    )

    if logger:
        logger.info(msg, extra={"projection_stats": stats})
    else:
        print(msg)
