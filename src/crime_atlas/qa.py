"""
Quality assurance utilities for incident point layers.

- CRS mismatches are hard errors. No silent overrides.
- Bounds sanity checks on projected point layers.
"""

from typing import Dict, Optional, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS


WGS84_EPSG = 4326

# Valid WGS84 ranges as (lon_min, lat_min, lon_max, lat_max)
WGS84_BOUNDS = (-180.0, -90.0, 180.0, 90.0)


# =============================================================================
# CRS Validation
# =============================================================================

class CRSError(Exception):
    """Raised when CRS validation fails."""
    pass


class BoundsError(Exception):
    """Raised when bounds validation fails."""
    pass


def assert_crs_not_none(gdf: gpd.GeoDataFrame, context: str = "") -> None:
    """
    Assert that the GeoDataFrame has a CRS set.

    Raises:
        CRSError: If CRS is None
    """
    if gdf.crs is None:
        msg = "GeoDataFrame has no CRS set"
        if context:
            msg = f"{msg} ({context})"
        raise CRSError(msg)


def assert_expected_crs(
    gdf: gpd.GeoDataFrame,
    expected_epsg: int = WGS84_EPSG,
    context: str = "",
) -> None:
    """
    Assert that the GeoDataFrame has the expected CRS.

    Args:
        gdf: GeoDataFrame to check
        expected_epsg: Expected EPSG code (default 4326)
        context: Optional context string for error message

    Raises:
        CRSError: If CRS is None or doesn't match expected
    """
    assert_crs_not_none(gdf, context)

    expected_crs = CRS.from_epsg(expected_epsg)

    if not gdf.crs.equals(expected_crs):
        msg = f"CRS mismatch: expected EPSG:{expected_epsg}, got {gdf.crs}"
        if context:
            msg = f"{msg} ({context})"
        raise CRSError(msg)


def get_crs_epsg(gdf: gpd.GeoDataFrame) -> Optional[int]:
    """
    Get the EPSG code of a GeoDataFrame's CRS.

    Returns:
        EPSG code or None if CRS is not set or not identifiable
    """
    if gdf.crs is None:
        return None
    return gdf.crs.to_epsg()


def crs_info(gdf: gpd.GeoDataFrame) -> Dict:
    """CRS and extent summary for run logs."""
    return {
        "epsg": get_crs_epsg(gdf),
        "crs_name": gdf.crs.name if gdf.crs is not None else None,
        "n_points": len(gdf),
        "bounds": list(get_bounds(gdf)) if len(gdf) else None,
    }


# =============================================================================
# Bounds Validation
# =============================================================================

def get_bounds(gdf: gpd.GeoDataFrame) -> Tuple[float, float, float, float]:
    """
    Get bounds of a GeoDataFrame as (minx, miny, maxx, maxy).
    """
    return tuple(float(v) for v in gdf.total_bounds)


def check_bounds_epsg4326(
    gdf: gpd.GeoDataFrame,
    lon_min: float = -180.0,
    lon_max: float = 180.0,
    lat_min: float = -90.0,
    lat_max: float = 90.0,
    context: str = "",
) -> bool:
    """
    Check that GeoDataFrame bounds lie inside a lon/lat box in EPSG:4326.

    The defaults are the full WGS84 range; pass a study area to tighten.

    Returns:
        True if bounds are plausible (an empty layer passes)

    Raises:
        BoundsError: If bounds are outside expected range
    """
    if len(gdf) == 0:
        return True

    minx, miny, maxx, maxy = get_bounds(gdf)

    errors = []
    if minx < lon_min or maxx > lon_max:
        errors.append(f"Longitude out of range: [{minx}, {maxx}] not in [{lon_min}, {lon_max}]")
    if miny < lat_min or maxy > lat_max:
        errors.append(f"Latitude out of range: [{miny}, {maxy}] not in [{lat_min}, {lat_max}]")

    if errors:
        msg = "EPSG:4326 bounds check failed: " + "; ".join(errors)
        if context:
            msg = f"{msg} ({context})"
        raise BoundsError(msg)

    return True


def validate_points(
    gdf: gpd.GeoDataFrame,
    bounds: Optional[Tuple[float, float, float, float]] = None,
    context: str = "",
) -> bool:
    """
    Validate a projected incident layer: CRS is EPSG:4326 and every point
    lies inside `bounds` (lon_min, lat_min, lon_max, lat_max), or inside
    the WGS84 range when no bounds are given.

    Raises:
        CRSError: If CRS is missing or not EPSG:4326
        BoundsError: If points fall outside the bounds
    """
    assert_expected_crs(gdf, WGS84_EPSG, context)

    lon_min, lat_min, lon_max, lat_max = bounds if bounds is not None else WGS84_BOUNDS
    check_bounds_epsg4326(
        gdf,
        lon_min=lon_min,
        lon_max=lon_max,
        lat_min=lat_min,
        lat_max=lat_max,
        context=context,
    )

    if len(gdf) and not np.isfinite(gdf.total_bounds).all():
        raise BoundsError(f"Non-finite bounds: {gdf.total_bounds} ({context})")

    return True


# =============================================================================
# Data Quality Summaries
# =============================================================================

def compute_na_rates(df: pd.DataFrame) -> Dict[str, float]:
    """
    Compute NA rates for all columns in a DataFrame.

    Returns:
        Dictionary of column_name -> NA rate (0-1); empty frames give 0.0
    """
    if len(df) == 0:
        return {c: 0.0 for c in df.columns}
    return {c: float(v) for c, v in (df.isna().sum() / len(df)).items()}
