"""
Temporal aggregation of incidents.

Timestamps use the fixed source format `%m/%d/%Y %I:%M:%S %p`.
A present but malformed timestamp is a hard error; a missing one
(pd.NA from the placeholder step) is excluded and counted.

Monthly series are not gap-filled: months with no incidents are absent.
fill_missing_months() zero-fills explicitly for callers that need a full
calendar.
"""

from typing import Dict, List, Tuple

import numpy as np
import pandas as pd


DATE_FORMAT = "%m/%d/%Y %I:%M:%S %p"

MONTH_ORDER = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

# Number of offending values quoted in a ParseError message
_MAX_REPORTED = 5


class ParseError(Exception):
    """Raised when a mandatory timestamp cannot be parsed."""
    pass


# =============================================================================
# Timestamp Parsing
# =============================================================================

def parse_timestamps(values: pd.Series, date_format: str = DATE_FORMAT) -> pd.Series:
    """
    Parse timestamp strings with a fixed format.

    Cleaning lower-cases text, so the AM/PM marker is upper-cased again
    before parsing.

    Args:
        values: Series of timestamp strings (may hold missing values)
        date_format: strptime format

    Returns:
        datetime64 Series; missing inputs become NaT

    Raises:
        ParseError: If any present value does not match the format
    """
    text = values.astype("string").str.upper()
    parsed = pd.to_datetime(text, format=date_format, errors="coerce")

    bad = parsed.isna() & text.notna()
    if bad.any():
        samples = text[bad].head(_MAX_REPORTED).tolist()
        raise ParseError(
            f"{int(bad.sum())} timestamps do not match format {date_format!r}, "
            f"e.g. {samples} (rows {values.index[bad.to_numpy()][:_MAX_REPORTED].tolist()})"
        )

    return parsed


def add_time_buckets(
    df: pd.DataFrame,
    date_column: str = "Date",
) -> Tuple[pd.DataFrame, Dict]:
    """
    Attach parsed timestamp and calendar fields.

    Adds `timestamp`, `year`, `month` (1-12) and `month_bucket`
    (monthly Period). Rows with a missing timestamp are dropped.

    Args:
        df: Cleaned incident frame
        date_column: Column holding timestamp text

    Returns:
        Tuple of (new frame, stats dictionary)

    Raises:
        KeyError: If date_column is absent
        ParseError: If a present timestamp is malformed
    """
    if date_column not in df.columns:
        raise KeyError(f"Timestamp column not found: {date_column}")

    timestamps = parse_timestamps(df[date_column])

    out = df.copy()
    out["timestamp"] = timestamps
    out = out[out["timestamp"].notna()].copy()

    out["year"] = out["timestamp"].dt.year.astype("int64")
    out["month"] = out["timestamp"].dt.month.astype("int64")
    out["month_bucket"] = out["timestamp"].dt.to_period("M")

    stats = {
        "rows_in": len(df),
        "rows_parsed": len(out),
        "rows_missing_timestamp": len(df) - len(out),
        "first_timestamp": out["timestamp"].min() if len(out) else None,
        "last_timestamp": out["timestamp"].max() if len(out) else None,
    }

    return out, stats


# =============================================================================
# Aggregations
# =============================================================================

def monthly_counts(df: pd.DataFrame) -> pd.DataFrame:
    """
    Count incidents per month bucket, oldest first.

    Args:
        df: Frame from add_time_buckets

    Returns:
        DataFrame with `month` ("YYYY-MM"), `month_start` (Timestamp)
        and `count`. Months without incidents are absent.
    """
    counts = df.groupby("month_bucket", sort=True).size()
    periods = pd.PeriodIndex(counts.index, freq="M")

    return pd.DataFrame({
        "month": periods.astype(str),
        "month_start": periods.to_timestamp(),
        "count": counts.to_numpy(dtype="int64"),
    })


def fill_missing_months(series: pd.DataFrame) -> pd.DataFrame:
    """
    Zero-fill a monthly_counts frame to a gapless calendar between its
    first and last month.
    """
    if series.empty:
        return series.copy()

    periods = pd.PeriodIndex(series["month"], freq="M")
    full = pd.period_range(periods.min(), periods.max(), freq="M")

    counts = pd.Series(series["count"].to_numpy(), index=periods)
    counts = counts.reindex(full, fill_value=0)

    return pd.DataFrame({
        "month": full.astype(str),
        "month_start": full.to_timestamp(),
        "count": counts.to_numpy(dtype="int64"),
    })


def year_month_crosstab(df: pd.DataFrame) -> pd.DataFrame:
    """
    Cross-tabulate incident counts by year (rows) and month (columns).

    Columns are an ordered categorical Jan..Dec regardless of which months
    occur; a year with no incidents in a month shows 0.

    Args:
        df: Frame from add_time_buckets

    Returns:
        Integer DataFrame indexed by year
    """
    month_index = pd.CategoricalIndex(
        MONTH_ORDER, categories=MONTH_ORDER, ordered=True, name="month"
    )

    if df.empty:
        table = pd.DataFrame(
            np.zeros((0, 12), dtype="int64"),
            index=pd.Index([], dtype="int64", name="year"),
        )
    else:
        table = (
            df.groupby(["year", "month"]).size()
            .unstack(fill_value=0)
            .reindex(columns=range(1, 13), fill_value=0)
            .astype("int64")
        )
        table.index.name = "year"

    table.columns = month_index
    return table


def yearly_counts(df: pd.DataFrame, year_column: str = "Year") -> pd.DataFrame:
    """
    Count incidents per year (histogram input).

    Values of `year_column` that are missing or non-numeric are skipped.

    Returns:
        DataFrame with `year` and `count`, oldest first
    """
    years = pd.to_numeric(df[year_column], errors="coerce").dropna().astype("int64")
    counts = years.value_counts().sort_index()

    return pd.DataFrame({
        "year": counts.index.to_numpy(dtype="int64"),
        "count": counts.to_numpy(dtype="int64"),
    })


def summarize_temporal(monthly: pd.DataFrame) -> Dict:
    """Summary metrics of a monthly_counts frame for run logs."""
    if monthly.empty:
        return {"n_months": 0, "total": 0}

    peak = monthly.loc[monthly["count"].idxmax()]
    return {
        "n_months": len(monthly),
        "total": int(monthly["count"].sum()),
        "first_month": monthly["month"].iloc[0],
        "last_month": monthly["month"].iloc[-1],
        "peak_month": peak["month"],
        "peak_count": int(peak["count"]),
        "gap_months": _gap_months(monthly),
    }


def _gap_months(monthly: pd.DataFrame) -> List[str]:
    present = set(monthly["month"])
    filled = fill_missing_months(monthly)
    return [m for m in filled["month"] if m not in present]
