"""
Descriptive tables for the incident charts.
"""

from typing import Dict, Optional

import pandas as pd

from crime_atlas.qa import compute_na_rates


def category_counts(
    df: pd.DataFrame,
    column: str,
    top_n: Optional[int] = None,
) -> pd.DataFrame:
    """
    Frequency table of a categorical column, most frequent first.

    Missing values are not counted. Equal counts keep alphabetical order.

    Args:
        df: Incident frame
        column: Category column, e.g. "Primary Type"
        top_n: Keep only the N most frequent categories

    Returns:
        DataFrame with `category`, `count` and `share`
    """
    if column not in df.columns:
        raise KeyError(f"Category column not found: {column}")

    values = df[column].dropna()
    counts = values.value_counts()
    table = pd.DataFrame({"category": counts.index.astype(str), "count": counts.to_numpy()})
    table = table.sort_values(["count", "category"], ascending=[False, True])

    total = int(table["count"].sum())
    table["share"] = table["count"] / total if total else 0.0

    if top_n is not None:
        table = table.head(top_n)

    return table.reset_index(drop=True)


def dataset_profile(df: pd.DataFrame) -> Dict:
    """Row/column counts and NA rates of a frame, for run logs."""
    return {
        "rows": len(df),
        "columns": list(df.columns),
        "na_rates": compute_na_rates(df),
    }
