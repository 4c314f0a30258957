"""
Read utilities for configuration and flat input files.

The pipeline reads; it never writes data products.
"""

from pathlib import Path
from typing import Union

import pandas as pd
import yaml


# Suffixes accepted as comma-delimited text
CSV_SUFFIXES = {".csv", ".txt"}


def read_yaml(path: Union[str, Path]) -> dict:
    """Read a YAML file. An empty file reads as an empty dict."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def read_df(
    path: Union[str, Path],
    **kwargs,
) -> pd.DataFrame:
    """
    Read a DataFrame from comma-delimited text.

    Args:
        path: Path to data file
        **kwargs: Additional arguments passed to pd.read_csv

    Returns:
        DataFrame

    Raises:
        ValueError: If the suffix is not a delimited-text suffix
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in CSV_SUFFIXES:
        return pd.read_csv(path, **kwargs)
    else:
        raise ValueError(f"Unsupported format: {suffix}")
