"""
Column contracts for the incident frames.

Two frames have a contract: the raw incident file (its columns must be
present before cleaning starts) and the clustered point frame (columns,
dtypes, non-null and coordinate ranges). A broken contract raises
SchemaError at once.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

import geopandas as gpd
import pandas as pd


@dataclass
class ColumnSpec:
    """Expected name, dtype and value range of one column."""
    name: str
    dtype: Optional[str] = None  # "int", "float64" or "geometry"
    nullable: bool = True
    min_value: Optional[float] = None
    max_value: Optional[float] = None


@dataclass
class Schema:
    """Named set of column contracts plus a minimum row count."""
    name: str
    columns: List[ColumnSpec]
    required_columns: List[str] = field(default_factory=list)
    min_rows: int = 0

    def __post_init__(self):
        if not self.required_columns:
            self.required_columns = [c.name for c in self.columns]


class SchemaError(Exception):
    """Raised when a frame breaks its column contract."""
    pass


# Raw incident file: presence only, values are still text here
RAW_INCIDENT_SCHEMA = Schema(
    name="raw_incidents",
    columns=[
        ColumnSpec("Year"),
        ColumnSpec("Date"),
        ColumnSpec("Latitude"),
        ColumnSpec("Longitude"),
    ],
)

CLUSTERED_INCIDENT_SCHEMA = Schema(
    name="clustered_incidents",
    columns=[
        ColumnSpec("geometry", dtype="geometry", nullable=False),
        ColumnSpec("latitude", dtype="float64", nullable=False, min_value=-90, max_value=90),
        ColumnSpec("longitude", dtype="float64", nullable=False, min_value=-180, max_value=180),
        ColumnSpec("cluster_id", dtype="int", nullable=False, min_value=0),
    ],
    min_rows=1,
)


def _dtype_error(df: pd.DataFrame, column: ColumnSpec) -> Optional[str]:
    col = df[column.name]
    if column.dtype == "geometry" and not isinstance(df, gpd.GeoDataFrame):
        return f"Expected GeoDataFrame for geometry column {column.name}"
    if column.dtype == "int" and not pd.api.types.is_integer_dtype(col):
        return f"Column {column.name}: expected integer, got {col.dtype}"
    if column.dtype == "float64" and not pd.api.types.is_float_dtype(col):
        return f"Column {column.name}: expected float64, got {col.dtype}"
    return None


def validate_column(df: pd.DataFrame, column: ColumnSpec) -> List[str]:
    """
    Check one column of `df` against its ColumnSpec.

    Returns:
        List of problems found (empty if the column is fine)
    """
    if column.name not in df.columns:
        return [f"Missing column: {column.name}"]

    errors = []
    col = df[column.name]

    dtype_error = _dtype_error(df, column)
    if dtype_error:
        errors.append(dtype_error)

    if not column.nullable and col.isna().any():
        errors.append(f"Column {column.name}: {int(col.isna().sum())} NA values not allowed")

    if column.min_value is not None and ((col < column.min_value) & col.notna()).any():
        errors.append(f"Column {column.name}: values below min {column.min_value}")

    if column.max_value is not None and ((col > column.max_value) & col.notna()).any():
        errors.append(f"Column {column.name}: values above max {column.max_value}")

    return errors


def validate_schema(
    df: Union[pd.DataFrame, gpd.GeoDataFrame],
    schema: Schema,
    context: str = "",
    raise_on_error: bool = True,
) -> List[str]:
    """
    Check a frame against a schema.

    Args:
        df: Frame to check
        schema: Contract to check against
        context: Caller name added to the messages
        raise_on_error: If True, raise SchemaError when anything is wrong

    Returns:
        List of problems found (empty if the frame is fine)

    Raises:
        SchemaError: If raise_on_error=True and a problem was found
    """
    errors = []
    ctx = f" ({context})" if context else ""

    if len(df) < schema.min_rows:
        errors.append(f"Expected at least {schema.min_rows} rows, got {len(df)}{ctx}")

    missing = missing_columns(df, schema.required_columns)
    if missing:
        errors.append(f"Missing required columns: {missing}{ctx}")

    for column in schema.columns:
        if column.name not in missing:
            errors.extend(validate_column(df, column))

    if errors and raise_on_error:
        raise SchemaError(f"Schema validation failed for '{schema.name}':\n" + "\n".join(errors))

    return errors


def missing_columns(df: pd.DataFrame, columns: List[str]) -> List[str]:
    """Return the subset of `columns` absent from `df`, in the given order."""
    return [c for c in columns if c not in df.columns]
