"""
Incident loader and cleaner.

Cleaning is a chain of pure transforms, each returning a new DataFrame:

1. drop exact duplicate rows (first occurrence kept, order kept)
2. drop rows with any missing value
3. lower-case every text column
4. replace the placeholder tokens ("na", "unknown") with pd.NA

Step 4 runs after step 2, so rows that only become missing in step 4 are
kept. clean_incidents(refilter_placeholders=True) drops them as well.

Step 1 runs before step 3, so rows that differ only in letter case are
both kept and are exact duplicates in the output. They are counted as
`case_duplicates` and logged, not removed; a second cleaning pass would
drop them.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from crime_atlas.config import CleaningConfig
from crime_atlas.io_utils import read_df
from crime_atlas.schemas import RAW_INCIDENT_SCHEMA, missing_columns


MISSING = pd.NA

DEFAULT_PLACEHOLDER_TOKENS = ("na", "unknown")


class FileFormatError(Exception):
    """Raised when the input file is missing, unreadable or lacks expected columns."""
    pass


# =============================================================================
# Loading
# =============================================================================

def load_incidents(
    path: Union[str, Path],
    required_columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Read the raw incident file.

    Only empty cells are read as missing. Literal "NA" text is kept so the
    placeholder step can see it after lower-casing.

    Args:
        path: Comma-delimited file with a header row
        required_columns: Columns that must be present
                          (default: the raw incident schema's columns)

    Returns:
        Raw DataFrame, possibly with zero rows

    Raises:
        FileFormatError: If the file is missing, unreadable, unparseable
                         or lacks a required column
    """
    path = Path(path)
    if required_columns is None:
        required_columns = RAW_INCIDENT_SCHEMA.required_columns

    if not path.is_file():
        raise FileFormatError(f"Input file not found: {path}")

    try:
        df = read_df(path, keep_default_na=False, na_values=[""])
    except pd.errors.EmptyDataError as e:
        raise FileFormatError(f"Input file is empty: {path}") from e
    except (ValueError, OSError) as e:
        # ParserError and UnicodeDecodeError are ValueError subclasses
        raise FileFormatError(f"Could not parse {path}: {e}") from e

    missing = missing_columns(df, list(required_columns))
    if missing:
        raise FileFormatError(
            f"Input file {path} is missing expected columns: {missing}. "
            f"Found: {list(df.columns)}"
        )

    return df


# =============================================================================
# Cleaning Steps
# =============================================================================

def text_columns(df: pd.DataFrame) -> List[str]:
    """Return the names of text-typed columns (object or string dtype)."""
    return [
        c for c in df.columns
        if pd.api.types.is_object_dtype(df[c]) or pd.api.types.is_string_dtype(df[c])
    ]


def drop_duplicate_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Drop rows that exactly repeat an earlier row, keeping first-occurrence order."""
    return df.drop_duplicates(keep="first")


def drop_missing_rows(
    df: pd.DataFrame,
    subset: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Drop rows holding a missing value.

    Args:
        df: Input frame
        subset: Columns to check (default: every column)

    Returns:
        Frame without those rows; nothing is imputed
    """
    if subset is not None:
        absent = missing_columns(df, list(subset))
        if absent:
            raise FileFormatError(f"dropna subset refers to missing columns: {absent}")
        subset = list(subset)
    return df.dropna(subset=subset)


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def lowercase_text_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Lower-case every value of every text column; other columns are untouched."""
    out = df.copy()
    for col in text_columns(out):
        out[col] = out[col].map(_lower, na_action="ignore").astype(out[col].dtype)
    return out


def mark_placeholder_values(
    df: pd.DataFrame,
    tokens: Iterable[str] = DEFAULT_PLACEHOLDER_TOKENS,
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Replace text values exactly equal to a placeholder token with pd.NA.

    Matching is exact on the already lower-cased value; " na" or "n/a"
    are left alone.

    Args:
        df: Lower-cased frame
        tokens: Placeholder strings

    Returns:
        Tuple of (marked frame, boolean Series flagging rows that gained a
        missing value)
    """
    tokens = list(tokens)
    out = df.copy()
    newly_missing = pd.Series(False, index=out.index)

    for col in text_columns(out):
        mask = out[col].isin(tokens)
        if mask.any():
            # object dtype holds pd.NA as-is
            out[col] = out[col].astype(object).mask(mask, MISSING)
            newly_missing |= mask

    return out, newly_missing


# =============================================================================
# Full Cleaning Chain
# =============================================================================

def clean_incidents(
    df: pd.DataFrame,
    dropna_subset: Optional[Sequence[str]] = None,
    placeholder_tokens: Iterable[str] = DEFAULT_PLACEHOLDER_TOKENS,
    refilter_placeholders: bool = False,
) -> Tuple[pd.DataFrame, Dict]:
    """
    Run the cleaning chain on a raw incident frame.

    Args:
        df: Raw frame from load_incidents
        dropna_subset: Columns checked by the missing-value drop (default: all)
        placeholder_tokens: Lower-case strings coerced to pd.NA
        refilter_placeholders: If True, also drop rows that gained a missing
                               value in the placeholder step

    Returns:
        Tuple of (cleaned frame with a fresh RangeIndex, stats dictionary)
    """
    stats = {
        "rows_in": len(df),
        "duplicates_removed": 0,
        "missing_rows_removed": 0,
        "text_columns": [],
        "placeholder_values_marked": 0,
        "placeholder_rows": 0,
        "placeholder_rows_removed": 0,
        "case_duplicates": 0,
        "rows_out": 0,
    }

    deduped = drop_duplicate_rows(df)
    stats["duplicates_removed"] = len(df) - len(deduped)

    complete = drop_missing_rows(deduped, subset=dropna_subset)
    stats["missing_rows_removed"] = len(deduped) - len(complete)

    lowered = lowercase_text_columns(complete)
    stats["text_columns"] = text_columns(lowered)

    marked, newly_missing = mark_placeholder_values(lowered, placeholder_tokens)
    stats["placeholder_values_marked"] = int(
        (marked.isna() & lowered.notna()).to_numpy().sum()
    )
    stats["placeholder_rows"] = int(newly_missing.sum())

    if refilter_placeholders:
        marked = marked[~newly_missing]
        stats["placeholder_rows_removed"] = stats["placeholder_rows"]

    # Duplicates created by lower-casing or placeholder marking
    stats["case_duplicates"] = int(marked.duplicated().sum())

    cleaned = marked.reset_index(drop=True)
    stats["rows_out"] = len(cleaned)

    return cleaned, stats


def load_and_clean(
    path: Union[str, Path],
    config: Optional[CleaningConfig] = None,
) -> Tuple[pd.DataFrame, Dict]:
    """
    Load the incident file and run the cleaning chain with `config` settings.

    Returns:
        Tuple of (cleaned frame, stats dictionary)
    """
    if config is None:
        config = CleaningConfig()

    raw = load_incidents(path, required_columns=config.required_columns)
    return clean_incidents(
        raw,
        dropna_subset=config.dropna_subset,
        placeholder_tokens=config.placeholder_tokens,
        refilter_placeholders=config.refilter_placeholders,
    )


def log_cleaning_stats(stats: Dict, logger=None) -> None:
    """
    Log cleaning statistics.

    Args:
        stats: Statistics dictionary from clean_incidents
        logger: Optional logger instance (uses print if None)
    """
    msg = (
        f"Cleaning stats: "
        f"{stats['rows_in']} in, "
        f"{stats['duplicates_removed']} duplicates, "
        f"{stats['missing_rows_removed']} with missing values, "
        f"{stats['placeholder_values_marked']} placeholders marked, "
        f"{stats['rows_out']} out"
    )

    kept = stats["placeholder_rows"] - stats["placeholder_rows_removed"]

    if logger:
        logger.info(msg, extra={"cleaning_stats": stats})
        if kept > 0:
            logger.warning(
                f"{kept} rows hold placeholder-derived missing values and were kept "
                "(placeholders are marked after the missing-value drop)"
            )
        if stats["case_duplicates"] > 0:
            logger.warning(
                f"{stats['case_duplicates']} rows duplicate an earlier row once lower-cased "
                "and were kept (duplicates are dropped before lower-casing)"
            )
    else:
        print(msg)
