"""Read whitespace-delimited instrument export tables."""

import io
from pathlib import Path

import polars as pl
import structlog

from nucl_calibration.errors import ParseError, SchemaError
from nucl_calibration.ingest.models import (
    COLUMN_PATTERNS,
    COLUMN_VARIANTS,
    RAW_REQUIRED_COLUMNS,
)

logger = structlog.get_logger()

NULL_VALUES = ["NA", ""]

NUMERIC_COLUMNS = {
    "transition": pl.Int64,
    "median_intensity": pl.Float64,
    "cv": pl.Float64,
}


def resolve_columns(actual_columns: list[str]) -> dict[str, str]:
    """Map actual header names to canonical column names.

    A known spelling from COLUMN_VARIANTS always wins. Otherwise a column
    whose name contains the pattern from COLUMN_PATTERNS is used, provided
    exactly one column matches.

    Args:
        actual_columns: Header row of the export, in file order

    Returns:
        Mapping of actual name -> canonical name for every resolved column

    Raises:
        SchemaError: If a substring pattern matches several columns, or if a
            required canonical column cannot be resolved
    """
    mapping: dict[str, str] = {}

    for canonical, variants in COLUMN_VARIANTS.items():
        for variant in variants:
            if variant in actual_columns and variant not in mapping:
                mapping[variant] = canonical
                break

    resolved = set(mapping.values())
    for canonical, pattern in COLUMN_PATTERNS.items():
        if canonical in resolved:
            continue
        candidates = [
            col for col in actual_columns
            if pattern in col and col not in mapping
        ]
        if len(candidates) > 1:
            raise SchemaError(
                f"Ambiguous header: columns {candidates} all contain '{pattern}', "
                f"cannot choose one as '{canonical}'"
            )
        if candidates:
            mapping[candidates[0]] = canonical
            resolved.add(canonical)

    missing = [col for col in RAW_REQUIRED_COLUMNS if col not in resolved]
    if missing:
        raise SchemaError(
            f"Missing required column(s) {missing}; header was {actual_columns}"
        )

    return mapping


def _read_whitespace_table(path: Path) -> pl.DataFrame:
    """Read a table whose fields are separated by runs of whitespace."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = [line.split() for line in f if line.strip()]
    except UnicodeDecodeError as e:
        raise ParseError(f"{path.name} is not valid UTF-8: {e}") from e

    if not lines:
        raise SchemaError(f"{path.name} is empty, expected a header row")

    normalized = "\n".join("\t".join(fields) for fields in lines)
    try:
        return pl.read_csv(
            io.StringIO(normalized),
            separator="\t",
            has_header=True,
            null_values=NULL_VALUES,
            infer_schema=False,
        )
    except pl.exceptions.ComputeError as e:
        raise SchemaError(f"{path.name} is not a rectangular table: {e}") from e


def parse_unknown_table(path: Path | str) -> pl.DataFrame:
    """Load one instrument export and normalize its column names.

    All columns are read as strings, canonical columns are renamed, and the
    numeric columns are cast strictly.

    Args:
        path: Path to a ``.unknown`` export file

    Returns:
        DataFrame with at least nuc_nb (String), transition (Int64),
        median_intensity (Float64) and cv (Float64)

    Raises:
        SchemaError: If required columns are absent or ambiguous
        ParseError: If the file is not UTF-8 or a numeric column holds
            non-numeric values
    """
    path = Path(path)
    df = _read_whitespace_table(path)

    mapping = resolve_columns(df.columns)
    df = df.rename(mapping)

    for col, dtype in NUMERIC_COLUMNS.items():
        try:
            df = df.with_columns(pl.col(col).cast(dtype, strict=True))
        except (pl.exceptions.InvalidOperationError, pl.exceptions.ComputeError) as e:
            raise ParseError(
                f"Column '{col}' in {path.name} is not numeric: {e}"
            ) from e

    logger.debug(
        "raw_table_loaded",
        file=path.name,
        rows=df.height,
        column_mapping=mapping,
    )

    return df
