"""Load collaborator-supplied reference tables."""

from pathlib import Path

import polars as pl
import structlog

from nucl_calibration.errors import SchemaError

logger = structlog.get_logger()

CONVERSION_REQUIRED = ["nuc_nb", "nuc_id", "nuc"]

TAB_SUFFIXES = {".tsv", ".tab", ".txt"}


def load_reference_table(
    path: Path | str,
    required_columns: list[str] | None = None,
) -> pl.DataFrame:
    """Read a reference table with every column as String.

    Comma-separated unless the suffix is one of .tsv/.tab/.txt. Typed columns
    (e.g. ``level``) are cast later by the annotation projection.

    Args:
        path: Path to the reference table
        required_columns: Columns that must be present

    Returns:
        DataFrame of string columns

    Raises:
        FileNotFoundError: If the table does not exist
        SchemaError: If a required column is missing
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Reference table not found: {path}")

    separator = "\t" if path.suffix.lower() in TAB_SUFFIXES else ","
    df = pl.read_csv(
        path,
        separator=separator,
        has_header=True,
        null_values=["NA", ""],
        infer_schema=False,
    )

    missing = [col for col in (required_columns or []) if col not in df.columns]
    if missing:
        raise SchemaError(
            f"Reference table {path.name} is missing column(s) {missing}; "
            f"found {df.columns}"
        )

    logger.info(
        "reference_table_loaded",
        path=str(path),
        rows=df.height,
        columns=df.columns,
    )

    return df


def load_conversion_list(path: Path | str) -> pl.DataFrame:
    """Load the nuc_nb -> nuc_id/nuc/nuc_group conversion table."""
    return load_reference_table(path, required_columns=CONVERSION_REQUIRED)


def load_condition_list(path: Path | str | None, join_keys: list[str]) -> pl.DataFrame | None:
    """Load the condition table, or None when no path is configured."""
    if path is None:
        return None
    return load_reference_table(path, required_columns=join_keys)
