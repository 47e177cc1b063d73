"""Annotate raw export rows with file metadata and reference tables."""

import polars as pl
import structlog

from nucl_calibration.errors import ParseError, SchemaError
from nucl_calibration.ingest.models import (
    ANNOTATION_COLUMNS,
    EXPORT_SCHEMAS,
    FileMetadata,
)

logger = structlog.get_logger()

ROW_INDEX = "_row_nr"

CONVERSION_KEY = "nuc_nb"

DEFAULT_CONDITION_KEYS = {
    "cal": ["calcurve"],
    "samples": ["file_tag"],
}


def _keys_as_string(df: pl.DataFrame, keys: list[str]) -> pl.DataFrame:
    return df.with_columns([pl.col(k).cast(pl.String) for k in keys])


def _drop_shadowed(reference: pl.DataFrame, left_columns: list[str], keys: list[str]) -> pl.DataFrame:
    """Drop reference columns that the left table already carries."""
    shadowed = [c for c in reference.columns if c in left_columns and c not in keys]
    if shadowed:
        logger.debug("reference_columns_shadowed", columns=shadowed)
        reference = reference.drop(shadowed)
    return reference


def join_conversion_list(df: pl.DataFrame, conv_list: pl.DataFrame, mode: str) -> pl.DataFrame:
    """Attach nuc_id/nuc/nuc_group by nuc_nb.

    Inner join in cal mode (rows without a conversion entry are dropped),
    left join in samples mode.
    """
    if CONVERSION_KEY not in conv_list.columns:
        raise SchemaError(f"Conversion list has no '{CONVERSION_KEY}' column")

    conv = _keys_as_string(conv_list, [CONVERSION_KEY])
    conv = _drop_shadowed(conv, df.columns, [CONVERSION_KEY])

    if conv[CONVERSION_KEY].is_duplicated().any():
        logger.warning(
            "conversion_list_duplicate_keys",
            keys=conv.filter(pl.col(CONVERSION_KEY).is_duplicated())[CONVERSION_KEY].unique().sort().to_list(),
        )

    how = "inner" if mode == "cal" else "left"
    return _keys_as_string(df, [CONVERSION_KEY]).join(conv, on=CONVERSION_KEY, how=how)


def join_condition_list(
    df: pl.DataFrame,
    condition_list: pl.DataFrame,
    join_keys: list[str],
) -> pl.DataFrame:
    """Left-join the condition table on explicitly declared keys."""
    missing_left = [k for k in join_keys if k not in df.columns]
    missing_right = [k for k in join_keys if k not in condition_list.columns]
    if missing_left or missing_right:
        raise SchemaError(
            f"Condition join keys {join_keys} not available: "
            f"missing in data {missing_left}, missing in condition list {missing_right}"
        )

    cond = _keys_as_string(condition_list, join_keys)
    cond = _drop_shadowed(cond, df.columns, join_keys)
    return _keys_as_string(df, join_keys).join(cond, on=join_keys, how="left")


def project_export_schema(df: pl.DataFrame, mode: str) -> pl.DataFrame:
    """Select and cast the export columns of `mode`, in contract order.

    Raises:
        SchemaError: If a schema column is not present
        ParseError: If a column cannot be cast to its declared dtype
    """
    schema = EXPORT_SCHEMAS[mode]
    missing = [col for col in schema if col not in df.columns]
    if missing:
        raise SchemaError(
            f"Annotated table lacks column(s) {missing} required by the "
            f"'{mode}' export; check that the reference tables supply them"
        )

    try:
        return df.select([pl.col(col).cast(dtype, strict=True) for col, dtype in schema.items()])
    except (pl.exceptions.InvalidOperationError, pl.exceptions.ComputeError) as e:
        raise ParseError(f"Annotated column has an unexpected value: {e}") from e


def annotate_records(
    raw: pl.DataFrame,
    metadata: FileMetadata,
    conv_list: pl.DataFrame,
    condition_list: pl.DataFrame | None = None,
    join_keys: list[str] | None = None,
) -> pl.DataFrame:
    """Annotate the rows of one export file.

    Attaches file metadata, joins the conversion and condition tables,
    derives ``transition_id = "t" + transition`` per row and projects onto the
    mode's export schema. Input row order is preserved.

    Args:
        raw: Table from parse_unknown_table
        metadata: Parsed file name of the same file
        conv_list: Conversion table keyed by nuc_nb
        condition_list: Condition table, optional in samples mode
        join_keys: Condition join keys (default: DEFAULT_CONDITION_KEYS[mode])

    Returns:
        DataFrame with exactly the export schema columns

    Raises:
        SchemaError: If join keys or schema columns are unavailable
        ParseError: If an annotation column cannot be cast
    """
    mode = metadata.mode

    df = raw.with_row_index(ROW_INDEX).with_columns(
        [pl.lit(value).alias(name) for name, value in metadata.as_columns().items()]
    )

    df = join_conversion_list(df, conv_list, mode)

    if condition_list is not None:
        keys = join_keys or DEFAULT_CONDITION_KEYS[mode]
        df = join_condition_list(df, condition_list, keys)
    elif mode == "cal":
        raise SchemaError("Calibration mode requires a condition list providing 'level'")

    df = df.sort(ROW_INDEX, maintain_order=True).with_columns(
        pl.concat_str([pl.lit("t"), pl.col("transition").cast(pl.String)]).alias("transition_id")
    )

    return project_export_schema(df, mode)


def find_unmatched_annotations(df: pl.DataFrame, mode: str) -> list[str]:
    """Annotation columns that are null in every row of a non-empty table."""
    if df.height == 0:
        return []
    return [
        col for col in ANNOTATION_COLUMNS[mode]
        if col in df.columns and df[col].null_count() == df.height
    ]
