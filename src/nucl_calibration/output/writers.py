"""CSV export writer with provenance sidecar."""

from datetime import datetime, timezone
from pathlib import Path

import polars as pl
import yaml


def _tag_counts(df: pl.DataFrame, column: str) -> dict:
    if column not in df.columns:
        return {}
    counts = df.group_by(column).agg(pl.len()).sort(column, nulls_last=True)
    return {str(row[column]): row["len"] for row in counts.to_dicts()}


def write_export(
    df: pl.DataFrame,
    output_path: Path,
    provenance: "ProvenanceTracker | None" = None,
) -> dict:
    """
    Write a pipeline table as CSV with a YAML provenance sidecar.

    Args:
        df: Table to export (import or evaluation output)
        output_path: CSV destination; parent directories are created
        provenance: Optional tracker whose metadata is embedded in the sidecar

    Returns:
        Dictionary with output file paths:
        {
            "csv": Path to CSV file,
            "provenance": Path to YAML provenance sidecar
        }

    Notes:
        - Comma separator, header row, no index column
        - CSV bytes depend only on df, so reruns on unchanged input are identical
        - Sidecar is written next to the CSV as {stem}.provenance.yaml
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df.write_csv(output_path, include_header=True)

    provenance_path = output_path.with_name(f"{output_path.stem}.provenance.yaml")

    sidecar = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "output_file": output_path.name,
        "statistics": {
            "row_count": df.height,
            "dates": sorted(df["date"].drop_nulls().unique().to_list()) if "date" in df.columns else [],
            "tag_noise": _tag_counts(df, "tag_noise"),
            "tag_saturation": _tag_counts(df, "tag_saturation"),
        },
        "column_count": len(df.columns),
        "column_names": df.columns,
    }
    if provenance is not None:
        sidecar["provenance"] = provenance.create_metadata()

    with open(provenance_path, "w") as f:
        yaml.dump(sidecar, f, default_flow_style=False, sort_keys=False)

    return {
        "csv": output_path,
        "provenance": provenance_path,
    }


def read_export(path: Path | str, schema: dict[str, pl.DataType] | None = None) -> pl.DataFrame:
    """
    Read an export CSV back with the declared column dtypes.

    Args:
        path: CSV written by write_export
        schema: Declared dtypes, e.g. CALIBRATION_SCHEMA; others are inferred

    Returns:
        DataFrame; schema columns get their declared dtypes, extra columns
        (evaluation tags, means) are inferred
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Export not found: {path}")

    header = pl.scan_csv(path).collect_schema().names()

    schema = schema or {}

    return pl.read_csv(
        path,
        schema_overrides={col: dtype for col, dtype in schema.items() if col in header},
    )
