"""Import every instrument export of a run directory into one table."""

from pathlib import Path

import polars as pl
import structlog

from nucl_calibration.errors import (
    ImportFailedError,
    MalformedFileNameError,
    ParseError,
    SchemaError,
    SchemaMismatchError,
)
from nucl_calibration.ingest.filenames import parse_file_name
from nucl_calibration.ingest.models import MODES, empty_export
from nucl_calibration.ingest.parse import parse_unknown_table
from nucl_calibration.ingest.transform import annotate_records, find_unmatched_annotations
from nucl_calibration.output.visualizations import (
    FacetPlotSpec,
    PngRenderer,
    Renderer,
    plot_name,
    render_all,
)
from nucl_calibration.output.writers import write_export

logger = structlog.get_logger()

DEFAULT_SUFFIX = ".unknown"
DEFAULT_OUTPUT_DIR = Path("output")
TRUE_BLANK = "TrueBlank"

# Errors that abort a single file; anything else propagates immediately
FILE_ERRORS = (MalformedFileNameError, SchemaError, ParseError)


def list_export_files(path: Path | str, suffix: str = DEFAULT_SUFFIX) -> list[Path]:
    """Regular files in `path` whose name ends with `suffix`, sorted by name.

    Case-sensitive and non-recursive.

    Raises:
        NotADirectoryError: If path is not an existing directory
    """
    path = Path(path)
    if not path.is_dir():
        raise NotADirectoryError(f"Input directory not found: {path}")

    return sorted(
        (p for p in path.iterdir() if p.is_file() and p.name.endswith(suffix)),
        key=lambda p: p.name,
    )


def derive_export_path(input_dir: Path | str, output_dir: Path | str = DEFAULT_OUTPUT_DIR) -> Path:
    """Default export location ``<output_dir>/<segment>_export.csv``.

    `segment` is the second ``/``-separated segment of the input path as
    given (``input/samples/`` -> ``samples``). Single-segment paths use the
    directory name itself.
    """
    segments = str(input_dir).replace("\\", "/").split("/")
    if len(segments) > 1 and segments[1]:
        segment = segments[1]
    else:
        segment = Path(input_dir).name
    return Path(output_dir) / f"{segment}_export.csv"


def concat_tables(tables: list[pl.DataFrame], mode: str) -> pl.DataFrame:
    """Stack per-file tables row-wise.

    Returns an empty frame with the mode's export schema when there is
    nothing to stack.

    Raises:
        SchemaMismatchError: If the tables do not share one column set, or
            their dtypes cannot be reconciled
    """
    if not tables:
        return empty_export(mode)

    reference = tables[0].columns
    for i, table in enumerate(tables[1:], start=1):
        if set(table.columns) != set(reference):
            raise SchemaMismatchError(
                f"Table {i} has columns {table.columns}, expected {reference}"
            )

    try:
        return pl.concat([t.select(reference) for t in tables], how="vertical_relaxed")
    except (pl.exceptions.SchemaError, pl.exceptions.ComputeError) as e:
        raise SchemaMismatchError(f"Cannot stack tables: {e}") from e


def import_file(
    file_path: Path,
    mode: str,
    conv_list: pl.DataFrame,
    condition_list: pl.DataFrame | None = None,
    join_keys: list[str] | None = None,
) -> pl.DataFrame:
    """Parse name, load and annotate a single export file."""
    metadata = parse_file_name(file_path.name, mode)
    raw = parse_unknown_table(file_path)
    return annotate_records(raw, metadata, conv_list, condition_list, join_keys=join_keys)


def build_import_plot_specs(df: pl.DataFrame, true_blank: str = TRUE_BLANK) -> list[FacetPlotSpec]:
    """One intensity-vs-level grid per nuc_group, true blanks excluded.

    Returns an empty list for tables without calibration columns.
    """
    required = {"nuc_group", "calcurve", "level", "nuc", "transition_id"}
    if not required.issubset(df.columns):
        return []

    curves = df.filter(pl.col("calcurve") != true_blank)
    specs = []
    for group in df["nuc_group"].drop_nulls().unique().sort().to_list():
        subset = curves.filter(pl.col("nuc_group") == group)
        if subset.height == 0:
            logger.debug("import_plot_group_empty", nuc_group=group)
            continue
        specs.append(FacetPlotSpec(
            name=plot_name("calibration", group),
            data=subset,
            x="level",
            y="median_intensity",
            hue="date",
            row="nuc",
            col="transition_id",
            title=f"Nucleotide (Calibration): {group}",
        ))
    return specs


def import_files(
    path: Path | str,
    mode: str,
    conv_list: pl.DataFrame,
    condition_list: pl.DataFrame | None = None,
    plot: bool = False,
    output_path: Path | str | None = None,
    output_dir: Path | str = DEFAULT_OUTPUT_DIR,
    join_keys: list[str] | None = None,
    file_suffix: str = DEFAULT_SUFFIX,
    skip_failed: bool = False,
    renderer: Renderer | None = None,
    provenance: "ProvenanceTracker | None" = None,
) -> pl.DataFrame:
    """Import all export files of a directory, write and return the result.

    Every file is attempted. Structural failures (bad file name, schema,
    non-numeric values) are collected and raised together once all files
    were tried, unless `skip_failed` is set, in which case they are logged
    and the remaining files are exported.

    Args:
        path: Directory holding the ``.unknown`` files
        mode: "cal" or "samples"
        conv_list: Conversion table keyed by nuc_nb
        condition_list: Condition table (required in cal mode)
        plot: Render per nuc_group diagnostic grids (cal mode only)
        output_path: CSV destination (default: derive_export_path(path, output_dir))
        output_dir: Root for the derived export path and default plots
        join_keys: Condition join keys (default per mode)
        file_suffix: Suffix selecting export files
        skip_failed: Continue past failing files
        renderer: Plot sink (default: PngRenderer into ``<output_dir>/plots``)
        provenance: Optional tracker recording the import step

    Returns:
        Concatenated annotated table (possibly empty)

    Raises:
        ValueError: If mode is unknown
        ImportFailedError: If any file failed and skip_failed is False
        SchemaMismatchError: If per-file tables cannot be stacked
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode '{mode}', expected one of {MODES}")

    path = Path(path)
    files = list_export_files(path, suffix=file_suffix)
    logger.info("import_start", path=str(path), mode=mode, file_count=len(files))

    tables = []
    failures: list[tuple[str, Exception]] = []

    for file_path in files:
        try:
            table = import_file(file_path, mode, conv_list, condition_list, join_keys)
        except FILE_ERRORS as e:
            failures.append((file_path.name, e))
            logger.warning(
                "import_file_failed",
                file=file_path.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            continue

        unmatched = find_unmatched_annotations(table, mode)
        if unmatched:
            logger.warning(
                "import_annotation_unmatched",
                file=file_path.name,
                columns=unmatched,
                msg="Check annotation file: no reference entry matched",
            )
        if table.height == 0:
            logger.warning(
                "import_file_no_rows",
                file=file_path.name,
                msg="No row matched the conversion list",
            )

        logger.debug("import_file_loaded", file=file_path.name, rows=table.height)
        tables.append(table)

    if failures and not skip_failed:
        raise ImportFailedError(failures)

    data_export = concat_tables(tables, mode)

    if data_export.height == 0:
        logger.warning(
            "import_empty_result",
            path=str(path),
            msg="Check annotation file. Empty table created!",
        )
    else:
        logger.info(
            "import_merge_complete",
            rows=data_export.height,
            files=len(tables),
            skipped=len(failures),
        )

    if output_path is None:
        output_path = derive_export_path(path, output_dir)
    output_path = Path(output_path)

    if provenance is not None:
        provenance.record_step("import_files", {
            "input_dir": str(path),
            "mode": mode,
            "files_imported": len(tables),
            "files_failed": [name for name, _ in failures],
            "row_count": data_export.height,
        })

    write_export(data_export, output_path, provenance=provenance)
    logger.info("import_export_written", path=str(output_path), rows=data_export.height)

    if plot:
        if mode != "cal":
            logger.warning("import_plot_skipped", mode=mode, msg="Plots need calibration columns")
        else:
            renderer = renderer or PngRenderer(Path(output_dir) / "plots")
            render_all(build_import_plot_specs(data_export), renderer)

    return data_export
