"""Import of instrument exports: file names, raw tables, annotation joins."""

from nucl_calibration.ingest.models import (
    CALIBRATION_SCHEMA,
    EXPORT_SCHEMAS,
    SAMPLE_SCHEMA,
    CalibrationRecord,
    FileMetadata,
    SampleRecord,
)
from nucl_calibration.ingest.filenames import parse_file_name
from nucl_calibration.ingest.parse import parse_unknown_table, resolve_columns
from nucl_calibration.ingest.reference import (
    load_condition_list,
    load_conversion_list,
    load_reference_table,
)
from nucl_calibration.ingest.transform import annotate_records, find_unmatched_annotations
from nucl_calibration.ingest.pipeline import (
    build_import_plot_specs,
    concat_tables,
    derive_export_path,
    import_files,
    list_export_files,
)

__all__ = [
    "CALIBRATION_SCHEMA",
    "SAMPLE_SCHEMA",
    "EXPORT_SCHEMAS",
    "FileMetadata",
    "CalibrationRecord",
    "SampleRecord",
    "parse_file_name",
    "parse_unknown_table",
    "resolve_columns",
    "load_reference_table",
    "load_conversion_list",
    "load_condition_list",
    "annotate_records",
    "find_unmatched_annotations",
    "list_export_files",
    "derive_export_path",
    "concat_tables",
    "build_import_plot_specs",
    "import_files",
]
