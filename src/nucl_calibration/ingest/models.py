"""Data models and schema declarations for instrument exports."""

from typing import Literal, Optional

import polars as pl
from pydantic import BaseModel

Mode = Literal["cal", "samples"]
MODES: tuple[str, ...] = ("cal", "samples")

# Minimum number of `_`-delimited file name tokens per mode
REQUIRED_TOKENS = {
    "cal": 5,
    "samples": 3,
}

# Known header spellings per canonical column, checked before substring
# matching. TOPPAS FeatureFinderMetabo exports vary between versions.
COLUMN_VARIANTS = {
    "median_intensity": ["median_intensity", "median", "median_int", "intensity_median"],
    "nuc_nb": ["nuc_nb", "nuc", "nuc_number", "nucleotide_nb"],
    "transition": ["transition", "transition_nb"],
    "cv": ["cv", "CV", "cv_intensity"],
}

# Substring fallback for columns whose header is not a known spelling
COLUMN_PATTERNS = {
    "median_intensity": "median",
    "nuc_nb": "nuc",
}

RAW_REQUIRED_COLUMNS = ["nuc_nb", "transition", "median_intensity", "cv"]

# Export schemas; column order is part of the output contract
CALIBRATION_SCHEMA: dict[str, pl.DataType] = {
    "nuc_id": pl.String,
    "nuc": pl.String,
    "nuc_group": pl.String,
    "transition_id": pl.String,
    "calcurve": pl.String,
    "level": pl.Int64,
    "repl_calcurve": pl.Int64,
    "date": pl.String,
    "median_intensity": pl.Float64,
    "cv": pl.Float64,
}

SAMPLE_SCHEMA: dict[str, pl.DataType] = {
    "date": pl.String,
    "file_tag": pl.String,
    "sample": pl.String,
    "nuc_id": pl.String,
    "nuc": pl.String,
    "transition_id": pl.String,
    "median_intensity": pl.Float64,
    "cv": pl.Float64,
}

EXPORT_SCHEMAS = {
    "cal": CALIBRATION_SCHEMA,
    "samples": SAMPLE_SCHEMA,
}

# Columns filled by left joins; all-null means the reference table did not match
ANNOTATION_COLUMNS = {
    "cal": ["level"],
    "samples": ["nuc_id", "sample"],
}


def empty_export(mode: str) -> pl.DataFrame:
    """Zero-row frame carrying the export schema of `mode`."""
    return pl.DataFrame(schema=EXPORT_SCHEMAS[mode])


class FileMetadata(BaseModel):
    """Metadata encoded in an instrument export file name.

    Attributes:
        file_name: Base name the metadata was parsed from
        mode: "cal" or "samples"
        date: Acquisition date token (token 0)
        calcurve: Calibration mix identifier (cal mode, token 3)
        repl_calcurve: Replicate of the calibration curve (cal mode, token 4)
        file_tag: Sample file tag (samples mode, token 2)
    """

    file_name: str
    mode: Mode
    date: str
    calcurve: Optional[str] = None
    repl_calcurve: Optional[int] = None
    file_tag: Optional[str] = None

    def as_columns(self) -> dict[str, str | int]:
        """Mode-specific fields to attach to every row of the file."""
        if self.mode == "cal":
            return {
                "date": self.date,
                "calcurve": self.calcurve,
                "repl_calcurve": self.repl_calcurve,
            }
        return {
            "date": self.date,
            "file_tag": self.file_tag,
        }


class CalibrationRecord(BaseModel):
    """One annotated row of a calibration export.

    `level` is None when the condition list has no entry for the curve.
    """

    nuc_id: str
    nuc: str
    nuc_group: str
    transition_id: str
    calcurve: str
    level: Optional[int] = None
    repl_calcurve: int
    date: str
    median_intensity: Optional[float] = None
    cv: Optional[float] = None


class SampleRecord(BaseModel):
    """One annotated row of a sample export.

    Annotation fields stay None when the reference tables have no match,
    samples mode uses left joins throughout.
    """

    date: str
    file_tag: str
    sample: Optional[str] = None
    nuc_id: Optional[str] = None
    nuc: Optional[str] = None
    transition_id: str
    median_intensity: Optional[float] = None
    cv: Optional[float] = None
