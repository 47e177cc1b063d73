"""Pydantic models for pipeline configuration."""

import hashlib
import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ReferenceTables(BaseModel):
    """Locations of the collaborator-supplied reference tables."""

    conversion_list: Path = Field(
        ...,
        description="Table mapping instrument nuc_nb to nuc_id, nuc and nuc_group",
    )
    condition_list: Optional[Path] = Field(
        default=None,
        description="Table mapping calibration curve or sample identity to annotations",
    )


class IngestConfig(BaseModel):
    """Settings for reading instrument exports."""

    file_suffix: str = Field(
        default=".unknown",
        min_length=1,
        description="Case-sensitive suffix of instrument export files",
    )
    skip_failed: bool = Field(
        default=False,
        description="Log failing files and continue instead of aborting the run",
    )
    calibration_join_keys: list[str] = Field(
        default=["calcurve"],
        min_length=1,
        description="Columns shared with the condition list in cal mode",
    )
    sample_join_keys: list[str] = Field(
        default=["file_tag"],
        min_length=1,
        description="Columns shared with the condition list in samples mode",
    )


class EvaluationOptions(BaseModel):
    """Switches for calibration curve evaluation."""

    eval_trueblank: bool = Field(
        default=True,
        description="Tag rows against the mean true-blank intensity",
    )
    true_blank: str = Field(
        default="TrueBlank",
        description="calcurve value identifying true-blank injections",
    )
    excl_below_tb: bool = Field(
        default=True,
        description="Drop below_tb rows before plotting",
    )
    eval_saturation: bool = Field(
        default=False,
        description="Compute saturation ratios against the reference level",
    )
    eval_level: str = Field(
        default="top2",
        description="Level selection strategy for saturation (reserved)",
    )
    excl_saturated: bool = Field(
        default=False,
        description="Drop saturated rows before plotting",
    )
    incl_plot: bool = Field(
        default=True,
        description="Render per nuc_group plots after evaluation",
    )
    saturation_min_level: int = Field(
        default=5,
        ge=0,
        description="Lowest level included in the saturation summary",
    )
    saturation_ref_level: int = Field(
        default=10,
        ge=0,
        description="Level whose mean intensity is the saturation reference",
    )
    saturation_ratio: float = Field(
        default=0.9,
        gt=0.0,
        description="ratio_5 at or above which a curve counts as saturated",
    )


class PlotConfig(BaseModel):
    """Settings for the default PNG renderer."""

    dpi: int = Field(
        default=150,
        ge=50,
        le=600,
        description="Resolution of saved figures",
    )
    palette: list[str] = Field(
        default=["#1874CD", "#000000", "#FF0000"],
        description="Colors cycled across dates",
    )


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    output_dir: Path = Field(
        default=Path("output"),
        description="Directory receiving exports",
    )
    plots_dir: Path = Field(
        default=Path("output/plots"),
        description="Directory receiving rendered plots",
    )
    reference: ReferenceTables = Field(
        ...,
        description="Reference table locations",
    )
    ingest: IngestConfig = Field(
        default_factory=IngestConfig,
        description="Instrument export reading settings",
    )
    evaluation: EvaluationOptions = Field(
        default_factory=EvaluationOptions,
        description="Calibration evaluation switches",
    )
    plotting: PlotConfig = Field(
        default_factory=PlotConfig,
        description="Renderer settings",
    )

    @field_validator("output_dir", "plots_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Returns a deterministic hash based on all config values,
        useful for tracking which settings produced an export.
        """
        config_dict = self.model_dump(mode="python")
        config_json = json.dumps(
            config_dict,
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()
