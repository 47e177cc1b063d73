from .loader import load_config, load_config_with_overrides
from .schema import (
    EvaluationOptions,
    IngestConfig,
    PipelineConfig,
    PlotConfig,
    ReferenceTables,
)

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "PipelineConfig",
    "ReferenceTables",
    "IngestConfig",
    "EvaluationOptions",
    "PlotConfig",
]
