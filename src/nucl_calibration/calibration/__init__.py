"""Calibration curve evaluation: true-blank noise and saturation tags."""

from nucl_calibration.calibration.evaluate import (
    build_evaluation_plot_specs,
    compute_blank_statistics,
    compute_saturation,
    evaluate_calibrations,
    filter_for_plot,
    tag_noise,
    tag_saturation,
)

__all__ = [
    "compute_blank_statistics",
    "tag_noise",
    "compute_saturation",
    "tag_saturation",
    "filter_for_plot",
    "build_evaluation_plot_specs",
    "evaluate_calibrations",
]
