"""Output generation: CSV exports and diagnostic plots."""

from nucl_calibration.output.visualizations import (
    FacetPlotSpec,
    PngRenderer,
    render_all,
    render_facet_scatter,
)
from nucl_calibration.output.writers import read_export, write_export

__all__ = [
    "write_export",
    "read_export",
    "FacetPlotSpec",
    "PngRenderer",
    "render_facet_scatter",
    "render_all",
]
