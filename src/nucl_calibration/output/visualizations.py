"""Faceted scatter plots for calibration diagnostics."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import matplotlib
import polars as pl

# Use Agg backend (non-interactive, safe for headless/CLI use)
matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import seaborn as sns  # noqa: E402

logger = logging.getLogger(__name__)

DEFAULT_PALETTE = ["#1874CD", "#000000", "#FF0000"]


@dataclass
class FacetPlotSpec:
    """Everything a renderer needs to draw one faceted scatter grid.

    Attributes:
        name: File-name friendly identifier of the plot
        data: Rows to draw
        x, y: Columns on the axes
        hue: Column mapped to point color
        row, col: Columns defining the facet grid
        title: Figure title
        reference_field: Column holding a per-facet horizontal reference line
    """

    name: str
    data: pl.DataFrame
    x: str
    y: str
    hue: str
    row: str
    col: str
    title: str
    reference_field: Optional[str] = None

    @property
    def facet_keys(self) -> list[tuple]:
        """Distinct (row, col) facet combinations, sorted."""
        facets = self.data.select(self.row, self.col).unique().sort([self.row, self.col])
        return list(facets.iter_rows())


Renderer = Callable[[FacetPlotSpec], object]


def plot_name(prefix: str, group: object) -> str:
    """Build a file-name friendly plot identifier."""
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", str(group)).strip("_") or "none"
    return f"{prefix}_{slug}"


def _reference_line(data, field: str, **kwargs) -> None:
    values = data[field].dropna()
    if not values.empty:
        plt.gca().axhline(values.mean(), color="grey", linestyle="--", linewidth=0.8)


def render_facet_scatter(
    spec: FacetPlotSpec,
    output_path: Path,
    dpi: int = 150,
    palette: list[str] | None = None,
) -> Path:
    """
    Render a facet grid of scatter plots and save it as PNG.

    Args:
        spec: Plot description
        output_path: Path where PNG will be saved
        dpi: Figure resolution
        palette: Colors cycled across hue levels

    Returns:
        Path to the saved PNG file

    Raises:
        ValueError: If the spec has no rows to draw

    Notes:
        - Converts to pandas for seaborn compatibility
        - y axes are independent per facet row (free scales)
    """
    if spec.data.height == 0:
        raise ValueError(f"Plot '{spec.name}' has no rows to draw")

    pdf = spec.data.to_pandas()
    hue_order = sorted(pdf[spec.hue].dropna().astype(str).unique())
    pdf[spec.hue] = pdf[spec.hue].astype(str)

    sns.set_theme(style="whitegrid", context="paper")

    grid = sns.FacetGrid(
        pdf,
        row=spec.row,
        col=spec.col,
        hue=spec.hue,
        hue_order=hue_order,
        palette=palette or DEFAULT_PALETTE,
        sharey=False,
        margin_titles=True,
        height=2.2,
    )
    grid.map_dataframe(sns.scatterplot, x=spec.x, y=spec.y)

    if spec.reference_field is not None and spec.reference_field in pdf.columns:
        grid.map_dataframe(_reference_line, field=spec.reference_field)

    grid.set_titles(row_template="{row_name}", col_template="{col_name}")
    grid.set_axis_labels(spec.x, spec.y)
    grid.add_legend(title=spec.hue)
    grid.figure.suptitle(spec.title, y=1.02)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    grid.figure.savefig(output_path, dpi=dpi, bbox_inches="tight")

    # Close figure to prevent memory leak
    plt.close(grid.figure)

    logger.info(f"Saved plot '{spec.name}' to {output_path}")
    return output_path


class PngRenderer:
    """Renderer writing each plot spec to ``<plots_dir>/<name>.png``."""

    def __init__(self, plots_dir: Path, dpi: int = 150, palette: list[str] | None = None):
        self.plots_dir = Path(plots_dir)
        self.dpi = dpi
        self.palette = palette

    def __call__(self, spec: FacetPlotSpec) -> Path:
        return render_facet_scatter(
            spec,
            self.plots_dir / f"{spec.name}.png",
            dpi=self.dpi,
            palette=self.palette,
        )

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "PngRenderer":
        return cls(
            config.plots_dir,
            dpi=config.plotting.dpi,
            palette=config.plotting.palette,
        )


def render_all(specs: list[FacetPlotSpec], renderer: Renderer) -> dict[str, object]:
    """
    Hand every spec to the renderer.

    Args:
        specs: Plot descriptions
        renderer: Callable receiving one spec at a time

    Returns:
        Dictionary mapping plot name to whatever the renderer returned

    Notes:
        - Wraps each plot in try/except to continue on individual failures
    """
    results = {}
    for spec in specs:
        try:
            results[spec.name] = renderer(spec)
        except Exception as e:
            logger.warning(f"Failed to render plot '{spec.name}': {e}")

    logger.info(f"Rendered {len(results)} of {len(specs)} plots")
    return results
