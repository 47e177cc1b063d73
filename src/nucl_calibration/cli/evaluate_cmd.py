"""Evaluate command: tag a calibration export for noise and saturation."""

import logging
import sys
from pathlib import Path

import click
import polars as pl

from nucl_calibration.calibration import evaluate_calibrations
from nucl_calibration.config.loader import load_config_with_overrides
from nucl_calibration.ingest import CALIBRATION_SCHEMA
from nucl_calibration.output import PngRenderer, read_export, write_export
from nucl_calibration.persistence import ProvenanceTracker

logger = logging.getLogger(__name__)


@click.command('evaluate')
@click.argument(
    'export_csv',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    '--output',
    'output_path',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='Evaluated CSV path (default: {output_dir}/cal_evaluation.csv)'
)
@click.option(
    '--no-plot',
    is_flag=True,
    help='Skip plot rendering'
)
@click.option(
    '--eval-saturation',
    is_flag=True,
    help='Compute saturation ratios and tag_saturation'
)
@click.option(
    '--keep-below-tb',
    is_flag=True,
    help='Keep below_tb rows in the plots'
)
@click.option(
    '--excl-saturated',
    is_flag=True,
    help='Drop saturated rows from the plots'
)
@click.pass_context
def evaluate(ctx, export_csv, output_path, no_plot, eval_saturation, keep_below_tb, excl_saturated):
    """Evaluate the calibration curves of EXPORT_CSV.

    Reads a cal-mode export, tags each row against the true-blank mean
    (tag_noise) and optionally against the reference level (tag_saturation),
    writes the evaluated table, and renders one plot per nuc_group.

    Examples:

        nucl-cal evaluate output/cal_export.csv

        nucl-cal evaluate output/cal_export.csv --eval-saturation --excl-saturated
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Calibration Evaluation ===", bold=True))
    click.echo()

    overrides = {}
    if no_plot:
        overrides['evaluation.incl_plot'] = False
    if eval_saturation:
        overrides['evaluation.eval_saturation'] = True
    if keep_below_tb:
        overrides['evaluation.excl_below_tb'] = False
    if excl_saturated:
        overrides['evaluation.excl_saturated'] = True

    try:
        config = load_config_with_overrides(config_path, overrides)
        provenance = ProvenanceTracker.from_config(config)
        options = config.evaluation

        cal_df = read_export(export_csv, schema=CALIBRATION_SCHEMA)
        click.echo(click.style(f"  Loaded {cal_df.height} rows from {export_csv}", fg='green'))

        evaluated = evaluate_calibrations(
            cal_df,
            options,
            renderer=PngRenderer.from_config(config) if options.incl_plot else None,
        )
    except Exception as e:
        click.echo(click.style(f"Evaluation failed: {e}", fg='red'), err=True)
        logger.exception("Evaluate command failed")
        sys.exit(1)

    provenance.record_step('evaluate_calibrations', {
        'source': str(export_csv),
        'options': options.model_dump(),
        'row_count': evaluated.height,
    })

    if output_path is None:
        output_path = Path(config.output_dir) / "cal_evaluation.csv"
    paths = write_export(evaluated, output_path, provenance=provenance)

    click.echo()
    click.echo(click.style("=== Summary ===", bold=True))
    click.echo(f"Rows evaluated: {evaluated.height} (from {cal_df.height})")
    if 'tag_noise' in evaluated.columns:
        below = evaluated.filter(pl.col('tag_noise') == 'below_tb').height
        above = evaluated.filter(pl.col('tag_noise') == 'above_tb').height
        click.echo(f"  below_tb: {below}")
        click.echo(f"  above_tb: {above}")
    if 'tag_saturation' in evaluated.columns:
        saturated = evaluated.filter(pl.col('tag_saturation') == 'saturated').height
        click.echo(f"  saturated: {saturated}")
    click.echo(f"Output: {paths['csv']}")
    click.echo(click.style("Evaluation complete!", fg='green', bold=True))
