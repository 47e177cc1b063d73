"""Import command: consolidate a run directory of instrument exports."""

import logging
import sys
from pathlib import Path

import click

from nucl_calibration.config.loader import load_config_with_overrides
from nucl_calibration.errors import ImportFailedError, NuclCalibrationError
from nucl_calibration.ingest import (
    derive_export_path,
    import_files,
    load_condition_list,
    load_conversion_list,
)
from nucl_calibration.output import PngRenderer
from nucl_calibration.persistence import ProvenanceTracker

logger = logging.getLogger(__name__)


@click.command('import')
@click.argument(
    'input_dir',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    '--mode',
    type=click.Choice(['cal', 'samples']),
    required=True,
    help='Calibration curve runs (cal) or biological samples (samples)'
)
@click.option(
    '--output',
    'output_path',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='Export CSV path (default: {output_dir}/<segment>_export.csv)'
)
@click.option(
    '--plot',
    is_flag=True,
    help='Render per nuc_group calibration plots (cal mode only)'
)
@click.option(
    '--skip-failed',
    is_flag=True,
    help='Export the files that imported cleanly instead of aborting'
)
@click.pass_context
def import_cmd(ctx, input_dir, mode, output_path, plot, skip_failed):
    """Import all instrument exports of INPUT_DIR into one CSV.

    File names are parsed for date and curve/sample identifiers, every table
    is annotated with the conversion and condition lists, and the stacked
    result is written as CSV with a provenance sidecar.

    Examples:

        # Calibration runs, with plots
        nucl-cal import input/cal/ --mode cal --plot

        # Samples, custom export location
        nucl-cal import input/samples/ --mode samples --output results/samples.csv
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style(f"=== Import ({mode}) ===", bold=True))
    click.echo()

    try:
        overrides = {'ingest.skip_failed': True} if skip_failed else {}
        config = load_config_with_overrides(config_path, overrides)
        provenance = ProvenanceTracker.from_config(config)
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))

        join_keys = (
            config.ingest.calibration_join_keys if mode == 'cal'
            else config.ingest.sample_join_keys
        )
        conv_list = load_conversion_list(config.reference.conversion_list)
        condition_list = load_condition_list(config.reference.condition_list, join_keys)
        click.echo(click.style("  Reference tables loaded", fg='green'))
        click.echo()

        if output_path is None:
            output_path = derive_export_path(input_dir, config.output_dir)

        df = import_files(
            input_dir,
            mode,
            conv_list,
            condition_list,
            plot=plot,
            output_path=output_path,
            output_dir=config.output_dir,
            join_keys=join_keys,
            file_suffix=config.ingest.file_suffix,
            skip_failed=config.ingest.skip_failed,
            renderer=PngRenderer.from_config(config) if plot else None,
            provenance=provenance,
        )

    except ImportFailedError as e:
        click.echo(click.style(f"Import failed for {len(e.failures)} file(s):", fg='red'), err=True)
        for name, exc in e.failures:
            click.echo(click.style(f"  {name}: {exc}", fg='red'), err=True)
        sys.exit(1)
    except (NuclCalibrationError, FileNotFoundError, NotADirectoryError) as e:
        click.echo(click.style(f"Import failed: {e}", fg='red'), err=True)
        logger.exception("Import command failed")
        sys.exit(1)

    if df.height == 0:
        click.echo(click.style(
            "Warning: empty table created, check the annotation files.",
            fg='yellow'
        ))
    else:
        click.echo(click.style(
            f"Checked - merged {df.height} rows with the annotation files",
            fg='green'
        ))
    click.echo(f"Export: {output_path}")
    if plot:
        click.echo(f"Plots:  {config.plots_dir}")
