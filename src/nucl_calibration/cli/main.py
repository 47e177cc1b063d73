"""Main CLI entry point for nucl-cal.

Provides command group with global options and subcommands for pipeline operations.
"""

import logging
from pathlib import Path

import click

from nucl_calibration import __version__
from nucl_calibration.config.loader import load_config
from nucl_calibration.cli.import_cmd import import_cmd
from nucl_calibration.cli.evaluate_cmd import evaluate


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to pipeline configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.pass_context
def cli(ctx, config, verbose):
    """nucl-cal: import and quality control of nucleotide calibration runs.

    Imports TOPPAS quantification exports, annotates them with reference
    tables, and tags calibration curves for true-blank noise and saturation.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def info(ctx):
    """Display pipeline information and configuration summary."""
    config_path = ctx.obj['config_path']

    click.echo(f"nucl-calibration v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config(config_path)

        config_hash = config.config_hash()
        click.echo(f"Config Hash: {config_hash[:16]}...")
        click.echo()

        click.echo(click.style("Reference Tables:", bold=True))
        click.echo(f"  Conversion List: {config.reference.conversion_list}")
        click.echo(f"  Condition List:  {config.reference.condition_list}")
        click.echo()

        click.echo(click.style("Paths:", bold=True))
        click.echo(f"  Output Directory: {config.output_dir}")
        click.echo(f"  Plots Directory:  {config.plots_dir}")
        click.echo()

        click.echo(click.style("Evaluation:", bold=True))
        ev = config.evaluation
        click.echo(f"  True Blank:      {ev.true_blank} (evaluate: {ev.eval_trueblank})")
        click.echo(f"  Saturation:      {ev.eval_saturation} (ratio >= {ev.saturation_ratio})")
        click.echo(f"  Exclude below TB: {ev.excl_below_tb}")
        click.echo(f"  Exclude saturated: {ev.excl_saturated}")

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


# Register commands
cli.add_command(import_cmd)
cli.add_command(evaluate)


if __name__ == '__main__':
    cli()
