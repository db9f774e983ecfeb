"""
CLI entry point for Margay Core.

Provides command-line interface for tree administration: initializing a
tree, inserting leaves, querying roots and signing root checkpoints.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from margay._version import __version__
from margay.cli.context import CLIContext, pass_context
from margay.config.settings import get_default_config_path, load_config
from margay.exceptions import ConfigurationError
from margay.logging_config import get_logger, setup_logging


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help=f'Path to configuration file (default: {get_default_config_path()})',
)
@click.option(
    '--log-level',
    '-l',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    default=None,
    help='Set logging level (default: from configuration)',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose output',
)
@click.version_option(version=__version__, prog_name='margay')
@pass_context
def cli(ctx: CLIContext, config: Optional[Path], log_level: Optional[str], verbose: bool):
    """
    Margay Core - Incremental Merkle tree with root history.

    Maintains an append-only Merkle tree, answers known-root queries against
    a window of recent roots and signs root checkpoints.
    """
    ctx.verbose = verbose
    ctx.config_path = str(config) if config else None

    # Console logging until the configuration says otherwise
    setup_logging(level=log_level or "WARNING", json_format=False)

    try:
        ctx.config = load_config(ctx.config_path)
    except ConfigurationError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    effective_log_level = log_level.upper() if log_level else ctx.config.logging.level
    log_file = Path(ctx.config.logging.file).expanduser() if ctx.config.logging.file else None
    try:
        setup_logging(
            level=effective_log_level,
            log_file=log_file,
            json_format=ctx.config.logging.format == "json",
        )
    except OSError as e:
        click.echo(f"Error: Failed to set up logging: {e}", err=True)
        sys.exit(1)

    if verbose:
        logger = get_logger("margay.cli")
        logger.info(f"Loaded configuration from: {ctx.config_path or 'defaults'}")
        logger.info(f"Log level: {effective_log_level}")


# Import and register command groups
from margay.cli.keys import keys
from margay.cli.tree import tree

cli.add_command(tree)
cli.add_command(keys)


if __name__ == '__main__':
    cli()
