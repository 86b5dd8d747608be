"""CLI entry point for keysmith."""

import sys
from pathlib import Path

import click
import structlog

from keysmith.cli.credentials import credentials_group
from keysmith.cli.rotate import rotate_command, test_connection_command
from keysmith.config.settings import KeysmithSettings
from keysmith.exceptions import ConfigurationError
from keysmith.utils.logging_config import configure_logging
from keysmith.utils.scheduling import shutdown_default_scheduler

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--config",
    default=None,
    help="Path to configuration file (defaults and KEYSMITH_* variables apply without one)",
)
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str) -> None:
    """keysmith: credential lifecycle for cloud connections."""
    configure_logging(log_level)
    ctx.call_on_close(shutdown_default_scheduler)

    if config is None:
        ctx.obj = {"settings": KeysmithSettings()}
        return

    config_path = Path(config)
    if not config_path.exists():
        click.echo(f"Error: Configuration file not found: {config}", err=True)
        sys.exit(1)

    try:
        settings = KeysmithSettings.from_yaml(str(config_path))
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


cli.add_command(rotate_command)
cli.add_command(test_connection_command)
cli.add_command(credentials_group)


if __name__ == "__main__":
    cli()
