"""CLI entry point for keyshift."""

import sys

import click
import structlog

from keyshift import __version__
from keyshift.cli.credentials import credentials_group
from keyshift.cli.migrate import migrate_group
from keyshift.config.settings import KeyshiftSettings
from keyshift.exceptions import ConfigurationError
from keyshift.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.version_option(__version__, prog_name="keyshift")
@click.option(
    "--config",
    default=None,
    type=click.Path(),
    help="Path to YAML configuration file (default: KEYSHIFT_* environment variables)",
)
@click.option("--log-level", default=None, help="Logging level (overrides the configuration)")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str | None) -> None:
    """keyshift: manage provider credentials and migrate them to the environment."""
    obj = ctx.ensure_object(dict)
    if "context" in obj:
        configure_logging(log_level or "WARNING", json_output=False)
        return

    try:
        settings = KeyshiftSettings.from_yaml(config) if config else KeyshiftSettings()
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    configure_logging(log_level or settings.log_level, json_output=False)
    log.debug("settings_loaded", config=config, config_dir=str(settings.config_dir))
    obj["settings"] = settings


cli.add_command(credentials_group)
cli.add_command(migrate_group)


if __name__ == "__main__":
    cli()
