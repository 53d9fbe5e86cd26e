"""CLI commands for migrating legacy credentials.

Older installations stored the Z.ai key in the encrypted settings document.
``keyshift migrate run`` moves it to the environment variables that
Anthropic-compatible tooling reads, keeping a backup of what it replaced.
"""

from __future__ import annotations

import asyncio
import sys

import click

from keyshift.cli.common import exit_with_error, get_context, print_check
from keyshift.exceptions import KeyshiftError
from keyshift.migration.models import MigrationResult, MigrationState
from keyshift.providers import StorageMethod, display_name

DEFAULT_PROVIDER = "zai"


class ClickPrompts:
    """Interactive migration input on the terminal."""

    def ask_secret(self, provider: str) -> str | None:
        value = click.prompt(
            f"{display_name(provider)} API key",
            hide_input=True,
            default="",
            show_default=False,
        )
        return value.strip() or None

    def ask_base_url(self, provider: str, default: str | None) -> str | None:
        value = click.prompt(
            f"{display_name(provider)} base URL",
            default=default or "",
            show_default=bool(default),
        )
        return value.strip() or None

    def confirm_cleanup(self, provider: str) -> bool:
        return click.confirm(
            f"Remove the legacy {display_name(provider)} credential from the settings file?",
            default=False,
        )


@click.group(name="migrate")
def migrate_group():
    """Move legacy settings-stored credentials to environment variables."""
    pass


@migrate_group.command(name="status")
@click.argument("provider", default=DEFAULT_PROVIDER)
@click.pass_context
def migration_status(ctx: click.Context, provider: str) -> None:
    """Show where PROVIDER's credential currently lives."""
    context = get_context(ctx)
    status = context.engine.status(provider)

    click.echo(f"Migration status for {display_name(status.provider)}:")
    print_check("Legacy credential in settings", status.has_legacy_credential)
    print_check("Environment configured", status.has_target_configuration)
    for issue in status.issues:
        click.echo(f"       {issue}")

    if status.migration_completed:
        click.echo(click.style("Migration completed", fg="green"))
    elif status.migration_needed:
        click.echo(click.style("Migration needed: run `keyshift migrate run`", fg="yellow"))
    elif not status.has_legacy_credential and not status.has_target_configuration:
        click.echo("No credential configured")
    else:
        click.echo("Legacy credential still present; run `keyshift migrate run --yes` to remove it")


@migrate_group.command(name="run")
@click.argument("provider", default=DEFAULT_PROVIDER)
@click.option("--base-url", default=None, help="Endpoint to configure (prompted if omitted)")
@click.option("--yes", "assume_yes", is_flag=True, help="Remove the legacy credential without asking")
@click.option("--keep-legacy", is_flag=True, help="Keep the legacy credential without asking")
@click.option("--non-interactive", is_flag=True, help="Never prompt; requires a legacy credential")
@click.option("--shell", type=click.Choice(["bash", "zsh", "fish", "powershell", "cmd"]), default="bash")
@click.pass_context
def run_migration(
    ctx: click.Context,
    provider: str,
    base_url: str | None,
    assume_yes: bool,
    keep_legacy: bool,
    non_interactive: bool,
    shell: str,
) -> None:
    """Migrate PROVIDER's credential to environment variables."""
    if assume_yes and keep_legacy:
        raise click.UsageError("--yes and --keep-legacy are mutually exclusive")

    context = get_context(ctx)
    prompts = None if non_interactive else ClickPrompts()
    cleanup = True if assume_yes else False if keep_legacy else None

    try:
        result = asyncio.run(context.engine.migrate(provider, prompts, base_url=base_url, confirm_cleanup=cleanup))
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    _print_result(result)
    if not result.success:
        sys.exit(1)

    if result.state is not MigrationState.NOT_NEEDED and context.engine.target_method is StorageMethod.ENVIRONMENT:
        click.echo("Environment variables only last for this process. To persist them, add:")
        effective_url = context.engine.expected_base_url(result.provider, base_url)
        for line in context.environment_store.export_commands(result.provider, shell=shell, base_url=effective_url):
            click.echo(f"  {line}")


@migrate_group.command(name="backups")
@click.pass_context
def list_backups(ctx: click.Context) -> None:
    """List migration backups, oldest first."""
    context = get_context(ctx)
    backups = asyncio.run(context.engine.list_backups())
    if not backups:
        click.echo("No migration backups found")
        return

    for backup in backups:
        secret = "with credential" if backup.captured_secret is not None else "no credential"
        click.echo(f"{backup.timestamp}  {backup.provider:<10} {secret}")


@migrate_group.command(name="restore")
@click.argument("timestamp")
@click.option("--remove-target", is_flag=True, help="Also remove the migrated environment credential")
@click.confirmation_option(prompt="Restore this backup over the current settings?")
@click.pass_context
def restore_backup(ctx: click.Context, timestamp: str, remove_target: bool) -> None:
    """Restore the backup taken at TIMESTAMP."""
    context = get_context(ctx)
    try:
        backup = asyncio.run(context.engine.load_backup(timestamp))
        if backup is None:
            click.echo(click.style(f"Error: No backup found for {timestamp}", fg="red"), err=True)
            sys.exit(1)
        asyncio.run(context.engine.restore(backup, remove_target=remove_target))
    except KeyshiftError as e:
        exit_with_error(e)

    click.echo(click.style(f"Backup {timestamp} restored", fg="green"))


def _print_result(result: MigrationResult) -> None:
    name = display_name(result.provider)
    if result.cancelled:
        click.echo(click.style("Migration cancelled; nothing was changed", fg="yellow"))
        return

    if not result.success:
        step = f" during {result.step.value}" if result.step else ""
        click.echo(click.style(f"Migration of {name} failed{step}: {result.error}", fg="red"), err=True)
        if result.backup is not None:
            click.echo(f"Backup kept: {result.backup.timestamp}", err=True)
        return

    if result.state is MigrationState.NOT_NEEDED:
        click.echo(click.style(f"{name} is already configured in the environment; nothing to do", fg="green"))
    elif result.cleanup_performed:
        click.echo(click.style(f"{name} migrated and legacy credential removed", fg="green"))
    else:
        click.echo(click.style(f"{name} migrated; legacy credential kept", fg="green"))

    if result.backup is not None:
        click.echo(f"Backup: {result.backup.timestamp}")
