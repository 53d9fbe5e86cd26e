"""CLI commands for credential management.

This module provides the ``keyshift credentials`` command group.

Credentials live in one of two stores:
    - settings: Fernet-encrypted entries under ``apiKeys`` in the settings
        document (global or workspace tier). Used by Anthropic and custom
        providers.
    - environment: Environment variables. Z.ai is read from
        ANTHROPIC_BASE_URL and ANTHROPIC_AUTH_TOKEN.

Which store is used is decided per provider; ``--method`` overrides the
choice when the requested store supports the provider.

Example:
    Store and inspect credentials::

        $ keyshift credentials set anthropic
        $ keyshift credentials get anthropic
        $ keyshift credentials validate
        $ keyshift credentials export zai --shell fish
"""

from __future__ import annotations

import sys

import click

from keyshift.cli.common import exit_with_error, get_context, print_check
from keyshift.credentials.models import mask_secret
from keyshift.credentials.settings_document import ConfigScope
from keyshift.exceptions import KeyshiftError
from keyshift.providers import PROVIDERS, StorageMethod, display_name, normalize_provider_id

METHOD_CHOICE = click.Choice([StorageMethod.SETTINGS.value, StorageMethod.ENVIRONMENT.value])
SCOPE_CHOICE = click.Choice([scope.value for scope in ConfigScope])
SHELL_CHOICE = click.Choice(["bash", "zsh", "fish", "powershell", "cmd"])


@click.group(name="credentials")
def credentials_group():
    """Manage provider credentials.

    Examples:

        # Store an Anthropic key in the encrypted settings document
        keyshift credentials set anthropic

        # Store a Z.ai token in the environment
        keyshift credentials set zai --base-url https://api.z.ai/api/anthropic

        # Check every provider
        keyshift credentials validate
    """
    pass


@credentials_group.command(name="set")
@click.argument("provider")
@click.option(
    "--value",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Credential value (will prompt if not provided)",
)
@click.option("--method", type=METHOD_CHOICE, default=None, help="Store to use instead of the provider's own")
@click.option("--scope", type=SCOPE_CHOICE, default=ConfigScope.GLOBAL.value, help="Settings tier to write")
@click.option("--base-url", default=None, help="Endpoint for providers paired with a base URL")
@click.option("--shell", type=SHELL_CHOICE, default="bash", help="Shell syntax for the export hint")
@click.pass_context
def set_credential(
    ctx: click.Context,
    provider: str,
    value: str,
    method: str | None,
    scope: str,
    base_url: str | None,
    shell: str,
):
    """Store a credential for PROVIDER.

    Examples:

        keyshift credentials set anthropic

        keyshift credentials set zai --value "$TOKEN"

        keyshift credentials set custom --scope workspace
    """
    context = get_context(ctx)
    provider = normalize_provider_id(provider)
    store = context.router.store_for(provider, method)

    try:
        context.router.set_credential(provider, value, ConfigScope(scope), method=method, base_url=base_url)
    except KeyshiftError as e:
        for issue in getattr(e, "issues", []):
            click.echo(f"  - {issue}", err=True)
        exit_with_error(e)

    click.echo(click.style(f"Credential for {display_name(provider)} stored in {store.name}", fg="green"))

    if store.storage_method is StorageMethod.ENVIRONMENT:
        click.echo("Environment variables only last for this process. To persist them, add:")
        for line in context.environment_store.export_commands(provider, shell=shell, base_url=base_url):
            click.echo(f"  {line}")


@credentials_group.command(name="get")
@click.argument("provider")
@click.option("--method", type=METHOD_CHOICE, default=None, help="Store to read instead of the provider's own")
@click.option("--show-value", is_flag=True, help="Show full credential value (default: masked)")
@click.pass_context
def get_credential(ctx: click.Context, provider: str, method: str | None, show_value: bool):
    """Retrieve and display the credential for PROVIDER."""
    context = get_context(ctx)
    try:
        value = context.router.get_credential(provider, method)
    except KeyshiftError as e:
        exit_with_error(e)

    if value is None:
        click.echo(click.style(f"No credential configured for {display_name(provider)}", fg="red"), err=True)
        sys.exit(1)

    if show_value:
        click.echo(f"Value: {value}")
    else:
        click.echo(f"Value: {mask_secret(value)}")
        click.echo(click.style("Use --show-value to display full credential", fg="yellow"))


@credentials_group.command(name="delete")
@click.argument("provider")
@click.option("--method", type=METHOD_CHOICE, default=None, help="Store to remove from instead of the provider's own")
@click.option("--scope", type=SCOPE_CHOICE, default=ConfigScope.GLOBAL.value, help="Settings tier to remove from")
@click.confirmation_option(prompt="Are you sure you want to delete this credential?")
@click.pass_context
def delete_credential(ctx: click.Context, provider: str, method: str | None, scope: str):
    """Remove the credential for PROVIDER."""
    context = get_context(ctx)
    try:
        deleted = context.router.remove_credential(provider, ConfigScope(scope), method)
    except KeyshiftError as e:
        exit_with_error(e)

    if deleted:
        click.echo(click.style(f"Credential for {display_name(provider)} deleted", fg="green"))
    else:
        click.echo(click.style(f"No credential found for {display_name(provider)}", fg="yellow"))


@credentials_group.command(name="list")
@click.pass_context
def list_credentials(ctx: click.Context):
    """List configured credentials (masked)."""
    context = get_context(ctx)
    try:
        credentials = context.router.all_credentials()
    except KeyshiftError as e:
        exit_with_error(e)

    if not credentials:
        click.echo("No credentials configured")
        return

    for provider, value in sorted(credentials.items()):
        method = context.router.store_for(provider).name
        click.echo(f"{provider:<12} {method:<12} {mask_secret(value)}")


@credentials_group.command(name="validate")
@click.argument("provider", required=False)
@click.pass_context
def validate_credentials(ctx: click.Context, provider: str | None):
    """Validate PROVIDER's credential, or every known provider's.

    Exits with status 1 if any checked provider is not configured correctly.
    """
    context = get_context(ctx)
    providers = [normalize_provider_id(provider)] if provider else list(PROVIDERS)

    click.echo("Credential validation:")
    all_valid = True
    for name in providers:
        store = context.router.store_for(name)
        result = context.router.validate_provider(name)
        detail = "; ".join(result.issues) if result.issues else None
        print_check(f"{display_name(name)} ({store.name})", result.is_valid, detail)
        for warning in result.warnings:
            click.echo(click.style(f"       warning: {warning}", fg="yellow"))
        all_valid = all_valid and result.is_valid

    if not all_valid:
        sys.exit(1)


@credentials_group.command(name="export")
@click.argument("provider")
@click.option("--shell", type=SHELL_CHOICE, default="bash", help="Shell syntax to render")
@click.option("--base-url", default=None, help="Endpoint for providers paired with a base URL")
@click.pass_context
def export_credential(ctx: click.Context, provider: str, shell: str, base_url: str | None):
    """Print shell commands that set PROVIDER's environment variables.

    The token is rendered as a placeholder; replace it before use.
    """
    context = get_context(ctx)
    for line in context.environment_store.export_commands(provider, shell=shell, base_url=base_url):
        click.echo(line)
