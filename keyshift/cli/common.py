"""Helpers shared by the CLI command groups."""

from __future__ import annotations

import sys
from typing import NoReturn

import click
import structlog

from keyshift.config.settings import KeyshiftSettings
from keyshift.context import CredentialContext
from keyshift.exceptions import KeyshiftError

log = structlog.get_logger(__name__)


def get_context(ctx: click.Context) -> CredentialContext:
    """Credential context of the invocation, built on first use.

    A context placed in ``ctx.obj["context"]`` beforehand is used as-is.
    """
    obj = ctx.ensure_object(dict)
    context: CredentialContext | None = obj.get("context")
    if context is not None:
        return context

    settings: KeyshiftSettings | None = obj.get("settings")
    try:
        context = CredentialContext.from_settings(settings or KeyshiftSettings())
    except KeyshiftError as e:
        exit_with_error(e)

    obj["context"] = context
    return context


def exit_with_error(error: KeyshiftError) -> NoReturn:
    """Print an error and its suggestion, then exit with status 1."""
    click.echo(click.style(f"Error: {error.message}", fg="red"), err=True)
    suggestion = getattr(error, "suggestion", None)
    if suggestion:
        click.echo(click.style(f"Suggestion: {suggestion}", fg="yellow"), err=True)
    log.debug("command_failed", error=error.message, exc_info=True)
    sys.exit(1)


def print_check(name: str, status: bool, detail: str | None = None) -> None:
    """Print a check result with consistent formatting."""
    if status:
        click.echo(f"  {click.style('[OK]', fg='green')} {name}")
    else:
        click.echo(f"  {click.style('[FAIL]', fg='red')} {name}")

    if detail:
        click.echo(f"       {detail}")
