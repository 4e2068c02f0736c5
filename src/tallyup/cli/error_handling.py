"""CLI error handling helpers."""

import click

from tallyup.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def report_missing(ctx: click.Context, message: str) -> None:
    """Report an entry the user cannot see and exit with failure."""
    click.echo(f"Error: {message}", err=True)
    ctx.exit(1)
