"""CLI error handling helpers."""

import click

from allocit.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure.

    Domain errors carry a status code; it is shown for not-found and conflict
    errors so they can be told apart from plain validation failures.
    """
    status_code = getattr(error, "status_code", 400)
    if status_code != 400:
        click.echo(f"Error ({status_code}): {error}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
