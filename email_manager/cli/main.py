"""CLI entry point for the email manager."""

import logging

import click
from dotenv import load_dotenv

from email_manager.config import Settings, configure_logging
from email_manager.errors import EmailManagerError

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log at the configured LOG_LEVEL.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Read, filter and triage a Gmail mailbox from the terminal."""
    load_dotenv()
    try:
        settings = Settings.from_env()
    except EmailManagerError as exc:
        click.secho(f"{exc.code}: {exc.message}", fg="red")
        ctx.exit(1)
    # keep CLI output clean unless asked; errors still surface
    configure_logging(settings.log_level if verbose else logging.WARNING)
    ctx.obj = settings


# Import and register commands after cli is defined to avoid circular imports.
from email_manager.cli.commands import (  # noqa: E402
    bulk_delete,
    bulk_read,
    bulk_unread,
    by_date,
    date_range,
    delete,
    mark_read,
    mark_unread,
    recent,
    search,
    serve,
    today,
)

for _command in (
    serve,
    recent,
    today,
    by_date,
    date_range,
    search,
    mark_read,
    mark_unread,
    delete,
    bulk_delete,
    bulk_read,
    bulk_unread,
):
    cli.add_command(_command)
