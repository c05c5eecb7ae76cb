"""CLI command implementations; every mailbox command goes through EmailCatalogService."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import NoReturn, TypeVar

import click
from rich import box
from rich.console import Console
from rich.table import Table

from email_manager.catalog.bulk import BulkOperationCoordinator, BulkResult
from email_manager.catalog.service import EmailCatalogService, open_catalog
from email_manager.config import Settings, configure_logging
from email_manager.errors import EmailManagerError
from email_manager.gmail.types import EmailSummary, ImportanceScore
from email_manager.processing import query as queries

logger = logging.getLogger(__name__)
console = Console(width=200)

T = TypeVar("T")

_SCORE_STYLE: dict[ImportanceScore, str] = {
    ImportanceScore.LOW: "dim",
    ImportanceScore.NORMAL: "white",
    ImportanceScore.HIGH: "bold red",
}

_min_score_option = click.option(
    "--min-score",
    type=click.IntRange(1, 3),
    default=1,
    show_default=True,
    help="Only show emails scored at least this high.",
)
_json_option = click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table.")


# ── Helpers ────────────────────────────────────────────────────────────────────


def _fail(exc: EmailManagerError) -> NoReturn:
    console.print(f"[red]{exc.code}: {exc.message}[/red]")
    raise SystemExit(1)


def _run(settings: Settings, action: Callable[[EmailCatalogService], Awaitable[T]]) -> T:
    """Connect to Gmail, run ``action`` against the catalog, and disconnect."""

    async def _inner() -> T:
        async with open_catalog(settings) as catalog:
            return await action(catalog)

    try:
        return asyncio.run(_inner())
    except EmailManagerError as exc:
        _fail(exc)


def _validate(check: Callable[[], object]) -> None:
    """Run a local input check before any Gmail connection is made."""
    try:
        check()
    except EmailManagerError as exc:
        _fail(exc)


def _print_emails(emails: list[EmailSummary], title: str, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([e.to_dict() for e in emails], indent=2))
        return

    if not emails:
        console.print(f"[yellow]No emails found ({title}).[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Score", width=5)
    table.add_column("Date", width=16)
    table.add_column("From", max_width=32)
    table.add_column("Subject", max_width=60)
    table.add_column("Read", width=4)
    table.add_column("ID", style="dim")

    for i, email in enumerate(emails, start=1):
        style = _SCORE_STYLE[email.importance_score]
        table.add_row(
            str(i),
            f"[{style}]{int(email.importance_score)}[/{style}]",
            email.date.strftime("%Y-%m-%d %H:%M"),
            email.sender_email or email.sender,
            email.subject,
            "yes" if email.is_read else "no",
            email.id,
        )

    console.print(f"\n{title}: [bold]{len(emails)}[/bold] email(s)\n")
    console.print(table)


def _print_bulk(result: BulkResult, verb: str) -> None:
    console.print(
        f"[green]Done.[/green] {result.succeeded} {verb}"
        + (f", [red]{result.failed} failed[/red]" if result.failed else "")
        + "."
    )
    for email_id in result.failed_ids:
        console.print(f"  [red]✗[/red] {email_id}")


# ── serve ──────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--host", default=None, help="Bind address. Defaults to APP_HOST.")
@click.option("--port", default=None, type=int, help="Bind port. Defaults to APP_PORT.")
@click.pass_obj
def serve(settings: Settings, host: str | None, port: int | None) -> None:
    """Run the HTTP API."""
    import uvicorn

    from email_manager.api.app import create_app

    configure_logging(settings.log_level)
    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting Email Manager API on %s:%d", bind_host, bind_port)
    uvicorn.run(
        create_app(settings),
        host=bind_host,
        port=bind_port,
        log_level=settings.log_level.lower(),
    )


# ── listings ───────────────────────────────────────────────────────────────────


@click.command()
@click.option("--limit", default=queries.DEFAULT_RECENT_LIMIT, show_default=True, type=int,
              help="Number of emails.")
@_json_option
@click.pass_obj
def recent(settings: Settings, limit: int, as_json: bool) -> None:
    """List the most recent emails."""
    _validate(lambda: queries.recent(limit))
    emails = _run(settings, lambda catalog: catalog.list_recent(limit))
    _print_emails(emails, "Recent", as_json)


@click.command()
@_min_score_option
@_json_option
@click.pass_obj
def today(settings: Settings, min_score: int, as_json: bool) -> None:
    """List emails delivered today (UTC)."""
    emails = _run(settings, lambda catalog: catalog.list_today(min_score))
    _print_emails(emails, "Today", as_json)


@click.command("by-date")
@click.argument("day")
@_min_score_option
@_json_option
@click.pass_obj
def by_date(settings: Settings, day: str, min_score: int, as_json: bool) -> None:
    """List emails delivered on DAY (YYYY-MM-DD, UTC)."""
    _validate(lambda: queries.by_date(day))
    emails = _run(settings, lambda catalog: catalog.list_by_date(day, min_score))
    _print_emails(emails, day, as_json)


@click.command("range")
@click.argument("date_from", metavar="FROM")
@click.argument("date_to", metavar="TO")
@_min_score_option
@_json_option
@click.pass_obj
def date_range(
    settings: Settings, date_from: str, date_to: str, min_score: int, as_json: bool
) -> None:
    """List emails delivered from FROM to TO inclusive (YYYY-MM-DD, UTC)."""
    _validate(lambda: queries.by_range(date_from, date_to))
    emails = _run(
        settings, lambda catalog: catalog.list_by_range(date_from, date_to, min_score)
    )
    _print_emails(emails, f"{date_from} to {date_to}", as_json)


@click.command()
@click.argument("query")
@_min_score_option
@_json_option
@click.pass_obj
def search(settings: Settings, query: str, min_score: int, as_json: bool) -> None:
    """Search using Gmail query syntax, e.g. 'from:alice has:attachment'."""
    _validate(lambda: queries.search(query))
    emails = _run(settings, lambda catalog: catalog.search(query, min_score))
    _print_emails(emails, f"Search {query!r}", as_json)


# ── mutations ──────────────────────────────────────────────────────────────────


@click.command("mark-read")
@click.argument("email_id")
@click.pass_obj
def mark_read(settings: Settings, email_id: str) -> None:
    """Mark an email as read."""
    _run(settings, lambda catalog: catalog.mark_read(email_id))
    console.print(f"[green]Marked {email_id} as read.[/green]")


@click.command("mark-unread")
@click.argument("email_id")
@click.pass_obj
def mark_unread(settings: Settings, email_id: str) -> None:
    """Mark an email as unread."""
    _run(settings, lambda catalog: catalog.mark_unread(email_id))
    console.print(f"[green]Marked {email_id} as unread.[/green]")


@click.command()
@click.argument("email_id")
@click.pass_obj
def delete(settings: Settings, email_id: str) -> None:
    """Move an email to Trash."""
    _run(settings, lambda catalog: catalog.delete(email_id))
    console.print(f"[green]Moved {email_id} to trash.[/green]")


@click.command("bulk-delete")
@click.argument("email_ids", nargs=-1, required=True)
@click.pass_obj
def bulk_delete(settings: Settings, email_ids: tuple[str, ...]) -> None:
    """Move several emails to Trash, reporting how many failed."""
    result = _run(
        settings, lambda catalog: BulkOperationCoordinator(catalog).bulk_delete(email_ids)
    )
    _print_bulk(result, "deleted")


@click.command("bulk-read")
@click.argument("email_ids", nargs=-1, required=True)
@click.pass_obj
def bulk_read(settings: Settings, email_ids: tuple[str, ...]) -> None:
    """Mark several emails as read."""
    result = _run(
        settings, lambda catalog: BulkOperationCoordinator(catalog).bulk_mark_read(email_ids)
    )
    _print_bulk(result, "marked read")


@click.command("bulk-unread")
@click.argument("email_ids", nargs=-1, required=True)
@click.pass_obj
def bulk_unread(settings: Settings, email_ids: tuple[str, ...]) -> None:
    """Mark several emails as unread."""
    result = _run(
        settings, lambda catalog: BulkOperationCoordinator(catalog).bulk_mark_unread(email_ids)
    )
    _print_bulk(result, "marked unread")
