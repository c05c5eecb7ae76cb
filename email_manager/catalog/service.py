"""EmailCatalogService: fetch → parse → score for listings, plus single-item mutations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import TYPE_CHECKING

from email_manager.errors import ValidationError
from email_manager.gmail.client import MailProvider, gmail_client
from email_manager.gmail.types import UNREAD, EmailSummary, ImportanceScore
from email_manager.processing import query as queries
from email_manager.processing.parser import MessageParser
from email_manager.processing.query import QuerySpec
from email_manager.processing.scoring import ImportanceScorer, ScoringRules

if TYPE_CHECKING:
    from email_manager.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_FETCH_CONCURRENCY = 10
DEFAULT_LIST_CEILING = 500


def validate_min_score(min_score: int | ImportanceScore) -> ImportanceScore:
    """Coerce ``min_score`` to an ImportanceScore, rejecting anything outside 1-3."""
    try:
        return ImportanceScore(int(min_score))
    except (TypeError, ValueError):
        raise ValidationError(
            "min_score must be between 1 and 3", details={"min_score": min_score}
        ) from None


def filter_by_score(
    emails: Iterable[EmailSummary], min_score: int | ImportanceScore = ImportanceScore.LOW
) -> list[EmailSummary]:
    """Keep emails whose score is at least ``min_score``, preserving order."""
    threshold = validate_min_score(min_score)
    return [e for e in emails if e.importance_score >= threshold]


class EmailCatalogService:
    """The mailbox as a set of listing and mutation operations.

    Listings are best-effort: if fetching or parsing one message fails, that
    message is logged and left out, and the rest of the page is still
    returned.  Errors from the list call itself propagate.

    Per-message fetches run concurrently (bounded by ``fetch_concurrency``)
    but results always come back in the order Gmail listed them.

    Usage::

        async with open_catalog(settings) as catalog:
            emails = await catalog.list_by_date("2024-03-01", min_score=2)
            await catalog.mark_read(emails[0].id)
    """

    def __init__(
        self,
        provider: MailProvider,
        scorer: ImportanceScorer | None = None,
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
        list_ceiling: int = DEFAULT_LIST_CEILING,
    ) -> None:
        self._provider = provider
        self._scorer = scorer or ImportanceScorer()
        self._parser = MessageParser(self._scorer)
        self._fetch_concurrency = max(1, fetch_concurrency)
        self._list_ceiling = list_ceiling

    # ── Scoring rules ──────────────────────────────────────────────────────────

    @property
    def rules(self) -> ScoringRules:
        return self._scorer.rules

    def add_important_domain(self, domain: str) -> ScoringRules:
        return self._scorer.add_important_domain(domain)

    # ── Listings ───────────────────────────────────────────────────────────────

    async def list_recent(self, limit: int | None = None) -> list[EmailSummary]:
        """Most recent emails in Gmail's listing order, unfiltered."""
        return await self._list(queries.recent(limit))

    async def list_today(
        self, min_score: int = ImportanceScore.LOW, now: datetime | None = None
    ) -> list[EmailSummary]:
        threshold = validate_min_score(min_score)
        return filter_by_score(await self._list(queries.today(now)), threshold)

    async def list_by_date(
        self, day: str | date, min_score: int = ImportanceScore.LOW
    ) -> list[EmailSummary]:
        threshold = validate_min_score(min_score)
        return filter_by_score(await self._list(queries.by_date(day)), threshold)

    async def list_by_range(
        self,
        date_from: str | date,
        date_to: str | date,
        min_score: int = ImportanceScore.LOW,
    ) -> list[EmailSummary]:
        threshold = validate_min_score(min_score)
        spec = queries.by_range(date_from, date_to)
        return filter_by_score(await self._list(spec), threshold)

    async def search(
        self, text: str, min_score: int = ImportanceScore.LOW
    ) -> list[EmailSummary]:
        """Run ``text`` as a Gmail search; matching is done by Gmail."""
        threshold = validate_min_score(min_score)
        return filter_by_score(await self._list(queries.search(text)), threshold)

    # ── Mutations ──────────────────────────────────────────────────────────────

    async def mark_read(self, email_id: str) -> None:
        """Remove the UNREAD label. Succeeds if the email is already read."""
        await self._provider.modify_labels(email_id, remove=[UNREAD])
        logger.info("Marked %s as read", email_id)

    async def mark_unread(self, email_id: str) -> None:
        """Add the UNREAD label. Succeeds if the email is already unread."""
        await self._provider.modify_labels(email_id, add=[UNREAD])
        logger.info("Marked %s as unread", email_id)

    async def delete(self, email_id: str) -> None:
        """Move an email to Trash.

        Raises:
            NotFoundError: if Gmail has no message with this id.
        """
        await self._provider.trash_message(email_id)
        logger.info("Moved %s to trash", email_id)

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _list(self, spec: QuerySpec) -> list[EmailSummary]:
        cap = spec.max_results if spec.max_results is not None else self._list_ceiling
        ids = await self._provider.list_message_ids(spec.query, cap)
        if not ids:
            return []

        semaphore = asyncio.Semaphore(self._fetch_concurrency)
        results = await asyncio.gather(*(self._fetch(message_id, semaphore) for message_id in ids))
        emails = [email for email in results if email is not None]

        dropped = len(ids) - len(emails)
        if dropped:
            logger.warning(
                "%s listing: dropped %d of %d message(s) that could not be fetched",
                spec.kind.value,
                dropped,
                len(ids),
            )
        return emails

    async def _fetch(
        self, message_id: str, semaphore: asyncio.Semaphore
    ) -> EmailSummary | None:
        """Fetch and parse one message, or return None if that fails."""
        async with semaphore:
            try:
                raw = await self._provider.get_message(message_id)
                return self._parser.parse(raw)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Skipping message %s: %s", message_id, exc)
                return None


@asynccontextmanager
async def open_catalog(settings: Settings) -> AsyncIterator[EmailCatalogService]:
    """Connect to Gmail with ``settings`` and yield a ready EmailCatalogService."""
    async with gmail_client(
        service_account_path=settings.service_account_path,
        delegated_user=settings.delegated_user,
        max_retries=settings.max_retries,
    ) as gmail:
        yield EmailCatalogService(
            gmail,
            ImportanceScorer(settings.scoring_rules()),
            fetch_concurrency=settings.fetch_concurrency,
            list_ceiling=settings.list_ceiling,
        )
