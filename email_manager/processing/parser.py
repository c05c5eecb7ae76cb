"""Normalise Gmail message resources into EmailSummary objects."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from email_manager.gmail.types import UNREAD, EmailSummary, RawMessage
from email_manager.processing.scoring import ImportanceScorer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_header(headers: list[dict[str, Any]], name: str) -> str:
    """Return the first header value whose name matches exactly, or ``""``."""
    for header in headers:
        if header.get("name") == name:
            return str(header.get("value", ""))
    return ""


def parse_sender(value: str) -> tuple[str, str]:
    """Split a ``From`` value into ``(display name, address)``.

    ``Alice <alice@example.com>`` gives ``("Alice", "alice@example.com")``.
    Without angle brackets the whole value is used for both.
    """
    if "<" not in value:
        return value, value
    name, _, rest = value.partition("<")
    address, _, _ = rest.partition(">")
    return name.strip(), address.strip()


def _internal_date(raw: Any) -> datetime | None:
    """Gmail's ``internalDate``: milliseconds since the epoch, usually as a string."""
    if raw is None or raw == "":
        return None
    try:
        millis = int(raw)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class MessageParser:
    """Turns one raw Gmail message into a scored EmailSummary.

    The parser is tolerant: a missing header, id or snippet becomes an empty
    string rather than an error.  The delivery timestamp comes from Gmail's
    ``internalDate``; when that is absent or not numeric the current time is
    used.
    """

    def __init__(
        self,
        scorer: ImportanceScorer,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._scorer = scorer
        self._clock = clock

    def parse(self, message: RawMessage) -> EmailSummary:
        headers = (message.get("payload") or {}).get("headers") or []
        labels = frozenset(message.get("labelIds") or [])
        message_id = str(message.get("id") or "")

        subject = get_header(headers, "Subject")
        sender, sender_email = parse_sender(get_header(headers, "From"))

        return EmailSummary(
            id=message_id,
            subject=subject,
            sender=sender,
            sender_email=sender_email,
            date=self._timestamp(message),
            snippet=str(message.get("snippet") or ""),
            is_read=UNREAD not in labels,
            labels=labels,
            importance_score=self._scorer.score(sender_email, subject, labels),
        )

    def _timestamp(self, message: RawMessage) -> datetime:
        delivered = _internal_date(message.get("internalDate"))
        if delivered is not None:
            return delivered
        logger.debug("Message %s has no usable internalDate; using current time", message.get("id"))
        return self._clock()
