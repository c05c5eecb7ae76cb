"""Translate listing filters into Gmail search queries.

Gmail's ``after:``/``before:`` operators accept epoch seconds, which lets a
calendar day be expressed as an exact UTC interval instead of the
timezone-dependent ``YYYY/MM/DD`` form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

from email_manager.errors import ValidationError

DEFAULT_RECENT_LIMIT = 50

_DATE_FORMAT = "%Y-%m-%d"
# strptime alone accepts unpadded months and days
_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


class QueryKind(str, Enum):
    RECENT = "recent"
    DATE = "date"
    RANGE = "range"
    SEARCH = "search"


@dataclass(frozen=True)
class QuerySpec:
    """A Gmail ``q`` string plus an optional cap on the number of ids listed.

    ``max_results`` of ``None`` means the caller's listing ceiling applies.
    """

    kind: QueryKind
    query: str
    max_results: int | None = None


def parse_date(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` string. ``date`` instances pass through."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    error = ValidationError(
        "Invalid date format. Use YYYY-MM-DD",
        details={"value": str(value), "expected_format": "YYYY-MM-DD"},
    )
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        raise error
    try:
        return datetime.strptime(value, _DATE_FORMAT).date()
    except ValueError:
        raise error from None


def _epoch(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


def _interval_query(start: date, end_exclusive: date) -> str:
    return f"after:{_epoch(start)} before:{_epoch(end_exclusive)}"


def recent(limit: int | None = None) -> QuerySpec:
    """Most recent messages, no text filter, capped at ``limit`` (default 50)."""
    if limit is None:
        limit = DEFAULT_RECENT_LIMIT
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(
            "limit must be a positive integer", details={"limit": limit}
        )
    return QuerySpec(kind=QueryKind.RECENT, query="", max_results=limit)


def by_date(day: str | date) -> QuerySpec:
    """Messages delivered during one UTC day: ``[day 00:00, day+1 00:00)``."""
    start = parse_date(day)
    return QuerySpec(
        kind=QueryKind.DATE,
        query=_interval_query(start, start + timedelta(days=1)),
    )


def by_range(date_from: str | date, date_to: str | date) -> QuerySpec:
    """Messages delivered between two UTC days, both inclusive."""
    start = parse_date(date_from)
    end = parse_date(date_to)
    if start > end:
        raise ValidationError(
            "'from' date must not be after 'to' date",
            details={"from": start.isoformat(), "to": end.isoformat()},
        )
    return QuerySpec(
        kind=QueryKind.RANGE,
        query=_interval_query(start, end + timedelta(days=1)),
    )


def today(now: datetime | None = None) -> QuerySpec:
    """Shorthand for ``by_date`` of the current UTC date."""
    current = now or datetime.now(timezone.utc)
    return by_date(current.astimezone(timezone.utc).date())


def search(text: str) -> QuerySpec:
    """Pass ``text`` through as Gmail search syntax, unmodified."""
    if not text or not text.strip():
        raise ValidationError("Search query cannot be empty")
    return QuerySpec(kind=QueryKind.SEARCH, query=text)
