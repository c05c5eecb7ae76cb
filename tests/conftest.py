"""Shared pytest fixtures."""

from typing import Any

import pytest


def make_raw_message(
    message_id: str = "msg_001",
    sender: str | None = "Alice Example <alice@example.com>",
    subject: str | None = "Q2 budget review",
    labels: list[str] | None = None,
    internal_date: str | int | None = "1709287200000",  # 2024-03-01T10:00:00Z
    snippet: str | None = "Please review the attached budget figures...",
    date_header: str | None = None,
) -> dict[str, Any]:
    """Build a Gmail ``messages.get`` resource (metadata format)."""
    headers: list[dict[str, str]] = []
    if sender is not None:
        headers.append({"name": "From", "value": sender})
    if subject is not None:
        headers.append({"name": "Subject", "value": subject})
    if date_header is not None:
        headers.append({"name": "Date", "value": date_header})

    message: dict[str, Any] = {
        "id": message_id,
        "threadId": f"thread_{message_id}",
        "labelIds": ["INBOX", "UNREAD"] if labels is None else labels,
        "payload": {"headers": headers},
    }
    if internal_date is not None:
        message["internalDate"] = internal_date
    if snippet is not None:
        message["snippet"] = snippet
    return message


@pytest.fixture
def sample_raw_message() -> dict[str, Any]:
    """A minimal Gmail message resource for use in tests."""
    return make_raw_message()


@pytest.fixture
def make_message():
    """Factory fixture: ``make_message(subject="hi", labels=["INBOX"])``."""
    return make_raw_message
