"""Data types shared across the Gmail adapter, the parser and the catalog."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Gmail system label IDs
UNREAD = "UNREAD"
IMPORTANT = "IMPORTANT"
SPAM = "SPAM"

#: A Gmail ``users.messages`` resource as returned by ``messages.get``.
RawMessage = dict[str, Any]


class ImportanceScore(int, Enum):
    """Importance of an email, from least to most important.

    Integer values are what the API returns and what ``min_score`` is
    compared against, so ordering follows plain int comparison.
    """

    LOW = 1
    NORMAL = 2
    HIGH = 3


@dataclass(frozen=True)
class EmailSummary:
    """Normalised view of one Gmail message plus its importance score.

    Built fresh on every fetch; a later fetch of the same id produces a new
    instance reflecting the mailbox state at that time.
    """

    id: str
    subject: str
    sender: str                # display name
    sender_email: str          # address, used as the classification key
    date: datetime             # UTC
    snippet: str
    is_read: bool
    labels: frozenset[str] = field(default_factory=frozenset)
    importance_score: ImportanceScore = ImportanceScore.NORMAL

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation used by the API and ``--json`` CLI output."""
        return {
            "id": self.id,
            "subject": self.subject,
            "sender": self.sender,
            "sender_email": self.sender_email,
            "date": self.date.isoformat(),
            "snippet": self.snippet,
            "is_read": self.is_read,
            "labels": sorted(self.labels),
            "importance_score": int(self.importance_score),
        }
