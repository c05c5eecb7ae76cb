"""Deterministic importance scoring from a fixed rule table."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from email_manager.errors import ValidationError
from email_manager.gmail.types import IMPORTANT, SPAM, ImportanceScore

logger = logging.getLogger(__name__)

DEFAULT_URGENT_KEYWORDS: tuple[str, ...] = (
    "urgent",
    "important",
    "asap",
    "action required",
    "critical",
)

DEFAULT_SPAM_INDICATORS: tuple[str, ...] = (
    "noreply",
    "newsletter",
    "marketing",
    "promo",
    "unsubscribe",
)

# "PROMOTIONS" is kept alongside Gmail's real category id so callers that
# pass the short form are classified the same way.
DEFAULT_LOW_PRIORITY_LABELS: frozenset[str] = frozenset(
    {SPAM, "PROMOTIONS", "CATEGORY_PROMOTIONS"}
)


@dataclass(frozen=True)
class ScoringRules:
    """Immutable rule table consulted by every ``ImportanceScorer.score`` call."""

    important_domains: frozenset[str] = frozenset()
    urgent_keywords: tuple[str, ...] = DEFAULT_URGENT_KEYWORDS
    spam_indicators: tuple[str, ...] = DEFAULT_SPAM_INDICATORS
    low_priority_labels: frozenset[str] = DEFAULT_LOW_PRIORITY_LABELS
    important_label: str = IMPORTANT

    @classmethod
    def build(
        cls,
        important_domains: Iterable[str] = (),
        urgent_keywords: Iterable[str] | None = None,
        spam_indicators: Iterable[str] | None = None,
    ) -> ScoringRules:
        """Build rules from plain iterables, dropping blanks.

        Keywords and indicators are stored stripped and lower-cased.
        """
        return cls(
            important_domains=frozenset(d.strip() for d in important_domains if d.strip()),
            urgent_keywords=_normalise(urgent_keywords, DEFAULT_URGENT_KEYWORDS),
            spam_indicators=_normalise(spam_indicators, DEFAULT_SPAM_INDICATORS),
        )

    def with_important_domain(self, domain: str) -> ScoringRules:
        """Return a copy of these rules with ``domain`` added."""
        return replace(self, important_domains=self.important_domains | {domain})

    def to_dict(self) -> dict[str, object]:
        return {
            "important_domains": sorted(self.important_domains),
            "urgent_keywords": list(self.urgent_keywords),
            "spam_indicators": list(self.spam_indicators),
            "low_priority_labels": sorted(self.low_priority_labels),
            "important_label": self.important_label,
        }


def _normalise(values: Iterable[str] | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if values is None:
        return default
    return tuple(v.strip().lower() for v in values if v.strip())


def _sender_domain(sender_email: str) -> str | None:
    _, at, rest = sender_email.partition("@")
    return rest if at else None


class ImportanceScorer:
    """Maps ``(sender address, subject, labels)`` to an ImportanceScore.

    Rules are evaluated in order and the first match wins:

      1. a low-priority label (spam / promotions)   → LOW
      2. sender contains a spam indicator           → LOW
      3. sender domain is an important domain       → HIGH
      4. subject contains an urgent keyword         → HIGH
      5. Gmail's IMPORTANT label                    → HIGH
      6. anything else                              → NORMAL

    Spam checks precede importance checks, so a newsletter sent from an
    important domain still scores LOW.

    The rule table is immutable.  ``add_important_domain`` builds a new table
    and swaps the reference, so requests scoring concurrently always see one
    complete table.

    Usage::

        scorer = ImportanceScorer(ScoringRules.build(important_domains=["work.com"]))
        scorer.score("boss@work.com", "Weekly sync", ["INBOX"])  # HIGH
    """

    def __init__(self, rules: ScoringRules | None = None) -> None:
        self._rules = rules or ScoringRules()

    @property
    def rules(self) -> ScoringRules:
        return self._rules

    def add_important_domain(self, domain: str) -> ScoringRules:
        """Add a domain to the important set and return the new rule table."""
        domain = domain.strip()
        if not domain:
            raise ValidationError("Domain cannot be empty")
        self._rules = self._rules.with_important_domain(domain)
        logger.info("Added important domain %r", domain)
        return self._rules

    def score(
        self, sender_email: str, subject: str, labels: Iterable[str]
    ) -> ImportanceScore:
        rules = self._rules
        label_set = frozenset(labels)
        sender_lower = sender_email.lower()
        subject_lower = subject.lower()

        if label_set & rules.low_priority_labels:
            return ImportanceScore.LOW

        if any(indicator.lower() in sender_lower for indicator in rules.spam_indicators):
            return ImportanceScore.LOW

        domain = _sender_domain(sender_email)
        if domain is not None and domain in rules.important_domains:
            return ImportanceScore.HIGH

        if any(keyword.lower() in subject_lower for keyword in rules.urgent_keywords):
            return ImportanceScore.HIGH

        if rules.important_label in label_set:
            return ImportanceScore.HIGH

        return ImportanceScore.NORMAL
