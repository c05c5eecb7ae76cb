"""Runtime settings, read from environment variables (and ``.env`` via the entry points)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from email_manager.catalog.service import DEFAULT_FETCH_CONCURRENCY, DEFAULT_LIST_CEILING
from email_manager.errors import ConfigurationError
from email_manager.processing.scoring import ScoringRules

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s - %(message)s"


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}", details={"variable": name}
        ) from None


def _log_level(raw: str) -> str:
    level = raw.strip().upper() or "INFO"
    if level not in logging.getLevelNamesMapping():
        raise ConfigurationError(
            f"LOG_LEVEL must be a logging level name, got {raw!r}",
            details={"variable": "LOG_LEVEL"},
        )
    return level


def _csv(value: str | None) -> tuple[str, ...] | None:
    """Split a comma-separated env value; ``None`` when the variable is unset."""
    if value is None:
        return None
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Everything the server and CLI need to reach Gmail and score mail."""

    host: str = "127.0.0.1"
    port: int = 8080
    service_account_path: str = "service-account.json"
    delegated_user: str | None = None
    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY
    list_ceiling: int = DEFAULT_LIST_CEILING
    max_retries: int = 0
    important_domains: tuple[str, ...] = ()
    urgent_keywords: tuple[str, ...] | None = None     # None → built-in defaults
    spam_indicators: tuple[str, ...] | None = None     # None → built-in defaults
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables.

        Raises:
            ConfigurationError: if a numeric variable or LOG_LEVEL is malformed.
        """
        return cls(
            host=os.environ.get("APP_HOST", "127.0.0.1"),
            port=_int("APP_PORT", 8080),
            service_account_path=os.environ.get(
                "GMAIL_SERVICE_ACCOUNT_PATH", "service-account.json"
            ),
            delegated_user=os.environ.get("GMAIL_DELEGATED_USER") or None,
            fetch_concurrency=_int("GMAIL_FETCH_CONCURRENCY", DEFAULT_FETCH_CONCURRENCY),
            list_ceiling=_int("GMAIL_LIST_CEILING", DEFAULT_LIST_CEILING),
            max_retries=_int("GMAIL_MAX_RETRIES", 0),
            important_domains=_csv(os.environ.get("SCORING_IMPORTANT_DOMAINS")) or (),
            urgent_keywords=_csv(os.environ.get("SCORING_URGENT_KEYWORDS")),
            spam_indicators=_csv(os.environ.get("SCORING_SPAM_INDICATORS")),
            log_level=_log_level(os.environ.get("LOG_LEVEL", "INFO")),
        )

    def scoring_rules(self) -> ScoringRules:
        return ScoringRules.build(
            important_domains=self.important_domains,
            urgent_keywords=self.urgent_keywords,
            spam_indicators=self.spam_indicators,
        )


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure root logging in the project's standard format."""
    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
