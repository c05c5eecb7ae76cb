"""Gmail client: wraps the Gmail v1 REST API behind a typed async interface."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Protocol, runtime_checkable

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from email_manager.errors import (
    AuthenticationError,
    NotFoundError,
    ProviderError,
    RateLimitError,
)
from email_manager.gmail.types import RawMessage

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]

# messages.list refuses maxResults above 500
_MAX_PAGE_SIZE = 500
_METADATA_HEADERS = ["From", "Subject"]
_RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")

# Backoff for rate-limited calls: 2^attempt seconds, capped at 1 minute
_MAX_BACKOFF_SECONDS = 60


# ── Provider interface ─────────────────────────────────────────────────────────


@runtime_checkable
class MailProvider(Protocol):
    """The four mailbox calls the catalog needs from a provider."""

    async def list_message_ids(self, query: str, max_results: int) -> list[str]:
        ...

    async def get_message(self, message_id: str) -> RawMessage:
        ...

    async def modify_labels(
        self,
        message_id: str,
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> None:
        ...

    async def trash_message(self, message_id: str) -> None:
        ...


# ── Client ─────────────────────────────────────────────────────────────────────


class GmailClient:
    """Async wrapper around a ``googleapiclient`` Gmail v1 resource.

    The discovery client is blocking, so every ``execute()`` runs in a worker
    thread.  ``httplib2.Http`` is not thread-safe; when an ``http_factory`` is
    supplied each call gets its own transport built from the shared
    credentials.  Use the `gmail_client()` context manager to construct one
    from a service account key.
    """

    def __init__(
        self,
        service: Any,
        http_factory: Callable[[], Any] | None = None,
        user_id: str = "me",
        max_retries: int = 0,
    ) -> None:
        self._service = service
        self._http_factory = http_factory
        self._user_id = user_id
        self._max_retries = max_retries

    # ── Public API ─────────────────────────────────────────────────────────────

    async def list_message_ids(self, query: str, max_results: int) -> list[str]:
        """Return up to ``max_results`` message ids matching ``query``, newest first.

        Follows ``nextPageToken`` until the cap is reached or Gmail runs out of
        results.  An empty query lists the whole mailbox.
        """
        ids: list[str] = []
        page_token: str | None = None
        while len(ids) < max_results:
            params: dict[str, Any] = {
                "userId": self._user_id,
                "maxResults": min(max_results - len(ids), _MAX_PAGE_SIZE),
            }
            if query:
                params["q"] = query
            if page_token:
                params["pageToken"] = page_token

            response = await self._execute(
                "messages.list",
                self._messages().list(**params),
            )
            ids.extend(
                str(m["id"]) for m in response.get("messages", []) if m.get("id")
            )
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug("messages.list q=%r → %d id(s)", query, len(ids))
        return ids[:max_results]

    async def get_message(self, message_id: str) -> RawMessage:
        """Fetch one message with the headers the parser reads."""
        response: RawMessage = await self._execute(
            "messages.get",
            self._messages().get(
                userId=self._user_id,
                id=message_id,
                format="metadata",
                metadataHeaders=_METADATA_HEADERS,
            ),
            message_id=message_id,
        )
        return response

    async def modify_labels(
        self,
        message_id: str,
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> None:
        body: dict[str, list[str]] = {}
        if add:
            body["addLabelIds"] = list(add)
        if remove:
            body["removeLabelIds"] = list(remove)
        await self._execute(
            "messages.modify",
            self._messages().modify(userId=self._user_id, id=message_id, body=body),
            message_id=message_id,
        )
        logger.debug("Modified labels on message %s: %s", message_id, body)

    async def trash_message(self, message_id: str) -> None:
        """Move a message to Trash (reversible, unlike messages.delete)."""
        await self._execute(
            "messages.trash",
            self._messages().trash(userId=self._user_id, id=message_id),
            message_id=message_id,
        )
        logger.debug("Trashed message %s", message_id)

    def close(self) -> None:
        """Release the underlying discovery resource's transport."""
        close = getattr(self._service, "close", None)
        if callable(close):
            close()

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _messages(self) -> Any:
        return self._service.users().messages()

    async def _execute(
        self, operation: str, request: Any, message_id: str | None = None
    ) -> Any:
        """Run a prepared request, retrying RateLimitError up to ``max_retries``."""
        attempt = 0
        while True:
            try:
                return await self._execute_once(operation, request, message_id)
            except RateLimitError:
                if attempt >= self._max_retries:
                    raise
                attempt += 1
                delay = min(2**attempt, _MAX_BACKOFF_SECONDS)
                logger.warning(
                    "Gmail %s rate limited (attempt %d/%d), retrying in %ds",
                    operation,
                    attempt,
                    self._max_retries,
                    delay,
                )
                await asyncio.sleep(delay)

    async def _execute_once(
        self, operation: str, request: Any, message_id: str | None
    ) -> Any:
        logger.debug("Gmail → %s id=%s", operation, message_id)
        kwargs: dict[str, Any] = {}
        if self._http_factory is not None:
            kwargs["http"] = self._http_factory()
        try:
            return await asyncio.to_thread(request.execute, **kwargs)
        except HttpError as exc:
            raise _translate_http_error(exc, operation, message_id) from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise ProviderError(
                f"Gmail {operation} failed: {exc}",
                details=_context(operation, message_id),
            ) from exc


def _context(operation: str, message_id: str | None) -> dict[str, Any]:
    context: dict[str, Any] = {"operation": operation}
    if message_id is not None:
        context["email_id"] = message_id
    return context


def _translate_http_error(
    exc: HttpError, operation: str, message_id: str | None
) -> ProviderError | AuthenticationError:
    """Map a Gmail HttpError onto the service's error taxonomy."""
    status = int(getattr(exc.resp, "status", 0) or 0)
    content = exc.content.decode("utf-8", errors="replace") if exc.content else ""
    details = _context(operation, message_id)
    details["status"] = status

    if status == 404:
        target = message_id or operation
        return NotFoundError(f"Email not found: {target}", details=details)
    if status == 429 or (
        status == 403 and any(reason in content for reason in _RATE_LIMIT_REASONS)
    ):
        return RateLimitError("Rate limit exceeded", details=details)
    if status == 401:
        return AuthenticationError(
            "Gmail rejected the credentials", details=details
        )
    return ProviderError(
        f"Gmail API error during {operation}: {exc.reason}",
        details=details,
    )


# ── Construction ───────────────────────────────────────────────────────────────


def load_credentials(
    service_account_path: str, delegated_user: str | None = None
) -> service_account.Credentials:
    """Load a service account key, optionally impersonating ``delegated_user``.

    Raises:
        AuthenticationError: if the key file is missing or malformed.
    """
    try:
        credentials = service_account.Credentials.from_service_account_file(
            service_account_path, scopes=SCOPES
        )
    except FileNotFoundError as exc:
        raise AuthenticationError(
            f"Failed to read service account: {service_account_path} not found"
        ) from exc
    except (ValueError, KeyError, GoogleAuthError) as exc:
        raise AuthenticationError(f"Failed to read service account: {exc}") from exc

    if delegated_user:
        credentials = credentials.with_subject(delegated_user)
    return credentials


@asynccontextmanager
async def gmail_client(
    *,
    service_account_path: str,
    delegated_user: str | None = None,
    max_retries: int = 0,
) -> AsyncIterator[GmailClient]:
    """Async context manager that yields a ready-to-use GmailClient.

    Credentials are loaded once; each API call authorises its own
    ``httplib2.Http`` so calls can run in parallel worker threads.

    Example::

        async with gmail_client(service_account_path="sa.json",
                                delegated_user="me@example.com") as gmail:
            ids = await gmail.list_message_ids("is:unread", 20)
    """
    credentials = load_credentials(service_account_path, delegated_user)
    try:
        service = await asyncio.to_thread(
            build, "gmail", "v1", credentials=credentials, cache_discovery=False
        )
    except GoogleAuthError as exc:
        raise AuthenticationError(f"Failed to create Gmail client: {exc}") from exc

    client = GmailClient(
        service,
        http_factory=lambda: AuthorizedHttp(credentials, http=httplib2.Http()),
        max_retries=max_retries,
    )
    logger.info("Gmail client ready (%s)", delegated_user or "service account")
    try:
        yield client
    finally:
        client.close()
