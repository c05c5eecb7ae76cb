"""Tests for CLI commands; the catalog is mocked and CliRunner used throughout."""

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner, Result

from email_manager.errors import NotFoundError, RateLimitError
from email_manager.gmail.types import EmailSummary, ImportanceScore


# ── Helpers ─────────────────────────────────────────────────────────────────────


def _make_email(
    email_id: str = "msg_1",
    subject: str = "Budget review",
    score: ImportanceScore = ImportanceScore.NORMAL,
) -> EmailSummary:
    return EmailSummary(
        id=email_id,
        subject=subject,
        sender="Alice",
        sender_email="alice@example.com",
        date=datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc),
        snippet="Please review",
        is_read=False,
        labels=frozenset({"INBOX", "UNREAD"}),
        importance_score=score,
    )


@pytest.fixture
def catalog() -> MagicMock:
    catalog = MagicMock()
    for name in ("list_recent", "list_today", "list_by_date", "list_by_range", "search"):
        setattr(catalog, name, AsyncMock(return_value=[_make_email()]))
    catalog.mark_read = AsyncMock(return_value=None)
    catalog.mark_unread = AsyncMock(return_value=None)
    catalog.delete = AsyncMock(return_value=None)
    return catalog


def _invoke(catalog: MagicMock, *args: str) -> Result:
    from email_manager.cli.main import cli

    @asynccontextmanager
    async def fake_open_catalog(settings):
        yield catalog

    runner = CliRunner()
    with patch("email_manager.cli.commands.open_catalog", fake_open_catalog):
        return runner.invoke(cli, list(args), catch_exceptions=False)


# ── listings ────────────────────────────────────────────────────────────────────


class TestRecentCommand:
    def test_displays_table(self, catalog) -> None:
        result = _invoke(catalog, "recent")
        assert result.exit_code == 0
        assert "Budget review" in result.output
        assert "msg_1" in result.output
        catalog.list_recent.assert_awaited_once_with(50)

    def test_limit_option(self, catalog) -> None:
        _invoke(catalog, "recent", "--limit", "5")
        catalog.list_recent.assert_awaited_once_with(5)

    def test_bad_limit_fails_before_connecting(self, catalog) -> None:
        result = _invoke(catalog, "recent", "--limit", "0")
        assert result.exit_code == 1
        assert "VALIDATION_ERROR" in result.output
        catalog.list_recent.assert_not_awaited()

    def test_empty_result(self, catalog) -> None:
        catalog.list_recent.return_value = []
        result = _invoke(catalog, "recent")
        assert result.exit_code == 0
        assert "No emails found" in result.output

    def test_json_output(self, catalog) -> None:
        result = _invoke(catalog, "recent", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["id"] == "msg_1"
        assert data[0]["importance_score"] == 2


class TestFilteredCommands:
    def test_today_min_score(self, catalog) -> None:
        result = _invoke(catalog, "today", "--min-score", "3")
        assert result.exit_code == 0
        catalog.list_today.assert_awaited_once_with(3)

    def test_min_score_out_of_range_rejected_by_click(self, catalog) -> None:
        result = _invoke(catalog, "today", "--min-score", "4")
        assert result.exit_code == 2
        catalog.list_today.assert_not_awaited()

    def test_by_date(self, catalog) -> None:
        result = _invoke(catalog, "by-date", "2024-03-01")
        assert result.exit_code == 0
        catalog.list_by_date.assert_awaited_once_with("2024-03-01", 1)

    def test_by_date_invalid(self, catalog) -> None:
        result = _invoke(catalog, "by-date", "March 1st")
        assert result.exit_code == 1
        assert "YYYY-MM-DD" in result.output
        catalog.list_by_date.assert_not_awaited()

    def test_range(self, catalog) -> None:
        result = _invoke(catalog, "range", "2024-03-01", "2024-03-31", "--min-score", "2")
        assert result.exit_code == 0
        catalog.list_by_range.assert_awaited_once_with("2024-03-01", "2024-03-31", 2)

    def test_range_reversed(self, catalog) -> None:
        result = _invoke(catalog, "range", "2024-03-31", "2024-03-01")
        assert result.exit_code == 1
        catalog.list_by_range.assert_not_awaited()

    def test_search(self, catalog) -> None:
        catalog.search.return_value = [_make_email(subject="URGENT", score=ImportanceScore.HIGH)]
        result = _invoke(catalog, "search", "from:alice")
        assert result.exit_code == 0
        assert "URGENT" in result.output
        catalog.search.assert_awaited_once_with("from:alice", 1)

    def test_search_empty(self, catalog) -> None:
        result = _invoke(catalog, "search", "")
        assert result.exit_code == 1
        assert "cannot be empty" in result.output


# ── mutations ───────────────────────────────────────────────────────────────────


class TestMutationCommands:
    def test_mark_read(self, catalog) -> None:
        result = _invoke(catalog, "mark-read", "msg_1")
        assert result.exit_code == 0
        assert "Marked msg_1 as read" in result.output
        catalog.mark_read.assert_awaited_once_with("msg_1")

    def test_mark_unread(self, catalog) -> None:
        result = _invoke(catalog, "mark-unread", "msg_1")
        assert result.exit_code == 0
        catalog.mark_unread.assert_awaited_once_with("msg_1")

    def test_delete(self, catalog) -> None:
        result = _invoke(catalog, "delete", "msg_1")
        assert result.exit_code == 0
        assert "Moved msg_1 to trash" in result.output

    def test_delete_not_found(self, catalog) -> None:
        catalog.delete.side_effect = NotFoundError("Email not found: nope")
        result = _invoke(catalog, "delete", "nope")
        assert result.exit_code == 1
        assert "NOT_FOUND: Email not found: nope" in result.output

    def test_rate_limit_reported(self, catalog) -> None:
        catalog.list_recent.side_effect = RateLimitError("Rate limit exceeded")
        result = _invoke(catalog, "recent")
        assert result.exit_code == 1
        assert "RATE_LIMIT_ERROR" in result.output

    def test_bulk_delete(self, catalog) -> None:
        catalog.delete.side_effect = [None, NotFoundError("Email not found: b"), None]
        result = _invoke(catalog, "bulk-delete", "a", "b", "c")
        assert result.exit_code == 0
        assert "2 deleted" in result.output
        assert "1 failed" in result.output
        assert "✗" in result.output

    def test_bulk_delete_requires_ids(self, catalog) -> None:
        result = _invoke(catalog, "bulk-delete")
        assert result.exit_code == 2

    def test_bulk_read(self, catalog) -> None:
        result = _invoke(catalog, "bulk-read", "a", "b")
        assert result.exit_code == 0
        assert "2 marked read" in result.output
        assert [c.args[0] for c in catalog.mark_read.await_args_list] == ["a", "b"]

    def test_bulk_unread_reports_failures(self, catalog) -> None:
        catalog.mark_unread.side_effect = [NotFoundError("Email not found: a"), None]
        result = _invoke(catalog, "bulk-unread", "a", "b")
        assert result.exit_code == 0
        assert "1 marked unread" in result.output
        assert "1 failed" in result.output


# ── configuration ───────────────────────────────────────────────────────────────


class TestConfigurationErrors:
    @pytest.mark.parametrize(
        ("name", "value"),
        [("APP_PORT", "eighty"), ("GMAIL_MAX_RETRIES", "x"), ("LOG_LEVEL", "chatty")],
    )
    def test_malformed_env_reported_without_traceback(
        self, catalog, monkeypatch, name: str, value: str
    ) -> None:
        monkeypatch.setenv(name, value)
        result = _invoke(catalog, "recent")
        assert result.exit_code == 1
        assert f"CONFIGURATION_ERROR: {name}" in result.output
        assert "Traceback" not in result.output
        catalog.list_recent.assert_not_awaited()


# ── serve ───────────────────────────────────────────────────────────────────────


class TestServeCommand:
    def test_runs_uvicorn_with_settings(self, catalog, monkeypatch) -> None:
        monkeypatch.setenv("APP_PORT", "9000")
        with patch("uvicorn.run") as run, patch("email_manager.api.app.create_app") as create_app:
            result = _invoke(catalog, "serve", "--host", "0.0.0.0")

        assert result.exit_code == 0
        run.assert_called_once()
        assert run.call_args.kwargs["host"] == "0.0.0.0"
        assert run.call_args.kwargs["port"] == 9000
        assert create_app.call_args.args[0].port == 9000
