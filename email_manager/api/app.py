"""FastAPI application exposing the email catalog over HTTP."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from email_manager.api.schemas import BulkIdsRequest, ImportantDomainRequest, SearchRequest
from email_manager.catalog.bulk import BulkOperationCoordinator
from email_manager.catalog.service import EmailCatalogService, open_catalog
from email_manager.config import Settings
from email_manager.errors import EmailManagerError
from email_manager.gmail.types import EmailSummary

logger = logging.getLogger(__name__)


# ── Dependencies ───────────────────────────────────────────────────────────────


def get_catalog(request: Request) -> EmailCatalogService:
    return request.app.state.catalog


def get_bulk(request: Request) -> BulkOperationCoordinator:
    return request.app.state.bulk


def _listing(emails: list[EmailSummary], **extra: object) -> dict[str, object]:
    return {"emails": [e.to_dict() for e in emails], "count": len(emails), **extra}


# ── Error handlers ─────────────────────────────────────────────────────────────


async def _email_manager_error(request: Request, exc: EmailManagerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))


async def _request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    payload = {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request parameters",
            "details": {"errors": jsonable_encoder(exc.errors())},
        }
    }
    return JSONResponse(status_code=400, content=payload)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    payload = {"error": {"code": "INTERNAL_ERROR", "message": "An internal error occurred"}}
    return JSONResponse(status_code=500, content=payload)


# ── Application ────────────────────────────────────────────────────────────────


def create_app(
    settings: Settings | None = None,
    catalog: EmailCatalogService | None = None,
) -> FastAPI:
    """Build the API.

    When ``catalog`` is given it is used as-is (tests, embedding); otherwise
    the lifespan connects to Gmail with ``settings`` and tears the client
    down on shutdown.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if catalog is not None:
            app.state.catalog = catalog
            app.state.bulk = BulkOperationCoordinator(catalog)
            yield
            return

        async with open_catalog(settings) as live:
            app.state.catalog = live
            app.state.bulk = BulkOperationCoordinator(live)
            logger.info("Email catalog ready")
            yield
        logger.info("Email catalog shut down")

    app = FastAPI(
        title="Email Manager API",
        description="Read, filter and triage one Gmail mailbox",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(EmailManagerError, _email_manager_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unexpected_error)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/emails/recent")
    async def recent_emails(
        limit: int | None = Query(default=None, description="Defaults to 50"),
        catalog: EmailCatalogService = Depends(get_catalog),
    ) -> dict[str, object]:
        return _listing(await catalog.list_recent(limit))

    @app.get("/emails/today")
    async def today_emails(
        min_score: int = Query(default=1, ge=1, le=3),
        catalog: EmailCatalogService = Depends(get_catalog),
    ) -> dict[str, object]:
        today = datetime.now(timezone.utc)
        emails = await catalog.list_today(min_score, now=today)
        return _listing(emails, date=today.date().isoformat())

    @app.get("/emails/by-date/{date}")
    async def emails_by_date(
        date: str,
        min_score: int = Query(default=1, ge=1, le=3),
        catalog: EmailCatalogService = Depends(get_catalog),
    ) -> dict[str, object]:
        return _listing(await catalog.list_by_date(date, min_score), date=date)

    @app.get("/emails/range")
    async def emails_by_range(
        date_from: str = Query(alias="from"),
        date_to: str = Query(alias="to"),
        min_score: int = Query(default=1, ge=1, le=3),
        catalog: EmailCatalogService = Depends(get_catalog),
    ) -> dict[str, object]:
        emails = await catalog.list_by_range(date_from, date_to, min_score)
        return _listing(emails, **{"from": date_from, "to": date_to})

    @app.post("/emails/search")
    async def search_emails(
        body: SearchRequest,
        catalog: EmailCatalogService = Depends(get_catalog),
    ) -> dict[str, object]:
        emails = await catalog.search(body.query, body.min_score)
        return _listing(emails, query=body.query)

    @app.post("/emails/bulk-delete")
    async def bulk_delete(
        body: BulkIdsRequest,
        bulk: BulkOperationCoordinator = Depends(get_bulk),
    ) -> dict[str, object]:
        result = await bulk.bulk_delete(body.ids)
        return result.to_dict()

    @app.post("/emails/bulk-read")
    async def bulk_mark_read(
        body: BulkIdsRequest,
        bulk: BulkOperationCoordinator = Depends(get_bulk),
    ) -> dict[str, object]:
        result = await bulk.bulk_mark_read(body.ids)
        return result.to_dict("updated")

    @app.post("/emails/bulk-unread")
    async def bulk_mark_unread(
        body: BulkIdsRequest,
        bulk: BulkOperationCoordinator = Depends(get_bulk),
    ) -> dict[str, object]:
        result = await bulk.bulk_mark_unread(body.ids)
        return result.to_dict("updated")

    @app.post("/emails/{email_id}/read")
    async def mark_as_read(
        email_id: str, catalog: EmailCatalogService = Depends(get_catalog)
    ) -> dict[str, str]:
        await catalog.mark_read(email_id)
        return {"message": "Email marked as read", "email_id": email_id}

    @app.post("/emails/{email_id}/unread")
    async def mark_as_unread(
        email_id: str, catalog: EmailCatalogService = Depends(get_catalog)
    ) -> dict[str, str]:
        await catalog.mark_unread(email_id)
        return {"message": "Email marked as unread", "email_id": email_id}

    @app.delete("/emails/{email_id}")
    async def delete_email(
        email_id: str, catalog: EmailCatalogService = Depends(get_catalog)
    ) -> dict[str, str]:
        await catalog.delete(email_id)
        return {"message": "Email deleted", "email_id": email_id}

    @app.get("/scoring/rules")
    async def scoring_rules(
        catalog: EmailCatalogService = Depends(get_catalog),
    ) -> dict[str, object]:
        return catalog.rules.to_dict()

    @app.post("/scoring/important-domains")
    async def add_important_domain(
        body: ImportantDomainRequest,
        catalog: EmailCatalogService = Depends(get_catalog),
    ) -> dict[str, object]:
        return catalog.add_important_domain(body.domain).to_dict()

    return app
