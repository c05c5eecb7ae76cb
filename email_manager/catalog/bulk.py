"""Batch mutations with per-item failure accounting."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from email_manager.catalog.service import EmailCatalogService

logger = logging.getLogger(__name__)

#: A single-item mutation, e.g. ``EmailCatalogService.delete``.
ItemOperation = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class BulkResult:
    """Outcome of a batch mutation. ``succeeded + failed`` equals the batch size."""

    succeeded: int = 0
    failed: int = 0
    failed_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def deleted(self) -> int:
        """Alias of ``succeeded`` used by the bulk-delete response."""
        return self.succeeded

    def to_dict(self, succeeded_key: str = "deleted") -> dict[str, object]:
        """Response body; bulk label changes report ``succeeded_key="updated"``."""
        return {
            succeeded_key: self.succeeded,
            "failed": self.failed,
            "failed_ids": list(self.failed_ids),
        }


class BulkOperationCoordinator:
    """Runs a single-item mutation over many ids without stopping on failure.

    Every id is processed exactly once per occurrence (duplicates included),
    one after another.  Item failures are logged and counted, never raised.
    """

    def __init__(self, catalog: EmailCatalogService) -> None:
        self._catalog = catalog

    async def bulk_delete(self, ids: Sequence[str]) -> BulkResult:
        return await self.run(ids, self._catalog.delete, "delete")

    async def bulk_mark_read(self, ids: Sequence[str]) -> BulkResult:
        return await self.run(ids, self._catalog.mark_read, "mark read")

    async def bulk_mark_unread(self, ids: Sequence[str]) -> BulkResult:
        return await self.run(ids, self._catalog.mark_unread, "mark unread")

    async def run(
        self, ids: Sequence[str], operation: ItemOperation, action: str
    ) -> BulkResult:
        succeeded = 0
        failed_ids: list[str] = []
        for email_id in ids:
            try:
                await operation(email_id)
                succeeded += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("Bulk %s failed for %s: %s", action, email_id, exc)
                failed_ids.append(email_id)

        if ids:
            logger.info(
                "Bulk %s: %d succeeded, %d failed", action, succeeded, len(failed_ids)
            )
        return BulkResult(
            succeeded=succeeded, failed=len(failed_ids), failed_ids=tuple(failed_ids)
        )
