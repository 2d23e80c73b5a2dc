"""Bulk sink contract and per-flush result accounting."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from loguru import logger

from beneficiary_sync.lib.mapper import IndexDocument

# Item errors kept per result for logging
_MAX_ERRORS_KEPT = 10


@dataclass
class BulkResult:
    """Outcome of writing one buffer of documents."""

    attempted: int = 0
    succeeded: int = 0
    errors: list[dict] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    def record_error(self, error: dict) -> None:
        if len(self.errors) < _MAX_ERRORS_KEPT:
            self.errors.append(error)

    @classmethod
    def all_failed(cls, attempted: int, reason: str) -> "BulkResult":
        return cls(attempted=attempted, succeeded=0, errors=[{"error": reason}])


class BulkSink(Protocol):
    """Bulk-write endpoint of the search index.

    Writes are upserts keyed by ``IndexDocument.document_id``.
    """

    async def bulk_write(self, documents: Sequence[IndexDocument]) -> BulkResult:
        """Write documents and report how many the index accepted."""
        ...

    async def index_one(self, document: IndexDocument) -> None:
        """Write a single document and make it visible to search."""
        ...

    async def delete_one(self, document_id: str) -> bool:
        """Remove a document; ``False`` if it was not indexed."""
        ...

    async def count(self) -> int:
        """Number of documents in the index."""
        ...

    async def ping(self) -> bool:
        """Whether the index cluster answers."""
        ...

    async def close(self) -> None:
        """Release the underlying client."""
        ...


async def bulk_write_safely(sink: BulkSink, documents: Sequence[IndexDocument]) -> BulkResult:
    """Write a buffer, treating a sink-level exception as all documents failed.

    A lost connection or rejected request never fails the job; the buffer
    is counted as failures and the run continues.
    """
    if not documents:
        return BulkResult()
    try:
        return await sink.bulk_write(documents)
    except Exception as e:
        logger.error(f"Bulk write of {len(documents)} documents failed: {e}")
        return BulkResult.all_failed(len(documents), str(e))
