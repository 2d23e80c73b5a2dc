"""Row extractor contract consumed by the sync engine."""

from collections.abc import Sequence
from typing import Any, Protocol

from loguru import logger

from beneficiary_sync.lib.mapper import EnrichmentRecord


class RowExtractor(Protocol):
    """Paginated read access to the beneficiary source store.

    ``page_of_keys`` must order keys deterministically for an unchanged
    dataset; resuming from a checkpoint relies on it.
    """

    async def validate_layout(self) -> None:
        """Raise ``ValidationError`` if the row or enrichment layout differs from the decoder's."""
        ...

    async def count_eligible(self) -> int:
        """Count rows eligible for sync (not soft-deleted)."""
        ...

    async def page_of_keys(self, offset: int, limit: int) -> list[int]:
        """Return up to ``limit`` primary keys starting at ``offset``; empty past the end."""
        ...

    async def fetch_rows(self, keys: Sequence[int]) -> list[Sequence[Any]]:
        """Return fully joined rows for ``keys`` in one round-trip."""
        ...

    async def fetch_enrichment(self, keys: Sequence[int]) -> dict[int, EnrichmentRecord]:
        """Return at most one health-ID record per key."""
        ...

    async def exists(self, key: int) -> bool:
        """Whether the source store holds a row for ``key``, deleted or not."""
        ...


async def fetch_enrichment_safely(extractor: RowExtractor, keys: Sequence[int]) -> dict[int, EnrichmentRecord]:
    """Fetch enrichment, degrading to an empty mapping on any error.

    Enrichment is best effort: a failed lookup must never fail the batch.
    """
    if not keys:
        return {}
    try:
        return await extractor.fetch_enrichment(keys)
    except Exception as e:
        logger.warning(f"Health-ID lookup failed for {len(keys)} keys, continuing without enrichment: {e}")
        return {}
