"""Realtime sync service: keeps single beneficiaries current in the index."""

import asyncio

from loguru import logger

from beneficiary_sync.core.errors import ValidationError
from beneficiary_sync.lib.extractor import RowExtractor, fetch_enrichment_safely
from beneficiary_sync.lib.mapper import map_row
from beneficiary_sync.lib.sink import BulkSink


def parse_primary_key(primary_key: int | str) -> int:
    """Coerce a beneficiary key, raising ``ValidationError`` unless it is a positive integer."""
    if isinstance(primary_key, bool):
        msg = f"Malformed primary key: {primary_key!r}"
        raise ValidationError(msg)
    try:
        key = int(primary_key)
    except (TypeError, ValueError) as e:
        msg = f"Malformed primary key: {primary_key!r}"
        raise ValidationError(msg) from e
    if key <= 0:
        msg = f"Primary key must be positive, got {key}"
        raise ValidationError(msg)
    return key


class RealtimeSyncService:
    """Index or remove one beneficiary outside of a full sync.

    Args:
        extractor: Source row access.
        sink: Index writer.
        enabled: When False every call is a logged no-op returning False.
    """

    def __init__(self, extractor: RowExtractor, sink: BulkSink, *, enabled: bool = True) -> None:
        self.extractor = extractor
        self.sink = sink
        self.enabled = enabled

    async def sync_one(self, primary_key: int | str) -> bool:
        """Fetch, map and index one beneficiary.

        Returns:
            True if the document was written, False if the row is absent,
            unmappable, or indexing is disabled or failed.

        Raises:
            ValidationError: If ``primary_key`` is malformed.
        """
        key = parse_primary_key(primary_key)
        if not self.enabled:
            logger.debug(f"Elasticsearch disabled, skipping sync of {key}")
            return False

        try:
            rows, enrichment = await asyncio.gather(
                self.extractor.fetch_rows([key]),
                fetch_enrichment_safely(self.extractor, [key]),
            )
        except Exception as e:
            logger.error(f"Failed to read beneficiary {key} for indexing: {e}")
            return False
        if not rows:
            logger.warning(f"Beneficiary {key} not found or deleted, nothing to index")
            return False

        document = map_row(rows[0], enrichment.get(key))
        if document is None:
            logger.warning(f"Beneficiary {key} produced no document")
            return False

        try:
            await self.sink.index_one(document)
        except Exception as e:
            logger.error(f"Failed to index beneficiary {key}: {e}")
            return False
        logger.info(f"Indexed beneficiary {document.document_id}")
        return True

    async def delete_one(self, document_id: str) -> bool:
        """Remove one document from the index.

        Returns:
            True if a document was deleted.
        """
        document_id = (document_id or "").strip()
        if not document_id:
            msg = "document_id must not be empty"
            raise ValidationError(msg)
        if not self.enabled:
            logger.debug(f"Elasticsearch disabled, skipping delete of {document_id}")
            return False

        try:
            deleted = await self.sink.delete_one(document_id)
        except Exception as e:
            logger.error(f"Failed to delete document {document_id}: {e}")
            return False
        if deleted:
            logger.info(f"Deleted document {document_id} from index")
        else:
            logger.info(f"Document {document_id} was not indexed")
        return deleted
