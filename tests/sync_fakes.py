"""In-memory extractor and sink doubles shared by service and CLI tests."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from beneficiary_sync.core.errors import TransientIOError
from beneficiary_sync.lib.mapper import EnrichmentRecord, IndexDocument, RowColumn
from beneficiary_sync.lib.sink import BulkResult


def make_row(key: int | None, **overrides: Any) -> tuple:
    """Build a raw beneficiary row in ``RowColumn`` order.

    Overrides are keyed by lower-cased column name, e.g. ``phone_num="98..."``.
    """
    row: list[Any] = [None] * len(RowColumn)
    row[RowColumn.BEN_REG_ID] = key
    row[RowColumn.BENEFICIARY_ID] = f"BEN{key}" if key is not None else None
    row[RowColumn.FIRST_NAME] = "Asha"
    row[RowColumn.LAST_NAME] = "Devi"
    row[RowColumn.GENDER_ID] = 2
    row[RowColumn.GENDER_NAME] = "Female"
    row[RowColumn.DOB] = datetime(1990, 5, 17)
    row[RowColumn.PHONE_NUM] = "9876543210"
    row[RowColumn.STATE_ID] = 5
    row[RowColumn.STATE_NAME] = "Assam"
    row[RowColumn.DISTRICT_ID] = 51
    row[RowColumn.DISTRICT_NAME] = "Kamrup"
    for name, value in overrides.items():
        row[RowColumn[name.upper()]] = value
    return tuple(row)


class FakeExtractor:
    """Extractor over keys ``1..total`` with scriptable failures."""

    def __init__(
        self,
        total: int,
        *,
        fail_offsets: Sequence[int] = (),
        fail_all_pages: bool = False,
        missing_keys: Sequence[int] = (),
        unmappable_keys: Sequence[int] = (),
        enrichment: dict[int, EnrichmentRecord] | None = None,
        enrichment_error: bool = False,
    ) -> None:
        self.keys = list(range(1, total + 1))
        self.fail_offsets = set(fail_offsets)
        self.fail_all_pages = fail_all_pages
        self.missing_keys = set(missing_keys)
        self.unmappable_keys = set(unmappable_keys)
        self.enrichment = enrichment or {}
        self.enrichment_error = enrichment_error
        self.count_calls = 0
        self.page_calls: list[int] = []
        self.row_calls: list[list[int]] = []
        self.on_page: Any = None
        self.layout_checks = 0

    async def validate_layout(self) -> None:
        self.layout_checks += 1

    async def count_eligible(self) -> int:
        self.count_calls += 1
        return len(self.keys)

    async def page_of_keys(self, offset: int, limit: int) -> list[int]:
        self.page_calls.append(offset)
        if self.on_page is not None:
            await self.on_page(offset)
        if self.fail_all_pages or offset in self.fail_offsets:
            raise TransientIOError("page_of_keys", f"connection reset at offset {offset}")
        return self.keys[offset : offset + limit]

    async def fetch_rows(self, keys: Sequence[int]) -> list[tuple]:
        self.row_calls.append(list(keys))
        rows = []
        for key in keys:
            if key in self.missing_keys:
                continue
            if key in self.unmappable_keys:
                # key column unreadable, so the mapper drops it
                rows.append(make_row(None, beneficiary_id=f"BEN{key}"))
                continue
            rows.append(make_row(key))
        return rows

    async def fetch_enrichment(self, keys: Sequence[int]) -> dict[int, EnrichmentRecord]:
        if self.enrichment_error:
            msg = "health-id view unavailable"
            raise RuntimeError(msg)
        return {key: self.enrichment[key] for key in keys if key in self.enrichment}

    async def exists(self, key: int) -> bool:
        return key in self.keys


class FakeSink:
    """Bulk sink storing documents by id; can fail whole flushes or single items."""

    def __init__(
        self,
        *,
        fail_on_calls: Sequence[int] = (),
        reject_ids: Sequence[str] = (),
        available: bool = True,
    ) -> None:
        self.available = available
        self.fail_on_calls = set(fail_on_calls)
        self.reject_ids = set(reject_ids)
        self.calls: list[list[str]] = []
        self.documents: dict[str, dict] = {}
        self.deleted: list[str] = []
        self.closed = False

    async def bulk_write(self, documents: Sequence[IndexDocument]) -> BulkResult:
        self.calls.append([doc.document_id for doc in documents])
        if len(self.calls) in self.fail_on_calls:
            msg = "bulk request rejected"
            raise ConnectionError(msg)
        result = BulkResult(attempted=len(documents))
        for doc in documents:
            if doc.document_id in self.reject_ids:
                result.record_error({"_id": doc.document_id, "error": "mapper_parsing_exception"})
                continue
            self.documents[doc.document_id] = doc.to_source()
            result.succeeded += 1
        return result

    async def index_one(self, document: IndexDocument) -> None:
        self.documents[document.document_id] = document.to_source()

    async def delete_one(self, document_id: str) -> bool:
        self.deleted.append(document_id)
        return self.documents.pop(document_id, None) is not None

    async def count(self) -> int:
        return len(self.documents)

    async def ping(self) -> bool:
        return self.available

    async def close(self) -> None:
        self.closed = True
