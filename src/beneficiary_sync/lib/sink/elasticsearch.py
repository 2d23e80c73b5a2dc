"""Elasticsearch bulk sink for beneficiary documents."""

from collections.abc import Sequence
from typing import Any

from elasticsearch import AsyncElasticsearch
from elasticsearch import NotFoundError as EsNotFoundError
from loguru import logger

from beneficiary_sync.lib.mapper import IndexDocument
from beneficiary_sync.lib.sink.base import BulkResult
from beneficiary_sync.lib.sink.mapping import create_index, optimize_for_search


def create_client(
    url: str,
    *,
    username: str | None = None,
    password: str | None = None,
    request_timeout: float = 30.0,
) -> AsyncElasticsearch:
    """Build an async Elasticsearch client, with basic auth when credentials are set."""
    kwargs: dict[str, Any] = {"request_timeout": request_timeout}
    if username:
        kwargs["basic_auth"] = (username, password or "")
    return AsyncElasticsearch([url], **kwargs)


def _item_succeeded(item: dict) -> bool:
    """Whether one entry of a bulk response's ``items`` was accepted."""
    result = next(iter(item.values()), {})
    return "error" not in result and int(result.get("status", 500)) < 300


class ElasticsearchBulkSink:
    """Bulk sink writing ``index`` operations keyed by document id.

    Args:
        client: Async Elasticsearch client; owned by the caller.
        index: Target index name.
    """

    def __init__(self, client: AsyncElasticsearch, index: str) -> None:
        self.client = client
        self.index = index

    async def bulk_write(self, documents: Sequence[IndexDocument]) -> BulkResult:
        result = BulkResult(attempted=len(documents))
        if not documents:
            return result

        operations: list[dict] = []
        for document in documents:
            operations.append({"index": {"_index": self.index, "_id": document.document_id}})
            operations.append(document.to_source())

        response = await self.client.bulk(operations=operations, refresh=False)

        if not response["errors"]:
            result.succeeded = len(documents)
            return result

        for item in response["items"]:
            if _item_succeeded(item):
                result.succeeded += 1
            else:
                detail = next(iter(item.values()), {})
                result.record_error({"_id": detail.get("_id"), "error": detail.get("error")})

        logger.warning(
            f"Bulk write to {self.index}: {result.succeeded}/{result.attempted} accepted, "
            f"first errors: {result.errors[:3]}"
        )
        return result

    async def index_one(self, document: IndexDocument) -> None:
        await self.client.index(
            index=self.index,
            id=document.document_id,
            document=document.to_source(),
            refresh=True,
        )

    async def delete_one(self, document_id: str) -> bool:
        try:
            await self.client.delete(index=self.index, id=document_id, refresh=True)
        except EsNotFoundError:
            return False
        return True

    async def count(self) -> int:
        response = await self.client.count(index=self.index)
        return int(response["count"])

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def create_index(self, *, recreate: bool = False) -> bool:
        return await create_index(self.client, self.index, recreate=recreate)

    async def optimize_for_search(self) -> None:
        await optimize_for_search(self.client, self.index)

    async def close(self) -> None:
        await self.client.close()
