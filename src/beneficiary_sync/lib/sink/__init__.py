"""Search index sink library public API."""

from beneficiary_sync.lib.sink.base import BulkResult, BulkSink, bulk_write_safely
from beneficiary_sync.lib.sink.elasticsearch import ElasticsearchBulkSink, create_client
from beneficiary_sync.lib.sink.mapping import INDEX_MAPPINGS, INDEX_SETTINGS, create_index, optimize_for_search

__all__ = [
    "INDEX_MAPPINGS",
    "INDEX_SETTINGS",
    "BulkResult",
    "BulkSink",
    "ElasticsearchBulkSink",
    "bulk_write_safely",
    "create_client",
    "create_index",
    "optimize_for_search",
]
