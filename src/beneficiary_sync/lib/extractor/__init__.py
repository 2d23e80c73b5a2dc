"""Row extractor library public API."""

from beneficiary_sync.lib.extractor.base import RowExtractor, fetch_enrichment_safely
from beneficiary_sync.lib.extractor.sql import SqlRowExtractor

__all__ = [
    "RowExtractor",
    "SqlRowExtractor",
    "fetch_enrichment_safely",
]
