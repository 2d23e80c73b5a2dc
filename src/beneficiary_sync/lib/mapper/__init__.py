"""Document mapper library public API.

Provides the fixed row layout, the index document model, and the pure
row-to-document mapping with health-ID enrichment.
"""

from beneficiary_sync.lib.mapper.columns import (
    ENRICHMENT_COLUMNS,
    ROW_COLUMNS,
    EnrichmentColumn,
    RowColumn,
    validate_columns,
)
from beneficiary_sync.lib.mapper.document import IndexDocument
from beneficiary_sync.lib.mapper.mapper import (
    EnrichmentRecord,
    group_enrichment,
    map_row,
    pick_enrichment,
    row_key,
)

__all__ = [
    "ENRICHMENT_COLUMNS",
    "ROW_COLUMNS",
    "EnrichmentColumn",
    "EnrichmentRecord",
    "IndexDocument",
    "RowColumn",
    "group_enrichment",
    "map_row",
    "pick_enrichment",
    "row_key",
    "validate_columns",
]
