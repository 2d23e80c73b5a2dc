"""SQL row extractor reading beneficiary views through SQLAlchemy Core.

Every call opens its own short-lived session so a multi-hour sync never
holds a source connection between batches.
"""

import re
from collections.abc import Sequence
from typing import Any

from loguru import logger
from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from beneficiary_sync.core.errors import TransientIOError, ValidationError
from beneficiary_sync.lib.mapper import (
    ENRICHMENT_COLUMNS,
    ROW_COLUMNS,
    EnrichmentRecord,
    group_enrichment,
    validate_columns,
)

_RELATION_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# Rows visible to the sync: not soft-deleted
_ELIGIBLE = "(deleted IS NULL OR deleted = :not_deleted)"


class SqlRowExtractor:
    """Row extractor backed by a denormalized source view.

    Args:
        session_factory: Session factory for the source store.
        source_view: Relation with one row per beneficiary in ``ROW_COLUMNS``
            layout plus a ``deleted`` flag.
        enrichment_view: Relation with health-ID records in
            ``ENRICHMENT_COLUMNS`` layout.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        source_view: str = "v_beneficiary_search",
        enrichment_view: str = "v_beneficiary_health_id",
    ) -> None:
        for relation in (source_view, enrichment_view):
            if not _RELATION_RE.match(relation):
                msg = f"Invalid relation name: {relation!r}"
                raise ValidationError(msg)
        self._session_factory = session_factory
        self.source_view = source_view
        self.enrichment_view = enrichment_view

        columns = ", ".join(ROW_COLUMNS)
        enrichment_columns = ", ".join(ENRICHMENT_COLUMNS)
        self._count_sql = text(f"SELECT COUNT(*) FROM {source_view} WHERE {_ELIGIBLE}")  # noqa: S608
        self._keys_sql = text(
            f"SELECT ben_reg_id FROM {source_view} WHERE {_ELIGIBLE} "  # noqa: S608
            "ORDER BY ben_reg_id LIMIT :limit OFFSET :offset"
        )
        self._rows_sql = text(
            f"SELECT {columns} FROM {source_view} WHERE ben_reg_id IN :keys AND {_ELIGIBLE}"  # noqa: S608
        ).bindparams(bindparam("keys", expanding=True))
        self._enrichment_sql = text(
            f"SELECT {enrichment_columns} FROM {enrichment_view} "  # noqa: S608
            "WHERE ben_reg_id IN :keys ORDER BY created_date DESC"
        ).bindparams(bindparam("keys", expanding=True))
        self._exists_sql = text(f"SELECT 1 FROM {source_view} WHERE ben_reg_id = :key")  # noqa: S608

    async def validate_layout(self) -> None:
        """Check once that both views expose the fixed column layout.

        Raises:
            ValidationError: If a view is missing columns or orders them differently.
        """
        for sql, params, expected, relation in (
            (self._rows_sql, {"keys": [], "not_deleted": False}, ROW_COLUMNS, self.source_view),
            (self._enrichment_sql, {"keys": []}, ENRICHMENT_COLUMNS, self.enrichment_view),
        ):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(sql, params)
                    actual = list(result.keys())
            except SQLAlchemyError as e:
                msg = f"{relation}: layout query failed: {e}"
                raise ValidationError(msg) from e
            validate_columns(actual, expected, relation=relation)
        logger.info(f"Validated column layout of {self.source_view} and {self.enrichment_view}")

    async def count_eligible(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(self._count_sql, {"not_deleted": False})
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise TransientIOError("count_eligible", str(e)) from e

    async def page_of_keys(self, offset: int, limit: int) -> list[int]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    self._keys_sql, {"limit": limit, "offset": offset, "not_deleted": False}
                )
                return [int(key) for key in result.scalars().all() if key is not None]
        except SQLAlchemyError as e:
            raise TransientIOError("page_of_keys", str(e)) from e

    async def fetch_rows(self, keys: Sequence[int]) -> list[Sequence[Any]]:
        if not keys:
            return []
        try:
            async with self._session_factory() as session:
                result = await session.execute(self._rows_sql, {"keys": list(keys), "not_deleted": False})
                return [tuple(row) for row in result.all()]
        except SQLAlchemyError as e:
            raise TransientIOError("fetch_rows", str(e)) from e

    async def fetch_enrichment(self, keys: Sequence[int]) -> dict[int, EnrichmentRecord]:
        if not keys:
            return {}
        try:
            async with self._session_factory() as session:
                result = await session.execute(self._enrichment_sql, {"keys": list(keys)})
                rows = [tuple(row) for row in result.all()]
        except SQLAlchemyError as e:
            raise TransientIOError("fetch_enrichment", str(e)) from e
        return group_enrichment(rows)

    async def exists(self, key: int) -> bool:
        """Whether the source view has a row for ``key`` (deleted or not)."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(self._exists_sql, {"key": key})
                return result.first() is not None
        except SQLAlchemyError as e:
            raise TransientIOError("exists", str(e)) from e
