"""Shared test fixtures for settings, the async job store, and source tables."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from beneficiary_sync.core.config import Settings, SyncOptions
from beneficiary_sync.lib.mapper import ENRICHMENT_COLUMNS, ROW_COLUMNS
from beneficiary_sync.models.base import Base
from beneficiary_sync.services.sync_job_service import SyncJobService


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Test application settings."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}",
        elasticsearch_url="http://localhost:9200",
    )


@pytest.fixture
def fast_options() -> SyncOptions:
    """Orchestrator tunables with no backoff or pacing delay."""
    return SyncOptions(batch_size=100, bulk_size=50, backoff_base_ms=0, backoff_cap_ms=0, pause_ms=0)


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create a file-backed async SQLite engine with the job tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
def job_service(session_factory: async_sessionmaker[AsyncSession]) -> SyncJobService:
    """Lifecycle manager over the test job store."""
    return SyncJobService(session_factory)


@pytest.fixture
async def source_tables(async_engine: AsyncEngine) -> AsyncEngine:
    """Create source relations shaped like the beneficiary views."""
    row_columns = ", ".join([*ROW_COLUMNS, "deleted"])
    enrichment_columns = ", ".join(ENRICHMENT_COLUMNS)
    async with async_engine.begin() as conn:
        await conn.execute(text(f"CREATE TABLE v_beneficiary_search ({row_columns})"))
        await conn.execute(text(f"CREATE TABLE v_beneficiary_health_id ({enrichment_columns})"))
    return async_engine
