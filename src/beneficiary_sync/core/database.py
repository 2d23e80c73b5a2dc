"""Async database engine and session management.

Two engines are tracked: the job store, where sync checkpoints live, and
the beneficiary source store.  When no separate source URL is configured
both names resolve to the same engine.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_source_engine: AsyncEngine | None = None
_source_session_factory: async_sessionmaker[AsyncSession] | None = None


def _create_engine(database_url: str, **kwargs: object) -> AsyncEngine:
    # Only set pool defaults for connection-pooled engines (not SQLite/StaticPool)
    uses_static_pool = kwargs.get("poolclass") is StaticPool or "sqlite" in database_url
    if not uses_static_pool:
        kwargs.setdefault("pool_size", 5)
        kwargs.setdefault("max_overflow", 5)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(database_url, **kwargs)


def get_engine() -> AsyncEngine:
    """Return the job store engine.

    Raises:
        RuntimeError: If the engine has not been initialized.
    """
    if _engine is None:
        msg = "Database engine not initialized. Call init_engine() first."
        raise RuntimeError(msg)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the job store session factory.

    Raises:
        RuntimeError: If the engine has not been initialized.
    """
    if _session_factory is None:
        msg = "Session factory not initialized. Call init_engine() first."
        raise RuntimeError(msg)
    return _session_factory


def get_source_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the source store session factory.

    Raises:
        RuntimeError: If the engine has not been initialized.
    """
    if _source_session_factory is None:
        msg = "Source session factory not initialized. Call init_engine() first."
        raise RuntimeError(msg)
    return _source_session_factory


def init_engine(database_url: str, *, source_database_url: str | None = None, **kwargs: object) -> AsyncEngine:
    """Create and store the async engines and session factories.

    Args:
        database_url: Async connection string for the job store.
        source_database_url: Optional separate connection string for the
            source store.
        **kwargs: Additional arguments passed to create_async_engine.

    Returns:
        The job store engine.
    """
    global _engine, _session_factory, _source_engine, _source_session_factory  # noqa: PLW0603
    _engine = _create_engine(database_url, **dict(kwargs))
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)

    if source_database_url and source_database_url != database_url:
        _source_engine = _create_engine(source_database_url, **dict(kwargs))
        _source_session_factory = async_sessionmaker(_source_engine, expire_on_commit=False)
    else:
        _source_engine = None
        _source_session_factory = _session_factory
    return _engine


async def dispose_engine() -> None:
    """Dispose of the async engines and release connections."""
    global _engine, _session_factory, _source_engine, _source_session_factory  # noqa: PLW0603
    if _source_engine is not None:
        await _source_engine.dispose()
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
    _source_engine = None
    _source_session_factory = None
