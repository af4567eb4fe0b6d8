"""Async SQLAlchemy engine and session factory for review sessions.

The engine is built lazily from :func:`suivi_db.config.get_async_url` and
:func:`suivi_db.config.load_pool_settings`, then shared by the whole
process.  The FastAPI lifespan calls ``dispose_engine()`` on shutdown.
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from suivi_db.config import PoolSettings, get_async_url, load_pool_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(settings: PoolSettings | None = None) -> AsyncEngine:
    """Return the shared engine, creating it with ``settings`` on first call."""
    global _engine
    if _engine is None:
        settings = settings or load_pool_settings()
        _engine = create_async_engine(get_async_url(), **settings.engine_kwargs())
        logger.info(
            "Review-session engine ready (pool_size=%d, max_overflow=%d)",
            settings.size, settings.max_overflow,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep their objects usable after commit for snapshot building."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
