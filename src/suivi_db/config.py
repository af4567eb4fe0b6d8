"""Database configuration — reads connection and pool settings from environment.

The review-session table lives in the portal's PostgreSQL database, next to
tables this package does not own.  Connection parameters are resolved in
this order:

1. ``SUIVI_DATABASE_URL``
2. ``DATABASE_URL``
3. Individual ``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD``,
   ``PG_DATABASE`` env vars.

``get_sync_url`` feeds Alembic; ``get_async_url`` feeds the asyncpg engine.
Pool sizing comes from ``SUIVI_DB_*`` variables, see :func:`load_pool_settings`.
"""

import os
from dataclasses import dataclass

_ASYNC_PREFIX = "postgresql+asyncpg://"
_SYNC_PREFIX = "postgresql://"

# Alembic bookkeeping table; the portal keeps its own ``alembic_version``
VERSION_TABLE = "suivi_alembic_version"


@dataclass(frozen=True)
class PoolSettings:
    """Connection-pool options passed to ``create_async_engine``.

    Review sessions are short request-scoped transactions, so the pool is
    small; ``recycle`` stays under the portal's idle-connection timeout.
    """

    size: int = 5
    max_overflow: int = 5
    timeout: float = 10.0
    recycle: int = 1800
    echo: bool = False

    def engine_kwargs(self) -> dict:
        return {
            "pool_size": self.size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.timeout,
            "pool_recycle": self.recycle,
            "pool_pre_ping": True,
            "echo": self.echo,
        }


def load_pool_settings() -> PoolSettings:
    """Build pool settings from ``SUIVI_DB_*`` environment variables."""
    size = int(os.getenv("SUIVI_DB_POOL_SIZE", "5"))
    if size < 1:
        raise ValueError(f"SUIVI_DB_POOL_SIZE must be at least 1, got {size}")
    return PoolSettings(
        size=size,
        max_overflow=max(0, int(os.getenv("SUIVI_DB_MAX_OVERFLOW", "5"))),
        timeout=float(os.getenv("SUIVI_DB_POOL_TIMEOUT", "10")),
        recycle=int(os.getenv("SUIVI_DB_POOL_RECYCLE", "1800")),
        echo=os.getenv("SUIVI_DB_ECHO", "").lower() in ("1", "true", "yes"),
    )


def _configured_url() -> str:
    url = os.getenv("SUIVI_DATABASE_URL") or os.getenv("DATABASE_URL")
    if url:
        return url
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "suivi")
    password = os.getenv("PG_PASSWORD", "suivi")
    database = os.getenv("PG_DATABASE", "suivi")
    return f"{_SYNC_PREFIX}{user}:{password}@{host}:{port}/{database}"


def get_sync_url() -> str:
    """Connection URL for the synchronous driver (Alembic migrations)."""
    return _configured_url().replace(_ASYNC_PREFIX, _SYNC_PREFIX, 1)


def get_async_url() -> str:
    """Connection URL for the asyncpg driver used at runtime."""
    url = _configured_url()
    if url.startswith(_SYNC_PREFIX):
        return url.replace(_SYNC_PREFIX, _ASYNC_PREFIX, 1)
    return url
