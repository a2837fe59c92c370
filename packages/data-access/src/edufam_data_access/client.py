"""Async database engine for the profile store.

Provides a lazy-initialized SQLAlchemy async engine backed by asyncpg, connected
to Supabase's PostgreSQL via the direct connection pooler (port 5432, session mode).

Session mode is required because asyncpg uses prepared statements, which are
incompatible with transaction-mode pooling.

Usage:
    from edufam_data_access.client import get_engine

    async with get_engine().begin() as conn:
        result = await conn.execute(select(profiles))
"""

from __future__ import annotations

import os

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

_engine: AsyncEngine | None = None


def _async_url(db_url: str) -> str:
    """Rewrite a plain postgres URL to use the asyncpg driver."""
    if db_url.startswith("postgresql://"):
        return db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if db_url.startswith("postgres://"):
        return db_url.replace("postgres://", "postgresql+asyncpg://", 1)
    return db_url


def get_engine() -> AsyncEngine:
    """Return a lazily-initialized async engine singleton.

    Reads SUPABASE_DB_URL from the environment. Profile lookups sit on the
    sign-in path, so the pool is small and pre-pings connections: a dead
    connection should fail fast and be retried, not hang the lookup.
    """
    global _engine
    if _engine is not None:
        return _engine

    db_url = os.environ.get("SUPABASE_DB_URL", "")
    if not db_url:
        raise RuntimeError(
            "SUPABASE_DB_URL environment variable is not set. "
            "Set it to the Supabase direct connection string (session pooler, port 5432)."
        )

    _engine = create_async_engine(
        _async_url(db_url),
        pool_size=5,
        max_overflow=0,
        pool_pre_ping=True,
        pool_timeout=5,
    )
    return _engine


def reset_engine() -> None:
    """Reset the engine singleton so tests can inject mocks."""
    global _engine
    _engine = None
