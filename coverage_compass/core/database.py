"""
Async PostgreSQL connection pool for the snapshot history tables.

The pool is created once at application startup (FastAPI lifespan) and handed
to the PostgreSQL history adapter. Scoring code never touches the pool
directly; it only sees the HistoryStore contract.

Key Components:
- init_db(): Create the pool (no-op when DATABASE_URL is not configured)
- get_db_pool(): Return the pool, initializing lazily
- close_db(): Close the pool at shutdown
- is_db_configured(): Whether a DATABASE_URL is present

Usage:
    await init_db()
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM compliance_history LIMIT 10")
    await close_db()
"""

from typing import Optional

import asyncpg
from asyncpg import Pool

from coverage_compass.core.config import get_settings


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


def is_db_configured() -> bool:
    """Return True when a DATABASE_URL has been configured."""
    return bool(get_settings().database_url)


async def init_db() -> Optional[Pool]:
    """
    Initialize the database connection pool.

    Idempotent: an existing pool is returned unchanged. When no DATABASE_URL
    is configured the function returns None and the application falls back to
    in-memory history.

    Returns:
        The asyncpg pool, or None when the database is not configured.

    Raises:
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            return None

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        RuntimeError: If DATABASE_URL is not configured.
        asyncpg.PostgresError: If connection to the database fails during lazy init.
    """
    if _pool is None:
        await init_db()

    if _pool is None:
        raise RuntimeError("DATABASE_URL is not configured")

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Idempotent - calling it when the pool is not initialized has no effect.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
