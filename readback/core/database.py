"""
Async PostgreSQL connection pool used by the relational model-state store.

The pool is a module-level singleton created lazily from Settings. It is only
touched when STATE_BACKEND=postgres; the in-memory backend never imports a
connection.

Usage:
    await init_db()
    row = await execute_query_one(SELECT_MODEL_STATE, "default")
    await close_db()
"""

import logging
from typing import Any, Optional

import asyncpg
from asyncpg import Pool

from readback.core.config import get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Global Pool Singleton
# =============================================================================

_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================


async def init_db() -> Pool:
    """
    Initialize the connection pool (idempotent).

    Raises:
        ValueError: If DATABASE_URL is not configured.
        asyncpg.PostgresError / OSError: If the database is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ValueError("DATABASE_URL is required for the postgres state backend")

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
        logger.info("Database pool initialized")

    return _pool


async def get_db_pool() -> Pool:
    """Return the pool, creating it on first use."""
    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"
    return _pool


async def close_db() -> None:
    """Close the pool gracefully. Safe to call when no pool exists."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


# =============================================================================
# Query Execution Helpers
# =============================================================================


async def execute_query_one(query: str, *args: Any) -> Optional[asyncpg.Record]:
    """Execute a query and return the first row or None."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetchrow(query, *args)


async def execute_command(query: str, *args: Any) -> str:
    """Execute an INSERT/UPDATE/DELETE and return the status string."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.execute(query, *args)
