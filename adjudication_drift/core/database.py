"""
Async PostgreSQL connection pool for the issue store.

The pool is a module-level singleton shared by every request. It is created in
the FastAPI lifespan when a DATABASE_URL is configured and is used by the
PostgreSQL issue source. The analysis engine never touches it directly.

Connection Pool Configuration:
- min_size: 1
- max_size: 10
- command_timeout: 60 seconds

Usage:
    # At application startup (in FastAPI lifespan)
    await init_db()

    # In the issue source
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT ...")

    # At application shutdown
    await close_db()
"""

import logging
from typing import Optional

import asyncpg
from asyncpg import Pool

from adjudication_drift.core.config import get_settings
from adjudication_drift.core.errors import SourceUnavailable

logger = logging.getLogger(__name__)


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() succeeds
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Optional[Pool]:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool when already initialized. When no
    DATABASE_URL is configured the pool is left unset and None is returned.

    Returns:
        The asyncpg pool, or None when no database is configured.

    Raises:
        asyncpg.PostgresError: If connecting to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            logger.warning("DATABASE_URL not set; issue store pool not created")
            return None

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=1,
            max_size=10,
            command_timeout=60,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing it if needed.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        SourceUnavailable: If no database is configured or the connection
            cannot be established.
    """
    if _pool is None:
        try:
            await init_db()
        except (asyncpg.PostgresError, OSError) as e:
            raise SourceUnavailable(f"Could not connect to issue store: {e}") from e

    if _pool is None:
        raise SourceUnavailable("Issue store is not configured (DATABASE_URL unset)")

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Safe to call when the pool was never created. Subsequent calls to
    get_db_pool() create a new pool.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
