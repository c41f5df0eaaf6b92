"""
Connection pool factory for shadow-orm.

Builds the psycopg AsyncConnectionPool behind the executor boundary. The pool
is created closed and opened explicitly so bootstrap can retry transient
connection failures with tenacity; once open it lives until the owning
Database context closes it.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg_pool import AsyncConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from shadow_orm.config import Settings, get_settings
from shadow_orm.utils.logging import get_logger

log = get_logger(__name__)


def create_async_pool(
    settings: Optional[Settings] = None,
    dsn_override: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
) -> AsyncConnectionPool:
    """
    Create (but do not open) the asynchronous connection pool.

    Parameters
    ----------
    settings : Settings, optional
        Source of the DSN and pool sizing; defaults to the cached settings.
    dsn_override : str, optional
        Connection string to use instead of the configured one.
    min_size : int, optional
        Minimum number of idle connections to keep.
    max_size : int, optional
        Maximum total connections in the pool.

    Returns
    -------
    AsyncConnectionPool
        A pool that still has to be opened with `open_pool`.
    """
    settings = settings or get_settings()
    return AsyncConnectionPool(
        conninfo=dsn_override or settings.dsn,
        min_size=min_size or settings.pool_min_size,
        max_size=max_size or settings.pool_max_size,
        timeout=settings.pool_timeout,
        open=False,
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, OSError)),
    reraise=True,
)
async def open_pool(pool: AsyncConnectionPool, timeout: float = 30.0) -> AsyncConnectionPool:
    """
    Open the pool and wait for its minimum connections, with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors (PoolTimeout is an OperationalError).

    Raises
    ------
    psycopg.OperationalError
        If the pool cannot be filled after all retry attempts.
    """
    log.debug("Opening connection pool", extra={"min_size": pool.min_size, "max_size": pool.max_size})
    await pool.open(wait=True, timeout=timeout)
    return pool


__all__ = ["create_async_pool", "open_pool"]
