"""
Executor boundary: the only layer that talks to the psycopg driver.

Everything above this module sees three operations:

- ``execute(sql, params)`` -> WriteResult(affected_rows, insert_id)
- ``query(sql, params)`` -> list of row dicts
- ``with_transaction(fn)`` -> fn's result; ``fn`` receives a transaction-scoped
  executor, an exception rolls back, a normal return commits.

Driver exceptions are re-raised as StorageError with the driver message and
SQLSTATE; nothing is retried here.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generator,
    List,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)

import psycopg
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from shadow_orm.errors import StorageError
from shadow_orm.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")
Params = Optional[Sequence[Any]]
Row = Dict[str, Any]


@dataclass(frozen=True)
class WriteResult:
    """
    Outcome of a write statement.

    `insert_id` is the first value returned by an ``INSERT ... RETURNING``
    clause, or None when the statement returned nothing.
    """

    affected_rows: int
    insert_id: Optional[Any] = None


@runtime_checkable
class Executor(Protocol):
    """Contract shared by the pool-backed and transaction-scoped executors."""

    async def execute(self, sql: str, params: Params = None) -> WriteResult:
        ...

    async def query(self, sql: str, params: Params = None) -> List[Row]:
        ...

    async def with_transaction(self, fn: Callable[["Executor"], Awaitable[T]]) -> T:
        ...


@contextmanager
def translate_errors() -> Generator[None, None, None]:
    """Re-raise psycopg errors (pool timeouts included) as StorageError."""
    try:
        yield
    except psycopg.Error as exc:
        message = str(exc).strip() or type(exc).__name__
        raise StorageError(message, sqlstate=getattr(exc, "sqlstate", None)) from exc


async def _execute(conn: AsyncConnection, sql: str, params: Params) -> WriteResult:
    log.debug("execute", extra={"sql": sql})
    async with conn.cursor() as cur:
        await cur.execute(sql, params)
        insert_id = None
        if cur.description is not None:
            row = await cur.fetchone()
            insert_id = row[0] if row else None
        return WriteResult(affected_rows=max(cur.rowcount, 0), insert_id=insert_id)


async def _query(conn: AsyncConnection, sql: str, params: Params) -> List[Row]:
    log.debug("query", extra={"sql": sql})
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(sql, params)
        return list(await cur.fetchall())


class ConnectionExecutor:
    """
    Executor bound to one connection, used inside a transaction.

    Nested `with_transaction` calls open a savepoint on the same connection.
    """

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: Params = None) -> WriteResult:
        with translate_errors():
            return await _execute(self._conn, sql, params)

    async def query(self, sql: str, params: Params = None) -> List[Row]:
        with translate_errors():
            return await _query(self._conn, sql, params)

    async def with_transaction(self, fn: Callable[[Executor], Awaitable[T]]) -> T:
        with translate_errors():
            async with self._conn.transaction():
                return await fn(self)


class PoolExecutor:
    """
    Executor backed by a psycopg AsyncConnectionPool.

    Every call borrows a connection for one round trip and returns it; the
    pool's size ceiling queues excess callers.
    """

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    @property
    def pool(self) -> AsyncConnectionPool:
        return self._pool

    async def execute(self, sql: str, params: Params = None) -> WriteResult:
        with translate_errors():
            async with self._pool.connection() as conn:
                return await _execute(conn, sql, params)

    async def query(self, sql: str, params: Params = None) -> List[Row]:
        with translate_errors():
            async with self._pool.connection() as conn:
                return await _query(conn, sql, params)

    async def with_transaction(self, fn: Callable[[Executor], Awaitable[T]]) -> T:
        with translate_errors():
            async with self._pool.connection() as conn:
                async with conn.transaction():
                    return await fn(ConnectionExecutor(conn))

    async def close(self) -> None:
        await self._pool.close()


__all__ = [
    "ConnectionExecutor",
    "Executor",
    "Params",
    "PoolExecutor",
    "Row",
    "WriteResult",
    "translate_errors",
]
