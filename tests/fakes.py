"""Test doubles shared by the unit tests."""

from __future__ import annotations

from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

from shadow_orm.infrastructure.executor import WriteResult


class FakeExecutor:
    """
    Executor double: records every statement and replays queued results.

    Unqueued writes report one affected row and no insert id; unqueued
    queries return no rows. `fail_on` maps an SQL substring to the exception
    raised when a matching statement runs.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Any]] = []
        self.rows: Deque[List[Dict[str, Any]]] = deque()
        self.writes: Deque[WriteResult] = deque()
        self.fail_on: Dict[str, Exception] = {}
        self.transactions: List[str] = []

    def queue_rows(self, *results: List[Dict[str, Any]]) -> None:
        self.rows.extend(results)

    def queue_write(self, affected_rows: int = 1, insert_id: Any = None) -> None:
        self.writes.append(WriteResult(affected_rows=affected_rows, insert_id=insert_id))

    def _check(self, sql: str) -> None:
        for fragment, exc in self.fail_on.items():
            if fragment in sql:
                raise exc

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> WriteResult:
        self.calls.append(("execute", sql, params))
        self._check(sql)
        return self.writes.popleft() if self.writes else WriteResult(affected_rows=1)

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        self.calls.append(("query", sql, params))
        self._check(sql)
        return self.rows.popleft() if self.rows else []

    async def with_transaction(self, fn: Callable[[Any], Awaitable[Any]]) -> Any:
        try:
            result = await fn(self)
        except BaseException:
            self.transactions.append("rollback")
            raise
        self.transactions.append("commit")
        return result

    @property
    def statements(self) -> List[str]:
        return [sql for _, sql, _ in self.calls]
