"""
Migration unit contract.

A unit is ``{id, name, up(ctx), down?(ctx)}``; ``ctx`` exposes ``exec`` and
``query`` bound to the transaction the runner opened for that unit. ``up`` and
``down`` may be plain functions or coroutines.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from shadow_orm.errors import InvalidMigration
from shadow_orm.infrastructure.executor import Executor, Params, Row, WriteResult


class MigrationContext:
    """What a migration's ``up``/``down`` can do: run statements in its transaction."""

    def __init__(self, executor: Executor) -> None:
        self._executor = executor

    async def exec(self, sql: str, params: Params = None) -> WriteResult:
        return await self._executor.execute(sql, params)

    async def query(self, sql: str, params: Params = None) -> List[Row]:
        return await self._executor.query(sql, params)


Step = Callable[[MigrationContext], Union[Awaitable[None], None]]


@dataclass(frozen=True)
class Migration:
    id: str
    name: str
    up: Step
    down: Optional[Step] = None

    @classmethod
    def from_object(cls, obj: Any, origin: str = "<unknown>") -> "Migration":
        """
        Coerce a Migration, a mapping, or a module/object with ``id``/``up``
        attributes into a Migration.

        Raises
        ------
        InvalidMigration
            If the unit has no string ``id`` or no callable ``up``.
        """
        if isinstance(obj, Migration):
            return obj
        if isinstance(obj, Mapping):
            get = obj.get
        else:
            def get(key: str, default: Any = None) -> Any:
                return getattr(obj, key, default)

        migration_id, up, down = get("id"), get("up"), get("down")
        if not isinstance(migration_id, str) or not migration_id:
            raise InvalidMigration(f"{origin}: migration has no string 'id'")
        if not callable(up):
            raise InvalidMigration(f"{origin}: migration {migration_id!r} has no callable 'up'")
        if down is not None and not callable(down):
            raise InvalidMigration(f"{origin}: migration {migration_id!r} has a non-callable 'down'")
        return cls(id=migration_id, name=str(get("name") or migration_id), up=up, down=down)


async def call_step(step: Step, ctx: MigrationContext) -> None:
    result = step(ctx)
    if inspect.isawaitable(result):
        await result


__all__ = ["Migration", "MigrationContext", "Step", "call_step"]
