"""
Generic CRUD engine, one Repository per entity.

All operations are coroutines that go through the executor boundary. Each
call is its own round trip (or pair of round trips); no lock is held between
a write and the read that follows it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from shadow_orm import sql
from shadow_orm.domain.schema import Entity, Field
from shadow_orm.errors import EmptyWrite, MissingFilter, MissingPrimaryKey, UnsupportedUpsert
from shadow_orm.infrastructure.executor import Executor
from shadow_orm.utils.logging import get_logger

log = get_logger(__name__)

Row = Dict[str, Any]
Filter = Mapping[str, Any]


class Repository:
    """
    Data access for a single entity.

    Parameters
    ----------
    entity : Entity
        The normalized table declaration.
    executor : Executor
        Where statements run; a pool executor or a transaction-scoped one.
    """

    def __init__(self, entity: Entity, executor: Executor) -> None:
        key = entity.primary_field
        if key is None:
            raise MissingPrimaryKey(f"entity {entity.name!r} has no primary key")
        self.entity = entity
        self.executor = executor
        self._key: Field = key

    @property
    def primary_key(self) -> str:
        return self._key.name

    def bind(self, executor: Executor) -> "Repository":
        """Same entity, different executor (e.g. inside `with_transaction`)."""
        return type(self)(self.entity, executor)

    def _insert_columns(self, row: Mapping[str, Any]) -> List[str]:
        columns = [column for column in row if not (column == self._key.name and self._key.is_generated_key)]
        for column in columns:
            self.entity.field(column)
        if not columns:
            raise EmptyWrite(f"nothing to insert into {self.entity.name!r}")
        return columns

    # ------------------------------------------------------------------ create

    async def create(self, row: Mapping[str, Any]) -> Row:
        """
        Insert one row.

        Returns the persisted row when the database generated the key,
        otherwise the row as submitted.
        """
        columns = self._insert_columns(row)
        statement = sql.insert(self.entity, columns, [row], returning_key=self._key.is_generated_key)
        result = await self.executor.execute(*statement)
        if result.insert_id is not None:
            created = await self.find_by_id(result.insert_id)
            if created is not None:
                return created
        return dict(row)

    async def create_many(self, rows: Sequence[Mapping[str, Any]]) -> List[Row]:
        """
        Insert several homogeneous rows in one statement.

        The first row's keys define the column list. Inserted rows are
        re-read assuming the generated keys form a contiguous range starting
        at the first reported key, which only holds for a single writer.
        """
        if not rows:
            return []
        columns = self._insert_columns(rows[0])
        statement = sql.insert(self.entity, columns, rows, returning_key=self._key.is_generated_key)
        result = await self.executor.execute(*statement)
        if result.insert_id is None:
            return [dict(row) for row in rows]
        return await self.executor.query(*sql.select_key_range(self.entity, result.insert_id, len(rows)))

    async def bulk_insert(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert several homogeneous rows and return the affected-row count."""
        if not rows:
            return 0
        columns = self._insert_columns(rows[0])
        result = await self.executor.execute(*sql.insert(self.entity, columns, rows))
        log.debug("Bulk insert", extra={"table": self.entity.name, "rows": result.affected_rows})
        return result.affected_rows

    # -------------------------------------------------------------------- read

    async def find(self, filters: Optional[Filter] = None) -> List[Row]:
        return await self.executor.query(*sql.select(self.entity, filters))

    async def find_one(self, filters: Optional[Filter] = None) -> Optional[Row]:
        rows = await self.executor.query(*sql.select(self.entity, filters, limit=1))
        return rows[0] if rows else None

    async def find_by_id(self, key: Any) -> Optional[Row]:
        return await self.find_one({self._key.name: key})

    async def find_many_by_ids(self, keys: Sequence[Any]) -> List[Row]:
        if not keys:
            return []
        return await self.executor.query(*sql.select_by_keys(self.entity, keys))

    async def count(self, filters: Optional[Filter] = None) -> int:
        rows = await self.executor.query(*sql.select_count(self.entity, filters))
        return int(rows[0]["count"]) if rows else 0

    async def exists(self, filters: Optional[Filter] = None) -> bool:
        return await self.count(filters) > 0

    # ------------------------------------------------------------------ update

    def _require_filter(self, filters: Optional[Filter], operation: str) -> None:
        if not filters:
            raise MissingFilter(f"{operation} on {self.entity.name!r} requires a non-empty filter")

    async def update(self, filters: Filter, patch: Mapping[str, Any]) -> Optional[Row]:
        """
        Update matching rows and return the first row matching `filters` afterwards.

        An empty patch writes nothing and just returns the current match.
        """
        self._require_filter(filters, "update")
        if patch:
            await self.executor.execute(*sql.update(self.entity, filters, patch))
        return await self.find_one(filters)

    async def update_many(self, filters: Filter, patch: Mapping[str, Any]) -> int:
        self._require_filter(filters, "update_many")
        if not patch:
            return 0
        result = await self.executor.execute(*sql.update(self.entity, filters, patch))
        return result.affected_rows

    # ------------------------------------------------------------------ delete

    async def delete(self, filters: Optional[Filter] = None) -> None:
        """Delete matching rows; an empty filter deletes every row."""
        await self.executor.execute(*sql.delete(self.entity, filters))

    async def delete_many(self, filters: Optional[Filter] = None) -> int:
        result = await self.executor.execute(*sql.delete(self.entity, filters))
        return result.affected_rows

    # ------------------------------------------------------------------ upsert

    async def upsert(self, row: Mapping[str, Any]) -> Optional[Row]:
        """
        Insert `row`, or overwrite its non-key columns if the key exists.

        The caller must supply the key, so entities with an auto-increment
        key are not supported.
        """
        if self._key.auto_increment:
            raise UnsupportedUpsert(f"{self.entity.name!r} has an auto-increment key; upsert needs caller keys")
        if row.get(self._key.name) is None:
            raise UnsupportedUpsert(f"upsert into {self.entity.name!r} requires a value for {self._key.name!r}")
        self._insert_columns(row)
        await self.executor.execute(*sql.upsert(self.entity, row))
        return await self.find_by_id(row[self._key.name])

    def __repr__(self) -> str:
        return f"Repository({self.entity.name!r})"


__all__ = ["Repository"]
