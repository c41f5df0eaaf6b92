"""
Parameterized statement builder used by the repository.

Identifiers are only ever taken from Entity metadata, which is validated
against an identifier allow-list at definition time; values are always bound
as ``%s`` parameters and serialized by their declared field type.
"""

from __future__ import annotations

from typing import Any, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from shadow_orm.domain.schema import Entity


class Statement(NamedTuple):
    sql: str
    params: List[Any]


def quote(identifier: str) -> str:
    """Quote an SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def column_list(columns: Sequence[str]) -> str:
    return ", ".join(quote(column) for column in columns)


def placeholders(count: int) -> str:
    return ", ".join(["%s"] * count)


def where_clause(entity: Entity, filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
    """
    Build an exact-match AND clause. None matches NULL.

    Returns an empty clause for an empty filter.
    """
    if not filters:
        return "", []
    conditions: List[str] = []
    params: List[Any] = []
    for name, value in filters.items():
        field = entity.field(name)
        if value is None:
            conditions.append(f"{quote(name)} IS NULL")
        else:
            conditions.append(f"{quote(name)} = %s")
            params.append(field.to_db(value))
    return " WHERE " + " AND ".join(conditions), params


def select(entity: Entity, filters: Optional[Mapping[str, Any]] = None, limit: Optional[int] = None) -> Statement:
    where, params = where_clause(entity, filters)
    sql = f"SELECT * FROM {quote(entity.name)}{where}"
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return Statement(sql, params)


def select_count(entity: Entity, filters: Optional[Mapping[str, Any]] = None) -> Statement:
    where, params = where_clause(entity, filters)
    return Statement(f"SELECT COUNT(*) AS count FROM {quote(entity.name)}{where}", params)


def select_by_keys(entity: Entity, keys: Sequence[Any]) -> Statement:
    field = entity.field(entity.primary_key)
    return Statement(
        f"SELECT * FROM {quote(entity.name)} WHERE {quote(field.name)} = ANY(%s)",
        [[field.to_db(key) for key in keys]],
    )


def select_key_range(entity: Entity, first: Any, count: int) -> Statement:
    """Rows whose key lies in ``[first, first + count)``, ordered by key."""
    pk = quote(entity.primary_key)
    return Statement(
        f"SELECT * FROM {quote(entity.name)} WHERE {pk} >= %s AND {pk} < %s ORDER BY {pk}",
        [first, first + count],
    )


def insert(
    entity: Entity,
    columns: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    returning_key: bool = False,
) -> Statement:
    """Single- or multi-row INSERT; missing keys in later rows bind NULL."""
    fields = [entity.field(column) for column in columns]
    groups = ", ".join(f"({placeholders(len(fields))})" for _ in rows)
    params = [field.to_db(row.get(field.name)) for row in rows for field in fields]
    sql = f"INSERT INTO {quote(entity.name)} ({column_list(columns)}) VALUES {groups}"
    if returning_key:
        sql += f" RETURNING {quote(entity.primary_key)}"
    return Statement(sql, params)


def update(entity: Entity, filters: Mapping[str, Any], patch: Mapping[str, Any]) -> Statement:
    assignments = ", ".join(f"{quote(name)} = %s" for name in patch)
    params = [entity.field(name).to_db(value) for name, value in patch.items()]
    where, where_params = where_clause(entity, filters)
    return Statement(f"UPDATE {quote(entity.name)} SET {assignments}{where}", params + where_params)


def delete(entity: Entity, filters: Optional[Mapping[str, Any]] = None) -> Statement:
    where, params = where_clause(entity, filters)
    return Statement(f"DELETE FROM {quote(entity.name)}{where}", params)


def upsert(entity: Entity, row: Mapping[str, Any]) -> Statement:
    """INSERT that overwrites every supplied non-key column on a key conflict."""
    pk = entity.primary_key
    columns = list(row)
    statement = insert(entity, columns, [row])
    updates = [column for column in columns if column != pk]
    if updates:
        assignments = ", ".join(f"{quote(column)} = EXCLUDED.{quote(column)}" for column in updates)
        conflict = f" ON CONFLICT ({quote(pk)}) DO UPDATE SET {assignments}"
    else:
        conflict = f" ON CONFLICT ({quote(pk)}) DO NOTHING"
    return Statement(statement.sql + conflict, statement.params)


__all__ = [
    "Statement",
    "column_list",
    "delete",
    "insert",
    "placeholders",
    "quote",
    "select",
    "select_by_keys",
    "select_count",
    "select_key_range",
    "update",
    "upsert",
    "where_clause",
]
