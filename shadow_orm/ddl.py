"""
DDL text for entity tables and indexes (PostgreSQL dialect).
"""

from __future__ import annotations

from typing import Dict, List

from shadow_orm.domain.schema import Entity, Field, FieldType, ForeignKey
from shadow_orm.sql import column_list, quote

TYPE_MAP: Dict[FieldType, str] = {
    FieldType.STRING: "VARCHAR(255)",
    FieldType.INT: "INTEGER",
    FieldType.FLOAT: "DOUBLE PRECISION",
    FieldType.BOOLEAN: "BOOLEAN",
    FieldType.JSON: "JSONB",
    FieldType.DATETIME: "TIMESTAMP",
}


def literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def format_default(field: Field) -> str:
    value = field.default
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)) and field.type is not FieldType.JSON:
        return str(value)
    return literal(str(field.to_db(value)))


def column_definition(field: Field) -> str:
    parts = [quote(field.name), TYPE_MAP[field.type]]
    if field.primary_key:
        parts.append("PRIMARY KEY")
    if field.auto_increment:
        parts.append("GENERATED BY DEFAULT AS IDENTITY")
    if field.required or field.primary_key:
        parts.append("NOT NULL")
    if field.unique and not field.primary_key:
        parts.append("UNIQUE")
    if field.has_default:
        parts.append(f"DEFAULT {format_default(field)}")
    return " ".join(parts)


def foreign_key_clause(fk: ForeignKey) -> str:
    clause = (
        f"FOREIGN KEY ({quote(fk.column)}) "
        f"REFERENCES {quote(fk.referenced_table)} ({quote(fk.referenced_column)})"
    )
    if fk.on_delete:
        clause += f" ON DELETE {fk.on_delete.value}"
    if fk.on_update:
        clause += f" ON UPDATE {fk.on_update.value}"
    return clause


def create_table_sql(entity: Entity) -> str:
    """One CREATE TABLE, columns in declaration order, foreign keys inline."""
    lines = [column_definition(field) for field in entity.fields.values()]
    lines.extend(foreign_key_clause(fk) for fk in entity.foreign_keys)
    body = ",\n  ".join(lines)
    return f"CREATE TABLE {quote(entity.name)} (\n  {body}\n);"


def create_index_sql(entity: Entity) -> List[str]:
    """One CREATE INDEX per declared index, default names ``idx_<table>_<cols>``."""
    statements = []
    for index in entity.indexes:
        unique = "UNIQUE " if index.unique else ""
        statements.append(
            f"CREATE {unique}INDEX {quote(index.resolved_name(entity.name))} "
            f"ON {quote(entity.name)} ({column_list(index.columns)});"
        )
    return statements


def entity_ddl(entity: Entity) -> List[str]:
    return [create_table_sql(entity), *create_index_sql(entity)]


__all__ = [
    "TYPE_MAP",
    "column_definition",
    "create_index_sql",
    "create_table_sql",
    "entity_ddl",
    "foreign_key_clause",
    "format_default",
    "literal",
]
