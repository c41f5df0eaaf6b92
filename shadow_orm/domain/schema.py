"""
Schema model for shadow-orm.

Entities are declared with a compact shorthand (a bare type name, or a mapping
of flags) and normalized once into frozen pydantic models. Everything
downstream (the repository, the DDL generator) reads the canonical form only.

Example:
    users = define(
        "users",
        {
            "id": {"type": "int", "pk": True, "autoIncrement": True},
            "email": {"type": "string", "required": True, "unique": True},
            "created_at": "datetime",
        },
        indexes=[{"columns": ["created_at"]}],
    )
    assert primary_key(users) == "id"
"""
from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

import pydantic
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from shadow_orm.errors import InvalidSchema, UnknownColumn

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _identifier(value: str, what: str) -> str:
    if not isinstance(value, str) or not _IDENTIFIER.match(value):
        raise ValueError(f"{what} {value!r} is not a valid identifier")
    return value


class FieldType(str, Enum):
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOLEAN = "boolean"
    JSON = "json"
    DATETIME = "datetime"


class ReferentialAction(str, Enum):
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"


class Field(BaseModel):
    """
    One column of an entity in canonical form.

    `default` is only emitted in DDL when it was explicitly supplied, so a
    declared ``default=None`` (DEFAULT NULL) differs from no default at all.
    """

    name: str
    type: FieldType
    primary_key: bool = pydantic.Field(False, alias="pk")
    auto_increment: bool = pydantic.Field(False, alias="autoIncrement")
    required: bool = False
    unique: bool = False
    default: Any = None

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        return _identifier(value, "field name")

    @model_validator(mode="after")
    def _auto_increment_is_integer(self) -> "Field":
        if self.auto_increment and self.type is not FieldType.INT:
            raise ValueError(f"field {self.name!r}: autoIncrement requires type 'int'")
        if self.auto_increment and self.has_default:
            raise ValueError(f"field {self.name!r}: autoIncrement and default are exclusive")
        return self

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    @property
    def is_generated_key(self) -> bool:
        """True when the database assigns this column (auto-increment primary key)."""
        return self.primary_key and self.auto_increment

    def to_db(self, value: Any) -> Any:
        """Serialize a value for this column based on the declared type."""
        if value is None:
            return None
        if self.type is FieldType.JSON:
            return json.dumps(value)
        if self.type is FieldType.DATETIME and isinstance(value, date):
            if isinstance(value, datetime) and value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            return value.strftime(DATETIME_FORMAT)
        return value


class ForeignKey(BaseModel):
    column: str
    referenced_table: str
    referenced_column: str
    on_delete: Optional[ReferentialAction] = pydantic.Field(None, alias="onDelete")
    on_update: Optional[ReferentialAction] = pydantic.Field(None, alias="onUpdate")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _flatten_references(cls, data: Any) -> Any:
        # {"column": "user_id", "references": {"table": "users", "column": "id"}}
        if isinstance(data, Mapping) and "references" in data:
            data = dict(data)
            references = data.pop("references") or {}
            data.setdefault("referenced_table", references.get("table"))
            data.setdefault("referenced_column", references.get("column"))
        return data

    @field_validator("column", "referenced_table", "referenced_column")
    @classmethod
    def _valid_identifiers(cls, value: str) -> str:
        return _identifier(value, "foreign key identifier")


class Index(BaseModel):
    name: Optional[str] = None
    columns: Tuple[str, ...] = pydantic.Field(..., min_length=1)
    unique: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _identifier(value, "index name")

    def resolved_name(self, table: str) -> str:
        return self.name or "_".join(("idx", table, *self.columns))


class Entity(BaseModel):
    """
    A normalized table declaration.

    Field order is significant: it is the column order of generated DDL and
    of insert statements. `fields` is a read-only view once validated.
    """

    name: str
    fields: Mapping[str, Field]
    foreign_keys: Tuple[ForeignKey, ...] = ()
    indexes: Tuple[Index, ...] = ()

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        return _identifier(value, "entity name")

    @model_validator(mode="after")
    def _check_structure(self) -> "Entity":
        for key, field in self.fields.items():
            if key != field.name:
                raise ValueError(f"field key {key!r} does not match field name {field.name!r}")

        keys = [field.name for field in self.fields.values() if field.primary_key]
        if not keys:
            raise ValueError(f"entity {self.name!r} has no primary key")
        if len(keys) > 1:
            raise ValueError(f"entity {self.name!r} declares several primary keys: {keys}")

        for fk in self.foreign_keys:
            if fk.column not in self.fields:
                raise ValueError(f"foreign key column {fk.column!r} is not a field of {self.name!r}")
        for index in self.indexes:
            missing = [column for column in index.columns if column not in self.fields]
            if missing:
                raise ValueError(f"index columns {missing} are not fields of {self.name!r}")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        return self

    @property
    def primary_field(self) -> Optional[Field]:
        for field in self.fields.values():
            if field.primary_key:
                return field
        return None

    @property
    def primary_key(self) -> str:
        field = self.primary_field
        if field is None:
            raise InvalidSchema(f"entity {self.name!r} has no primary key")
        return field.name

    def field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError:
            raise UnknownColumn(f"{self.name!r} has no column {name!r}") from None


FieldSpec = Union[str, FieldType, Field, Mapping[str, Any]]


def _normalize_field(name: str, spec: FieldSpec) -> Any:
    if isinstance(spec, Field):
        return {**spec.model_dump(exclude_unset=True), "name": name}
    if isinstance(spec, (str, FieldType)):
        return {"name": name, "type": spec, "required": False}
    if isinstance(spec, Mapping):
        return {"required": False, **spec, "name": name}
    raise InvalidSchema(f"field {name!r}: unsupported spec of type {type(spec).__name__}")


def define(
    name: str,
    fields: Mapping[str, FieldSpec],
    foreign_keys: Optional[Iterable[Any]] = None,
    indexes: Optional[Iterable[Any]] = None,
) -> Entity:
    """
    Build a normalized Entity from shorthand field specs.

    Raises
    ------
    InvalidSchema
        If any part of the declaration is invalid, including when no field is
        marked as primary key.
    """
    normalized = {key: _normalize_field(key, spec) for key, spec in fields.items()}
    try:
        return Entity(
            name=name,
            fields=normalized,
            foreign_keys=tuple(foreign_keys or ()),
            indexes=tuple(indexes or ()),
        )
    except pydantic.ValidationError as exc:
        details = "; ".join(error["msg"] for error in exc.errors())
        raise InvalidSchema(f"invalid schema for {name!r}: {details}") from exc


def primary_key(entity: Entity) -> str:
    """Return the name of the entity's single primary-key field."""
    return entity.primary_key


__all__ = [
    "DATETIME_FORMAT",
    "FieldType",
    "ReferentialAction",
    "Field",
    "ForeignKey",
    "Index",
    "Entity",
    "define",
    "primary_key",
]
