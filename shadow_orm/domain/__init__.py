"""
Domain package for shadow-orm.

Exports the schema model (fields, keys, indexes, entities) and the model
registry. Keep this package free of I/O: it is pure data plus validation.
"""

from shadow_orm.domain.registry import ModelRegistry
from shadow_orm.domain.schema import (
    Entity,
    Field,
    FieldType,
    ForeignKey,
    Index,
    ReferentialAction,
    define,
    primary_key,
)

__all__ = [
    "Entity",
    "Field",
    "FieldType",
    "ForeignKey",
    "Index",
    "ModelRegistry",
    "ReferentialAction",
    "define",
    "primary_key",
]
