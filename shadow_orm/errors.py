"""
Exception taxonomy for shadow-orm.

Caller mistakes (bad schema, empty writes, missing filters, bad migration
units) subclass `ValueError`; environment and storage failures subclass
`RuntimeError`. Everything derives from `OrmError` so callers can catch the
whole family in one place.
"""

from __future__ import annotations

from typing import Optional


class OrmError(Exception):
    """Base class for every error raised by shadow-orm."""


class InvalidSchema(OrmError, ValueError):
    """An entity declaration failed normalization or validation."""


class MissingPrimaryKey(OrmError, ValueError):
    """A repository was built over an entity without a primary-key field."""


class UnknownColumn(OrmError, ValueError):
    """A row, patch or filter names a column the entity does not declare."""


class EmptyWrite(OrmError, ValueError):
    """A write request has no insertable columns."""


class MissingFilter(OrmError, ValueError):
    """A write that requires a filter was called with an empty one."""


class UnsupportedUpsert(OrmError, ValueError):
    """Upsert is impossible for this entity or row."""


class InvalidMigration(OrmError, ValueError):
    """A discovered migration unit does not satisfy the unit contract."""


class ForbiddenInProduction(OrmError, RuntimeError):
    """Direct DDL application was attempted in a production environment."""


class StorageError(OrmError, RuntimeError):
    """
    A failure surfaced by the database driver.

    Carries the driver message and, when the server reported one, the
    SQLSTATE code (e.g. ``23505`` for a unique violation). The original
    driver exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, sqlstate: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.sqlstate = sqlstate


__all__ = [
    "OrmError",
    "InvalidSchema",
    "MissingPrimaryKey",
    "UnknownColumn",
    "EmptyWrite",
    "MissingFilter",
    "UnsupportedUpsert",
    "InvalidMigration",
    "ForbiddenInProduction",
    "StorageError",
]
