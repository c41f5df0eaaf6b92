"""
shadow-orm - a lightweight object-relational mapping layer for PostgreSQL.

This package lets applications:

- Declare table schemas in code and normalize them once
- Run generic CRUD operations per entity through a parameterized builder
- Track and apply ordered migrations, one transaction per migration
- Generate CREATE TABLE / CREATE INDEX DDL for missing tables, either as a
  migration file or applied directly outside production

All database access goes through an async executor over a psycopg pool, owned
by an explicit `Database` context rather than module globals.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from shadow_orm.config import Settings, get_settings
from shadow_orm.database import Database
from shadow_orm.domain import (
    Entity,
    Field,
    FieldType,
    ForeignKey,
    Index,
    ModelRegistry,
    ReferentialAction,
    define,
    primary_key,
)
from shadow_orm.errors import (
    EmptyWrite,
    ForbiddenInProduction,
    InvalidMigration,
    InvalidSchema,
    MissingFilter,
    MissingPrimaryKey,
    OrmError,
    StorageError,
    UnknownColumn,
    UnsupportedUpsert,
)
from shadow_orm.ids import new_uuid, next_id
from shadow_orm.infrastructure import Executor, PoolExecutor, WriteResult
from shadow_orm.migrations import (
    DirectorySource,
    Migration,
    MigrationContext,
    MigrationRunner,
    MigrationSource,
    StaticSource,
)
from shadow_orm.repository import Repository
from shadow_orm.schema_sync import SchemaSynchronizer, SyncResult
from shadow_orm.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Context
    "Database",
    # Schema model
    "Entity",
    "Field",
    "FieldType",
    "ForeignKey",
    "Index",
    "ModelRegistry",
    "ReferentialAction",
    "define",
    "primary_key",
    # Executor boundary
    "Executor",
    "PoolExecutor",
    "WriteResult",
    # CRUD
    "Repository",
    # Migrations
    "DirectorySource",
    "Migration",
    "MigrationContext",
    "MigrationRunner",
    "MigrationSource",
    "StaticSource",
    # Schema sync
    "SchemaSynchronizer",
    "SyncResult",
    # Ids
    "new_uuid",
    "next_id",
    # Errors
    "EmptyWrite",
    "ForbiddenInProduction",
    "InvalidMigration",
    "InvalidSchema",
    "MissingFilter",
    "MissingPrimaryKey",
    "OrmError",
    "StorageError",
    "UnknownColumn",
    "UnsupportedUpsert",
    # Logging
    "configure_logging",
    "get_logger",
]
