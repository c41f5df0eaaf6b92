"""
Migrations package for shadow-orm.

Exports the unit contract, the pluggable sources, and the runner.
"""

from shadow_orm.migrations.base import Migration, MigrationContext, call_step
from shadow_orm.migrations.runner import DEFAULT_LEDGER_TABLE, MigrationRunner, MigrationStatus
from shadow_orm.migrations.sources import DirectorySource, MigrationSource, StaticSource

__all__ = [
    "DEFAULT_LEDGER_TABLE",
    "DirectorySource",
    "Migration",
    "MigrationContext",
    "MigrationRunner",
    "MigrationSource",
    "MigrationStatus",
    "StaticSource",
    "call_step",
]
