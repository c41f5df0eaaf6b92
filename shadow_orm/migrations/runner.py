"""
Migration runner.

Each unit is either Pending or Applied; Applied means its id is in the ledger
table. A unit's ``up`` and its ledger row commit in one transaction, so a
failure leaves the unit Pending and the next `run` retries it. Units run in
lexical id order and the runner stops at the first failure.

There is no cross-process lock: two runners racing on the same unit make the
second ledger insert fail on the primary key, which rolls that transaction
back and surfaces as a StorageError.
"""

from __future__ import annotations

import time
from datetime import datetime
from functools import partial
from typing import List, NamedTuple, Optional

from shadow_orm.errors import InvalidMigration
from shadow_orm.infrastructure.executor import Executor
from shadow_orm.migrations.base import Migration, MigrationContext, call_step
from shadow_orm.migrations.sources import SourceLike, as_source
from shadow_orm.sql import quote
from shadow_orm.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_LEDGER_TABLE = "schema_migrations"


class MigrationStatus(NamedTuple):
    id: str
    name: str
    applied: bool
    executed_at: Optional[datetime] = None


class MigrationRunner:
    def __init__(self, executor: Executor, table: str = DEFAULT_LEDGER_TABLE) -> None:
        self.executor = executor
        self.table = table

    async def ensure_ledger(self) -> None:
        """Create the ledger table if it does not exist yet."""
        await self.executor.execute(
            f"CREATE TABLE IF NOT EXISTS {quote(self.table)} ("
            "id VARCHAR(255) PRIMARY KEY, "
            "name VARCHAR(255) NOT NULL, "
            "executed_at TIMESTAMP DEFAULT NOW())"
        )

    def load(self, source: SourceLike) -> List[Migration]:
        """
        Discover units and sort them by id (plain string order).

        Ids must therefore sort chronologically, e.g. zero-padded timestamps.

        Raises
        ------
        InvalidMigration
            If a unit lacks ``id``/``up`` or two units share an id.
        """
        units = as_source(source).load()
        seen = set()
        for unit in units:
            if unit.id in seen:
                raise InvalidMigration(f"duplicate migration id {unit.id!r}")
            seen.add(unit.id)
        return sorted(units, key=lambda unit: unit.id)

    async def applied_ids(self) -> List[str]:
        rows = await self.executor.query(f"SELECT id FROM {quote(self.table)} ORDER BY id")
        return [row["id"] for row in rows]

    async def pending(self, source: SourceLike) -> List[Migration]:
        await self.ensure_ledger()
        applied = set(await self.applied_ids())
        return [unit for unit in self.load(source) if unit.id not in applied]

    async def _apply(self, migration: Migration, tx: Executor) -> None:
        await call_step(migration.up, MigrationContext(tx))
        await tx.execute(
            f"INSERT INTO {quote(self.table)} (id, name) VALUES (%s, %s)",
            [migration.id, migration.name],
        )

    async def run(self, source: SourceLike) -> List[str]:
        """
        Apply every pending unit in order, one transaction per unit.

        Returns the ids applied by this call. The first failing unit is
        rolled back and its error re-raised; later units are not attempted.
        """
        pending = await self.pending(source)
        if not pending:
            log.info("No pending migrations")
            return []

        applied: List[str] = []
        for migration in pending:
            start = time.perf_counter()
            try:
                await self.executor.with_transaction(partial(self._apply, migration))
            except Exception:
                log.exception(
                    f"[MIGRATION FAILED] {migration.id} {migration.name}",
                    extra={"migration_id": migration.id, "remaining": len(pending) - len(applied)},
                )
                raise
            duration = time.perf_counter() - start
            log.info(
                f"[MIGRATION APPLIED] {migration.id} {migration.name}",
                extra={"migration_id": migration.id, "duration_seconds": round(duration, 3)},
            )
            applied.append(migration.id)
        return applied

    async def status(self, source: SourceLike) -> List[MigrationStatus]:
        """Every known unit plus ledger rows whose unit file is gone, sorted by id."""
        await self.ensure_ledger()
        rows = await self.executor.query(
            f"SELECT id, name, executed_at FROM {quote(self.table)} ORDER BY id"
        )
        ledger = {row["id"]: row for row in rows}
        report = {
            unit.id: MigrationStatus(
                id=unit.id,
                name=unit.name,
                applied=unit.id in ledger,
                executed_at=ledger[unit.id]["executed_at"] if unit.id in ledger else None,
            )
            for unit in self.load(source)
        }
        for migration_id, row in ledger.items():
            report.setdefault(
                migration_id,
                MigrationStatus(id=migration_id, name=row["name"], applied=True, executed_at=row["executed_at"]),
            )
        return [report[key] for key in sorted(report)]

    async def _revert(self, migration: Migration, tx: Executor) -> None:
        await call_step(migration.down, MigrationContext(tx))
        await tx.execute(f"DELETE FROM {quote(self.table)} WHERE id = %s", [migration.id])

    async def revert(self, migration_id: str, source: SourceLike) -> bool:
        """
        Run one applied unit's ``down`` and drop its ledger row, atomically.

        This is an administrative tool for a single unit; it does not walk
        back through later migrations. Returns False if the unit was not
        applied.
        """
        units = {unit.id: unit for unit in self.load(source)}
        migration = units.get(migration_id)
        if migration is None:
            raise InvalidMigration(f"unknown migration id {migration_id!r}")
        if migration.down is None:
            raise InvalidMigration(f"migration {migration_id!r} has no 'down'")

        await self.ensure_ledger()
        if migration_id not in await self.applied_ids():
            log.info("Migration not applied; nothing to revert", extra={"migration_id": migration_id})
            return False

        await self.executor.with_transaction(partial(self._revert, migration))
        log.info(f"[MIGRATION REVERTED] {migration.id} {migration.name}", extra={"migration_id": migration.id})
        return True


__all__ = ["DEFAULT_LEDGER_TABLE", "MigrationRunner", "MigrationStatus"]
