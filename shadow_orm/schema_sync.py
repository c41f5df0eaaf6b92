"""
Schema synchronizer: create the tables of registered entities that do not
exist yet.

Only table presence is compared. Columns of an existing table are never
inspected, so drift on existing tables is neither detected nor corrected.
The generated DDL can be applied directly (refused in production) or written
out as a migration unit for the runner, which is the path to prefer outside
local development.

Usage:
    sync = SchemaSynchronizer(executor, production=settings.is_production)
    statements = await sync.plan(registry)
    sync.emit(statements, "migrations")
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Mapping, NamedTuple, Optional, Sequence, Set, Union

from shadow_orm.ddl import entity_ddl
from shadow_orm.domain.schema import Entity
from shadow_orm.errors import ForbiddenInProduction
from shadow_orm.infrastructure.executor import Executor
from shadow_orm.utils.logging import get_logger

log = get_logger(__name__)

AUTO_SYNC_NAME = "auto_sync"

_MIGRATION_TEMPLATE = '''"""
Schema sync generated by shadow-orm at {generated_at}.
"""

from shadow_orm.migrations import Migration


async def up(ctx):
{body}


migration = Migration(id={migration_id!r}, name={name!r}, up=up)
'''


class SyncResult(NamedTuple):
    statements: List[str]
    migration_path: Optional[Path] = None
    applied: bool = False


def _entities(registry: Union[Mapping[str, Entity], Iterable[Entity]]) -> List[Entity]:
    if isinstance(registry, Mapping):
        return list(registry.values())
    return list(registry)


def render_migration(statements: Sequence[str], migration_id: str, generated_at: datetime) -> str:
    body = "\n".join(f"    await ctx.exec({statement!r})" for statement in statements)
    return _MIGRATION_TEMPLATE.format(
        generated_at=generated_at.isoformat(timespec="seconds"),
        body=body or "    pass",
        migration_id=migration_id,
        name=AUTO_SYNC_NAME,
    )


class SchemaSynchronizer:
    """
    Parameters
    ----------
    executor : Executor
        Used for introspection and for `apply`.
    production : bool
        When True, `apply` refuses to run.
    migrations_dir : str or Path
        Default target directory of `emit`.
    """

    def __init__(
        self,
        executor: Executor,
        production: bool = False,
        migrations_dir: Union[str, Path] = "migrations",
    ) -> None:
        self.executor = executor
        self.production = production
        self.migrations_dir = Path(migrations_dir)

    async def existing_tables(self) -> Set[str]:
        rows = await self.executor.query(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = current_schema()"
        )
        return {row["table_name"] for row in rows}

    async def plan(self, registry: Union[Mapping[str, Entity], Iterable[Entity]]) -> List[str]:
        """
        DDL for every entity whose table is missing: CREATE TABLE then its
        CREATE INDEX statements, entity by entity in registration order.
        """
        existing = await self.existing_tables()
        statements: List[str] = []
        for entity in _entities(registry):
            if entity.name in existing:
                continue
            statements.extend(entity_ddl(entity))
        return statements

    def _check_environment(self) -> None:
        if self.production:
            raise ForbiddenInProduction("cannot apply schema changes directly in production")

    async def apply(self, statements: Sequence[str]) -> int:
        """
        Execute statements one by one, stopping at the first failure.

        Returns the number of statements executed.
        """
        self._check_environment()
        for position, statement in enumerate(statements):
            try:
                await self.executor.execute(statement)
            except Exception:
                log.error(
                    "Schema statement failed; later statements not applied",
                    extra={"position": position, "remaining": len(statements) - position - 1},
                )
                raise
        log.info("Schema applied", extra={"statements": len(statements)})
        return len(statements)

    def emit(self, statements: Sequence[str], directory: Union[str, Path, None] = None) -> Path:
        """Write the statements as one new migration file and return its path."""
        target = Path(directory) if directory is not None else self.migrations_dir
        target.mkdir(parents=True, exist_ok=True)

        now = datetime.now(timezone.utc)
        migration_id = now.strftime("%Y%m%d%H%M%S")
        # Two emits within the same second must still get distinct, ordered ids.
        while any(target.glob(f"{migration_id}_*.py")):
            migration_id = str(int(migration_id) + 1)

        path = target / f"{migration_id}_{AUTO_SYNC_NAME}.py"
        path.write_text(render_migration(statements, migration_id, now), encoding="utf-8")
        log.info("Migration generated", extra={"path": str(path), "statements": len(statements)})
        return path

    async def sync(
        self,
        registry: Union[Mapping[str, Entity], Iterable[Entity]],
        generate: bool = True,
        apply: bool = False,
        directory: Union[str, Path, None] = None,
    ) -> SyncResult:
        """
        Plan, then emit a migration and/or apply directly.

        Nothing to create is a successful no-op.
        """
        if apply:
            self._check_environment()

        statements = await self.plan(registry)
        if not statements:
            log.info("Schema already in sync")
            return SyncResult(statements=[])

        path = self.emit(statements, directory) if generate else None
        if apply:
            await self.apply(statements)
        return SyncResult(statements=statements, migration_path=path, applied=apply)


__all__ = ["AUTO_SYNC_NAME", "SchemaSynchronizer", "SyncResult", "render_migration"]
