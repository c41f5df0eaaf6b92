"""
Database context: one object holding the executor, the model registry and the
settings, handed to everything that needs them instead of module-level
globals. Separate contexts (per tenant, per test) never share state.

Usage:
    db = await Database.connect()
    users = db.register(define("users", {...}))
    repo = db.repository(users)
    await repo.create({"email": "a@x.com"})
    await db.close()
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from shadow_orm import ids
from shadow_orm.config import Settings, get_settings
from shadow_orm.domain.registry import ModelRegistry
from shadow_orm.domain.schema import Entity
from shadow_orm.errors import InvalidSchema
from shadow_orm.infrastructure.db_factory import create_async_pool, open_pool
from shadow_orm.infrastructure.executor import Executor, PoolExecutor, translate_errors
from shadow_orm.migrations.runner import MigrationRunner
from shadow_orm.repository import Repository
from shadow_orm.schema_sync import SchemaSynchronizer
from shadow_orm.utils.logging import get_logger

log = get_logger(__name__)


class Database:
    def __init__(
        self,
        executor: Executor,
        registry: Optional[ModelRegistry] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.executor = executor
        self.registry = registry if registry is not None else ModelRegistry()
        self.settings = settings or get_settings()
        self._repositories: Dict[str, Repository] = {}

    @classmethod
    async def connect(
        cls,
        settings: Optional[Settings] = None,
        dsn_override: Optional[str] = None,
        registry: Optional[ModelRegistry] = None,
    ) -> "Database":
        """Open a connection pool (retrying transient failures) and wrap it."""
        settings = settings or get_settings()
        pool = create_async_pool(settings, dsn_override=dsn_override)
        with translate_errors():
            await open_pool(pool, timeout=settings.pool_timeout)
        log.info(
            "Connected",
            extra={"host": settings.db_host, "database": settings.db_name, "env": settings.app_env},
        )
        return cls(PoolExecutor(pool), registry=registry, settings=settings)

    async def close(self) -> None:
        if isinstance(self.executor, PoolExecutor):
            await self.executor.close()

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def register(self, entity: Entity) -> Entity:
        return self.registry.register(entity)

    def models(self) -> ModelRegistry:
        return self.registry

    def repository(self, entity: Union[Entity, str]) -> Repository:
        """Repository for a registered entity (registering it if needed), cached by name."""
        if isinstance(entity, str):
            try:
                entity = self.registry[entity]
            except KeyError:
                raise InvalidSchema(f"no entity registered as {entity!r}") from None
        else:
            self.registry.register(entity)
        repository = self._repositories.get(entity.name)
        if repository is None:
            repository = self._repositories[entity.name] = Repository(entity, self.executor)
        return repository

    def migrator(self) -> MigrationRunner:
        return MigrationRunner(self.executor, table=self.settings.migrations_table)

    def synchronizer(self) -> SchemaSynchronizer:
        return SchemaSynchronizer(
            self.executor,
            production=self.settings.is_production,
            migrations_dir=self.settings.migrations_dir,
        )

    async def next_id(self, prefix: str) -> str:
        return await ids.next_id(self.executor, prefix)


__all__ = ["Database"]
