from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeExecutor

from shadow_orm.ddl import column_definition, create_index_sql, create_table_sql, entity_ddl, format_default
from shadow_orm.domain.schema import define
from shadow_orm.errors import ForbiddenInProduction, StorageError
from shadow_orm.migrations import DirectorySource, MigrationContext, call_step
from shadow_orm.schema_sync import AUTO_SYNC_NAME, SchemaSynchronizer

INTROSPECT = "SELECT table_name FROM information_schema.tables WHERE table_schema = current_schema()"


class TestDdl:
    def test_create_table_for_users(self, users) -> None:
        assert create_table_sql(users) == (
            'CREATE TABLE "users" (\n'
            '  "id" INTEGER PRIMARY KEY GENERATED BY DEFAULT AS IDENTITY NOT NULL,\n'
            '  "email" VARCHAR(255) NOT NULL UNIQUE,\n'
            '  "profile" JSONB,\n'
            '  "createdAt" TIMESTAMP\n'
            ");"
        )

    def test_create_table_with_defaults_and_foreign_key(self, orders) -> None:
        assert create_table_sql(orders) == (
            'CREATE TABLE "orders" (\n'
            '  "id" INTEGER PRIMARY KEY GENERATED BY DEFAULT AS IDENTITY NOT NULL,\n'
            '  "user_id" INTEGER NOT NULL,\n'
            '  "total" DOUBLE PRECISION DEFAULT 0,\n'
            "  \"status\" VARCHAR(255) DEFAULT 'new',\n"
            '  FOREIGN KEY ("user_id") REFERENCES "users" ("id") ON DELETE CASCADE\n'
            ");"
        )

    def test_index_statements(self, orders) -> None:
        assert create_index_sql(orders) == [
            'CREATE INDEX "idx_orders_user_id_status" ON "orders" ("user_id", "status");',
            'CREATE UNIQUE INDEX "orders_total_uq" ON "orders" ("total");',
        ]
        assert len(entity_ddl(orders)) == 3

    def test_on_update_clause(self) -> None:
        entity = define(
            "lines",
            {"id": {"type": "int", "pk": True}, "order_id": "int"},
            foreign_keys=[
                {
                    "column": "order_id",
                    "referenced_table": "orders",
                    "referenced_column": "id",
                    "on_delete": "SET NULL",
                    "on_update": "RESTRICT",
                }
            ],
        )
        assert create_table_sql(entity).endswith(
            'FOREIGN KEY ("order_id") REFERENCES "orders" ("id") ON DELETE SET NULL ON UPDATE RESTRICT\n);'
        )

    @pytest.mark.parametrize(
        "spec, expected",
        [
            ({"type": "boolean", "default": True}, "TRUE"),
            ({"type": "boolean", "default": False}, "FALSE"),
            ({"type": "float", "default": 1.5}, "1.5"),
            ({"type": "string", "default": "it's"}, "'it''s'"),
            ({"type": "string", "default": None}, "NULL"),
            ({"type": "json", "default": {"a": 1}}, "'{\"a\": 1}'"),
            ({"type": "json", "default": 3}, "'3'"),
        ],
    )
    def test_default_literals(self, spec, expected) -> None:
        entity = define("t", {"id": {"type": "int", "pk": True}, "c": spec})
        assert format_default(entity.fields["c"]) == expected
        assert column_definition(entity.fields["c"]).endswith(f"DEFAULT {expected}")

    def test_string_primary_key_is_not_identity(self, settings_entity) -> None:
        assert column_definition(settings_entity.fields["key"]) == '"key" VARCHAR(255) PRIMARY KEY NOT NULL'


@pytest.fixture
def synchronizer(executor) -> SchemaSynchronizer:
    return SchemaSynchronizer(executor)


class TestPlan:
    @pytest.mark.asyncio
    async def test_missing_table_yields_create_table_and_indexes(self, synchronizer, executor, orders) -> None:
        executor.queue_rows([{"table_name": "users"}])

        statements = await synchronizer.plan([orders])

        assert statements == entity_ddl(orders)
        assert executor.calls == [("query", INTROSPECT, None)]

    @pytest.mark.asyncio
    async def test_existing_tables_are_skipped(self, synchronizer, executor, users, orders) -> None:
        executor.queue_rows([{"table_name": "users"}, {"table_name": "orders"}])

        assert await synchronizer.plan({"users": users, "orders": orders}) == []
        assert len(executor.calls) == 1

    @pytest.mark.asyncio
    async def test_follows_registration_order(self, synchronizer, executor, users, orders) -> None:
        statements = await synchronizer.plan([users, orders])
        assert statements[0].startswith('CREATE TABLE "users"')
        assert statements[1].startswith('CREATE TABLE "orders"')


class TestApply:
    @pytest.mark.asyncio
    async def test_refused_in_production_without_io(self, executor) -> None:
        with pytest.raises(ForbiddenInProduction):
            await SchemaSynchronizer(executor, production=True).apply(["CREATE TABLE t (id INTEGER)"])
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_runs_in_order_and_stops_at_first_failure(self, synchronizer, executor) -> None:
        executor.fail_on["second"] = StorageError('relation "second" already exists', sqlstate="42P07")

        with pytest.raises(StorageError):
            await synchronizer.apply(["CREATE TABLE first (id INTEGER)", "CREATE TABLE second (id INTEGER)", "third"])

        assert executor.statements == ["CREATE TABLE first (id INTEGER)", "CREATE TABLE second (id INTEGER)"]

    @pytest.mark.asyncio
    async def test_returns_statement_count(self, synchronizer) -> None:
        assert await synchronizer.apply(["A", "B"]) == 2


class TestEmit:
    @pytest.mark.asyncio
    async def test_emitted_file_is_a_loadable_migration(self, synchronizer, orders, tmp_path: Path) -> None:
        statements = entity_ddl(orders)

        path = synchronizer.emit(statements, tmp_path)

        assert path.name.endswith(f"_{AUTO_SYNC_NAME}.py")
        (unit,) = DirectorySource(tmp_path).load()
        assert unit.id == path.name.split("_", 1)[0]
        assert unit.name == AUTO_SYNC_NAME

        replay = FakeExecutor()
        await call_step(unit.up, MigrationContext(replay))
        assert replay.statements == statements

    def test_same_second_emits_get_distinct_ordered_ids(self, synchronizer, tmp_path: Path) -> None:
        first = synchronizer.emit(["SELECT 1"], tmp_path)
        second = synchronizer.emit(["SELECT 2"], tmp_path)

        assert first != second
        assert sorted([second.name, first.name]) == [first.name, second.name]

    def test_defaults_to_configured_directory(self, executor, tmp_path: Path) -> None:
        target = tmp_path / "db" / "migrations"
        path = SchemaSynchronizer(executor, migrations_dir=target).emit([])
        assert path.parent == target
        assert "pass" in path.read_text(encoding="utf-8")


class TestSync:
    @pytest.mark.asyncio
    async def test_in_sync_is_a_no_op(self, synchronizer, executor, users, tmp_path: Path) -> None:
        executor.queue_rows([{"table_name": "users"}])

        result = await synchronizer.sync([users], generate=True, apply=True, directory=tmp_path)

        assert result.statements == []
        assert result.migration_path is None
        assert result.applied is False
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_generate_and_apply(self, synchronizer, executor, users, tmp_path: Path) -> None:
        result = await synchronizer.sync([users], generate=True, apply=True, directory=tmp_path)

        assert result.applied is True
        assert result.migration_path is not None and result.migration_path.exists()
        assert executor.statements[1:] == result.statements

    @pytest.mark.asyncio
    async def test_generate_only_does_not_execute(self, synchronizer, executor, users, tmp_path: Path) -> None:
        result = await synchronizer.sync([users], directory=tmp_path)

        assert result.applied is False
        assert [kind for kind, _, _ in executor.calls] == ["query"]

    @pytest.mark.asyncio
    async def test_apply_in_production_fails_before_introspection(self, executor, users, tmp_path: Path) -> None:
        with pytest.raises(ForbiddenInProduction):
            await SchemaSynchronizer(executor, production=True).sync([users], apply=True, directory=tmp_path)
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_generate_in_production_is_allowed(self, executor, users, tmp_path: Path) -> None:
        result = await SchemaSynchronizer(executor, production=True).sync([users], directory=tmp_path)
        assert result.migration_path is not None
