from __future__ import annotations

import asyncio
import importlib
import os
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from shadow_orm.config import get_settings
from shadow_orm.database import Database
from shadow_orm.domain.registry import ModelRegistry
from shadow_orm.domain.schema import Entity
from shadow_orm.errors import OrmError
from shadow_orm.utils.logging import configure_logging

app = typer.Typer(help="shadow-orm: schema sync and migrations for PostgreSQL.")

T = TypeVar("T")

DIR_OPTION = typer.Option(
    None,
    "--dir",
    "-d",
    help="Migrations directory (default from MIGRATIONS_DIR).",
)

_SCAFFOLD = '''"""
{name}
"""

id = {migration_id!r}
name = {name!r}


async def up(ctx):
    pass


async def down(ctx):
    pass
'''


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _directory(directory: Optional[str]) -> str:
    return directory or get_settings().migrations_dir


def _run(fn: Callable[[Database], Awaitable[T]]) -> T:
    async def runner() -> T:
        db = await Database.connect()
        try:
            return await fn(db)
        finally:
            await db.close()

    try:
        return asyncio.run(runner())
    except OrmError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def load_models(module_path: str, registry: ModelRegistry) -> int:
    """Import `module_path` and register every module-level Entity; return how many."""
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    module = importlib.import_module(module_path)
    count = 0
    for value in vars(module).values():
        if isinstance(value, Entity):
            registry.register(value)
            count += 1
    return count


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"env={settings.app_env} production={settings.is_production} | "
        f"migrations={settings.migrations_dir} ledger={settings.migrations_table}"
    )


@app.command()
def migrate(directory: Optional[str] = DIR_OPTION) -> None:
    """
    Apply pending migrations in id order.
    """
    _setup()
    path = _directory(directory)
    applied = _run(lambda db: db.migrator().run(path))
    if applied:
        typer.echo(f"Applied {len(applied)} migration(s): " + ", ".join(applied))
    else:
        typer.echo("Nothing to migrate.")


@app.command()
def status(directory: Optional[str] = DIR_OPTION) -> None:
    """
    List migrations and whether they have been applied.
    """
    _setup()
    path = _directory(directory)
    rows = _run(lambda db: db.migrator().status(path))
    if not rows:
        typer.echo("No migrations found.")
        return
    for row in rows:
        marker = "applied" if row.applied else "pending"
        when = f" at {row.executed_at}" if row.executed_at else ""
        typer.echo(f"{row.id}  {row.name:<30} {marker}{when}")


@app.command()
def revert(
    migration_id: str = typer.Argument(..., help="Id of the migration whose 'down' should run."),
    directory: Optional[str] = DIR_OPTION,
) -> None:
    """
    Run one migration's down step and remove it from the ledger.
    """
    _setup()
    path = _directory(directory)
    reverted = _run(lambda db: db.migrator().revert(migration_id, path))
    typer.echo(f"Reverted {migration_id}." if reverted else f"{migration_id} was not applied.")


@app.command()
def sync(
    models: str = typer.Option(..., "--models", "-m", help="Module whose Entity objects should exist."),
    generate: bool = typer.Option(True, "--generate/--no-generate", help="Write a migration file."),
    apply: bool = typer.Option(False, "--apply/--no-apply", help="Execute DDL now (refused in production)."),
    directory: Optional[str] = DIR_OPTION,
) -> None:
    """
    Create missing tables for registered models, as a migration and/or directly.
    """
    _setup()
    registry = ModelRegistry()
    count = load_models(models, registry)
    typer.echo(f"Loaded {count} model(s) from {models}.")

    async def run_sync(db: Database) -> Any:
        return await db.synchronizer().sync(registry, generate=generate, apply=apply, directory=directory)

    result = _run(run_sync)
    if not result.statements:
        typer.echo("Schema already in sync.")
        return
    if result.migration_path is not None:
        typer.echo(f"Migration generated: {result.migration_path}")
    if result.applied:
        typer.echo(f"Applied {len(result.statements)} statement(s).")


@app.command("make-migration")
def make_migration(
    name: str = typer.Argument(..., help="Human label, e.g. 'add users table'."),
    directory: Optional[str] = DIR_OPTION,
) -> None:
    """
    Scaffold an empty migration file with a timestamp id.
    """
    target = Path(_directory(directory))
    target.mkdir(parents=True, exist_ok=True)
    migration_id = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_") or "migration"
    path = target / f"{migration_id}_{slug}.py"
    path.write_text(_SCAFFOLD.format(name=name, migration_id=migration_id), encoding="utf-8")
    typer.echo(f"Created {path}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
