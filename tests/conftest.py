"""
Pytest configuration for shadow-orm.

Provides fixtures for:
- An in-memory fake executor for unit tests (records SQL, replays results)
- Sample entities used across test modules
- Database settings and availability checks for integration tests
"""

from __future__ import annotations

import os

import psycopg
import pytest
from fakes import FakeExecutor

from shadow_orm.config import Settings
from shadow_orm.domain.schema import Entity, define


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def users() -> Entity:
    return define(
        "users",
        {
            "id": {"type": "int", "pk": True, "autoIncrement": True},
            "email": {"type": "string", "required": True, "unique": True},
            "profile": "json",
            "createdAt": "datetime",
        },
    )


@pytest.fixture
def settings_entity() -> Entity:
    return define(
        "settings",
        {
            "key": {"type": "string", "primary_key": True},
            "value": "json",
            "updated": "datetime",
        },
    )


@pytest.fixture
def orders() -> Entity:
    return define(
        "orders",
        {
            "id": {"type": "int", "pk": True, "autoIncrement": True},
            "user_id": {"type": "int", "required": True},
            "total": {"type": "float", "default": 0},
            "status": {"type": "string", "default": "new"},
        },
        foreign_keys=[
            {
                "column": "user_id",
                "references": {"table": "users", "column": "id"},
                "onDelete": "CASCADE",
            }
        ],
        indexes=[{"columns": ["user_id", "status"]}, {"name": "orders_total_uq", "columns": ["total"], "unique": True}],
    )


# ---------------------------------------------------------------- integration


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "shadow_orm_test"),
        app_env="test",
        log_level="DEBUG",
        pool_max_size=4,
        pool_timeout=5.0,
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except Exception:
        return False


@pytest.fixture
def require_db(db_connection_available: bool) -> None:
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")
