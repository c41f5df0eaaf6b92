"""
Infrastructure package for shadow-orm.

Centralizes database connectivity concerns (pool factory and the executor
boundary). Keep this layer focused on I/O and resource management, decoupled
from schema, repository and migration logic.
"""

from shadow_orm.infrastructure.db_factory import create_async_pool, open_pool
from shadow_orm.infrastructure.executor import (
    ConnectionExecutor,
    Executor,
    PoolExecutor,
    WriteResult,
    translate_errors,
)

__all__ = [
    "ConnectionExecutor",
    "Executor",
    "PoolExecutor",
    "WriteResult",
    "create_async_pool",
    "open_pool",
    "translate_errors",
]
