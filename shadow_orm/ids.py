"""
Identifier helpers: human-readable prefixed counters and random UUIDs.
"""

from __future__ import annotations

import uuid

from shadow_orm.infrastructure.executor import Executor

COUNTER_TABLE = "_id_counters"


async def next_id(executor: Executor, prefix: str) -> str:
    """
    Return the next id for `prefix`, formatted as ``<prefix>-001``.

    The counter row is created on first use and incremented in a single
    statement, so concurrent callers never receive the same number.
    Numbers above 999 keep all their digits.
    """
    await executor.execute(
        f"CREATE TABLE IF NOT EXISTS {COUNTER_TABLE} ("
        "prefix VARCHAR(255) PRIMARY KEY, "
        "count INTEGER NOT NULL)"
    )
    result = await executor.execute(
        f"INSERT INTO {COUNTER_TABLE} (prefix, count) VALUES (%s, 1) "
        f"ON CONFLICT (prefix) DO UPDATE SET count = {COUNTER_TABLE}.count + 1 "
        "RETURNING count",
        [prefix],
    )
    return f"{prefix}-{int(result.insert_id):03d}"


def new_uuid() -> str:
    return str(uuid.uuid4())


__all__ = ["COUNTER_TABLE", "new_uuid", "next_id"]
