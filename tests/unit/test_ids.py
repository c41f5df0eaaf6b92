from __future__ import annotations

import uuid

import pytest

from shadow_orm.ids import COUNTER_TABLE, new_uuid, next_id


@pytest.mark.asyncio
async def test_next_id_creates_counter_table_and_pads_to_three_digits(executor) -> None:
    executor.queue_write(affected_rows=0)
    executor.queue_write(insert_id=1)

    assert await next_id(executor, "INV") == "INV-001"

    create_sql, increment_sql = executor.statements
    assert create_sql.startswith(f"CREATE TABLE IF NOT EXISTS {COUNTER_TABLE}")
    assert "ON CONFLICT (prefix) DO UPDATE SET count = _id_counters.count + 1" in increment_sql
    assert increment_sql.endswith("RETURNING count")
    assert executor.calls[1][2] == ["INV"]


@pytest.mark.asyncio
async def test_next_id_keeps_all_digits_past_999(executor) -> None:
    executor.queue_write(affected_rows=0)
    executor.queue_write(insert_id=1234)

    assert await next_id(executor, "INV") == "INV-1234"


def test_new_uuid_is_random_v4() -> None:
    first, second = new_uuid(), new_uuid()
    assert first != second
    assert uuid.UUID(first).version == 4
