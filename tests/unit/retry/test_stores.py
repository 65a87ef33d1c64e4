"""
Unit tests for key/value stores.
"""

import asyncio
import json
import shutil
from unittest.mock import AsyncMock

import pytest

from telemetry_relay import (
    InMemoryStore,
    JsonFileStore,
    RetryManager,
    StoreError,
    TelemetryEvent,
    TelemetryQueue,
)


@pytest.mark.asyncio
async def test_memory_store_copies_values():
    store = InMemoryStore()
    value = {"items": [1, 2]}
    await store.set("k", value)
    value["items"].append(3)

    got = await store.get("k")
    assert got == {"items": [1, 2]}
    got["items"].clear()
    assert await store.get("k") == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_memory_store_none_removes_key():
    store = InMemoryStore({"k": 1})
    assert await store.set("k", None) is True
    assert await store.get("k") is None
    assert store.keys() == []


@pytest.mark.asyncio
async def test_file_store_roundtrip_across_instances(tmp_path):
    p = tmp_path / "queue.json"
    s1 = JsonFileStore(p)
    await s1.set("a", [{"x": 1}])
    await s1.set("b", {"size": 1})

    s2 = JsonFileStore(p)
    assert await s2.get("a") == [{"x": 1}]
    assert await s2.get("b") == {"size": 1}
    assert await s2.get("missing") is None


@pytest.mark.asyncio
async def test_file_store_none_removes_key(tmp_path):
    p = tmp_path / "queue.json"
    store = JsonFileStore(p)
    await store.set("a", 1)
    await store.set("a", None)

    assert json.loads(p.read_text()) == {}


@pytest.mark.asyncio
async def test_file_store_missing_file_is_empty(tmp_path):
    store = JsonFileStore(tmp_path / "nested" / "queue.json")
    assert await store.get("anything") is None


@pytest.mark.asyncio
async def test_file_store_corrupt_file_raises(tmp_path):
    p = tmp_path / "queue.json"
    p.write_text("{not json")

    with pytest.raises(StoreError):
        await JsonFileStore(p).get("a")


@pytest.mark.asyncio
async def test_file_store_concurrent_writes(tmp_path):
    p = tmp_path / "queue.json"
    store = JsonFileStore(p)

    await asyncio.gather(*[store.set(f"k{i}", i) for i in range(20)])

    data = json.loads(p.read_text())
    assert len(data) == 20


@pytest.mark.asyncio
async def test_queue_on_file_store_survives_restart(tmp_path):
    p = tmp_path / "queue.json"
    q1 = TelemetryQueue(JsonFileStore(p))
    queued = await q1.enqueue(TelemetryEvent(event="task_created", properties={"taskId": "t1"}), "offline")

    q2 = TelemetryQueue(JsonFileStore(p))
    events = await q2.get_all_events()
    assert [e.id for e in events] == [queued.id]
    assert events[0].last_error == "offline"
    assert (await q2.get_queue_metadata()).size == 1


@pytest.mark.asyncio
async def test_file_store_failed_write_keeps_cache_in_sync(tmp_path):
    d = tmp_path / "state"
    store = JsonFileStore(d / "queue.json")
    await store.set("a", 1)

    shutil.rmtree(d)
    with pytest.raises(StoreError):
        await store.set("b", 2)

    assert await store.get("b") is None
    assert await store.get("a") == 1


@pytest.mark.asyncio
async def test_failed_persist_does_not_report_queued_event(tmp_path):
    d = tmp_path / "state"
    queue = TelemetryQueue(JsonFileStore(d / "queue.json"))
    manager = RetryManager(queue, AsyncMock())
    assert await queue.get_queue_size() == 0

    shutil.rmtree(d)
    # Logged and swallowed by the manager
    await manager.queue_failed_event(TelemetryEvent(event="task_created"), "offline")

    assert await queue.get_queue_size() == 0
    assert await queue.get_all_events() == []
