"""
Unit tests for TelemetryClient.
"""

import pytest

from telemetry_client import NotAuthenticatedError, TelemetryClient, TelemetrySettings
from telemetry_relay import CONNECTION_CHECK_EVENT, InMemoryStore, TelemetryEvent


@pytest.mark.asyncio
async def test_capture_posts_event(api, http_client, settings):
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client)

    await client.capture(TelemetryEvent(event="task_created", properties={"taskId": "t1"}))

    assert len(api.requests) == 1
    request = api.requests[0]
    assert str(request.url) == "http://telemetry.test/api/events"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert api.bodies == [{"type": "task_created", "properties": {"taskId": "t1"}}]
    assert (await client.get_queue_metadata()).size == 0


@pytest.mark.asyncio
async def test_capture_failure_is_queued(api, http_client, settings):
    api.status = 503
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client)
    statuses = []
    sizes = []
    client.set_connection_status_callback(statuses.append)
    client.set_queue_size_callback(lambda size, above: sizes.append(size))

    await client.capture(TelemetryEvent(event="task_created"))

    events = await client.queue.get_all_events()
    assert len(events) == 1
    assert events[0].last_error == "HTTP 503: Service Unavailable"
    assert client.get_connection_status() is False
    assert statuses == [False]
    assert sizes == [1]


@pytest.mark.asyncio
async def test_capture_without_token_is_queued(api, http_client, settings):
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client, token="")

    await client.capture(TelemetryEvent(event="task_created"))

    assert api.requests == []
    events = await client.queue.get_all_events()
    assert events[0].last_error == "Not authenticated"


@pytest.mark.asyncio
async def test_send_direct_raises_without_token(http_client, settings):
    client = TelemetryClient(settings, http_client=http_client, token="")
    with pytest.raises(NotAuthenticatedError):
        await client.send_direct(TelemetryEvent(event="task_created"))


@pytest.mark.asyncio
async def test_excluded_event_is_skipped(api, http_client, settings):
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client)

    await client.capture(TelemetryEvent(event="task_conversation_message"))

    assert api.requests == []
    assert (await client.get_queue_metadata()).size == 0


@pytest.mark.asyncio
async def test_invalid_event_is_dropped_not_queued(api, http_client, settings):
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client)

    await client.capture(TelemetryEvent(event="task_created", properties={"bad": object()}))

    assert api.requests == []
    assert (await client.get_queue_metadata()).size == 0


@pytest.mark.asyncio
async def test_client_without_store(api, http_client, settings):
    api.status = 500
    client = TelemetryClient(settings, http_client=http_client)

    await client.capture(TelemetryEvent(event="task_created"))  # must not raise
    await client.trigger_retry()

    assert await client.get_queue_metadata() is None
    assert client.get_connection_status() is True


@pytest.mark.asyncio
async def test_trigger_retry_delivers_after_recovery(api, http_client, settings):
    api.status = 503
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client)
    await client.capture(TelemetryEvent(event="task_created", properties={"taskId": "t1"}))
    assert client.get_connection_status() is False

    api.status = 200
    await client.trigger_retry()

    assert (await client.get_queue_metadata()).size == 0
    assert client.get_connection_status() is True
    types = [b["type"] for b in api.bodies]
    assert types.count("task_created") == 2
    assert CONNECTION_CHECK_EVENT in types


@pytest.mark.asyncio
async def test_callbacks_replaced_and_cleared(http_client, settings):
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client)
    first = []
    second = []

    client.set_connection_status_callback(first.append)
    client.set_connection_status_callback(second.append)
    client.bus.publish_connection(False)

    assert first == []
    assert second == [False]

    await client.aclose()
    assert client.bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_context_manager_runs_retry_timer(http_client, settings):
    async with TelemetryClient(settings, store=InMemoryStore(), http_client=http_client) as client:
        assert client.retry_manager.is_running
    assert client.retry_manager.is_running is False


@pytest.mark.asyncio
async def test_retry_manager_uses_settings_tuning(http_client):
    settings = TelemetrySettings(
        API_URL="http://telemetry.test", API_TOKEN="t", BATCH_SIZE=2, RETRY_INTERVAL_MS=5000
    )
    client = TelemetryClient(settings, store=InMemoryStore(), http_client=http_client)
    seen = []
    client.set_connection_status_callback(seen.append)

    config = client.retry_manager._config
    assert config.batch_size == 2
    assert config.retry_interval_ms == 5000

    config.on_connection_status_change(False)
    assert seen == [False]
