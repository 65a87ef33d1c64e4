"""
Telemetry Relay

Reliable delivery for outbound telemetry events: failed events are persisted
and retried with exponential backoff, bounded storage and connection-health
signaling.

Usage:
    from telemetry_relay import TelemetryQueue, RetryManager, JsonFileStore, TelemetryEvent

    queue = TelemetryQueue(JsonFileStore("telemetry-queue.json"))
    async with RetryManager(queue, send_event) as rm:
        await rm.queue_failed_event(TelemetryEvent(event="task_created"), "HTTP 503")
"""

from .models import TelemetryEvent, QueuedEvent, QueueMetadata, CONNECTION_CHECK_EVENT
from .errors import TelemetryRelayError, StoreError
from .retry import (
    QueueConfig,
    RetryConfig,
    TelemetryQueue,
    RetryManager,
    StatusBus,
    InMemoryStore,
    JsonFileStore,
)

__version__ = "0.1.0"
__all__ = [
    "TelemetryEvent",
    "QueuedEvent",
    "QueueMetadata",
    "CONNECTION_CHECK_EVENT",
    "TelemetryRelayError",
    "StoreError",
    "QueueConfig",
    "RetryConfig",
    "TelemetryQueue",
    "RetryManager",
    "StatusBus",
    "InMemoryStore",
    "JsonFileStore",
]
