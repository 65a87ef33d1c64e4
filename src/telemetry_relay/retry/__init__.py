"""Telemetry retry layer

Persistent failure queue and retry manager:
- TelemetryQueue (capacity-bounded, FIFO eviction, per-event exponential backoff)
- RetryManager (periodic batched dispatch, re-entrancy guard, connection check)
- StatusBus for connection-status / queue-size observers
- Key/value stores (in-memory, JSON file)
"""

from .types import (
    QueueConfig,
    RetryConfig,
    SendFunction,
    ConnectionStatusCallback,
    QueueSizeCallback,
)
from .stores import KeyValueStore, InMemoryStore, JsonFileStore
from .queue import TelemetryQueue
from .manager import RetryManager, DeliveryOutcome, create_batches
from .feedback import StatusBus, QueueSizeEvent

__all__ = [
    # types
    "QueueConfig",
    "RetryConfig",
    "SendFunction",
    "ConnectionStatusCallback",
    "QueueSizeCallback",
    "DeliveryOutcome",
    "QueueSizeEvent",
    # storage
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    # runtime
    "TelemetryQueue",
    "RetryManager",
    "StatusBus",
    "create_batches",
]
