from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..models import TelemetryEvent

# Raises on failure; returning normally means delivered.
SendFunction = Callable[[TelemetryEvent], Awaitable[None]]
ConnectionStatusCallback = Callable[[bool], None]
QueueSizeCallback = Callable[[int, bool], None]
Clock = Callable[[], int]


@dataclass(frozen=True)
class QueueConfig:
    """Capacity and retry ceiling for a TelemetryQueue."""

    max_queue_size: int = 1000
    max_retries: int = 5
    warning_threshold: int = 100

    def __post_init__(self) -> None:
        if self.max_queue_size <= 0:
            raise ValueError("max_queue_size must be > 0")
        if self.max_retries <= 0:
            raise ValueError("max_retries must be > 0")
        if self.warning_threshold <= 0:
            raise ValueError("warning_threshold must be > 0")


@dataclass
class RetryConfig:
    """Schedule, batch size and observer hooks for a RetryManager.

    Attributes:
        retry_interval_ms: Timer period between processing cycles
        batch_size: Max concurrent sends per batch
        on_connection_status_change: Called with the new status on transitions only
        on_queue_size_change: Called with (size, is_above_warning_threshold)
    """

    retry_interval_ms: int = 30_000
    batch_size: int = 10
    on_connection_status_change: Optional[ConnectionStatusCallback] = None
    on_queue_size_change: Optional[QueueSizeCallback] = None

    def __post_init__(self) -> None:
        if self.retry_interval_ms <= 0:
            raise ValueError("retry_interval_ms must be > 0")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
