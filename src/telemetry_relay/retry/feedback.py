"""
Connection-health and queue-size feedback for the retry manager.

Provides in-process pub/sub so several listeners (status monitor, metrics
exporters, host UI) can follow the two RetryManager callbacks. Delivery is
synchronous and inline with the processing cycle; listeners must return
quickly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from loguru import logger

from .types import ConnectionStatusCallback, QueueSizeCallback, RetryConfig


@dataclass(frozen=True)
class QueueSizeEvent:
    """Immutable queue-size notification.

    Attributes:
        size: Current queue length
        is_above_threshold: size >= warning threshold
    """

    size: int
    is_above_threshold: bool


class StatusBus:
    """In-process fan-out for connection-status and queue-size notifications.

    One subscriber's failure does not affect others. Best-effort delivery.
    Edge-triggering happens upstream in the RetryManager; the bus forwards
    whatever it receives.

    Example:
        bus = StatusBus()
        bus.subscribe_connection(lambda ok: print("connected" if ok else "offline"))
        manager = RetryManager(queue, send, bus.as_retry_config(batch_size=20))
    """

    def __init__(self) -> None:
        self._connection_subs: List[ConnectionStatusCallback] = []
        self._queue_size_subs: List[QueueSizeCallback] = []
        self.last_connection: Optional[bool] = None
        self.last_queue_size: Optional[QueueSizeEvent] = None

    def subscribe_connection(self, callback: ConnectionStatusCallback) -> None:
        if callback not in self._connection_subs:
            self._connection_subs.append(callback)
            logger.debug(f"Connection subscriber added (total: {self.subscriber_count})")

    def subscribe_queue_size(self, callback: QueueSizeCallback) -> None:
        if callback not in self._queue_size_subs:
            self._queue_size_subs.append(callback)
            logger.debug(f"Queue-size subscriber added (total: {self.subscriber_count})")

    def unsubscribe(self, callback: Callable) -> None:
        """Remove a subscriber from both channels. No-op if not found."""
        for subs in (self._connection_subs, self._queue_size_subs):
            try:
                subs.remove(callback)
            except ValueError:
                pass

    def publish_connection(self, is_connected: bool) -> None:
        self.last_connection = is_connected
        for callback in list(self._connection_subs):
            try:
                callback(is_connected)
            except Exception as exc:
                logger.debug(f"Connection subscriber error (ignored): {type(exc).__name__}: {exc}")

    def publish_queue_size(self, size: int, is_above_threshold: bool) -> None:
        self.last_queue_size = QueueSizeEvent(size=size, is_above_threshold=is_above_threshold)
        for callback in list(self._queue_size_subs):
            try:
                callback(size, is_above_threshold)
            except Exception as exc:
                logger.debug(f"Queue-size subscriber error (ignored): {type(exc).__name__}: {exc}")

    def as_retry_config(self, **kwargs) -> RetryConfig:
        """Build a RetryConfig whose callbacks publish into this bus."""
        return RetryConfig(
            on_connection_status_change=self.publish_connection,
            on_queue_size_change=self.publish_queue_size,
            **kwargs,
        )

    @property
    def subscriber_count(self) -> int:
        return len(self._connection_subs) + len(self._queue_size_subs)
