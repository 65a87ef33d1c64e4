"""
Connection and queue health monitor.

Follows a StatusBus and turns transitions into rate-limited log
notifications:
- connection lost / restored
- queue crossing the warning threshold / drained
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional

from loguru import logger

from telemetry_relay.retry import StatusBus

Severity = Literal["info", "warning"]


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity


class StatusMonitor:
    """Tracks relay health from bus notifications and logs noteworthy changes.

    At most one notification is emitted per ``notification_interval_s``;
    state is always updated even when a notification is suppressed.
    """

    def __init__(
        self,
        bus: StatusBus,
        *,
        notification_interval_s: float = 300.0,
        initial_connected: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._bus = bus
        self._interval = notification_interval_s
        self._clock = clock or time.monotonic
        self._last_notification: Optional[float] = None

        self.is_connected = initial_connected
        self.queue_size = 0
        self.is_above_threshold = False
        self.notifications: List[Notification] = []

    def attach(self) -> "StatusMonitor":
        self._bus.subscribe_connection(self.on_connection_status_change)
        self._bus.subscribe_queue_size(self.on_queue_size_change)
        return self

    def detach(self) -> None:
        self._bus.unsubscribe(self.on_connection_status_change)
        self._bus.unsubscribe(self.on_queue_size_change)

    def on_connection_status_change(self, is_connected: bool) -> None:
        was_connected = self.is_connected
        self.is_connected = is_connected

        if was_connected and not is_connected:
            self._notify(
                "Telemetry connection lost. Events will be queued and retried automatically.",
                "warning",
            )
        elif not was_connected and is_connected:
            self._notify("Telemetry connection restored. Queued events are being sent.", "info")

    def on_queue_size_change(self, size: int, is_above_threshold: bool) -> None:
        was_above = self.is_above_threshold
        self.queue_size = size
        self.is_above_threshold = is_above_threshold

        if not was_above and is_above_threshold:
            self._notify(
                f"Telemetry queue is building up ({size} events). Check your connection.",
                "warning",
            )
        elif was_above and not is_above_threshold and size == 0:
            self._notify("Telemetry queue cleared. All events have been sent.", "info")

    def summary(self) -> str:
        lines = ["Telemetry Status"]
        lines.append("Connected" if self.is_connected else "Disconnected")
        if self.queue_size > 0:
            lines.append(f"{self.queue_size} events queued for retry")
            if self.is_above_threshold:
                lines.append("Queue size above warning threshold")
        else:
            lines.append("Queue is empty")
        return "\n".join(lines)

    def _notify(self, message: str, severity: Severity) -> bool:
        now = self._clock()
        if self._last_notification is not None and now - self._last_notification < self._interval:
            logger.debug(f"Notification suppressed (rate limited): {message}")
            return False

        self._last_notification = now
        self.notifications.append(Notification(message=message, severity=severity))
        if severity == "warning":
            logger.warning(message)
        else:
            logger.info(message)
        return True
