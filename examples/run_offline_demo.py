"""
Offline delivery demo

Simulates a transport that is down for a few seconds and then recovers.
Failed events are queued in a JSON file, retried with backoff, and the
StatusMonitor reports the connection going down and coming back.

No network required - the send function is simulated.
"""

import asyncio
import tempfile
import time
from pathlib import Path

from loguru import logger

from telemetry_client import StatusMonitor
from telemetry_relay import (
    JsonFileStore,
    QueueConfig,
    RetryManager,
    StatusBus,
    TelemetryEvent,
    TelemetryQueue,
)


class FlakyTransport:
    """Fails every send until `outage_s` seconds have passed."""

    def __init__(self, outage_s: float = 3.0):
        self._until = time.monotonic() + outage_s
        self.delivered = []

    async def __call__(self, event: TelemetryEvent) -> None:
        await asyncio.sleep(0.01)  # Simulate network latency
        if time.monotonic() < self._until:
            raise ConnectionError("network unreachable")
        self.delivered.append(event)


async def main():
    store_path = Path(tempfile.mkdtemp()) / "telemetry-queue.json"
    logger.info(f"Queue file: {store_path}")

    bus = StatusBus()
    monitor = StatusMonitor(bus, notification_interval_s=0).attach()
    transport = FlakyTransport(outage_s=3.0)

    queue = TelemetryQueue(JsonFileStore(store_path), QueueConfig(max_queue_size=50, warning_threshold=10))

    async with RetryManager(
        queue, transport, bus.as_retry_config(retry_interval_ms=1000, batch_size=5)
    ) as rm:
        for i in range(12):
            event = TelemetryEvent(event="task_created", properties={"taskId": f"task-{i}"})
            try:
                await transport(event)
            except ConnectionError as exc:
                await rm.queue_failed_event(event, str(exc))

        for _ in range(10):
            await asyncio.sleep(1)
            meta = await queue.get_queue_metadata()
            logger.info(f"Queue size: {meta.size} (connected={rm.get_connection_status()})")
            if meta.size == 0:
                break

    delivered = [e for e in transport.delivered if not e.is_connection_check]
    logger.info(f"Delivered {len(delivered)} events")
    logger.info(monitor.summary())


if __name__ == "__main__":
    asyncio.run(main())
