from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import monotonic
from typing import List, Optional, Sequence, Set, TypeVar

from loguru import logger

from ..metrics.registry import (
    RELAY_CONNECTED,
    RELAY_CONNECTION_CHECKS_TOTAL,
    RELAY_CYCLE_LATENCY_MS,
    RELAY_DELIVERY_ATTEMPTS_TOTAL,
)
from ..models import CONNECTION_CHECK_EVENT, QueuedEvent, TelemetryEvent
from ..utils import now_ms
from .queue import TelemetryQueue
from .types import Clock, RetryConfig, SendFunction

T = TypeVar("T")


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one send attempt for a queued event."""

    event_id: str
    success: bool
    error: Optional[str] = None


def create_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Split items into consecutive batches of at most batch_size, preserving order."""
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


def describe_error(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class RetryManager:
    """Periodic retry of queued telemetry events with connection-health tracking.

    A timer fires every ``retry_interval_ms`` and launches a processing cycle:
    prune exhausted events, fetch the eligible ones, send them in sequential
    batches (concurrent within a batch), record each outcome on the queue and
    derive connection status from the results. At most one cycle runs at a
    time; overlapping triggers are dropped, not deferred.

    All state is instance-scoped so several managers (e.g. one per transport)
    can share a process.

    Example:
        async with RetryManager(queue, client.send_direct, RetryConfig(batch_size=20)) as rm:
            await rm.queue_failed_event(event, "HTTP 503")
    """

    CONNECTION_CHECK_INTERVAL_MS = 60_000

    def __init__(
        self,
        queue: TelemetryQueue,
        send_event: SendFunction,
        config: Optional[RetryConfig] = None,
        *,
        manager_id: str = "default",
        clock: Optional[Clock] = None,
    ) -> None:
        self._queue = queue
        self._send_event = send_event
        self._config = config or RetryConfig()
        self._id = manager_id
        self._clock = clock or now_ms

        self._timer: Optional[asyncio.Task] = None
        self._cycles: Set[asyncio.Task] = set()
        self._is_processing = False
        self._is_connected = True
        self._last_connection_check = 0

        RELAY_CONNECTED.labels(manager=self._id).set(1)

    # --------------- lifecycle

    async def __aenter__(self) -> "RetryManager":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.stop()
        await self.wait_idle()

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def start(self) -> None:
        """Start the retry timer. No-op if already running."""
        if self.is_running:
            return
        self._timer = asyncio.get_running_loop().create_task(
            self._run_timer(), name=f"telemetry-retry-{self._id}"
        )
        logger.info(
            f"[RetryManager:{self._id}] Started (interval={self._config.retry_interval_ms}ms, "
            f"batch_size={self._config.batch_size})"
        )

    def stop(self) -> None:
        """Cancel future timer ticks. In-flight cycles run to completion."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info(f"[RetryManager:{self._id}] Stopped")

    async def wait_idle(self) -> None:
        """Wait for cycles launched by the timer to settle."""
        if self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)

    async def _run_timer(self) -> None:
        interval = self._config.retry_interval_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            # Detached so that stop() never cancels a running cycle
            task = asyncio.create_task(self.process_queue())
            self._cycles.add(task)
            task.add_done_callback(self._cycles.discard)

    # --------------- public API

    async def trigger_retry(self) -> None:
        """Run one processing cycle now (still subject to the re-entrancy guard)."""
        await self.process_queue()

    async def queue_failed_event(self, payload: TelemetryEvent, error: Optional[str] = None) -> None:
        """Queue an event whose direct delivery failed. Never raises."""
        try:
            await self._queue.enqueue(payload, error)

            if error and self._is_connected:
                self._update_connection_status(False)

            await self._notify_queue_size_change()
        except Exception as exc:
            logger.error(
                f"[RetryManager:{self._id}] Could not queue event {payload.event}: "
                f"{type(exc).__name__}: {exc}"
            )

    def get_connection_status(self) -> bool:
        return self._is_connected

    # --------------- processing cycle

    async def process_queue(self) -> None:
        if self._is_processing:
            logger.debug(f"[RetryManager:{self._id}] Cycle already in progress, skipping")
            return

        self._is_processing = True
        t0 = monotonic()
        try:
            pruned = await self._queue.prune_failed_events()
            if pruned > 0:
                logger.warning(
                    f"[RetryManager:{self._id}] Pruned {pruned} events that exceeded max retries"
                )

            events = await self._queue.get_events_for_retry()
            if not events:
                if pruned > 0:
                    await self._notify_queue_size_change()
                return

            logger.info(f"[RetryManager:{self._id}] Processing {len(events)} events for retry")

            for batch in create_batches(events, self._config.batch_size):
                await self._process_batch(batch)

            await self._check_connection_status()
            await self._notify_queue_size_change()
        except Exception as exc:
            logger.error(
                f"[RetryManager:{self._id}] Error processing queue: {type(exc).__name__}: {exc}"
            )
        finally:
            self._is_processing = False
            RELAY_CYCLE_LATENCY_MS.labels(manager=self._id).observe((monotonic() - t0) * 1000.0)

    async def _process_batch(self, batch: List[QueuedEvent]) -> None:
        outcomes = await asyncio.gather(*(self._attempt(item) for item in batch))

        success_count = 0
        failure_count = 0
        for outcome in outcomes:
            await self._queue.update_event_after_retry(outcome.event_id, outcome.success, outcome.error)
            if outcome.success:
                success_count += 1
            else:
                failure_count += 1

        RELAY_DELIVERY_ATTEMPTS_TOTAL.labels(manager=self._id, outcome="success").inc(success_count)
        RELAY_DELIVERY_ATTEMPTS_TOTAL.labels(manager=self._id, outcome="failure").inc(failure_count)
        logger.debug(
            f"[RetryManager:{self._id}] Batch complete: "
            f"{success_count} succeeded, {failure_count} failed"
        )

        if success_count > 0 and not self._is_connected:
            self._update_connection_status(True)
        elif failure_count == len(batch) and self._is_connected:
            self._update_connection_status(False)

    async def _attempt(self, item: QueuedEvent) -> DeliveryOutcome:
        try:
            await self._send_event(item.payload)
        except Exception as exc:
            return DeliveryOutcome(event_id=item.id, success=False, error=describe_error(exc))
        return DeliveryOutcome(event_id=item.id, success=True)

    async def _check_connection_status(self) -> None:
        """Send a sentinel event at most once per CONNECTION_CHECK_INTERVAL_MS."""
        now = self._clock()
        if now - self._last_connection_check < self.CONNECTION_CHECK_INTERVAL_MS:
            return

        self._last_connection_check = now
        sentinel = TelemetryEvent(event=CONNECTION_CHECK_EVENT, properties={"timestamp": now})

        try:
            await self._send_event(sentinel)
        except Exception as exc:
            RELAY_CONNECTION_CHECKS_TOTAL.labels(manager=self._id, outcome="failure").inc()
            logger.debug(f"[RetryManager:{self._id}] Connection check failed: {describe_error(exc)}")
            if self._is_connected:
                self._update_connection_status(False)
            return

        RELAY_CONNECTION_CHECKS_TOTAL.labels(manager=self._id, outcome="success").inc()
        if not self._is_connected:
            self._update_connection_status(True)

    def _update_connection_status(self, is_connected: bool) -> None:
        if self._is_connected == is_connected:
            return

        self._is_connected = is_connected
        RELAY_CONNECTED.labels(manager=self._id).set(1 if is_connected else 0)
        logger.info(
            f"[RetryManager:{self._id}] Connection status changed: "
            f"{'connected' if is_connected else 'disconnected'}"
        )

        if self._config.on_connection_status_change:
            self._config.on_connection_status_change(is_connected)

    async def _notify_queue_size_change(self) -> None:
        metadata = await self._queue.get_queue_metadata()
        if self._config.on_queue_size_change:
            self._config.on_queue_size_change(metadata.size, metadata.is_above_warning_threshold)
