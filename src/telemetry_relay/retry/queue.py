from __future__ import annotations

import asyncio
from typing import Any, List, Optional

from loguru import logger

from ..metrics.registry import (
    RELAY_EVENTS_EVICTED_TOTAL,
    RELAY_EVENTS_PRUNED_TOTAL,
    RELAY_EVENTS_QUEUED_TOTAL,
    RELAY_QUEUE_SIZE,
)
from ..models import QueuedEvent, QueueMetadata, TelemetryEvent
from ..utils import generate_id, now_ms
from .stores import KeyValueStore
from .types import Clock, QueueConfig


class TelemetryQueue:
    """Persistent, capacity-bounded queue of failed telemetry events.

    The whole collection lives under one store key and is read and rewritten
    in full on every mutation. A single lock makes each read-modify-persist
    atomic, so the application may enqueue while a retry cycle is updating.

    Example:
        queue = TelemetryQueue(JsonFileStore("telemetry-queue.json"))
        await queue.enqueue(TelemetryEvent(event="task_created"), "HTTP 503")
        ready = await queue.get_events_for_retry()
    """

    QUEUE_KEY = "telemetry_queue"
    QUEUE_METADATA_KEY = "telemetry_queue_metadata"

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[QueueConfig] = None,
        *,
        name: str = "telemetry",
        clock: Optional[Clock] = None,
    ) -> None:
        self._store = store
        self._config = config or QueueConfig()
        self._name = name
        self._clock = clock or now_ms
        self._lock = asyncio.Lock()

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._name

    async def enqueue(self, payload: TelemetryEvent, error: Optional[str] = None) -> QueuedEvent:
        """Append a failed event, evicting the oldest one when full."""
        async with self._lock:
            queue = await self._get_queue()

            if len(queue) >= self._config.max_queue_size:
                evicted = queue.pop(0)
                RELAY_EVENTS_EVICTED_TOTAL.labels(queue=self._name).inc()
                logger.warning(
                    f"Telemetry queue '{self._name}' full ({self._config.max_queue_size}), "
                    f"evicted oldest event {evicted.id} ({evicted.payload.event})"
                )

            queued = QueuedEvent(
                id=self._unique_id(queue),
                payload=payload,
                enqueued_at=self._clock(),
                retry_count=0,
                last_error=error,
            )
            queue.append(queued)

            await self._save_queue(queue)
            RELAY_EVENTS_QUEUED_TOTAL.labels(queue=self._name).inc()
            return queued

    async def get_events_for_retry(self) -> List[QueuedEvent]:
        """Events eligible for an attempt right now, in stored order.

        Backoff is 2**retry_count seconds after the last failed attempt; an
        event that has never been attempted is eligible immediately.
        """
        async with self._lock:
            queue = await self._get_queue()
        now = self._clock()

        ready = []
        for item in queue:
            if item.retry_count >= self._config.max_retries:
                continue
            next_at = item.next_attempt_at()
            if next_at is None or now >= next_at:
                ready.append(item)
        return ready

    async def update_event_after_retry(
        self, event_id: str, success: bool, error: Optional[str] = None
    ) -> None:
        """Record the outcome of one attempt. Unknown ids are ignored."""
        async with self._lock:
            queue = await self._get_queue()
            index = next((i for i, item in enumerate(queue) if item.id == event_id), None)
            if index is None:
                logger.debug(f"Ignoring retry outcome for unknown event {event_id}")
                return

            if success:
                queue.pop(index)
            else:
                item = queue[index]
                item.retry_count += 1
                item.last_attempt_at = self._clock()
                item.last_error = error

            await self._save_queue(queue)

    async def prune_failed_events(self) -> int:
        """Drop events that reached max retries; returns how many were dropped."""
        async with self._lock:
            queue = await self._get_queue()
            kept = [item for item in queue if item.retry_count < self._config.max_retries]
            pruned = len(queue) - len(kept)
            if pruned:
                await self._save_queue(kept)
                RELAY_EVENTS_PRUNED_TOTAL.labels(queue=self._name).inc(pruned)
            return pruned

    async def get_queue_size(self) -> int:
        async with self._lock:
            return len(await self._get_queue())

    async def get_queue_metadata(self) -> QueueMetadata:
        async with self._lock:
            queue = await self._get_queue()
        size = len(queue)
        return QueueMetadata(
            size=size,
            oldest_event_timestamp=queue[0].enqueued_at if queue else None,
            newest_event_timestamp=queue[-1].enqueued_at if queue else None,
            is_above_warning_threshold=size >= self._config.warning_threshold,
        )

    async def clear(self) -> None:
        """Remove every event and the metadata record."""
        async with self._lock:
            await self._store.set(self.QUEUE_KEY, [])
            await self._store.set(self.QUEUE_METADATA_KEY, None)
            RELAY_QUEUE_SIZE.labels(queue=self._name).set(0)

    async def get_all_events(self) -> List[QueuedEvent]:
        """Full snapshot in insertion order (diagnostics)."""
        async with self._lock:
            return await self._get_queue()

    # --------------- internals

    async def _get_queue(self) -> List[QueuedEvent]:
        raw: Any = await self._store.get(self.QUEUE_KEY)
        if not raw:
            return []
        return [QueuedEvent.model_validate(item) for item in raw]

    async def _save_queue(self, queue: List[QueuedEvent]) -> None:
        await self._store.set(self.QUEUE_KEY, [item.model_dump(mode="json") for item in queue])
        await self._store.set(
            self.QUEUE_METADATA_KEY,
            {"size": len(queue), "last_updated": self._clock()},
        )
        RELAY_QUEUE_SIZE.labels(queue=self._name).set(len(queue))

    @staticmethod
    def _unique_id(queue: List[QueuedEvent]) -> str:
        taken = {item.id for item in queue}
        new_id = generate_id()
        while new_id in taken:
            new_id = generate_id()
        return new_id
