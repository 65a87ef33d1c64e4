from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from telemetry_relay.models import QueueMetadata, TelemetryEvent
from telemetry_relay.retry import (
    ConnectionStatusCallback,
    KeyValueStore,
    QueueSizeCallback,
    RetryManager,
    StatusBus,
    TelemetryQueue,
)

from .config import TelemetrySettings, get_settings
from .errors import InvalidEventError, NotAuthenticatedError, map_http_error


class TelemetryClient:
    """
    HTTP telemetry client with a persistent retry queue behind it.

    ``capture`` tries a direct POST first; failures are handed to the
    RetryManager which persists them and retries in the background. When no
    store is given the client sends best-effort only.

    Usage:

        store = JsonFileStore(settings.STORE_PATH)
        async with TelemetryClient(settings, store=store) as client:
            client.set_connection_status_callback(on_status)
            await client.capture(TelemetryEvent(event="task_created", properties={"taskId": "t1"}))
    """

    def __init__(
        self,
        settings: Optional[TelemetrySettings] = None,
        *,
        store: Optional[KeyValueStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        token: Optional[str] = None,
        bus: Optional[StatusBus] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._token = token if token is not None else self.settings.API_TOKEN
        self._http = http_client
        self._owns_http = http_client is None
        self.bus = bus or StatusBus()

        self._connection_status_callback: Optional[ConnectionStatusCallback] = None
        self._queue_size_callback: Optional[QueueSizeCallback] = None

        self.queue: Optional[TelemetryQueue] = None
        self.retry_manager: Optional[RetryManager] = None
        if store is not None:
            self._initialize_queue_system(store)

    def _initialize_queue_system(self, store: KeyValueStore) -> None:
        self.queue = TelemetryQueue(store, self.settings.queue_config())
        self.retry_manager = RetryManager(
            self.queue,
            self.send_direct,
            self.settings.retry_config(
                on_connection_status_change=self.bus.publish_connection,
                on_queue_size_change=self.bus.publish_queue_size,
            ),
        )

    # --------------- context management

    async def __aenter__(self) -> "TelemetryClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def start(self) -> None:
        if self.retry_manager:
            self.retry_manager.start()

    async def aclose(self) -> None:
        if self.retry_manager:
            self.retry_manager.stop()
            await self.retry_manager.wait_idle()
        # Drop callbacks so host objects are not kept alive
        self.set_connection_status_callback(None)
        self.set_queue_size_callback(None)
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # --------------- observers

    def set_connection_status_callback(self, callback: Optional[ConnectionStatusCallback]) -> None:
        """Replace the connection-status callback (None removes it)."""
        if self._connection_status_callback is not None:
            self.bus.unsubscribe(self._connection_status_callback)
        self._connection_status_callback = callback
        if callback is not None:
            self.bus.subscribe_connection(callback)

    def set_queue_size_callback(self, callback: Optional[QueueSizeCallback]) -> None:
        """Replace the queue-size callback (None removes it)."""
        if self._queue_size_callback is not None:
            self.bus.unsubscribe(self._queue_size_callback)
        self._queue_size_callback = callback
        if callback is not None:
            self.bus.subscribe_queue_size(callback)

    def get_connection_status(self) -> bool:
        return self.retry_manager.get_connection_status() if self.retry_manager else True

    async def get_queue_metadata(self) -> Optional[QueueMetadata]:
        if not self.queue:
            return None
        return await self.queue.get_queue_metadata()

    async def trigger_retry(self) -> None:
        if self.retry_manager:
            await self.retry_manager.trigger_retry()

    # --------------- delivery

    def is_event_capturable(self, event_name: str) -> bool:
        return event_name not in self.settings.EXCLUDED_EVENTS

    async def capture(self, event: TelemetryEvent) -> None:
        """Send an event, queueing it for retry on failure. Never raises."""
        if not self.is_event_capturable(event.event):
            if self.settings.DEBUG:
                logger.debug(f"[TelemetryClient#capture] Skipping event: {event.event}")
            return

        try:
            self._build_payload(event)
        except InvalidEventError as exc:
            logger.error(f"[TelemetryClient#capture] Invalid telemetry event: {exc}")
            return

        try:
            await self.send_direct(event)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error(f"[TelemetryClient#capture] Error sending telemetry event: {message}")
            if self.retry_manager:
                await self.retry_manager.queue_failed_event(event, message)

    async def send_direct(self, event: TelemetryEvent) -> None:
        """POST one event without queueing; raises on any failure."""
        if not self._token:
            raise NotAuthenticatedError("Not authenticated")

        payload = self._build_payload(event)
        if self.settings.DEBUG:
            logger.debug(f"[TelemetryClient#send] {json.dumps(payload)}")

        try:
            response = await self._client().post(
                self.settings.events_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._token}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise map_http_error(exc) from exc

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.REQUEST_TIMEOUT)
            self._owns_http = True
        return self._http

    @staticmethod
    def _build_payload(event: TelemetryEvent) -> Dict[str, Any]:
        payload = {"type": event.event, "properties": event.properties or {}}
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as exc:
            raise InvalidEventError(f"{event.event}: {exc}") from exc
        return payload
