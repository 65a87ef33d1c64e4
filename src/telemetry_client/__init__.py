"""
Telemetry Client

HTTP delivery of telemetry events backed by the telemetry_relay retry queue.

Usage:
    from telemetry_client import TelemetryClient, TelemetrySettings
    from telemetry_relay import JsonFileStore, TelemetryEvent

    settings = TelemetrySettings(API_URL="https://telemetry.example.com", API_TOKEN="...")
    async with TelemetryClient(settings, store=JsonFileStore(settings.STORE_PATH)) as client:
        await client.capture(TelemetryEvent(event="task_created"))
"""

from .client import TelemetryClient
from .config import TelemetrySettings, get_settings
from .monitor import StatusMonitor, Notification
from .errors import (
    TelemetryClientError,
    NotAuthenticatedError,
    InvalidEventError,
    DeliveryError,
    RetryableDeliveryError,
    map_http_error,
)

__all__ = [
    "TelemetryClient",
    "TelemetrySettings",
    "get_settings",
    "StatusMonitor",
    "Notification",
    "TelemetryClientError",
    "NotAuthenticatedError",
    "InvalidEventError",
    "DeliveryError",
    "RetryableDeliveryError",
    "map_http_error",
]
