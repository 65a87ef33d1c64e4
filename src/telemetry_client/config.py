from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from telemetry_relay.retry import QueueConfig, RetryConfig


class TelemetrySettings(BaseSettings):
    """Client-side settings, read from TELEMETRY_* environment variables or .env."""

    model_config = SettingsConfigDict(env_prefix="TELEMETRY_", env_file=".env", case_sensitive=False)

    API_URL: str = "http://localhost:8000"
    API_TOKEN: Optional[str] = None
    REQUEST_TIMEOUT: float = 10.0
    STORE_PATH: str = "telemetry-queue.json"

    MAX_QUEUE_SIZE: int = 1000
    MAX_RETRIES: int = 5
    WARNING_THRESHOLD: int = 100
    RETRY_INTERVAL_MS: int = 30_000
    BATCH_SIZE: int = 10

    EXCLUDED_EVENTS: List[str] = ["task_conversation_message"]
    NOTIFICATION_INTERVAL_S: float = 300.0
    DEBUG: bool = False

    @property
    def events_url(self) -> str:
        return self.API_URL.rstrip("/") + "/api/events"

    def queue_config(self) -> QueueConfig:
        return QueueConfig(
            max_queue_size=self.MAX_QUEUE_SIZE,
            max_retries=self.MAX_RETRIES,
            warning_threshold=self.WARNING_THRESHOLD,
        )

    def retry_config(self, **callbacks) -> RetryConfig:
        return RetryConfig(
            retry_interval_ms=self.RETRY_INTERVAL_MS,
            batch_size=self.BATCH_SIZE,
            **callbacks,
        )


@lru_cache()
def get_settings() -> TelemetrySettings:
    return TelemetrySettings()
