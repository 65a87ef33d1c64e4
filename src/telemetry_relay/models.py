"""
Pydantic models for telemetry payloads and queued retry candidates.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


CONNECTION_CHECK_EVENT = "telemetry_connection_check"


class TelemetryEvent(BaseModel):
    """Application telemetry event (name + properties).

    Opaque to the retry layer: it is persisted and handed back to the send
    function untouched.
    """

    event: str
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("event")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("event name must not be empty")
        return v

    @property
    def is_connection_check(self) -> bool:
        return self.event == CONNECTION_CHECK_EVENT


class QueuedEvent(BaseModel):
    """One persisted retry candidate.

    Timestamps are epoch milliseconds.
    """

    id: str
    payload: TelemetryEvent
    enqueued_at: int
    retry_count: int = 0
    last_attempt_at: Optional[int] = None
    last_error: Optional[str] = None

    def next_attempt_at(self) -> Optional[int]:
        """Earliest time (ms) of the next attempt, None if eligible immediately."""
        if self.last_attempt_at is None:
            return None
        return self.last_attempt_at + (2**self.retry_count) * 1000


class QueueMetadata(BaseModel):
    """Snapshot of queue size and age."""

    size: int
    oldest_event_timestamp: Optional[int] = None
    newest_event_timestamp: Optional[int] = None
    is_above_warning_threshold: bool = False
