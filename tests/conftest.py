"""
Pytest configuration and fixtures for telemetry-relay.

Provides cross-platform event loop configuration, a controllable clock and
queue/store fixtures.
"""

import asyncio
import sys

import pytest

from telemetry_relay import InMemoryStore, QueueConfig, TelemetryEvent, TelemetryQueue

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def queue(store, clock):
    """Queue with default limits and a fake clock."""
    return TelemetryQueue(store, QueueConfig(), clock=clock)


@pytest.fixture
def make_event():
    def _make(name: str = "task_created", **props) -> TelemetryEvent:
        return TelemetryEvent(event=name, properties=props)

    return _make
