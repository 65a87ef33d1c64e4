"""
Unit tests for StatusMonitor.
"""

import pytest

from telemetry_client import StatusMonitor
from telemetry_relay import StatusBus


class Ticker:
    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def monitor(ticker):
    bus = StatusBus()
    return StatusMonitor(bus, notification_interval_s=300, clock=ticker).attach()


def test_connection_lost_and_restored(monitor, ticker):
    monitor._bus.publish_connection(False)
    assert monitor.is_connected is False
    assert monitor.notifications[-1].severity == "warning"
    assert "lost" in monitor.notifications[-1].message

    ticker.t += 301
    monitor._bus.publish_connection(True)
    assert monitor.is_connected is True
    assert "restored" in monitor.notifications[-1].message


def test_notifications_are_rate_limited(monitor, ticker):
    monitor._bus.publish_connection(False)
    ticker.t += 10
    monitor._bus.publish_connection(True)

    # State follows even when the notification is suppressed
    assert monitor.is_connected is True
    assert len(monitor.notifications) == 1


def test_threshold_crossing_and_drain(monitor, ticker):
    monitor._bus.publish_queue_size(50, False)
    assert monitor.notifications == []

    monitor._bus.publish_queue_size(100, True)
    assert "building up (100 events)" in monitor.notifications[-1].message

    ticker.t += 301
    monitor._bus.publish_queue_size(40, False)
    assert len(monitor.notifications) == 1  # only a full drain is reported

    monitor._bus.publish_queue_size(150, True)
    ticker.t += 301
    monitor._bus.publish_queue_size(0, False)
    assert "cleared" in monitor.notifications[-1].message


def test_summary(monitor):
    assert "Connected" in monitor.summary()
    assert "Queue is empty" in monitor.summary()

    monitor._bus.publish_connection(False)
    monitor._bus.publish_queue_size(120, True)
    text = monitor.summary()
    assert "Disconnected" in text
    assert "120 events queued for retry" in text
    assert "above warning threshold" in text


def test_detach(monitor):
    monitor.detach()
    monitor._bus.publish_connection(False)
    assert monitor.is_connected is True
