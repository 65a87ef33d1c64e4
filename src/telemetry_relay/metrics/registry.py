"""
Prometheus metrics for the telemetry queue and retry manager.

Registered on the global REGISTRY at import time; expose them with
``prometheus_client.start_http_server`` in the host application.
"""

from prometheus_client import Counter, Gauge, Histogram


# --- Queue Metrics ---

RELAY_EVENTS_QUEUED_TOTAL = Counter(
    "telemetry_relay_events_queued_total",
    "Total number of failed telemetry events accepted into the retry queue",
    ["queue"],
)

RELAY_EVENTS_EVICTED_TOTAL = Counter(
    "telemetry_relay_events_evicted_total",
    "Events dropped from the head of a full queue",
    ["queue"],
)

RELAY_EVENTS_PRUNED_TOTAL = Counter(
    "telemetry_relay_events_pruned_total",
    "Events removed after exhausting max retries",
    ["queue"],
)

RELAY_QUEUE_SIZE = Gauge(
    "telemetry_relay_queue_size",
    "Current number of events waiting for retry",
    ["queue"],
)

# --- Manager Metrics ---

RELAY_DELIVERY_ATTEMPTS_TOTAL = Counter(
    "telemetry_relay_delivery_attempts_total",
    "Retry delivery attempts by outcome",
    ["manager", "outcome"],
)

RELAY_CONNECTION_CHECKS_TOTAL = Counter(
    "telemetry_relay_connection_checks_total",
    "Connectivity checks by outcome",
    ["manager", "outcome"],
)

RELAY_CONNECTED = Gauge(
    "telemetry_relay_connected",
    "1 when the manager considers the transport healthy, 0 otherwise",
    ["manager"],
)

RELAY_CYCLE_LATENCY_MS = Histogram(
    "telemetry_relay_cycle_latency_ms",
    "Duration of one processing cycle in milliseconds",
    ["manager"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)


class MetricsRegistry:
    """Centralized access to relay metrics."""

    events_queued_total = RELAY_EVENTS_QUEUED_TOTAL
    events_evicted_total = RELAY_EVENTS_EVICTED_TOTAL
    events_pruned_total = RELAY_EVENTS_PRUNED_TOTAL
    queue_size = RELAY_QUEUE_SIZE
    delivery_attempts_total = RELAY_DELIVERY_ATTEMPTS_TOTAL
    connection_checks_total = RELAY_CONNECTION_CHECKS_TOTAL
    connected = RELAY_CONNECTED
    cycle_latency_ms = RELAY_CYCLE_LATENCY_MS


# Singleton instance
metrics_registry = MetricsRegistry()
