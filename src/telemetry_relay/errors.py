"""
Exceptions raised by the telemetry relay core.

Runtime failures inside the retry cycle are logged and swallowed; these types
surface only from stores and from direct use of the building blocks.
"""


class TelemetryRelayError(Exception):
    """Base error for the relay core."""

    pass


class StoreError(TelemetryRelayError):
    """Durable store contents could not be read or written."""

    pass
