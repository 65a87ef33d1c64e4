"""
Custom exceptions for the telemetry client.

Any of these raised by ``send_direct`` counts as a failed delivery attempt for
the retry manager; ``capture`` itself never raises.
"""

from typing import Optional


class TelemetryClientError(Exception):
    """Base error for the telemetry client."""

    pass


class NotAuthenticatedError(TelemetryClientError):
    """No session token is available for the telemetry API."""

    pass


class InvalidEventError(TelemetryClientError):
    """Event could not be serialized into an API payload."""

    pass


class DeliveryError(TelemetryClientError):
    """The telemetry API rejected the event or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableDeliveryError(DeliveryError):
    """Transient failures (network, timeouts, 429, 5xx)."""

    pass


def map_http_error(e: Exception) -> TelemetryClientError:
    import httpx

    if isinstance(e, httpx.HTTPStatusError):
        response = e.response
        code = response.status_code
        message = f"HTTP {code}: {response.reason_phrase}"
        if code in (401, 403):
            return NotAuthenticatedError(message)
        if code == 429 or code >= 500:
            return RetryableDeliveryError(message, status_code=code)
        return DeliveryError(message, status_code=code)
    if isinstance(e, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return RetryableDeliveryError(f"{type(e).__name__}: {e}")
    if isinstance(e, httpx.HTTPError):
        return DeliveryError(f"{type(e).__name__}: {e}")
    return TelemetryClientError(str(e))
