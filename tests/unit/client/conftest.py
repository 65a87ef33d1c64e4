"""
Fixtures for client unit tests.
"""

import json

import httpx
import pytest

from telemetry_client import TelemetrySettings


class FakeApi:
    """httpx handler that records requests and answers with a fixed status."""

    def __init__(self, status: int = 200):
        self.status = status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status)

    @property
    def bodies(self):
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def http_client(api):
    return httpx.AsyncClient(transport=httpx.MockTransport(api))


@pytest.fixture
def settings():
    return TelemetrySettings(API_URL="http://telemetry.test", API_TOKEN="secret-token")
