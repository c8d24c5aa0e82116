"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone

import httpx
import pytest

# Set test environment variables before importing application modules
os.environ["BOUNDARY_API_KEY"] = "test-api-key"
os.environ["BOUNDARY_API_HOSTNAME"] = "api.example.com"
os.environ["BOUNDARY_ORG_ID"] = "org1"
os.environ["BOUNDARY_METER_NAME"] = "host-a"
os.environ["BOUNDARY_PERSIST_METER_ID"] = "false"
os.environ["OTEL_ENABLED"] = "false"

FROZEN_NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


class FakeBoundaryAPI:
    """Routes requests by (method, path) and records every request seen."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], httpx.Response] = {}

    def add(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json=None,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> None:
        if json is not None:
            response = httpx.Response(status_code, json=json, headers=headers)
        else:
            response = httpx.Response(status_code, content=content or b"", headers=headers)
        self._routes[(method, path)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        return route

    def sent(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]


@pytest.fixture
def test_settings():
    """Provide test settings."""
    from boundary_meter.config import Settings

    return Settings(
        boundary_api_key="test-api-key",
        boundary_api_hostname="api.example.com",
        boundary_org_id="org1",
        boundary_meter_name="host-a",
        boundary_persist_meter_id=False,
    )


@pytest.fixture
def frozen_now():
    """The instant the client's clock always reports."""
    return FROZEN_NOW


@pytest.fixture
def fake_api():
    """Provide an in-process Boundary API."""
    return FakeBoundaryAPI()


@pytest.fixture
def transport(fake_api):
    """Transport wired to the fake API."""
    from boundary_meter.meters.transport import MeterTransport

    http_client = httpx.Client(transport=httpx.MockTransport(fake_api))
    return MeterTransport(ca_file="unused.pem", http_client=http_client)


@pytest.fixture
def client(test_settings, transport):
    """Meter client with a frozen clock."""
    from boundary_meter.meters.client import MeterClient

    return MeterClient(
        test_settings.endpoint,
        test_settings.credentials,
        transport,
        clock=lambda: FROZEN_NOW,
    )
