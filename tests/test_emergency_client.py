"""Emergency-services client tests."""

import asyncio

import httpx
import pytest

from lonelycare import __version__
from lonelycare.core.errors import EmergencyServiceError
from lonelycare.services.emergency_client import EmergencyServicesClient

PROFILE = {"name": "Mina", "phone": "010-1234-5678", "address": "1 Main St"}


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def test_successful_report_sends_auth_and_profile():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"status": "received"})

    client = EmergencyServicesClient(
        "https://119.test/report", "secret", transport=httpx.MockTransport(handler), sleep=FakeSleep()
    )
    result = asyncio.run(client.report_emergency(3, PROFILE, {"name": "Owner"}))

    assert result.success
    assert result.attempts == 1
    assert result.report_id.startswith("report_")
    request = seen[0]
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["User-Agent"] == f"lonelycare/{__version__}"
    assert b"Mina" in request.content


def test_retries_with_linear_backoff():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json={})

    sleep = FakeSleep()
    client = EmergencyServicesClient("https://119.test", transport=httpx.MockTransport(handler), retry_count=3, sleep=sleep)
    result = asyncio.run(client.report_emergency(3, PROFILE))

    assert result.success
    assert result.attempts == 3
    assert sleep.delays == [1.0, 2.0]


def test_gives_up_after_retry_count():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    sleep = FakeSleep()
    client = EmergencyServicesClient("https://119.test", transport=httpx.MockTransport(handler), retry_count=2, sleep=sleep)
    result = asyncio.run(client.report_emergency(3, PROFILE))

    assert not result.success
    assert result.attempts == 2
    assert "refused" in result.error
    assert sleep.delays == [1.0]


def test_disabled_configurations_do_not_call_out():
    def handler(request):
        raise AssertionError("should not be called")

    transport = httpx.MockTransport(handler)
    disabled = EmergencyServicesClient("https://119.test", enabled=False, transport=transport)
    manual = EmergencyServicesClient("https://119.test", auto_report=False, transport=transport)

    assert not asyncio.run(disabled.report_emergency(3, PROFILE)).success
    assert "Automatic" in asyncio.run(manual.report_emergency(3, PROFILE)).error


def test_missing_url_raises():
    with pytest.raises(EmergencyServiceError):
        asyncio.run(EmergencyServicesClient("").report_emergency(3, PROFILE))
