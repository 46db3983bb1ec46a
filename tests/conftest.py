"""Shared pytest fixtures for all tests."""

import json
from datetime import timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from daynight.models import Coordinates


# San Francisco, and a fixed UTC-7 zone (PDT) so hour/minute assertions
# never depend on the machine running the tests
SF = Coordinates(latitude=37.7749, longitude=-122.4194)
PDT = timezone(timedelta(hours=-7))

SUNRISE = "2024-06-01T12:00:00+00:00"
SUNSET = "2024-06-01T03:00:00+00:00"


def sun_api_body(sunrise: str = SUNRISE, sunset: str = SUNSET) -> str:
    """Response body shaped like api.sunrise-sunset.org with formatted=0."""
    return json.dumps({
        "results": {
            "sunrise": sunrise,
            "sunset": sunset,
            "solar_noon": "2024-06-01T19:30:00+00:00",
            "day_length": 55800,
        },
        "status": "OK",
    })


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, status_code: int = 200, body: str = "", exc: Exception | None = None):
        self.requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if exc is not None:
                raise exc
            return httpx.Response(status_code, text=body)

        super().__init__(handler)


@pytest.fixture
def mock_channel():
    """Message channel whose sends are acknowledged."""
    channel = AsyncMock()
    channel.send_app_message = AsyncMock(return_value=None)
    channel.publish_status = AsyncMock(return_value=None)
    channel.connected = True
    return channel


@pytest.fixture
def disable_mqtt():
    """Keep the message channel offline for tests that don't need a broker."""
    with patch('daynight.message_channel.MQTT_ENABLED', False), \
         patch('daynight.main.MQTT_ENABLED', False):
        yield


@pytest.fixture
def disable_mock_mode():
    with patch('daynight.main.MOCK_MODE', False):
        yield
