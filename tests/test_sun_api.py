"""Tests for the sunrise/sunset lookup."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx
import pytest

from conftest import PDT, SF, SUNRISE, SUNSET, RecordingTransport, sun_api_body
from daynight.errors import MalformedResponse, Stage, TransportFailure
from daynight.models import Coordinates, SunTimes
from daynight.sun_api import (
    build_sun_data_url,
    classify_status,
    fetch_sun_times,
    parse_sun_times,
    resolve_timezone,
)


def expected_sun_times(sunrise: str, sunset: str, tz) -> SunTimes:
    rise = datetime.fromisoformat(sunrise).astimezone(tz)
    set_ = datetime.fromisoformat(sunset).astimezone(tz)
    return SunTimes(rise.hour, rise.minute, set_.hour, set_.minute)


class TestBuildUrl:
    """Tests for lookup URL construction."""

    def test_contains_coordinates_and_formatted(self):
        url = httpx.URL(build_sun_data_url(SF))
        assert url.params["lat"] == "37.7749"
        assert url.params["lng"] == "-122.4194"
        assert url.params["formatted"] == "0"

    def test_default_endpoint(self):
        url = build_sun_data_url(SF)
        assert url.startswith("http://api.sunrise-sunset.org/json?")

    def test_exact_query(self):
        url = build_sun_data_url(Coordinates(51.5, -0.12), base_url="http://example.test/json")
        assert url == "http://example.test/json?lat=51.5&lng=-0.12&formatted=0"

    @pytest.mark.parametrize("lat,lng", [(0.0, 0.0), (-33.8688, 151.2093), (89.9999, -179.9999)])
    def test_coordinates_round_trip(self, lat, lng):
        params = httpx.URL(build_sun_data_url(Coordinates(lat, lng))).params
        assert float(params["lat"]) == lat
        assert float(params["lng"]) == lng
        assert list(params.keys()) == ["lat", "lng", "formatted"]


class TestClassifyStatus:
    """Tests for the success/failure status boundary."""

    @pytest.mark.parametrize("status", [0, 301, 302, 404, 500, 503])
    def test_failure(self, status):
        assert classify_status(status) is False

    @pytest.mark.parametrize("status", [1, 100, 200, 204, 299, 300])
    def test_success(self, status):
        assert classify_status(status) is True

    def test_boundary(self):
        assert classify_status(300) is True
        assert classify_status(301) is False


class TestParseSunTimes:
    """Tests for response parsing and local time extraction."""

    def test_scenario_san_francisco(self):
        """Hour/minute come from converting both instants into the given zone."""
        result = parse_sun_times(sun_api_body(), tz=PDT)
        assert result == expected_sun_times(SUNRISE, SUNSET, PDT)
        assert result == SunTimes(5, 0, 20, 0)

    def test_system_local_zone_by_default(self):
        with patch('daynight.sun_api.LOCAL_TIMEZONE', None):
            result = parse_sun_times(sun_api_body())
        assert result == expected_sun_times(SUNRISE, SUNSET, None)

    def test_configured_zone(self):
        with patch('daynight.sun_api.LOCAL_TIMEZONE', "UTC"):
            result = parse_sun_times(sun_api_body())
        assert result == SunTimes(12, 0, 3, 0)

    def test_explicit_zone_wins_over_configured(self):
        with patch('daynight.sun_api.LOCAL_TIMEZONE', "UTC"):
            result = parse_sun_times(sun_api_body(), tz=PDT)
        assert result == SunTimes(5, 0, 20, 0)

    def test_minutes_preserved(self):
        body = sun_api_body("2024-03-20T05:47:31+00:00", "2024-03-20T18:02:59+00:00")
        result = parse_sun_times(body, tz=timezone.utc)
        assert result == SunTimes(5, 47, 18, 2)

    def test_non_utc_offset_in_response(self):
        tz = timezone(timedelta(hours=2))
        body = sun_api_body("2024-06-01T04:30:00-07:00", "2024-06-01T20:45:00-07:00")
        assert parse_sun_times(body, tz=tz) == expected_sun_times(
            "2024-06-01T04:30:00-07:00", "2024-06-01T20:45:00-07:00", tz
        )

    def test_zulu_suffix(self):
        body = sun_api_body("2024-06-01T12:00:00Z", "2024-06-01T03:00:00Z")
        assert parse_sun_times(body, tz=PDT) == SunTimes(5, 0, 20, 0)

    def test_same_input_same_result(self):
        assert parse_sun_times(sun_api_body(), tz=PDT) == parse_sun_times(sun_api_body(), tz=PDT)

    @pytest.mark.parametrize("body,reason", [
        ("not json", "invalid JSON"),
        ("", "invalid JSON"),
        ("[]", "missing results"),
        ('{"status": "OK"}', "missing results"),
        ('{"results": "", "status": "INVALID_REQUEST"}', "INVALID_REQUEST"),
        ('{"results": {"sunset": "2024-06-01T03:00:00+00:00"}}', "missing results.sunrise"),
        ('{"results": {"sunrise": "2024-06-01T12:00:00+00:00"}}', "missing results.sunset"),
        ('{"results": {"sunrise": 1717243200, "sunset": "2024-06-01T03:00:00+00:00"}}', "not a timestamp string"),
        ('{"results": {"sunrise": "yesterday", "sunset": "2024-06-01T03:00:00+00:00"}}', "not ISO-8601"),
        ('{"results": {"sunrise": "0001-01-01T00:00:00+00:00", "sunset": "2024-06-01T03:00:00+00:00"}}', "out of range"),
    ])
    def test_malformed(self, body, reason):
        with pytest.raises(MalformedResponse) as exc_info:
            parse_sun_times(body, tz=PDT)
        assert reason in str(exc_info.value)
        assert exc_info.value.stage == Stage.SUN_DATA


class TestResolveTimezone:

    def test_explicit(self):
        assert resolve_timezone(PDT) is PDT

    def test_system_local(self):
        with patch('daynight.sun_api.LOCAL_TIMEZONE', None):
            assert resolve_timezone() is None

    def test_configured(self):
        with patch('daynight.sun_api.LOCAL_TIMEZONE', "UTC"):
            assert resolve_timezone().key == "UTC"


class TestFetchSunTimes:
    """Tests for the single lookup request."""

    @pytest.mark.asyncio
    async def test_success(self):
        transport = RecordingTransport(200, sun_api_body())
        async with httpx.AsyncClient(transport=transport) as client:
            result = await fetch_sun_times(client, SF, tz=PDT)

        assert result == SunTimes(5, 0, 20, 0)
        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert request.method == "GET"
        assert request.url.params["lat"] == "37.7749"
        assert request.url.params["lng"] == "-122.4194"
        assert request.url.params["formatted"] == "0"

    @pytest.mark.asyncio
    async def test_custom_endpoint(self):
        transport = RecordingTransport(200, sun_api_body())
        async with httpx.AsyncClient(transport=transport) as client:
            await fetch_sun_times(client, SF, base_url="http://sun.test/json", tz=PDT)
        assert transport.requests[0].url.host == "sun.test"

    @pytest.mark.asyncio
    async def test_server_error(self):
        transport = RecordingTransport(500, "oops")
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TransportFailure) as exc_info:
                await fetch_sun_times(client, SF, tz=PDT)

        error = exc_info.value
        assert error.status == 500
        assert error.status_text == "Internal Server Error"
        assert str(error) == "Sunrise/sunset API request failed with status: Internal Server Error"
        assert len(transport.requests) == 1  # no retry

    @pytest.mark.asyncio
    async def test_not_found_is_transport_failure(self):
        transport = RecordingTransport(404, "<html>Not Found</html>")
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TransportFailure) as exc_info:
                await fetch_sun_times(client, SF, tz=PDT)
        assert exc_info.value.status == 404
        assert exc_info.value.status_text == "Not Found"

    @pytest.mark.asyncio
    async def test_redirect_is_transport_failure(self):
        transport = RecordingTransport(301, "")
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TransportFailure):
                await fetch_sun_times(client, SF, tz=PDT)

    @pytest.mark.asyncio
    async def test_transport_error_is_status_zero(self):
        transport = RecordingTransport(exc=httpx.ConnectError("connection refused"))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TransportFailure) as exc_info:
                await fetch_sun_times(client, SF, tz=PDT)

        assert exc_info.value.status == 0
        assert exc_info.value.status_text == "connection refused"

    @pytest.mark.asyncio
    async def test_timeout_is_status_zero(self):
        transport = RecordingTransport(exc=httpx.ReadTimeout("timed out"))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TransportFailure) as exc_info:
                await fetch_sun_times(client, SF, tz=PDT)
        assert exc_info.value.status == 0

    @pytest.mark.asyncio
    async def test_passing_status_with_unexpected_body(self):
        """Statuses up to 300 pass classification, so a bad body surfaces as MalformedResponse."""
        transport = RecordingTransport(300, "<html>Multiple Choices</html>")
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(MalformedResponse):
                await fetch_sun_times(client, SF, tz=PDT)

    @pytest.mark.asyncio
    async def test_no_content(self):
        transport = RecordingTransport(204, "")
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(MalformedResponse):
                await fetch_sun_times(client, SF, tz=PDT)
