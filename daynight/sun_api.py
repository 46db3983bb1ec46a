"""
Sunrise/sunset lookup via api.sunrise-sunset.org.

One GET per sequence, no retry. Timestamps are requested unformatted
(ISO-8601, formatted=0) and converted to local wall-clock hour/minute.
"""

import json
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

import httpx

from daynight.config import SUN_API_URL, LOCAL_TIMEZONE
from daynight.errors import MalformedResponse, TransportFailure
from daynight.logger import logger
from daynight.models import Coordinates, SunTimes

DESCRIPTION = "Sunrise/sunset"


def build_sun_data_url(coords: Coordinates, base_url: str = SUN_API_URL) -> str:
    """
    Build the lookup URL for the given coordinates.

    Example:
        http://api.sunrise-sunset.org/json?lat=37.7749&lng=-122.4194&formatted=0
    """
    url = httpx.URL(base_url, params={
        "lat": coords.latitude,
        "lng": coords.longitude,
        "formatted": 0,
    })
    return str(url)


def classify_status(status: int) -> bool:
    """
    Decide whether an HTTP status counts as success.

    0 (transport error) and anything above 300 fail. Everything in 1-300
    succeeds, including 1xx, 204 and 300, and is left to response parsing.
    """
    return not (status == 0 or status > 300)


def resolve_timezone(tz: Optional[tzinfo] = None) -> Optional[tzinfo]:
    """Zone for wall-clock extraction: explicit, else LOCAL_TIMEZONE, else system local (None)."""
    if tz is not None:
        return tz
    if LOCAL_TIMEZONE:
        return ZoneInfo(LOCAL_TIMEZONE)
    return None


def _to_local(value, field: str, tz: Optional[tzinfo], description: str) -> datetime:
    if not isinstance(value, str):
        raise MalformedResponse(description, f"results.{field} is not a timestamp string")
    try:
        instant = datetime.fromisoformat(value)
    except ValueError:
        raise MalformedResponse(description, f"results.{field} is not ISO-8601: {value!r}") from None
    # Naive timestamps are taken as local time, like the device's Date parsing
    try:
        return instant.astimezone(tz)
    except (OverflowError, OSError):
        raise MalformedResponse(description, f"results.{field} out of range: {value!r}") from None


def parse_sun_times(
    body: str,
    tz: Optional[tzinfo] = None,
    description: str = DESCRIPTION,
) -> SunTimes:
    """
    Extract local sunrise/sunset hour and minute from a lookup response.

    Args:
        body: Response text, {"results": {"sunrise": "...", "sunset": "...", ...}, ...}
        tz: Zone to convert into (default: LOCAL_TIMEZONE or system local)
        description: Label used in error messages

    Returns:
        SunTimes in local wall-clock time

    Raises:
        MalformedResponse: Body is not JSON or results.sunrise/sunset are missing or invalid
    """
    try:
        data = json.loads(body)
    except (TypeError, ValueError) as e:
        raise MalformedResponse(description, f"invalid JSON: {e}") from None

    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, dict):
        api_status = data.get("status") if isinstance(data, dict) else None
        reason = "missing results"
        if api_status:
            reason += f" (API status: {api_status})"
        raise MalformedResponse(description, reason)

    for field in ("sunrise", "sunset"):
        if field not in results:
            raise MalformedResponse(description, f"missing results.{field}")

    zone = resolve_timezone(tz)
    sunrise = _to_local(results["sunrise"], "sunrise", zone, description)
    logger.info(f"Received sunrise {sunrise.isoformat()}")
    sunset = _to_local(results["sunset"], "sunset", zone, description)
    logger.info(f"Received sunset {sunset.isoformat()}")

    return SunTimes.from_datetimes(sunrise, sunset)


async def fetch_sun_times(
    client: httpx.AsyncClient,
    coords: Coordinates,
    base_url: str = SUN_API_URL,
    tz: Optional[tzinfo] = None,
    description: str = DESCRIPTION,
) -> SunTimes:
    """
    Query the lookup service once for the given coordinates.

    Args:
        client: Shared HTTP client (its timeout applies)
        coords: Device coordinates
        base_url: Lookup endpoint
        tz: Zone for hour/minute extraction
        description: Label used in log lines and errors

    Returns:
        SunTimes in local wall-clock time

    Raises:
        TransportFailure: Transport error (status 0) or status above 300
        MalformedResponse: Response body could not be interpreted
    """
    url = build_sun_data_url(coords, base_url)
    logger.debug(f"Requesting {description.lower()} data: {url}")

    try:
        response = await client.get(url)
        status, status_text, body = response.status_code, response.reason_phrase, response.text
    except httpx.RequestError as e:
        status, status_text, body = 0, str(e) or type(e).__name__, ""

    if not classify_status(status):
        raise TransportFailure(description, status, status_text)

    return parse_sun_times(body, tz=tz, description=description)
