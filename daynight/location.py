"""
Device geolocation with a bounded wait and tolerance for stale fixes.

A fix younger than maximum_age_ms is reused as-is; otherwise a fresh fix is
requested and abandoned after timeout_ms.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Protocol

from daynight.config import (
    LOCATION_SOURCE,
    LATITUDE,
    LONGITUDE,
    LOCATION_TIMEOUT_MS,
    LOCATION_MAXIMUM_AGE_MS,
)
from daynight.errors import LocationUnavailable
from daynight.logger import logger
from daynight.models import Coordinates, Position


class GeolocationSource(Protocol):
    """Platform capability that produces position fixes."""

    def last_known(self) -> Optional[Position]:
        ...

    async def request_position(self, options: dict) -> Position:
        ...


class StaticGeolocation:
    """Fixed coordinates from configuration; every fix is taken 'now'."""

    def __init__(self, latitude: float, longitude: float):
        self.coords = Coordinates(latitude=latitude, longitude=longitude)

    def last_known(self) -> Optional[Position]:
        return Position(coords=self.coords, timestamp=datetime.now(timezone.utc))

    async def request_position(self, options: dict) -> Position:
        return Position(coords=self.coords, timestamp=datetime.now(timezone.utc))


class DeviceGeolocation:
    """
    Fixes reported by the phone/watch over the message channel.

    request_position() asks the device for a fix through request_callback
    and waits for the next report() or report_error(). Every report is kept
    as the last known fix.
    """

    def __init__(self, request_callback: Optional[Callable[[dict], Awaitable[None]]] = None):
        """
        Args:
            request_callback: Publishes a location request to the device
                              Signature: async def(options: dict) -> None
        """
        self.request_callback = request_callback
        self._last_position: Optional[Position] = None
        self._waiters: list[asyncio.Future] = []

    def last_known(self) -> Optional[Position]:
        return self._last_position

    async def request_position(self, options: dict) -> Position:
        if self.request_callback is None:
            raise LocationUnavailable(
                LocationUnavailable.POSITION_UNAVAILABLE,
                "no channel to request a location fix",
            )

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await self.request_callback(options)
            return await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def report(self, position: Position) -> None:
        """Record a fix from the device and wake pending requests."""
        self._last_position = position
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(position)

    def report_error(self, code: int, message: str = "") -> None:
        """Fail pending requests with the device's geolocation error."""
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(LocationUnavailable(code, message))


class LocationProvider:
    """Resolves the current Coordinates from a GeolocationSource."""

    def __init__(
        self,
        source: GeolocationSource,
        timeout_ms: int = LOCATION_TIMEOUT_MS,
        maximum_age_ms: int = LOCATION_MAXIMUM_AGE_MS,
    ):
        self.source = source
        self.timeout_ms = timeout_ms
        self.maximum_age_ms = maximum_age_ms

    @property
    def options(self) -> dict:
        return {"timeout": self.timeout_ms, "maximumAge": self.maximum_age_ms}

    async def get_current_position(self) -> Coordinates:
        """
        Get the device's coordinates.

        Returns:
            Coordinates of a cached fix (age <= maximum_age_ms) or a fresh one

        Raises:
            LocationUnavailable: Permission denied, no fix, or timeout
        """
        cached = self.source.last_known()
        if cached is not None and cached.age_ms() <= self.maximum_age_ms:
            logger.debug(f"Using cached location fix ({cached.age_ms():.0f} ms old)")
            return cached.coords

        try:
            position = await asyncio.wait_for(
                self.source.request_position(self.options),
                timeout=self.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            raise LocationUnavailable(
                LocationUnavailable.TIMEOUT,
                f"no location fix within {self.timeout_ms} ms",
            ) from None

        return position.coords


def build_location_provider(
    request_callback: Optional[Callable[[dict], Awaitable[None]]] = None,
) -> tuple[LocationProvider, GeolocationSource]:
    """
    Create the provider for the configured LOCATION_SOURCE.

    Args:
        request_callback: Used by the device source to ask for a fix

    Returns:
        (provider, source) so the caller can feed device reports to the source
    """
    if LOCATION_SOURCE == "static":
        logger.info(f"Using static location ({LATITUDE}, {LONGITUDE})")
        source: GeolocationSource = StaticGeolocation(LATITUDE, LONGITUDE)
    elif LOCATION_SOURCE == "device":
        source = DeviceGeolocation(request_callback)
    else:
        raise ValueError(f"Unknown LOCATION_SOURCE '{LOCATION_SOURCE}' (expected 'device' or 'static')")

    return LocationProvider(source), source
