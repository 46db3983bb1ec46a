"""
Data carried through one locate -> fetch -> forward sequence.

Nothing here is retained between invocations: each value is built,
handed to the next stage and discarded.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Position:
    """A geolocation fix and the moment it was taken."""

    coords: Coordinates
    timestamp: datetime

    def age_ms(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.timestamp).total_seconds() * 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Position":
        """
        Build a fix from a geolocation report.

        Args:
            data: {"coords": {"latitude": float, "longitude": float},
                   "timestamp": epoch milliseconds (optional, default now)}

        Raises:
            KeyError, TypeError, ValueError: If the report is not shaped as above
        """
        coords = data["coords"]
        timestamp = data.get("timestamp")
        taken = (
            datetime.fromtimestamp(float(timestamp) / 1000, tz=timezone.utc)
            if timestamp is not None
            else datetime.now(timezone.utc)
        )
        return cls(
            coords=Coordinates(
                latitude=float(coords["latitude"]),
                longitude=float(coords["longitude"]),
            ),
            timestamp=taken,
        )


@dataclass(frozen=True)
class SunTimes:
    """Local wall-clock sunrise and sunset."""

    sunrise_hour: int
    sunrise_minute: int
    sunset_hour: int
    sunset_minute: int

    def __post_init__(self):
        for name in ("sunrise_hour", "sunset_hour"):
            if not 0 <= getattr(self, name) <= 23:
                raise ValueError(f"{name} must be in 0-23, got {getattr(self, name)}")
        for name in ("sunrise_minute", "sunset_minute"):
            if not 0 <= getattr(self, name) <= 59:
                raise ValueError(f"{name} must be in 0-59, got {getattr(self, name)}")

    @classmethod
    def from_datetimes(cls, sunrise: datetime, sunset: datetime) -> "SunTimes":
        return cls(
            sunrise_hour=sunrise.hour,
            sunrise_minute=sunrise.minute,
            sunset_hour=sunset.hour,
            sunset_minute=sunset.minute,
        )


@dataclass(frozen=True)
class OutboundMessage:
    """
    Payload sent to the watch application.

    Only ever built from a fully-populated SunTimes, so a partial
    message cannot exist.
    """

    sun_times: SunTimes

    @classmethod
    def from_sun_times(cls, sun_times: SunTimes) -> "OutboundMessage":
        if not isinstance(sun_times, SunTimes):
            raise TypeError(f"OutboundMessage requires SunTimes, got {type(sun_times).__name__}")
        return cls(sun_times=sun_times)

    def to_payload(self) -> dict[str, int]:
        return {
            "KEY_SUNRISE_HOUR": self.sun_times.sunrise_hour,
            "KEY_SUNRISE_MINUTE": self.sun_times.sunrise_minute,
            "KEY_SUNSET_HOUR": self.sun_times.sunset_hour,
            "KEY_SUNSET_MINUTE": self.sun_times.sunset_minute,
        }
