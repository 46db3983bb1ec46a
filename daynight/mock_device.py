"""
Mock watch/phone implementations for running without a paired device.

Enable mock mode by setting MOCK_MODE=true in .env

Features:
- Mock geolocation with optional jitter, delay and failure code
- Mock message channel that records sent payloads and can reject them
- Compatible interface with the real location source and channel
"""

import asyncio
import random
from datetime import datetime, timezone
from typing import Optional

from daynight.errors import ForwardingFailure, LocationUnavailable
from daynight.logger import logger
from daynight.models import Coordinates, Position


class MockGeolocation:
    """
    Mock geolocation source.

    Drop-in replacement for DeviceGeolocation when MOCK_MODE=true
    """

    def __init__(
        self,
        latitude: float = 37.7749,
        longitude: float = -122.4194,
        jitter: float = 0.0,
        delay: float = 0.0,
        error_code: Optional[int] = None,
    ):
        """
        Args:
            latitude: Base latitude of simulated fixes
            longitude: Base longitude of simulated fixes
            jitter: Max random offset in degrees applied to each fix
            delay: Seconds to wait before answering a request
            error_code: Fail every request with this geolocation error code
        """
        self.latitude = latitude
        self.longitude = longitude
        self.jitter = jitter
        self.delay = delay
        self.error_code = error_code
        self.request_count = 0
        self._last_position: Optional[Position] = None
        logger.info(f"[MOCK] Geolocation at ({latitude}, {longitude})")

    def last_known(self) -> Optional[Position]:
        return self._last_position

    async def request_position(self, options: dict) -> Position:
        self.request_count += 1
        logger.debug(f"[MOCK] Location requested with {options}")

        if self.delay:
            await asyncio.sleep(self.delay)

        if self.error_code is not None:
            raise LocationUnavailable(self.error_code, "simulated geolocation failure")

        position = Position(
            coords=Coordinates(
                latitude=self.latitude + random.uniform(-self.jitter, self.jitter),
                longitude=self.longitude + random.uniform(-self.jitter, self.jitter),
            ),
            timestamp=datetime.now(timezone.utc),
        )
        self._last_position = position
        return position


class MockMessageChannel:
    """
    Mock message channel.

    Drop-in replacement for CompanionChannel when MOCK_MODE=true
    """

    def __init__(self, reject: bool = False):
        self.reject = reject
        self.sent: list[dict] = []
        self.statuses: list[dict] = []

    @property
    def connected(self) -> bool:
        return True

    async def send_app_message(self, payload: dict, description: str = "sunrise/sunset info"):
        if self.reject:
            logger.debug(f"[MOCK] Watch rejected {description}")
            raise ForwardingFailure(description, "simulated rejection")
        self.sent.append(dict(payload))
        logger.info(f"[MOCK] AppMessage -> watch: {payload}")

    async def request_location(self, options: dict):
        logger.debug(f"[MOCK] Location request ignored: {options}")

    async def publish_status(self, status: dict):
        self.statuses.append(dict(status))
        logger.info(f"[MOCK] Status -> watch: {status}")
