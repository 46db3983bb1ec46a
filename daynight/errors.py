"""
Error taxonomy for a single locate -> fetch -> forward sequence.

Every error is terminal for the invocation that raised it. None is retried.
"""

from enum import Enum


class Stage(str, Enum):
    """Sequence stage that can fail."""
    LOCATION = "location"
    SUN_DATA = "sun_data"
    FORWARDING = "forwarding"


class CompanionError(Exception):
    """Base class for classified stage failures."""

    stage: Stage

    def to_dict(self) -> dict:
        return {"stage": self.stage.value, "type": type(self).__name__, "detail": str(self)}


class LocationUnavailable(CompanionError):
    """Geolocation request failed (permission denied, no fix, or timeout)."""

    stage = Stage.LOCATION

    # Geolocation API error codes
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    _CODE_NAMES = {
        PERMISSION_DENIED: "PERMISSION_DENIED",
        POSITION_UNAVAILABLE: "POSITION_UNAVAILABLE",
        TIMEOUT: "TIMEOUT",
    }

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message
        super().__init__(f"{self.code_name}: {message}" if message else self.code_name)

    @property
    def code_name(self) -> str:
        return self._CODE_NAMES.get(self.code, f"UNKNOWN({self.code})")


class TransportFailure(CompanionError):
    """Lookup service answered with status 0 or a status above 300."""

    stage = Stage.SUN_DATA

    def __init__(self, description: str, status: int, status_text: str):
        self.description = description
        self.status = status
        self.status_text = status_text
        super().__init__(f"{description} API request failed with status: {status_text}")


class MalformedResponse(CompanionError):
    """Lookup service body was not JSON or lacked results.sunrise/results.sunset."""

    stage = Stage.SUN_DATA

    def __init__(self, description: str, reason: str):
        self.description = description
        self.reason = reason
        super().__init__(f"{description} API response malformed: {reason}")


class ForwardingFailure(CompanionError):
    """Message channel was unavailable or rejected the message."""

    stage = Stage.FORWARDING

    def __init__(self, description: str, reason: str):
        self.description = description
        self.reason = reason
        super().__init__(f"Error sending {description} to Pebble: {reason}")
