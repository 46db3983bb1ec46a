"""
Locate -> fetch -> forward orchestration.

One call to run_sequence() is one invocation: it owns its data, stops at the
first failed stage, logs that failure once and never retries. Nothing is
shared between invocations.
"""

from dataclasses import dataclass, field
from datetime import tzinfo
from enum import Enum
from typing import Generic, Optional, TypeVar

import httpx

from daynight.config import SUN_API_URL, REPORT_LOCATION_FAILURE
from daynight.errors import CompanionError, LocationUnavailable, Stage
from daynight.location import LocationProvider
from daynight.logger import logger
from daynight.message_channel import forward_sun_times
from daynight.models import Coordinates, OutboundMessage, SunTimes
from daynight.sun_api import fetch_sun_times

T = TypeVar("T")


class SequenceState(str, Enum):
    IDLE = "idle"
    AWAITING_LOCATION = "awaiting_location"
    AWAITING_SUN_DATA = "awaiting_sun_data"
    FORWARDING = "forwarding"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Success payload or classified error of one stage."""

    value: Optional[T] = None
    error: Optional[CompanionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SequenceOutcome:
    state: SequenceState = SequenceState.IDLE
    history: list[SequenceState] = field(default_factory=lambda: [SequenceState.IDLE])
    coordinates: Optional[Coordinates] = None
    sun_times: Optional[SunTimes] = None
    message: Optional[OutboundMessage] = None
    error: Optional[CompanionError] = None

    @property
    def failed_stage(self) -> Optional[Stage]:
        return self.error.stage if self.error else None

    def advance(self, state: SequenceState) -> None:
        self.state = state
        self.history.append(state)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": self.error.to_dict() if self.error else None,
            "message": self.message.to_payload() if self.message else None,
        }


# ============================================================================
# Stages
# ============================================================================

async def locate(provider: LocationProvider) -> StageResult[Coordinates]:
    try:
        return StageResult(value=await provider.get_current_position())
    except LocationUnavailable as e:
        return StageResult(error=e)


async def fetch(
    client: httpx.AsyncClient,
    coords: Coordinates,
    base_url: str = SUN_API_URL,
    tz: Optional[tzinfo] = None,
) -> StageResult[SunTimes]:
    try:
        return StageResult(value=await fetch_sun_times(client, coords, base_url=base_url, tz=tz))
    except CompanionError as e:
        return StageResult(error=e)


async def forward(channel, sun_times: SunTimes) -> StageResult[OutboundMessage]:
    try:
        return StageResult(value=await forward_sun_times(channel, sun_times))
    except CompanionError as e:
        return StageResult(error=e)


# ============================================================================
# Orchestrator
# ============================================================================

async def run_sequence(
    provider: LocationProvider,
    client: httpx.AsyncClient,
    channel,
    base_url: str = SUN_API_URL,
    tz: Optional[tzinfo] = None,
    report_location_failure: bool = REPORT_LOCATION_FAILURE,
) -> SequenceOutcome:
    """
    Run one locate -> fetch -> forward sequence.

    Args:
        provider: Resolves device coordinates
        client: HTTP client for the lookup service
        channel: Message channel to the watch (send_app_message, publish_status)
        base_url: Lookup endpoint
        tz: Zone for hour/minute extraction (default: LOCAL_TIMEZONE or system local)
        report_location_failure: Tell the watch when no location could be found

    Returns:
        SequenceOutcome ending in DONE or FAILED
    """
    outcome = SequenceOutcome()

    outcome.advance(SequenceState.AWAITING_LOCATION)
    located = await locate(provider)
    if not located.ok:
        logger.error(f"Error requesting location! {located.error}")
        if report_location_failure:
            await channel.publish_status({
                "status": "location_unavailable",
                "code": located.error.code,
                "message": located.error.message,
            })
        return _fail(outcome, located.error)
    outcome.coordinates = located.value

    outcome.advance(SequenceState.AWAITING_SUN_DATA)
    fetched = await fetch(client, located.value, base_url=base_url, tz=tz)
    if not fetched.ok:
        logger.error(str(fetched.error))
        return _fail(outcome, fetched.error)
    outcome.sun_times = fetched.value

    outcome.advance(SequenceState.FORWARDING)
    forwarded = await forward(channel, fetched.value)
    if not forwarded.ok:
        logger.error(str(forwarded.error))
        return _fail(outcome, forwarded.error)
    outcome.message = forwarded.value

    outcome.advance(SequenceState.DONE)
    return outcome


def _fail(outcome: SequenceOutcome, error: CompanionError) -> SequenceOutcome:
    outcome.error = error
    outcome.advance(SequenceState.FAILED)
    return outcome
