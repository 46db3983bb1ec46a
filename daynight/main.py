"""
HTTP API and runtime wiring for the day-and-night companion.

Run with: uvicorn daynight.main:app

IMPORTANT:
- Must run with ONE worker (one message channel per watch)
"""

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field
from typing import Any, Optional
from contextlib import asynccontextmanager
import asyncio

import httpx

from daynight.config import (
    DEVICE_ID, LOG_LEVEL, MOCK_MODE, MQTT_ENABLED,
    LOCATION_SOURCE, LOCATION_TIMEOUT_MS, LOCATION_MAXIMUM_AGE_MS,
    SUN_API_URL, SUN_API_TIMEOUT,
)
from daynight.errors import CompanionError
from daynight.location import DeviceGeolocation, LocationProvider, build_location_provider
from daynight.logger import logger
from daynight.message_channel import CompanionChannel
from daynight.models import Coordinates
from daynight.sequence import SequenceOutcome, run_sequence
from daynight.sun_api import fetch_sun_times

# Conditional imports based on MOCK_MODE
if MOCK_MODE:
    logger.info("🎭 MOCK MODE ENABLED - Using simulated watch")
    from daynight.mock_device import MockGeolocation, MockMessageChannel


# ============================================================================
# Runtime objects (created during lifespan startup)
# ============================================================================

http_client: Optional[httpx.AsyncClient] = None
location_provider: Optional[LocationProvider] = None
channel: Optional[Any] = None


def create_http_client() -> httpx.AsyncClient:
    """HTTP client for the lookup service; keeps httpx's default timeout unless SUN_API_TIMEOUT is set."""
    if SUN_API_TIMEOUT is not None:
        return httpx.AsyncClient(timeout=SUN_API_TIMEOUT)
    return httpx.AsyncClient()


async def handle_ready() -> SequenceOutcome:
    """Run one sequence in response to a ready signal."""
    return await run_sequence(location_provider, http_client, channel, base_url=SUN_API_URL)


# ============================================================================
# FastAPI Lifespan (message channel background task)
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Builds the HTTP client, location provider and message channel on startup.
    Stops the channel and closes the HTTP client on shutdown.
    """
    global http_client, location_provider, channel

    logger.info("Day-and-night companion starting up")
    logger.info(
        f"Configuration: DEVICE_ID={DEVICE_ID}, LOCATION_SOURCE={LOCATION_SOURCE}, "
        f"LOG_LEVEL={LOG_LEVEL}"
    )
    logger.info(f"MQTT enabled: {MQTT_ENABLED}")

    http_client = create_http_client()

    channel_task = None
    if MOCK_MODE:
        location_provider = LocationProvider(
            MockGeolocation(),
            timeout_ms=LOCATION_TIMEOUT_MS,
            maximum_age_ms=LOCATION_MAXIMUM_AGE_MS,
        )
        channel = MockMessageChannel()
    else:
        location_provider, source = build_location_provider()
        device_source = source if isinstance(source, DeviceGeolocation) else None
        channel = CompanionChannel(on_ready=handle_ready, geolocation=device_source)
        if device_source is not None:
            device_source.request_callback = channel.request_location

        if MQTT_ENABLED:
            channel_task = asyncio.create_task(channel.start())
            logger.info("Message channel started as background task")

    # App is running
    yield

    logger.info("Starting graceful shutdown...")

    if channel_task:
        logger.info("Stopping message channel...")
        await channel.stop()
        channel_task.cancel()
        try:
            await channel_task
        except asyncio.CancelledError:
            logger.info("Message channel stopped")

    await http_client.aclose()
    logger.info("Shutdown complete")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Day-and-Night Companion API",
    lifespan=lifespan,
    redoc_url=None,
    docs_url="/docs"
)


# ------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = Field("ok", description="Service status")
    mock_mode: bool = Field(..., description="Simulated watch in use")
    channel_connected: bool = Field(..., description="Message channel connected to the broker")


class SunTimesResponse(BaseModel):
    sunrise_hour: int = Field(..., ge=0, le=23, description="Local sunrise hour (0-23)")
    sunrise_minute: int = Field(..., ge=0, le=59, description="Local sunrise minute (0-59)")
    sunset_hour: int = Field(..., ge=0, le=23, description="Local sunset hour (0-23)")
    sunset_minute: int = Field(..., ge=0, le=59, description="Local sunset minute (0-59)")


class SequenceReport(BaseModel):
    state: str = Field(..., description="Final state: done or failed")
    history: list[str] = Field(..., description="States visited in order")
    failed_stage: Optional[str] = Field(None, description="location, sun_data or forwarding")
    error: Optional[dict[str, str]] = Field(None, description="Classified failure")
    message: Optional[dict[str, int]] = Field(None, description="Payload forwarded to the watch")


# ------------------------------------------------------------------
# Health
# ------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        mock_mode=MOCK_MODE,
        channel_connected=bool(channel and channel.connected),
    )


# ------------------------------------------------------------------
# Sequence
# ------------------------------------------------------------------

@app.post("/ready", response_model=SequenceReport)
async def ready():
    """
    Run one locate -> fetch -> forward sequence, as if the watch signalled ready.

    Stage failures are reported in the body (state "failed"), not as HTTP errors.
    """
    logger.info("Ready signal received via HTTP")
    outcome = await handle_ready()
    return SequenceReport(**outcome.to_dict())


@app.get("/sun-times", response_model=SunTimesResponse)
async def sun_times(
    latitude: float = Query(..., ge=-90, le=90, description="Latitude (-90 to 90)"),
    longitude: float = Query(..., ge=-180, le=180, description="Longitude (-180 to 180)"),
):
    """
    Look up local sun times for coordinates without forwarding anything to the watch.

    Useful for:
    - Checking the lookup service from the companion host
    - Debugging timezone conversion
    """
    try:
        result = await fetch_sun_times(
            http_client,
            Coordinates(latitude=latitude, longitude=longitude),
            base_url=SUN_API_URL,
        )
    except CompanionError as e:
        logger.error(f"Sun time lookup failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return SunTimesResponse(
        sunrise_hour=result.sunrise_hour,
        sunrise_minute=result.sunrise_minute,
        sunset_hour=result.sunset_hour,
        sunset_minute=result.sunset_minute,
    )
