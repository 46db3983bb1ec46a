"""
MQTT message channel between the companion and the watch application.

Features:
- "ready" signal from the watch starts an independent sequence per message
- Location fixes reported by the phone/watch feed DeviceGeolocation
- Sun times forwarded as a flat key -> integer AppMessage (qos 1, acknowledged)
- Auto-reconnection on connection loss
- Last Will and Testament (LWT) for availability
"""

import asyncio
import json
from contextlib import AsyncExitStack
from typing import Awaitable, Callable, Optional

import aiomqtt
from daynight.config import (
    MQTT_ENABLED,
    MQTT_BROKER,
    MQTT_PORT,
    MQTT_USERNAME,
    MQTT_PASSWORD,
    MQTT_CLIENT_ID,
    DEVICE_ID,
)
from daynight.errors import ForwardingFailure, LocationUnavailable
from daynight.location import DeviceGeolocation
from daynight.logger import logger
from daynight.models import OutboundMessage, Position, SunTimes


# ============================================================================
# MQTT Topics (unique per watch using DEVICE_ID)
# ============================================================================

TOPIC_READY = f"daynight/{DEVICE_ID}/ready"
TOPIC_LOCATION = f"daynight/{DEVICE_ID}/location"
TOPIC_LOCATION_REQUEST = f"daynight/{DEVICE_ID}/location/request"
TOPIC_APP_MESSAGE = f"daynight/{DEVICE_ID}/appmessage"
TOPIC_STATUS = f"daynight/{DEVICE_ID}/status"
TOPIC_AVAILABILITY = f"daynight/{DEVICE_ID}/availability"

SUN_TIMES_DESCRIPTION = "sunrise/sunset info"


# ============================================================================
# Forwarding
# ============================================================================

async def forward_sun_times(channel, sun_times: SunTimes) -> OutboundMessage:
    """
    Send sun times to the watch exactly once.

    Args:
        channel: Anything with async send_app_message(payload: dict) -> None
        sun_times: Fully-populated local sun times

    Returns:
        The OutboundMessage that was acknowledged

    Raises:
        ForwardingFailure: Channel unavailable or message rejected
    """
    message = OutboundMessage.from_sun_times(sun_times)
    await channel.send_app_message(message.to_payload())
    logger.info("Sunrise/sunset info sent to Pebble successfully")
    return message


# ============================================================================
# CompanionChannel Class
# ============================================================================

class CompanionChannel:
    """
    MQTT channel to the watch application.

    Runs as FastAPI lifespan background task. Each "ready" message is handed
    to on_ready, which is expected to run one full sequence.
    """

    def __init__(
        self,
        on_ready: Callable[[], Awaitable[object]],
        geolocation: Optional[DeviceGeolocation] = None,
    ):
        """
        Initialize the channel.

        Args:
            on_ready: Starts one locate -> fetch -> forward sequence
                      Signature: async def() -> Any
            geolocation: Device source fed by location reports (None = ignore reports)
        """
        self.on_ready = on_ready
        self.geolocation = geolocation
        self.client: Optional[aiomqtt.Client] = None
        self.running = False
        self._sequence_tasks: set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self.client is not None

    async def start(self):
        """Start the channel (runs until cancelled)."""
        if not MQTT_ENABLED:
            logger.info("MQTT is disabled in configuration")
            return

        self.running = True
        logger.info(f"Starting message channel: broker={MQTT_BROKER}:{MQTT_PORT}, device={DEVICE_ID}")

        # Connection maintenance only; sequences themselves are never retried
        reconnect_interval = 5  # seconds

        while self.running:
            try:
                async with AsyncExitStack() as stack:
                    will = aiomqtt.Will(
                        topic=TOPIC_AVAILABILITY,
                        payload="offline",
                        qos=1,
                        retain=True,
                    )

                    client = aiomqtt.Client(
                        hostname=MQTT_BROKER,
                        port=MQTT_PORT,
                        username=MQTT_USERNAME,
                        password=MQTT_PASSWORD,
                        identifier=MQTT_CLIENT_ID,
                        will=will,
                    )

                    await stack.enter_async_context(client)
                    self.client = client
                    logger.info("Connected to MQTT broker")

                    await client.publish(
                        TOPIC_AVAILABILITY,
                        payload="online",
                        qos=1,
                        retain=True,
                    )

                    await client.subscribe(TOPIC_READY, qos=1)
                    await client.subscribe(TOPIC_LOCATION, qos=1)
                    logger.info("Subscribed to ready and location topics")

                    reconnect_interval = 5

                    async for message in client.messages:
                        await self._handle_message(message)

            except aiomqtt.MqttError as e:
                self.client = None
                logger.error(f"MQTT connection error: {e}", exc_info=True)
                if self.running:
                    logger.info(f"Reconnecting in {reconnect_interval} seconds...")
                    await asyncio.sleep(reconnect_interval)
                    reconnect_interval = min(reconnect_interval * 2, 60)  # Max 60s

            except asyncio.CancelledError:
                logger.info("Message channel cancelled")
                break

            except Exception as e:
                self.client = None
                logger.error(f"Unexpected error in message channel: {e}", exc_info=True)
                if self.running:
                    await asyncio.sleep(reconnect_interval)

        self.client = None
        logger.info("Message channel stopped")

    async def stop(self):
        """Stop the channel."""
        logger.info("Stopping message channel...")
        self.running = False

    # ------------------------------------------------------------------------
    # Message Handling
    # ------------------------------------------------------------------------

    async def _handle_message(self, message: aiomqtt.Message):
        """
        Dispatch an incoming MQTT message.

        Args:
            message: aiomqtt.Message instance
        """
        try:
            topic = str(message.topic)
            payload = message.payload.decode() if message.payload else ""

            logger.debug(f"MQTT message received: topic={topic}, payload={payload}")

            if topic == TOPIC_READY:
                self._handle_ready()
            elif topic == TOPIC_LOCATION:
                self._handle_location(payload)
            else:
                logger.warning(f"Unknown MQTT topic: {topic}")

        except Exception as e:
            logger.error(f"Error handling MQTT message: {e}", exc_info=True)

    def _handle_ready(self):
        """Start an independent sequence without blocking the message loop."""
        logger.info("Companion ready!")
        task = asyncio.create_task(self.on_ready())
        self._sequence_tasks.add(task)
        task.add_done_callback(self._sequence_done)

    def _sequence_done(self, task: asyncio.Task):
        self._sequence_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Sequence crashed", exc_info=task.exception())

    def _handle_location(self, payload: str):
        """
        Handle a location report from the phone/watch.

        Payload format (JSON):
        {"coords": {"latitude": 37.77, "longitude": -122.42}, "timestamp": 1717243200000}
        or
        {"error": {"code": 1, "message": "User denied Geolocation"}}

        Args:
            payload: JSON string
        """
        if self.geolocation is None:
            logger.debug("Location report ignored (location source is not the device)")
            return

        try:
            report = json.loads(payload)
            if "error" in report:
                error = report["error"]
                self.geolocation.report_error(
                    int(error.get("code", LocationUnavailable.POSITION_UNAVAILABLE)),
                    str(error.get("message", "")),
                )
            else:
                self.geolocation.report(Position.from_dict(report))
        except (ValueError, KeyError, TypeError, AttributeError, OverflowError, OSError) as e:
            logger.error(f"Invalid location report: {e}")

    # ------------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------------

    async def send_app_message(self, payload: dict, description: str = SUN_TIMES_DESCRIPTION):
        """
        Send a flat key -> integer payload to the watch.

        Completes when the broker acknowledges the qos 1 publish.

        Raises:
            ForwardingFailure: Not connected or publish rejected
        """
        if not self.client:
            raise ForwardingFailure(description, "message channel not connected")

        try:
            await self.client.publish(
                TOPIC_APP_MESSAGE,
                payload=json.dumps(payload),
                qos=1,
            )
        except aiomqtt.MqttError as e:
            raise ForwardingFailure(description, str(e)) from e

    async def request_location(self, options: dict):
        """Ask the phone/watch for a fresh fix ({"timeout": ms, "maximumAge": ms})."""
        if not self.client:
            raise LocationUnavailable(
                LocationUnavailable.POSITION_UNAVAILABLE,
                "message channel not connected",
            )

        try:
            await self.client.publish(
                TOPIC_LOCATION_REQUEST,
                payload=json.dumps(options),
                qos=1,
            )
        except aiomqtt.MqttError as e:
            raise LocationUnavailable(LocationUnavailable.POSITION_UNAVAILABLE, str(e)) from e

    async def publish_status(self, status: dict):
        """Publish a status notice to the watch; failures are only logged."""
        if not self.client:
            return

        try:
            await self.client.publish(
                TOPIC_STATUS,
                payload=json.dumps(status),
                qos=1,
            )
        except aiomqtt.MqttError as e:
            logger.warning(f"Failed to publish status: {e}")
