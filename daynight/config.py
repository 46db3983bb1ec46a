"""
Configuration management with environment variable support.

All settings can be overridden via environment variables.
Automatically loads .env file if present.
"""

import os
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo
from dotenv import load_dotenv

# Load .env file from project root (one level up from daynight/)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Logging configuration
LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = os.getenv("LOG_LEVEL", "INFO")

# Mock device mode (simulated geolocation and message channel)
MOCK_MODE: bool = os.getenv("MOCK_MODE", "false").lower() == "true"

# Watch identity, used to namespace every channel topic
DEVICE_ID: str = os.getenv("DEVICE_ID", "pebble")

# MQTT message channel configuration
MQTT_ENABLED: bool = os.getenv("MQTT_ENABLED", "false").lower() == "true"
MQTT_BROKER: str = os.getenv("MQTT_BROKER", "localhost")
MQTT_PORT: int = int(os.getenv("MQTT_PORT", "1883"))
MQTT_USERNAME: str | None = os.getenv("MQTT_USERNAME")
MQTT_PASSWORD: str | None = os.getenv("MQTT_PASSWORD")
MQTT_CLIENT_ID: str = os.getenv("MQTT_CLIENT_ID", "daynight_companion")

# Geolocation configuration
LOCATION_SOURCE: Literal["device", "static"] = os.getenv("LOCATION_SOURCE", "device")
LATITUDE: float = float(os.getenv("LATITUDE", "0.0"))  # Only used by the static source
LONGITUDE: float = float(os.getenv("LONGITUDE", "0.0"))
LOCATION_TIMEOUT_MS: int = int(os.getenv("LOCATION_TIMEOUT_MS", "15000"))  # Abandon request after 15s
LOCATION_MAXIMUM_AGE_MS: int = int(os.getenv("LOCATION_MAXIMUM_AGE_MS", "60000"))  # Accept fixes up to 60s old
REPORT_LOCATION_FAILURE: bool = os.getenv("REPORT_LOCATION_FAILURE", "false").lower() == "true"

# Sunrise/sunset lookup service
SUN_API_URL: str = os.getenv("SUN_API_URL", "http://api.sunrise-sunset.org/json")
_sun_api_timeout = os.getenv("SUN_API_TIMEOUT")
SUN_API_TIMEOUT: float | None = float(_sun_api_timeout) if _sun_api_timeout else None  # None = client default

# IANA zone for hour/minute extraction, empty = system local time
LOCAL_TIMEZONE: str | None = os.getenv("LOCAL_TIMEZONE") or None
if LOCAL_TIMEZONE:
    ZoneInfo(LOCAL_TIMEZONE)  # Raises ZoneInfoNotFoundError for an unknown zone
