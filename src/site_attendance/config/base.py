"""Settings shared by every environment; each value can be overridden from the environment."""

import os

from ..core.constants import (
    DEFAULT_CAMERA_INDEX,
    DEFAULT_CLOCK_SKEW_SECONDS,
    DEFAULT_GEOCODE_TIMEOUT_SECONDS,
    DEFAULT_GEOCODER_USER_AGENT,
    DEFAULT_LOCATION_TIMEOUT_SECONDS,
    DEFAULT_PHOTO_RETENTION_DAYS,
    NOMINATIM_REVERSE_URL,
)


def _optional_float(name: str):
    value = os.getenv(name)
    return float(value) if value not in (None, "") else None


DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "site_attendance"),
}

# REST backend that receives check-in/out events and daily marks.
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000")
API_TOKEN = os.getenv("API_TOKEN")

GEOCODER_URL = os.getenv("GEOCODER_URL", NOMINATIM_REVERSE_URL)
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", DEFAULT_GEOCODER_USER_AGENT)
GEOCODE_TIMEOUT_SECONDS = float(os.getenv("GEOCODE_TIMEOUT_SECONDS", str(DEFAULT_GEOCODE_TIMEOUT_SECONDS)))

LOCATION_TIMEOUT_SECONDS = float(os.getenv("LOCATION_TIMEOUT_SECONDS", str(DEFAULT_LOCATION_TIMEOUT_SECONDS)))
CLOCK_SKEW_SECONDS = int(os.getenv("CLOCK_SKEW_SECONDS", str(DEFAULT_CLOCK_SKEW_SECONDS)))
CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", str(DEFAULT_CAMERA_INDEX)))
PHOTO_RETENTION_DAYS = int(os.getenv("PHOTO_RETENTION_DAYS", str(DEFAULT_PHOTO_RETENTION_DAYS)))

# Kiosk terminals installed at a known site report these coordinates.
SITE_LATITUDE = _optional_float("SITE_LATITUDE")
SITE_LONGITUDE = _optional_float("SITE_LONGITUDE")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
