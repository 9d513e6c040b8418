"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_LOCATION_TIMEOUT_SECONDS = 15.0
DEFAULT_GEOCODE_TIMEOUT_SECONDS = 10.0
DEFAULT_CLOCK_SKEW_SECONDS = 120
DEFAULT_PHOTO_RETENTION_DAYS = 15
DEFAULT_HISTORY_LIMIT = 30
DEFAULT_CAMERA_INDEX = 0
DEFAULT_JPEG_QUALITY = 50

NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
DEFAULT_GEOCODER_USER_AGENT = "SiteAttendance/1.0"
GEOCODE_ZOOM = 18

COORDINATE_DECIMALS = 5
