"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

QR_PAYLOAD_TYPE = "attendance"
DEFAULT_QR_MAX_AGE_HOURS = 24

DEFAULT_SYNC_INTERVAL_SECONDS = 30
DEFAULT_SYNC_MAX_RETRIES = 3
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10
DEFAULT_GEOLOCATION_TIMEOUT_SECONDS = 5

DEFAULT_EVENT_ATTENDANCE_LIMIT = 100
DEFAULT_USER_ATTENDANCE_LIMIT = 50
DEFAULT_EVENTS_LIMIT = 50
RECENT_ATTENDANCE_LIMIT = 5

LATENCY_SAMPLE_LIMIT = 100
SYNC_SAMPLE_LIMIT = 50

LAST_SYNC_TIME_KEY = "lastSyncTime"
DEFAULT_CONNECTIVITY_CHECK_SECONDS = 10
