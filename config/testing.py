import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "qr_attendance_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = False

API_BASE_URL = "http://testserver/api"
HEALTH_URL = "http://testserver/api/health"
CONNECTIVITY_CHECK_SECONDS = 10
OFFLINE_DB_PATH = os.getenv("OFFLINE_DB_PATH", "instance/offline-test.sqlite3")

SYNC_INTERVAL_SECONDS = 30
SYNC_MAX_RETRIES = 3
REQUEST_TIMEOUT_SECONDS = 10
GEOLOCATION_TIMEOUT_SECONDS = 5
QR_MAX_AGE_HOURS = 24
