import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "qr_attendance"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Áp dụng schema.sql khi khởi động (CREATE IF NOT EXISTS nên chạy lại được)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Client (thiết bị quét mã)
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000/api")
HEALTH_URL = os.getenv("HEALTH_URL", API_BASE_URL.rstrip("/") + "/health")
CONNECTIVITY_CHECK_SECONDS = float(os.getenv("CONNECTIVITY_CHECK_SECONDS", "10"))
OFFLINE_DB_PATH = os.getenv("OFFLINE_DB_PATH", "instance/offline.sqlite3")

SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", "30"))
SYNC_MAX_RETRIES = int(os.getenv("SYNC_MAX_RETRIES", "3"))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
GEOLOCATION_TIMEOUT_SECONDS = float(os.getenv("GEOLOCATION_TIMEOUT_SECONDS", "5"))
QR_MAX_AGE_HOURS = float(os.getenv("QR_MAX_AGE_HOURS", "24"))
