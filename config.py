from dotenv import load_dotenv
import os
import logging

# Configure Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


load_dotenv()


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "168"))

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Jakarta")

DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "hr_attendance")
DB_USERNAME = os.getenv("DB_USERNAME", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "password")
DATABASE_URL = os.getenv("DATABASE_URL")

# External time-clock system
ATTENDANCE_API_URL = os.getenv("ATTENDANCE_API_URL", "http://attendance-api.shabuhachi.id/service")
ATTENDANCE_API_TIMEOUT = float(os.getenv("ATTENDANCE_API_TIMEOUT", "10"))

# Image archival (ImageKit)
IMAGEKIT_PRIVATE_KEY = os.getenv("IMAGEKIT_PRIVATE_KEY", "")
IMAGEKIT_UPLOAD_URL = os.getenv("IMAGEKIT_UPLOAD_URL", "https://upload.imagekit.io/api/v1/files/upload")
ARCHIVE_HOST_MARKER = os.getenv("ARCHIVE_HOST_MARKER", "imagekit.io")
IMAGE_MAX_BYTES = int(os.getenv("IMAGE_MAX_BYTES", str(10 * 1024 * 1024)))
IMAGE_TIMEOUT = float(os.getenv("IMAGE_TIMEOUT", "30"))

# Ingestion pacing
INGEST_BATCH_SIZE = int(os.getenv("INGEST_BATCH_SIZE", "3"))
INGEST_BATCH_DELAY = float(os.getenv("INGEST_BATCH_DELAY", "1.0"))
MIGRATION_BATCH_SIZE = int(os.getenv("MIGRATION_BATCH_SIZE", "5"))
MIGRATION_BATCH_DELAY = float(os.getenv("MIGRATION_BATCH_DELAY", "2.0"))
JOB_HISTORY_LIMIT = int(os.getenv("JOB_HISTORY_LIMIT", "50"))

# Cron orchestrator
ATTENDANCE_CRON_ENABLED = _bool_env("ATTENDANCE_CRON_ENABLED", True)
ATTENDANCE_CRON_SCHEDULE = os.getenv("ATTENDANCE_CRON_SCHEDULE", "0 7,8,13,18 * * *")
ATTENDANCE_CRON_SCHEDULE_NIGHT = os.getenv("ATTENDANCE_CRON_SCHEDULE_NIGHT") or None
ATTENDANCE_CRON_TIMEZONE = os.getenv("ATTENDANCE_CRON_TIMEZONE", "Asia/Jakarta")

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
CRON_AUTH_USERNAME = os.getenv("CRON_AUTH_USERNAME", "")
CRON_AUTH_PASSWORD = os.getenv("CRON_AUTH_PASSWORD", "")
CRON_POLL_INTERVAL = float(os.getenv("CRON_POLL_INTERVAL", "5"))
CRON_MAX_WAIT = float(os.getenv("CRON_MAX_WAIT", "600"))
CRON_MAX_ATTEMPTS = int(os.getenv("CRON_MAX_ATTEMPTS", "3"))
