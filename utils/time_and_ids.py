import random, string
import time
import uuid
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from config import APP_TIMEZONE

APP_TZ = ZoneInfo(APP_TIMEZONE)


def gen_job_id(prefix: str = "job") -> str:
    """Generate a unique job id like job_18f3a2b4c1d_5e2a9c."""
    millis = int(time.time() * 1000)
    return f"{prefix}_{millis:x}_{uuid.uuid4().hex[:6]}"


def gen_file_token(k: int = 8) -> str:
    """Random tail used to keep archived filenames collision-free."""
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=k))


def now_utc_local():
    """Return (now_utc, now_local) timezone-aware datetimes in the app timezone."""
    now_utc = datetime.now(timezone.utc)
    now_local = now_utc.astimezone(APP_TZ)
    return now_utc, now_local


def today_local() -> date:
    return now_utc_local()[1].date()
