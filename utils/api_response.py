from datetime import datetime, timezone
from typing import Any, Optional

from services import exceptions as errors


def success_response(data: Any = None, message: str = "OK") -> dict:
    return {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def error_response(message: str, error: Optional[str] = None) -> dict:
    return {
        "success": False,
        "message": message,
        "error": error or message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def status_for(exc: Exception) -> int:
    """HTTP status for a domain exception raised by the services layer."""
    mapping = (
        (errors.InvalidShiftError, 400),
        (errors.InvalidDateError, 400),
        (errors.BulkLimitError, 400),
        (errors.AuthenticationError, 401),
        (errors.ScheduleNotFoundError, 404),
        (errors.JobNotFoundError, 404),
        (errors.JobAlreadyRunningError, 409),
        (errors.JobStateError, 409),
        (errors.AttendanceApiError, 502),
        (errors.ImageArchiveError, 502),
        (errors.JobTimeoutError, 504),
    )
    for exc_type, code in mapping:
        if isinstance(exc, exc_type):
            return code
    return 500
