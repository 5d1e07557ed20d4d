# services/lateness_engine.py - pure lateness computation (no I/O)

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date as date_type
from typing import Any, Dict, Optional

from db.models import OFF_DAY_MARKERS
from services.shift_table import ShiftConfig, ShiftTable

SENTINEL_TIME = "00:00:00"
MINUTES_PER_DAY = 24 * 60
HALF_DAY_MINUTES = 12 * 60

START_TOLERANCE_MINUTES = 1.0
END_TOLERANCE_MINUTES = 1.0
EARLY_DEPARTURE_MINUTES = -30.0
VERY_LATE_MINUTES = 60.0

PUNCH_FIELDS = ("start_time", "break_out_time", "break_in_time", "end_time")

ON_TIME = "on_time"
LATE = "late"
VERY_LATE = "very_late"
ABSENT = "absent"
OFF_DAY = "off_day"
EARLY_DEPARTURE = "early_departure"

BREAK_NORMAL = "normal"
BREAK_LONG = "long_break"
BREAK_NONE = "no_break"


@dataclass
class LatenessResult:
    employee_id: str
    date: date_type
    shift: str
    scheduled_start_time: str
    scheduled_end_time: str
    name: Optional[str] = None
    actual_start_time: Optional[str] = None
    actual_end_time: Optional[str] = None
    actual_break_out_time: Optional[str] = None
    actual_break_in_time: Optional[str] = None
    start_lateness_minutes: float = 0.0
    end_lateness_minutes: float = 0.0
    break_lateness_minutes: float = 0.0
    attendance_status: str = ABSENT
    break_status: str = BREAK_NONE
    total_working_minutes: float = 0.0
    is_complete_attendance: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_time(value: Optional[str]) -> Optional[str]:
    """Return HH:MM:SS[.fff] or None for empty values. HH:MM gets ':00' appended."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if value.count(":") == 1:
        value = f"{value}:00"
    return value


def is_punched(value: Optional[str]) -> bool:
    """A punch is present when it is non-empty and not the '00:00:00' placeholder."""
    value = normalize_time(value)
    if value is None:
        return False
    try:
        return to_minutes(value) != 0
    except ValueError:
        return False


def to_minutes(value: str) -> float:
    """Minutes since midnight for 'HH:MM:SS', 'HH:MM:SS.fff' or 'HH:MM'."""
    parts = normalize_time(value).split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid time value: {value!r}")
    hours, minutes, seconds = int(parts[0]), int(parts[1]), float(parts[2])
    if not (0 <= hours < 24 and 0 <= minutes < 60 and 0 <= seconds < 60):
        raise ValueError(f"Invalid time value: {value!r}")
    return hours * 60 + minutes + seconds / 60


def time_difference(actual: str, scheduled: str) -> float:
    """
    actual - scheduled in minutes. A negative difference larger than twelve
    hours means the actual punch happened after midnight.
    """
    diff = to_minutes(actual) - to_minutes(scheduled)
    if diff < 0 and abs(diff) > HALF_DAY_MINUTES:
        diff += MINUTES_PER_DAY
    return round(diff, 2)


def scheduled_working_minutes(shift: ShiftConfig) -> float:
    window = to_minutes(shift.scheduled_end) - to_minutes(shift.scheduled_start)
    if window < 0:
        window += MINUTES_PER_DAY
    return max(0.0, round(window - shift.allowed_break_minutes, 2))


def classify(start_lateness: float, end_lateness: float) -> str:
    if end_lateness < EARLY_DEPARTURE_MINUTES:
        return EARLY_DEPARTURE
    if start_lateness > VERY_LATE_MINUTES:
        return VERY_LATE
    if start_lateness > 0:
        return LATE
    return ON_TIME


def is_off_day_code(shift_code: Optional[str]) -> bool:
    return (shift_code or "").strip().upper() in OFF_DAY_MARKERS


def _punch(attendance: Any, field: str) -> Optional[str]:
    if attendance is None:
        return None
    if isinstance(attendance, dict):
        value = attendance.get(field)
    else:
        value = getattr(attendance, field, None)
    return normalize_time(value) if is_punched(value) else None


def compute(
    employee_id: str,
    day: date_type,
    schedule_entry: Any,
    shift_table: ShiftTable,
    attendance: Any = None,
    name: Optional[str] = None,
) -> LatenessResult:
    """
    Turn one schedule entry plus the day's punches into a lateness verdict.

    `schedule_entry` needs a `shift` attribute; `attendance` may be an ORM
    row, a dict or None. Raises InvalidShiftError for unknown shift codes.
    """
    shift_code = schedule_entry.shift if not isinstance(schedule_entry, str) else schedule_entry

    if is_off_day_code(shift_code):
        return LatenessResult(
            employee_id=employee_id,
            date=day,
            name=name,
            shift=shift_code,
            scheduled_start_time=SENTINEL_TIME,
            scheduled_end_time=SENTINEL_TIME,
            attendance_status=OFF_DAY,
        )

    shift = shift_table.resolve(shift_code)
    result = LatenessResult(
        employee_id=employee_id,
        date=day,
        name=name,
        shift=shift_code,
        scheduled_start_time=normalize_time(shift.scheduled_start),
        scheduled_end_time=normalize_time(shift.scheduled_end),
    )

    start = _punch(attendance, "start_time")
    if start is None:
        return result

    end = _punch(attendance, "end_time")
    break_out = _punch(attendance, "break_out_time")
    break_in = _punch(attendance, "break_in_time")

    result.actual_start_time = start
    result.actual_end_time = end
    result.actual_break_out_time = break_out
    result.actual_break_in_time = break_in

    start_lateness = time_difference(start, shift.scheduled_start)
    if 0 <= start_lateness <= START_TOLERANCE_MINUTES:
        start_lateness = 0.0
    result.start_lateness_minutes = start_lateness

    if end is not None:
        end_lateness = time_difference(end, shift.scheduled_end)
        if -END_TOLERANCE_MINUTES <= end_lateness <= END_TOLERANCE_MINUTES:
            end_lateness = 0.0
        result.end_lateness_minutes = end_lateness

    if break_out is not None and break_in is not None:
        actual_break = abs(to_minutes(break_in) - to_minutes(break_out))
        result.break_lateness_minutes = max(0.0, round(actual_break - shift.allowed_break_minutes, 2))
        result.break_status = BREAK_LONG if actual_break > shift.allowed_break_minutes else BREAK_NORMAL

    # Nominal daily workload from the schedule, not from the punches
    result.total_working_minutes = scheduled_working_minutes(shift)
    result.is_complete_attendance = end is not None
    result.attendance_status = classify(result.start_lateness_minutes, result.end_lateness_minutes)
    return result
