# services/lateness_service.py - DB-backed lateness calculation, storage and reporting

from __future__ import annotations

import calendar
import logging
from collections import OrderedDict
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from db.models import Attendance, Lateness, Schedule, ScheduleEntry
from services.exceptions import BulkLimitError, InvalidDateError, ScheduleNotFoundError
from services import lateness_engine as engine
from services.lateness_engine import LatenessResult
from services.shift_table import ShiftTable, default_shift_table

logger = logging.getLogger(__name__)

MAX_BULK_EMPLOYEES = 200

MONTH_NAMES = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)


def month_bounds(month: int, year: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise InvalidDateError(f"Invalid month: {month}")
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def _rate(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def _period_counts(records: Sequence[Lateness]) -> Dict[str, int]:
    statuses = [r.attendance_status for r in records]
    working = sum(1 for s in statuses if s != engine.OFF_DAY)
    absent = statuses.count(engine.ABSENT)
    on_time = statuses.count(engine.ON_TIME)
    return {
        "total_days": len(records),
        "working_days": working,
        "on_time": on_time,
        "late": statuses.count(engine.LATE),
        "very_late": statuses.count(engine.VERY_LATE),
        "absent": absent,
        "attendance_rate": _rate(working - absent, working),
        "punctuality_rate": _rate(on_time, working - absent),
    }


def weekly_trends(records: Sequence[Lateness]) -> List[Dict[str, Any]]:
    buckets: Dict[date, List[Lateness]] = {}
    for record in records:
        # weeks start on Sunday
        week_start = record.date - timedelta(days=(record.date.weekday() + 1) % 7)
        buckets.setdefault(week_start, []).append(record)

    trends = []
    for week_start in sorted(buckets):
        week_end = week_start + timedelta(days=6)
        trends.append({
            "period": f"{week_start.isoformat()} to {week_end.isoformat()}",
            "week_start": week_start.isoformat(),
            "week_end": week_end.isoformat(),
            **_period_counts(buckets[week_start]),
        })
    return trends


def monthly_trends(records: Sequence[Lateness]) -> List[Dict[str, Any]]:
    buckets: Dict[tuple, List[Lateness]] = {}
    for record in records:
        buckets.setdefault((record.date.year, record.date.month), []).append(record)

    trends = []
    for year, month in sorted(buckets):
        month_name = MONTH_NAMES[month - 1]
        trends.append({
            "period": f"{month_name} {year}",
            "month": month,
            "year": year,
            "month_name": month_name,
            **_period_counts(buckets[(year, month)]),
        })
    return trends


class LatenessService:
    def __init__(self, db: Session, shift_table: ShiftTable = default_shift_table):
        self.db = db
        self.shift_table = shift_table

    # ---------- calculation ----------
    def _schedule(self, employee_id: str) -> Schedule:
        schedule = (
            self.db.query(Schedule)
            .filter(Schedule.employee_id == employee_id, Schedule.is_active.is_(True))
            .first()
        )
        if schedule is None:
            raise ScheduleNotFoundError(employee_id)
        return schedule

    def _compute(self, schedule: Schedule, entry: ScheduleEntry) -> LatenessResult:
        attendance = None
        if not entry.is_off_day:
            attendance = (
                self.db.query(Attendance)
                .filter(Attendance.employee_id == schedule.employee_id, Attendance.date == entry.date)
                .first()
            )
        return engine.compute(
            schedule.employee_id,
            entry.date,
            entry,
            self.shift_table,
            attendance,
            name=schedule.name,
        )

    def calculate_for_date(self, employee_id: str, day: date) -> Optional[LatenessResult]:
        """None when the schedule has no entry for `day`."""
        logger.info(f"Calculating lateness for user {employee_id} on {day}")
        schedule = self._schedule(employee_id)
        entry = schedule.entry_for(day)
        if entry is None:
            logger.warning(f"No schedule found for user {employee_id} on {day}")
            return None
        return self._compute(schedule, entry)

    def calculate_for_range(self, employee_id: str, start: date, end: date) -> List[LatenessResult]:
        if end < start:
            raise InvalidDateError("startDate must not be after endDate")
        schedule = self._schedule(employee_id)
        return [
            self._compute(schedule, entry)
            for entry in schedule.entries
            if start <= entry.date <= end
        ]

    def calculate_for_month(self, employee_id: str, month: int, year: int) -> List[LatenessResult]:
        start, end = month_bounds(month, year)
        return self.calculate_for_range(employee_id, start, end)

    # ---------- storage ----------
    def save(self, result: LatenessResult, commit: bool = True) -> Lateness:
        """Upsert keyed by (employee_id, date)."""
        record = (
            self.db.query(Lateness)
            .filter(Lateness.employee_id == result.employee_id, Lateness.date == result.date)
            .first()
        )
        if record is None:
            record = Lateness(employee_id=result.employee_id, date=result.date)
            self.db.add(record)
        for key, value in result.to_dict().items():
            if key not in ("employee_id", "date"):
                setattr(record, key, value)
        if commit:
            self.db.commit()
            self.db.refresh(record)
        return record

    def save_all(self, results: Sequence[LatenessResult]) -> List[Lateness]:
        records = [self.save(r, commit=False) for r in results]
        self.db.commit()
        return records

    def get_data(
        self,
        employee_id: Optional[str] = None,
        day: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Lateness]:
        q = self.db.query(Lateness)
        if employee_id:
            q = q.filter(Lateness.employee_id == employee_id)
        if day:
            return q.filter(Lateness.date == day).all()
        if start and end:
            return q.filter(Lateness.date >= start, Lateness.date <= end).order_by(Lateness.date).all()
        return q.order_by(Lateness.date.desc()).limit(100).all()

    # ---------- reporting ----------
    def stats(
        self,
        employee_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        group_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        records = self.get_data(employee_id, start=start, end=end)
        if not records:
            return {
                "employee": None,
                "totalRecords": 0,
                "totalEmployees": 0,
                "onTimeCount": 0,
                "lateCount": 0,
                "veryLateCount": 0,
                "absentCount": 0,
                "offDayCount": 0,
                "earlyDepartureCount": 0,
                "attendanceRate": 0,
                "punctualityRate": 0,
                "totalLatenessMinutes": 0,
                "averageLatenessPerDay": 0,
                "maxLatenessMinutes": 0,
                "minLatenessMinutes": 0,
                "averageWorkingHours": 0,
                "workingDays": 0,
                "trends": [],
            }

        statuses = [r.attendance_status for r in records]
        working = [r for r in records if r.attendance_status != engine.OFF_DAY]
        present = [r for r in working if r.attendance_status != engine.ABSENT]
        on_time = statuses.count(engine.ON_TIME)

        total_lateness = sum(
            max(0.0, r.start_lateness_minutes) + max(0.0, r.break_lateness_minutes) for r in records
        )
        late_records = [r for r in records if r.start_lateness_minutes > 0 or r.break_lateness_minutes > 0]
        per_record = [
            max(0.0, r.start_lateness_minutes) + max(0.0, r.break_lateness_minutes) for r in late_records
        ]
        total_working = sum(r.total_working_minutes for r in records)

        trends: List[Dict[str, Any]] = []
        if group_by == "week":
            trends = weekly_trends(records)
        elif group_by == "month":
            trends = monthly_trends(records)

        return {
            "employee": {"id": employee_id, "name": records[0].name or "Unknown"} if employee_id else None,
            "totalRecords": len(records),
            "totalEmployees": 1 if employee_id else len({r.employee_id for r in records}),
            "onTimeCount": on_time,
            "lateCount": statuses.count(engine.LATE),
            "veryLateCount": statuses.count(engine.VERY_LATE),
            "absentCount": statuses.count(engine.ABSENT),
            "offDayCount": statuses.count(engine.OFF_DAY),
            "earlyDepartureCount": statuses.count(engine.EARLY_DEPARTURE),
            "attendanceRate": _rate(len(present), len(working)),
            "punctualityRate": _rate(on_time, len(present)),
            "totalLatenessMinutes": round(total_lateness, 2),
            "averageLatenessPerDay": round(total_lateness / len(late_records)) if late_records else 0,
            "maxLatenessMinutes": max(per_record) if per_record else 0,
            "minLatenessMinutes": min(per_record) if per_record else 0,
            "averageWorkingHours": round(total_working / len(present) / 60, 2) if present else 0,
            "workingDays": len(working),
            "trends": trends,
        }

    def late_employees(self, day: date) -> Dict[str, Any]:
        records = (
            self.db.query(Lateness)
            .filter(
                Lateness.date == day,
                or_(
                    Lateness.start_lateness_minutes > 0,
                    Lateness.end_lateness_minutes < 0,
                    Lateness.break_lateness_minutes > 0,
                ),
            )
            .order_by(Lateness.start_lateness_minutes.desc())
            .all()
        )
        categorized = {
            "late": [r for r in records if 0 < r.start_lateness_minutes <= engine.VERY_LATE_MINUTES],
            "veryLate": [r for r in records if r.start_lateness_minutes > engine.VERY_LATE_MINUTES],
            "longBreak": [r for r in records if r.break_lateness_minutes > 0],
            "earlyDeparture": [r for r in records if r.end_lateness_minutes < engine.EARLY_DEPARTURE_MINUTES],
        }
        return {
            "date": day.isoformat(),
            "summary": {
                "totalLateEmployees": len(records),
                "lateCount": len(categorized["late"]),
                "veryLateCount": len(categorized["veryLate"]),
                "longBreakCount": len(categorized["longBreak"]),
                "earlyDepartureCount": len(categorized["earlyDeparture"]),
            },
            "categorized": categorized,
            "allLateEmployees": records,
        }

    # ---------- bulk ----------
    def employees_scheduled_between(self, start: date, end: date) -> List[str]:
        rows = (
            self.db.query(Schedule.employee_id)
            .join(ScheduleEntry, ScheduleEntry.schedule_id == Schedule.id)
            .filter(
                Schedule.is_active.is_(True),
                Schedule.employee_id.isnot(None),
                ScheduleEntry.date >= start,
                ScheduleEntry.date <= end,
            )
            .distinct()
            .order_by(Schedule.employee_id)
            .all()
        )
        return [r[0] for r in rows]

    def employees_scheduled_for_month(self, month: int, year: int) -> List[str]:
        return self.employees_scheduled_between(*month_bounds(month, year))

    def bulk_calculate(
        self,
        employee_ids: Sequence[str],
        day: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        save: bool = False,
    ) -> Dict[str, Any]:
        if len(employee_ids) > MAX_BULK_EMPLOYEES:
            raise BulkLimitError(MAX_BULK_EMPLOYEES, len(employee_ids))

        results, errors = [], []
        for employee_id in employee_ids:
            try:
                if day is not None:
                    single = self.calculate_for_date(employee_id, day)
                    computed = [single] if single else []
                elif start is not None and end is not None:
                    computed = self.calculate_for_range(employee_id, start, end)
                elif month and year:
                    computed = self.calculate_for_month(employee_id, month, year)
                else:
                    raise InvalidDateError("No valid period (date, date range, or month) was specified")
                if save and computed:
                    self.save_all(computed)
            except InvalidDateError:
                raise
            except Exception as exc:
                self.db.rollback()
                logger.warning(f"Bulk lateness failed for {employee_id}: {exc}")
                errors.append({"employeeId": employee_id, "success": False, "error": str(exc)})
                continue
            results.append({"employeeId": employee_id, "success": True, "data": [r.to_dict() for r in computed]})

        return {
            "processed": len(employee_ids),
            "successful": len(results),
            "failed": len(errors),
            "results": results,
            "errors": errors,
        }


def lateness_counts(results: Sequence[LatenessResult]) -> Dict[str, Any]:
    """Per-status counts and summed lateness for a freshly computed period."""
    counts: Dict[str, Any] = OrderedDict(
        total=len(results), onTime=0, late=0, veryLate=0, absent=0, offDay=0, earlyDeparture=0,
    )
    keys = {
        engine.ON_TIME: "onTime",
        engine.LATE: "late",
        engine.VERY_LATE: "veryLate",
        engine.ABSENT: "absent",
        engine.OFF_DAY: "offDay",
        engine.EARLY_DEPARTURE: "earlyDeparture",
    }
    for r in results:
        counts[keys[r.attendance_status]] += 1
    counts["totalLatenessMinutes"] = round(
        sum(max(0.0, r.start_lateness_minutes) + r.break_lateness_minutes for r in results), 2
    )
    return counts
