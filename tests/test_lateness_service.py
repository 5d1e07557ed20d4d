"""Tests for DB-backed lateness calculation and reporting."""
from datetime import date

import pytest

from db.models import Attendance, Lateness
from services import lateness_engine as engine
from services.exceptions import BulkLimitError, InvalidDateError, ScheduleNotFoundError
from services.lateness_service import MAX_BULK_EMPLOYEES, LatenessService, monthly_trends, weekly_trends
from tests.conftest import add_schedule

JUNE_2 = date(2025, 6, 2)
JUNE_3 = date(2025, 6, 3)
JUNE_4 = date(2025, 6, 4)


@pytest.fixture
def service(db):
    return LatenessService(db)


@pytest.fixture
def budi(db):
    schedule = add_schedule(db, "2405047", "Budi", {JUNE_2: "11", JUNE_3: "OFF", JUNE_4: "8"})
    db.add(Attendance(
        employee_id="2405047", date=JUNE_2,
        start_time="11:20:00", end_time="21:10:00",
        break_out_time="15:00:00", break_in_time="16:10:00",
    ))
    db.commit()
    return schedule


def test_calculate_for_date(service, budi):
    result = service.calculate_for_date("2405047", JUNE_2)

    assert result.name == "Budi"
    assert result.attendance_status == engine.LATE
    assert result.start_lateness_minutes == 20


def test_calculate_for_unscheduled_date_returns_none(service, budi):
    assert service.calculate_for_date("2405047", date(2025, 6, 10)) is None


def test_missing_schedule_raises(service):
    with pytest.raises(ScheduleNotFoundError):
        service.calculate_for_date("nobody", JUNE_2)


def test_inactive_schedule_is_ignored(service, db):
    add_schedule(db, "E1", "Old", {JUNE_2: "8"}, is_active=False)

    with pytest.raises(ScheduleNotFoundError):
        service.calculate_for_date("E1", JUNE_2)


def test_range_skips_days_without_entries(service, budi):
    results = service.calculate_for_range("2405047", date(2025, 6, 1), date(2025, 6, 30))

    assert [r.attendance_status for r in results] == [engine.LATE, engine.OFF_DAY, engine.ABSENT]


def test_range_rejects_reversed_dates(service, budi):
    with pytest.raises(InvalidDateError):
        service.calculate_for_range("2405047", JUNE_4, JUNE_2)


def test_month_uses_real_month_length(service, db):
    add_schedule(db, "E1", "Feb", {date(2025, 2, 28): "8", date(2025, 3, 1): "8"})

    results = service.calculate_for_month("E1", 2, 2025)

    assert [r.date for r in results] == [date(2025, 2, 28)]


def test_save_is_an_upsert(service, budi, db):
    first = service.calculate_for_date("2405047", JUNE_2)
    service.save(first)

    attendance = db.query(Attendance).filter_by(employee_id="2405047", date=JUNE_2).one()
    attendance.start_time = "11:00:00"
    db.commit()
    service.save(service.calculate_for_date("2405047", JUNE_2))

    rows = db.query(Lateness).filter_by(employee_id="2405047").all()
    assert len(rows) == 1
    assert rows[0].start_lateness_minutes == 0
    assert rows[0].attendance_status == engine.ON_TIME


def test_get_data_variants(service, budi):
    service.save_all(service.calculate_for_month("2405047", 6, 2025))

    assert len(service.get_data("2405047", day=JUNE_3)) == 1
    assert len(service.get_data("2405047", start=JUNE_2, end=JUNE_3)) == 2
    latest = service.get_data("2405047")
    assert [r.date for r in latest] == [JUNE_4, JUNE_3, JUNE_2]


def test_stats(service, budi):
    service.save_all(service.calculate_for_month("2405047", 6, 2025))

    stats = service.stats("2405047", JUNE_2, JUNE_4, group_by="week")

    assert stats["employee"] == {"id": "2405047", "name": "Budi"}
    assert stats["totalRecords"] == 3
    assert stats["lateCount"] == 1
    assert stats["absentCount"] == 1
    assert stats["offDayCount"] == 1
    assert stats["workingDays"] == 2
    assert stats["attendanceRate"] == 50
    assert stats["punctualityRate"] == 0
    assert stats["totalLatenessMinutes"] == 30
    assert stats["maxLatenessMinutes"] == 30
    assert stats["minLatenessMinutes"] == 30
    assert stats["averageWorkingHours"] == 9
    assert len(stats["trends"]) == 1
    assert stats["trends"][0]["week_start"] == "2025-06-01"


def test_stats_empty(service):
    stats = service.stats("nobody")

    assert stats["totalRecords"] == 0
    assert stats["trends"] == []


def test_monthly_trends_group_by_month(service, db):
    add_schedule(db, "E1", "Ani", {date(2025, 5, 31): "OFF", JUNE_2: "OFF"})
    service.save_all(service.calculate_for_range("E1", date(2025, 5, 1), date(2025, 6, 30)))

    trends = monthly_trends(service.get_data("E1"))

    assert [t["period"] for t in trends] == ["Mei 2025", "Juni 2025"]
    assert weekly_trends([]) == []


def test_late_employees_categories(service, db):
    rows = [
        ("A", 20, 0, 0),
        ("B", 90, 0, 0),
        ("C", 0, -45, 0),
        ("D", 0, 0, 15),
        ("E", -5, 0, 0),
    ]
    for employee_id, start, end, brk in rows:
        db.add(Lateness(
            employee_id=employee_id, date=JUNE_2, shift="8",
            scheduled_start_time="08:00:00", scheduled_end_time="18:00:00",
            start_lateness_minutes=start, end_lateness_minutes=end, break_lateness_minutes=brk,
            attendance_status="late", break_status="normal",
        ))
    db.commit()

    report = service.late_employees(JUNE_2)

    assert report["summary"]["totalLateEmployees"] == 4
    assert [r.employee_id for r in report["categorized"]["late"]] == ["A"]
    assert [r.employee_id for r in report["categorized"]["veryLate"]] == ["B"]
    assert [r.employee_id for r in report["categorized"]["earlyDeparture"]] == ["C"]
    assert [r.employee_id for r in report["categorized"]["longBreak"]] == ["D"]


def test_bulk_collects_per_employee_errors(service, budi, db):
    add_schedule(db, "E2", "Bad Shift", {JUNE_2: "99"})

    result = service.bulk_calculate(["2405047", "E2", "ghost"], day=JUNE_2, save=True)

    assert result["processed"] == 3
    assert result["successful"] == 1
    assert result["failed"] == 2
    assert db.query(Lateness).count() == 1


def test_bulk_requires_a_period(service, budi):
    with pytest.raises(InvalidDateError):
        service.bulk_calculate(["2405047"])


def test_bulk_rejects_too_many_employees(service, budi, db):
    ids = [f"E{i}" for i in range(MAX_BULK_EMPLOYEES + 1)]

    with pytest.raises(BulkLimitError):
        service.bulk_calculate(ids, day=JUNE_2, save=True)
    assert db.query(Lateness).count() == 0


def test_scheduled_employee_discovery(service, budi, db):
    add_schedule(db, "E2", "Other", {date(2025, 7, 1): "8"})

    assert service.employees_scheduled_for_month(6, 2025) == ["2405047"]
    assert service.employees_scheduled_between(JUNE_3, JUNE_3) == ["2405047"]
