"""Tests for the attendance HTTP surface."""
from datetime import date

from db.models import Attendance
from services.attendance_api import get_attendance_api_client
from services.job_queue import ATTENDANCE_FETCH
from main import app
from routes.auth.auth_dependency import get_current_user
from tests.conftest import TODAY, add_schedule


def _seed(db, count=3):
    for i in range(1, count + 1):
        add_schedule(db, f"E{i}", f"Employee {i}", {TODAY: "8"})


def test_fetch_all_async_returns_job_then_completes(client, db, job_manager):
    _seed(db)

    resp = client.post("/api/v1/attendance/fetch-all")

    assert resp.status_code == 202
    body = resp.json()
    assert body["success"] is True
    job_id = body["data"]["jobId"]

    status = client.get(f"/api/v1/attendance/job-status/{job_id}")
    assert status.status_code == 200
    job = status.json()["data"]
    assert job["status"] == "completed"
    assert job["result"]["total"] == 3
    assert job["result"]["succeeded"] == 3
    assert job["triggeredBy"] == "manual"
    assert db.query(Attendance).count() == 3


def test_fetch_all_sync_mode(client, db, time_clock):
    _seed(db, 2)
    time_clock.failing.add("E2")

    resp = client.post("/api/v1/attendance/fetch-all", params={"mode": "sync"})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["processed"] == 2
    assert data["success"] == 1
    assert data["failed"] == 1
    assert data["date"] == TODAY.isoformat()


def test_fetch_all_conflict_when_running(client, db, job_manager):
    _seed(db)
    running = job_manager.create(ATTENDANCE_FETCH)
    job_manager.start(running.id)

    resp = client.post("/api/v1/attendance/fetch-all")

    assert resp.status_code == 409
    assert resp.json()["success"] is False
    assert len(job_manager.list_all()) == 1


def test_job_status_unknown(client):
    resp = client.get("/api/v1/attendance/job-status/job_nope")

    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_jobs_listing(client, db):
    _seed(db, 1)
    client.post("/api/v1/attendance/fetch-all")
    client.post("/api/v1/attendance/fetch-all")

    data = client.get("/api/v1/attendance/jobs").json()["data"]

    assert data["stats"]["total"] == 2
    assert data["stats"]["completed"] == 2
    assert len(data["jobs"]) == 2


def test_fetch_single_employee(client, db):
    _seed(db, 1)

    resp = client.get("/api/v1/attendance/fetch/E1")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["employee_id"] == "E1"
    assert data["name"] == "Employee 1"
    assert data["start_time"] == "08:05:00"


def test_fetch_single_unknown_employee(client):
    resp = client.get("/api/v1/attendance/fetch/NOPE")

    assert resp.status_code == 404


def test_fetch_single_upstream_failure(client, db, time_clock):
    _seed(db, 1)
    time_clock.unsuccessful.add("E1")

    resp = client.get("/api/v1/attendance/fetch/E1")

    assert resp.status_code == 502
    assert resp.json()["success"] is False


def test_filter_by_date_and_month(client, db):
    db.add(Attendance(employee_id="E1", date=date(2025, 5, 30), start_time="08:00:00"))
    db.add(Attendance(employee_id="E1", date=date(2025, 6, 2), start_time="08:10:00"))
    db.commit()

    one = client.get("/api/v1/attendance/E1/filter", params={"date": "2025-06-02"})
    assert one.status_code == 200
    assert one.json()["data"]["start_time"] == "08:10:00"

    month = client.get("/api/v1/attendance/E1/filter", params={"month": 5, "year": 2025})
    assert [r["date"] for r in month.json()["data"]] == ["2025-05-30"]

    missing = client.get("/api/v1/attendance/E1/filter", params={"date": "2025-06-03"})
    assert missing.status_code == 404


def test_migration_endpoints(client, db):
    db.add(Attendance(employee_id="E1", date=TODAY, start_image="https://legacy.example.com/a.jpg"))
    db.commit()

    stats = client.get("/api/v1/attendance/migration-stats").json()["data"]
    assert stats["needMigration"] == 1

    result = client.post("/api/v1/attendance/migrate-images", params={"limit": 10}).json()["data"]
    assert result["processed"] == 1
    assert result["success"] == 1

    stats = client.get("/api/v1/attendance/migration-stats").json()["data"]
    assert stats["needMigration"] == 0
    assert stats["migrationProgress"] == 100.0


def test_requires_bearer_token(client):
    app.dependency_overrides.pop(get_current_user, None)

    resp = client.get("/api/v1/attendance/jobs")

    assert resp.status_code == 401


def test_login_issues_token(client, time_clock):
    app.dependency_overrides[get_attendance_api_client] = time_clock.client

    ok = client.post("/api/v1/auth/login", json={"username": "2405047", "password": "secret"})
    bad = client.post("/api/v1/auth/login", json={"username": "2405047", "password": "nope"})

    assert ok.status_code == 200
    data = ok.json()["data"]
    assert data["token"]
    assert data["expiresIn"] == 168 * 3600
    assert data["user"]["name"] == "Cron Service"
    assert bad.status_code == 401

    app.dependency_overrides.pop(get_current_user, None)
    jobs = client.get("/api/v1/attendance/jobs", headers={"Authorization": f"Bearer {data['token']}"})
    assert jobs.status_code == 200
