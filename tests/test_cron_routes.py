"""Tests for the cron control surface."""
import httpx
import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from main import app
from Scheduler.attendance_scheduler import (
    MAIN_JOB,
    NIGHT_JOB,
    AttendanceCronScheduler,
    AttendanceFetchOrchestrator,
    get_cron_scheduler,
)


@pytest.fixture
def cron(client):
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("backend down", request=request)

    async def no_sleep(seconds):
        return None

    orchestrator = AttendanceFetchOrchestrator(
        base_url="http://backend.test",
        username="2405047",
        password="secret",
        max_attempts=2,
        transport=httpx.MockTransport(unreachable),
        sleep=no_sleep,
    )
    cron = AttendanceCronScheduler(
        orchestrator,
        main_schedule="0 7,8,13,18 * * *",
        night_schedule="50 23 * * *",
        tz="Asia/Jakarta",
        enabled=True,
        scheduler=AsyncIOScheduler(timezone="Asia/Jakarta"),
    )
    cron.configure()
    app.dependency_overrides[get_cron_scheduler] = lambda: cron
    return cron


def test_status_lists_named_jobs(client, cron):
    data = client.get("/api/v1/cron/status").json()["data"]

    assert data["schedulerRunning"] is False
    assert [j["name"] for j in data["jobs"]] == [MAIN_JOB, NIGHT_JOB]
    assert data["lastRun"] is None


def test_stop_and_start(client, cron):
    assert client.post(f"/api/v1/cron/stop/{NIGHT_JOB}").status_code == 200
    night = [j for j in client.get("/api/v1/cron/status").json()["data"]["jobs"] if j["name"] == NIGHT_JOB][0]
    assert night["running"] is False

    assert client.post(f"/api/v1/cron/start/{NIGHT_JOB}").status_code == 200
    night = [j for j in client.get("/api/v1/cron/status").json()["data"]["jobs"] if j["name"] == NIGHT_JOB][0]
    assert night["running"] is True


def test_unknown_job_name(client, cron):
    assert client.post("/api/v1/cron/stop/nope").status_code == 404
    assert client.post("/api/v1/cron/start/nope").status_code == 404


def test_manual_trigger_reports_failure_summary(client, cron):
    resp = client.post("/api/v1/cron/trigger/attendance-fetch")

    assert resp.status_code == 200
    summary = resp.json()["data"]
    assert summary["success"] is False
    assert summary["triggered_by"] == "manual"
    assert summary["attempts"] == 2
    assert "backend down" in summary["error"]

    last = client.get("/api/v1/cron/status").json()["data"]["lastRun"]
    assert last["success"] is False
    assert last["attempts"] == 2


def test_config(client, cron):
    data = client.get("/api/v1/cron/config").json()["data"]

    assert data["attendanceFetch"]["schedule"] == "0 7,8,13,18 * * *"
    assert data["attendanceFetch"]["nightSchedule"] == "50 23 * * *"
    assert data["orchestrator"]["maxAttempts"] == 2
