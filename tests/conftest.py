"""Shared fixtures: in-memory SQLite, fake time-clock and image host."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("ATTENDANCE_CRON_ENABLED", "false")

from datetime import date
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.connection import Base, get_db
from db.models import Schedule, ScheduleEntry
from main import app
from routes.auth.auth_dependency import get_current_user
from services.attendance_api import AttendanceApiClient
from services.attendance_ingestion import AttendanceIngestionService, get_ingestion_service
from services.image_service import ImageArchiver
from services.job_queue import JobManager, get_job_manager

TODAY = date(2025, 6, 2)
ARCHIVE_URL = "https://ik.imagekit.io/demo/attendance/2025/06/archived.jpg"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class FakeTimeClock:
    """Stands in for the time-clock HTTP service."""

    def __init__(self):
        self.failing = set()
        self.unsuccessful = set()
        self.calls = []

    def report(self, employee_id):
        return {
            "success": True,
            "mset_start_time": "08:05:00",
            "mset_start_address": "Jl. Sudirman 1",
            "mset_start_image": f"https://clock.example.com/img/{employee_id}_start.jpg",
            "mset_break_out_time": "12:00:00",
            "mset_break_out_address": "Jl. Sudirman 1",
            "mset_break_out_image": "",
            "mset_break_in_time": "13:00:00",
            "mset_break_in_address": "Jl. Sudirman 1",
            "mset_break_in_image": None,
            "mset_end_time": "18:00:00",
            "mset_end_address": "Jl. Sudirman 1",
            "mset_end_image": f"https://clock.example.com/img/{employee_id}_end.jpg",
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        if request.url.path.endswith("/check_login1.php"):
            if form.get("passwd") != "secret":
                return httpx.Response(200, json={"error": True, "message": "bad login"})
            return httpx.Response(200, json={"error": False, "uid": form["username"], "user": {"name": "Cron Service"}})

        employee_id = form["userid"]
        self.calls.append(employee_id)
        if employee_id in self.failing:
            raise httpx.ConnectError("connection refused", request=request)
        if employee_id in self.unsuccessful:
            return httpx.Response(200, json={"success": False})
        return httpx.Response(200, json=self.report(employee_id))

    def client(self):
        return AttendanceApiClient(base_url="http://clock.test/service", transport=httpx.MockTransport(self.handler))


class FakeImageHost:
    """Serves source photos and accepts ImageKit-style uploads."""

    def __init__(self):
        self.broken_downloads = set()
        self.fail_uploads = False
        self.upload_payload = {"url": ARCHIVE_URL}
        self.uploads = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            if str(request.url) in self.broken_downloads:
                return httpx.Response(404)
            return httpx.Response(200, content=b"\xff\xd8jpeg-bytes")
        if self.fail_uploads:
            return httpx.Response(500, json={"message": "upload failed"})
        self.uploads.append(request)
        return httpx.Response(200, json=self.upload_payload)

    def archiver(self, **kwargs):
        return ImageArchiver(
            upload_url="https://upload.imagekit.io/api/v1/files/upload",
            private_key="private_test",
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )


@pytest.fixture
def time_clock():
    return FakeTimeClock()


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def ingestion(session_factory, time_clock, image_host, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return AttendanceIngestionService(
        session_factory=session_factory,
        api_client=time_clock.client(),
        archiver=image_host.archiver(),
        batch_size=3,
        batch_delay=1.0,
        migration_batch_size=5,
        migration_batch_delay=2.0,
        sleep=fake_sleep,
        today=lambda: TODAY,
    )


@pytest.fixture
def job_manager():
    return JobManager(history_limit=50)


@pytest.fixture
def client(session_factory, ingestion, job_manager):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: {"uid": "2405047", "name": "Tester"}
    app.dependency_overrides[get_ingestion_service] = lambda: ingestion
    app.dependency_overrides[get_job_manager] = lambda: job_manager
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_schedule(db, employee_id, name, entries, is_active=True):
    """Create a schedule with {date: shift} entries."""
    schedule = Schedule(
        employee_id=employee_id,
        name=name,
        department="Kitchen",
        position="Cook",
        is_active=is_active,
        entries=[ScheduleEntry(date=d, shift=s) for d, s in entries.items()],
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule
