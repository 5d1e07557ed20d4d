"""Tests for the time-clock HTTP client."""
import asyncio

import httpx
import pytest

from services.attendance_api import AttendanceApiClient
from services.exceptions import AttendanceApiError, AuthenticationError


def test_trip_report_fields(time_clock):
    report = asyncio.run(time_clock.client().fetch_trip_report("2405047"))

    assert report.time("start") == "08:05:00"
    assert report.address("end") == "Jl. Sudirman 1"
    assert report.image("break_out") is None
    assert time_clock.calls == ["2405047"]


def test_network_error_raises(time_clock):
    time_clock.failing.add("E1")

    with pytest.raises(AttendanceApiError):
        asyncio.run(time_clock.client().fetch_trip_report("E1"))


def test_success_false_raises(time_clock):
    time_clock.unsuccessful.add("E1")

    with pytest.raises(AttendanceApiError):
        asyncio.run(time_clock.client().fetch_trip_report("E1"))


def test_http_error_raises():
    client = AttendanceApiClient(
        base_url="http://clock.test/service",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )

    with pytest.raises(AttendanceApiError):
        asyncio.run(client.fetch_trip_report("E1"))


def test_check_login(time_clock):
    user = asyncio.run(time_clock.client().check_login("2405047", "secret"))

    assert user == {"uid": "2405047", "name": "Cron Service", "email": "", "location": ""}


def test_check_login_rejected(time_clock):
    with pytest.raises(AuthenticationError):
        asyncio.run(time_clock.client().check_login("2405047", "wrong"))
