# services/attendance_api.py - client for the external time-clock service
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config import ATTENDANCE_API_URL, ATTENDANCE_API_TIMEOUT
from services.exceptions import AttendanceApiError, AuthenticationError

logger = logging.getLogger(__name__)

TRIP_REPORT_PATH = "getTripReport1.php"
LOGIN_PATH = "check_login1.php"
CLIENT_VERSION = "1.4.0"

PUNCH_KINDS = ("start", "break_out", "break_in", "end")


@dataclass
class TripReport:
    """One employee's punches for today as returned by the time-clock service."""
    employee_id: str
    raw: Dict[str, Any]

    def time(self, kind: str) -> Optional[str]:
        return self.raw.get(f"mset_{kind}_time") or None

    def address(self, kind: str) -> Optional[str]:
        return self.raw.get(f"mset_{kind}_address") or None

    def image(self, kind: str) -> Optional[str]:
        return self.raw.get(f"mset_{kind}_image") or None


class AttendanceApiClient:
    def __init__(
        self,
        base_url: str = ATTENDANCE_API_URL,
        timeout: float = ATTENDANCE_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _post_form(self, path: str, form: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            async with self._client() as client:
                resp = await client.post(url, data=form)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise AttendanceApiError(
                f"Error calling {url}: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            # network error, timeouts, etc.
            raise AttendanceApiError(f"Error calling {url}: {exc!s}") from exc
        except ValueError as exc:
            raise AttendanceApiError(f"Invalid JSON from {url}") from exc

        if not isinstance(payload, dict):
            raise AttendanceApiError(f"Unexpected payload from {url}")
        return payload

    async def fetch_trip_report(self, employee_id: str) -> TripReport:
        """Raises AttendanceApiError on transport failure or success=false."""
        payload = await self._post_form(TRIP_REPORT_PATH, {"userid": employee_id})
        if not payload.get("success"):
            raise AttendanceApiError(f"Time-clock returned success=false for user {employee_id}")
        return TripReport(employee_id=employee_id, raw=payload)

    async def check_login(self, username: str, password: str) -> Dict[str, Any]:
        """
        Verify credentials against the time-clock login service.
        Returns {"uid", "name", "email", "location"}.
        """
        payload = await self._post_form(
            LOGIN_PATH,
            {"username": username, "passwd": password, "version": CLIENT_VERSION},
        )
        user = payload.get("user") or {}
        uid = payload.get("uid")
        if payload.get("error") or not uid or not user.get("name"):
            logger.warning(f"Login rejected for {username}")
            raise AuthenticationError("Invalid username or password")
        return {
            "uid": str(uid),
            "name": user["name"],
            "email": user.get("email") or "",
            "location": user.get("location") or "",
        }


attendance_api_client = AttendanceApiClient()


def get_attendance_api_client() -> AttendanceApiClient:
    return attendance_api_client
