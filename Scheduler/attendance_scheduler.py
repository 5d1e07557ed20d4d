from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import (
    BASE_URL,
    CRON_AUTH_USERNAME,
    CRON_AUTH_PASSWORD,
    CRON_POLL_INTERVAL,
    CRON_MAX_WAIT,
    CRON_MAX_ATTEMPTS,
    ATTENDANCE_CRON_ENABLED,
    ATTENDANCE_CRON_SCHEDULE,
    ATTENDANCE_CRON_SCHEDULE_NIGHT,
    ATTENDANCE_CRON_TIMEZONE,
)
from services.exceptions import (
    AttendanceServiceError,
    AuthenticationError,
    JobAlreadyRunningError,
    JobNotFoundError,
    JobTimeoutError,
)
from utils.retries import call_with_retries

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
MAIN_JOB = "attendance-fetch-main"
NIGHT_JOB = "attendance-fetch-night"
TOKEN_SAFETY_MARGIN = timedelta(hours=1)


class TransientTriggerError(AttendanceServiceError):
    """Trigger failed in a way worth retrying (5xx, expired token, network)."""


@dataclass
class FetchSummary:
    job: str
    triggered_by: str
    success: bool
    timestamp: str
    duration_ms: int
    attempts: int
    job_id: Optional[str] = None
    processed: Optional[int] = None
    succeeded: Optional[int] = None
    failed: Optional[int] = None
    date: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AttendanceFetchOrchestrator:
    """
    One invocation: authenticate -> trigger fetch-all -> poll job (when async).

    The authenticate+trigger step is retried with exponential backoff; the
    bearer token is cached across invocations until shortly before expiry.
    `run()` never raises; every outcome ends up in a logged FetchSummary.
    """

    def __init__(
        self,
        base_url: str = BASE_URL,
        username: str = CRON_AUTH_USERNAME,
        password: str = CRON_AUTH_PASSWORD,
        poll_interval: float = CRON_POLL_INTERVAL,
        max_wait: float = CRON_MAX_WAIT,
        max_attempts: int = CRON_MAX_ATTEMPTS,
        request_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.max_attempts = max_attempts
        self.request_timeout = request_timeout
        self.transport = transport
        self.sleep = sleep
        self.clock = clock

        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self.last_summary: Optional[FetchSummary] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}"

    # ---------- token management ----------
    def has_valid_token(self) -> bool:
        return bool(
            self._token
            and self._token_expires_at
            and datetime.now(timezone.utc) < self._token_expires_at
        )

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expires_at = None

    async def authenticate(self, client: httpx.AsyncClient) -> str:
        if self.has_valid_token():
            return self._token

        logger.info("Authenticating for cronjob access...")
        resp = await client.post(
            self._url("/auth/login"),
            json={"username": self.username, "password": self.password},
        )
        if resp.status_code in (400, 401, 403):
            raise AuthenticationError(f"Authentication failed: HTTP {resp.status_code}")
        if resp.status_code >= 500:
            raise TransientTriggerError(f"Login endpoint returned HTTP {resp.status_code}")
        resp.raise_for_status()

        body = resp.json()
        data = body.get("data") or {}
        token = data.get("token")
        if not body.get("success") or not token:
            raise AuthenticationError("Login failed: invalid response from auth endpoint")

        expires_in = int(data.get("expiresIn") or 0)
        lifetime = max(timedelta(0), timedelta(seconds=expires_in) - TOKEN_SAFETY_MARGIN)
        self._token = token
        self._token_expires_at = datetime.now(timezone.utc) + lifetime
        logger.info(f"Authentication successful for cronjob (user: {(data.get('user') or {}).get('name')})")
        return token

    # ---------- trigger + poll ----------
    async def _trigger(self, client: httpx.AsyncClient, triggered_by: str) -> tuple[str, Dict[str, Any]]:
        token = await self.authenticate(client)
        resp = await client.post(
            self._url("/attendance/fetch-all"),
            params={"mode": "async", "triggeredBy": triggered_by},
            headers={"Authorization": f"Bearer {token}"},
        )
        if resp.status_code == 401:
            self.invalidate_token()
            raise TransientTriggerError("Bearer token rejected; re-authenticating")
        if resp.status_code == 409:
            raise JobAlreadyRunningError("An attendance fetch is already running")
        if resp.status_code >= 500:
            raise TransientTriggerError(f"fetch-all returned HTTP {resp.status_code}")
        resp.raise_for_status()
        return token, resp.json().get("data") or {}

    async def _poll(self, client: httpx.AsyncClient, token: str, job_id: str) -> Dict[str, Any]:
        started = self.clock()
        while True:
            try:
                resp = await client.get(
                    self._url(f"/attendance/job-status/{job_id}"),
                    headers={"Authorization": f"Bearer {token}"},
                )
                if resp.status_code == 404:
                    raise JobNotFoundError(job_id)
                resp.raise_for_status()
                job = resp.json().get("data") or {}
                if job.get("status") in ("completed", "failed"):
                    return job
                progress = job.get("progress") or {}
                logger.info(
                    f"Job {job_id} is {job.get('status')} ({progress.get('current', 0)}/{progress.get('total', '?')})"
                )
            except httpx.HTTPError as exc:
                logger.warning(f"Polling job {job_id} failed: {exc}")

            if self.clock() - started >= self.max_wait:
                raise JobTimeoutError(f"Job {job_id} did not finish within {self.max_wait:.0f}s")
            await self.sleep(self.poll_interval)

    async def _execute(self, summary: FetchSummary) -> None:
        async with httpx.AsyncClient(timeout=self.request_timeout, transport=self.transport) as client:
            attempts = 0

            async def attempt():
                nonlocal attempts
                attempts += 1
                return await self._trigger(client, summary.triggered_by)

            try:
                (token, data), _ = await call_with_retries(
                    attempt,
                    max_attempts=self.max_attempts,
                    initial_delay=2.0,
                    backoff_factor=2.0,
                    retry_on=(TransientTriggerError, httpx.TransportError),
                    sleep=self.sleep,
                )
            finally:
                summary.attempts = attempts

            job_id = data.get("jobId")
            summary.job_id = job_id
            if "processed" in data:
                # synchronous mode: the response already carries the result
                summary.processed = data.get("processed")
                summary.succeeded = data.get("success")
                summary.failed = data.get("failed")
                summary.date = data.get("date")
                summary.success = True
                return

            if not job_id:
                raise AttendanceServiceError("fetch-all response carried neither a result nor a job id")
            job = await self._poll(client, token, job_id)
            result = job.get("result") or {}
            summary.processed = result.get("total")
            summary.succeeded = result.get("succeeded")
            summary.failed = result.get("failed")
            summary.date = result.get("date")
            if job.get("status") == "failed":
                summary.error = job.get("error") or "Attendance fetch job failed"
                return
            summary.success = True

    async def run(self, triggered_by: str = "scheduled") -> FetchSummary:
        started = self.clock()
        summary = FetchSummary(
            job="attendance-fetch",
            triggered_by=triggered_by,
            success=False,
            timestamp=datetime.now(timezone.utc).isoformat(),
            duration_ms=0,
            attempts=0,
        )
        logger.info(f"Starting attendance fetch ({triggered_by})")
        try:
            await self._execute(summary)
        except (AttendanceServiceError, httpx.HTTPError) as exc:
            summary.error = str(exc)
        except Exception as exc:
            logger.exception("Unexpected error in attendance fetch")
            summary.error = str(exc)

        summary.duration_ms = int((self.clock() - started) * 1000)
        self.last_summary = summary
        if summary.success:
            logger.info(f"Cronjob summary: {summary.to_dict()}")
        else:
            logger.error(f"Cronjob summary: {summary.to_dict()}")
        return summary


class AttendanceCronScheduler:
    """Named cron schedules for the orchestrator, each pausable on its own."""

    def __init__(
        self,
        orchestrator: AttendanceFetchOrchestrator,
        main_schedule: str = ATTENDANCE_CRON_SCHEDULE,
        night_schedule: Optional[str] = ATTENDANCE_CRON_SCHEDULE_NIGHT,
        tz: str = ATTENDANCE_CRON_TIMEZONE,
        enabled: bool = ATTENDANCE_CRON_ENABLED,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.orchestrator = orchestrator
        self.tz = tz
        self.enabled = enabled
        self.schedules: Dict[str, str] = {MAIN_JOB: main_schedule}
        if night_schedule:
            self.schedules[NIGHT_JOB] = night_schedule
        self.scheduler = scheduler or AsyncIOScheduler(timezone=tz)
        self._configured = False

    def configure(self) -> None:
        if self._configured:
            return
        if not self.enabled:
            logger.info("Attendance fetch cronjob is disabled")
            self._configured = True
            return
        for name, expr in self.schedules.items():
            self.scheduler.add_job(
                self.orchestrator.run,
                CronTrigger.from_crontab(expr, timezone=self.tz),
                id=name,
                name=name,
                kwargs={"triggered_by": "scheduled"},
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=600,
            )
            logger.info(f"Scheduled {name} with '{expr}' ({self.tz})")
        self._configured = True

    def start(self) -> None:
        """Start once per process. Safe to call multiple times."""
        self.configure()
        if not self.enabled:
            return
        if not self.scheduler.running:
            logging.getLogger("apscheduler").setLevel(logging.INFO)
            self.scheduler.start()
            logger.info("Attendance cron scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Attendance cron scheduler stopped")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def _job(self, name: str):
        job = self.scheduler.get_job(name)
        if job is None:
            raise JobNotFoundError(name)
        return job

    def start_job(self, name: str) -> None:
        self._job(name)
        self.scheduler.resume_job(name)
        logger.info(f"Cron job {name} started")

    def stop_job(self, name: str) -> None:
        self._job(name)
        self.scheduler.pause_job(name)
        logger.info(f"Cron job {name} stopped")

    def status(self) -> List[Dict[str, Any]]:
        jobs = []
        for name, expr in self.schedules.items():
            job = self.scheduler.get_job(name)
            next_run = getattr(job, "next_run_time", None) if job else None
            jobs.append({
                "name": name,
                "schedule": expr,
                "timezone": self.tz,
                "registered": job is not None,
                "running": next_run is not None,
                "nextRun": next_run.isoformat() if next_run else None,
            })
        return jobs

    def config(self) -> Dict[str, Any]:
        return {
            "attendanceFetch": {
                "enabled": self.enabled,
                "schedule": self.schedules[MAIN_JOB],
                "nightSchedule": self.schedules.get(NIGHT_JOB),
                "timezone": self.tz,
                "description": "Fetch attendance data for all employees",
            },
            "orchestrator": {
                "baseUrl": self.orchestrator.base_url,
                "pollInterval": self.orchestrator.poll_interval,
                "maxWait": self.orchestrator.max_wait,
                "maxAttempts": self.orchestrator.max_attempts,
            },
        }


orchestrator = AttendanceFetchOrchestrator()
cron_scheduler = AttendanceCronScheduler(orchestrator)


def get_cron_scheduler() -> AttendanceCronScheduler:
    return cron_scheduler
