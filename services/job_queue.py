# services/job_queue.py - in-memory lifecycle tracking for ingestion runs

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import JOB_HISTORY_LIMIT
from services.exceptions import JobNotFoundError, JobStateError
from utils.time_and_ids import gen_job_id

logger = logging.getLogger(__name__)

ATTENDANCE_FETCH = "attendance-fetch"

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Job:
    id: str
    type: str
    triggered_by: str
    status: str = PENDING
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    progress: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    seq: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "triggeredBy": self.triggered_by,
            "progress": self.progress,
            "result": self.result,
            "error": self.error,
            "startTime": _iso(self.started_at),
            "endTime": _iso(self.finished_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class JobManager:
    """
    Process-local job registry: pending -> running -> completed | failed.

    Jobs beyond `history_limit` are evicted oldest first. State is lost on
    restart; callers use it for monitoring and the single-flight guard only.
    """

    def __init__(self, history_limit: int = JOB_HISTORY_LIMIT):
        self.history_limit = history_limit
        self._jobs: Dict[str, Job] = {}
        self._seq = itertools.count()

    # ---------- transitions ----------
    def create(self, job_type: str = ATTENDANCE_FETCH, triggered_by: str = "manual") -> Job:
        job = Job(id=gen_job_id(), type=job_type, triggered_by=triggered_by, seq=next(self._seq))
        self._jobs[job.id] = job
        self._evict()
        logger.info(f"Created job {job.id} ({job_type}, triggered by {triggered_by})")
        return job

    def start(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job.status != PENDING:
            raise JobStateError(f"Job {job_id} cannot start from status {job.status}")
        job.status = RUNNING
        job.started_at = job.updated_at = _now()
        logger.info(f"Job {job_id} started")
        return job

    def update_progress(self, job_id: str, current: int, total: int, **extra: Any) -> Job:
        job = self.get(job_id)
        if job.status != RUNNING:
            raise JobStateError(f"Job {job_id} is {job.status}; progress only applies while running")
        job.progress = {"current": current, "total": total, **extra}
        job.updated_at = _now()
        return job

    def complete(self, job_id: str, result: Dict[str, Any]) -> Job:
        job = self._finish(job_id, COMPLETED)
        job.result = result
        logger.info(f"Job {job_id} completed: {result}")
        return job

    def fail(self, job_id: str, error: str) -> Job:
        job = self._finish(job_id, FAILED)
        job.error = error
        logger.error(f"Job {job_id} failed: {error}")
        return job

    def _finish(self, job_id: str, status: str) -> Job:
        job = self.get(job_id)
        if job.status != RUNNING:
            raise JobStateError(f"Job {job_id} cannot move from {job.status} to {status}")
        job.status = status
        job.finished_at = job.updated_at = _now()
        return job

    def _evict(self) -> None:
        overflow = len(self._jobs) - self.history_limit
        if overflow <= 0:
            return
        oldest = sorted(self._jobs.values(), key=lambda j: (j.created_at, j.seq))[:overflow]
        for job in oldest:
            del self._jobs[job.id]
            logger.debug(f"Evicted job {job.id} from history")

    # ---------- queries ----------
    def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_all(self) -> List[Job]:
        return sorted(self._jobs.values(), key=lambda j: (j.created_at, j.seq), reverse=True)

    def list_running(self) -> List[Job]:
        return [j for j in self.list_all() if j.status == RUNNING]

    def has_running(self, job_type: str = ATTENDANCE_FETCH) -> bool:
        return any(j.type == job_type for j in self.list_running())

    def stats(self) -> Dict[str, int]:
        counts = {"total": len(self._jobs), PENDING: 0, RUNNING: 0, COMPLETED: 0, FAILED: 0}
        for job in self._jobs.values():
            counts[job.status] += 1
        return counts


job_manager = JobManager()


def get_job_manager() -> JobManager:
    return job_manager
