# services/attendance_ingestion.py - batched pull from the time-clock + photo archival
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from config import (
    INGEST_BATCH_SIZE,
    INGEST_BATCH_DELAY,
    MIGRATION_BATCH_SIZE,
    MIGRATION_BATCH_DELAY,
)
from db.connection import SessionLocal
from db.models import Attendance, Schedule, IMAGE_FIELDS
from services.attendance_api import AttendanceApiClient, TripReport, PUNCH_KINDS, attendance_api_client
from services.image_service import ImageArchiver, image_archiver
from services.job_queue import JobManager
from utils.time_and_ids import today_local

logger = logging.getLogger(__name__)

ProgressCallback = Callable[..., None]


@dataclass
class EmployeeOutcome:
    employee_id: str
    ok: bool
    error: Optional[str] = None


@dataclass
class MigrationOutcome:
    employee_id: str
    date: str
    ok: bool
    images: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"userid": self.employee_id, "date": self.date, "images": self.images}


def chunked(items: Sequence, size: int) -> Iterable[Sequence]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def upsert_attendance(db: Session, employee_id: str, day: date, values: Dict[str, Any]) -> Attendance:
    """Create or overwrite the (employee_id, date) attendance row. Caller commits."""
    record = (
        db.query(Attendance)
        .filter(Attendance.employee_id == employee_id, Attendance.date == day)
        .first()
    )
    if record is None:
        record = Attendance(employee_id=employee_id, date=day)
        db.add(record)
    for key, value in values.items():
        setattr(record, key, value)
    return record


def _has_image(column):
    return and_(column.isnot(None), column != "")


def _needs_migration(column, marker: str):
    return and_(_has_image(column), ~column.ilike(f"%{marker}%"))


def scheduled_employees(db: Session) -> List[Tuple[str, str]]:
    """(employee_id, name) for every active schedule with an employee id."""
    rows = (
        db.query(Schedule.employee_id, Schedule.name)
        .filter(Schedule.is_active.is_(True), Schedule.employee_id.isnot(None), Schedule.employee_id != "")
        .order_by(Schedule.employee_id)
        .all()
    )
    seen = {}
    for employee_id, name in rows:
        seen.setdefault(employee_id, name)
    return list(seen.items())


class AttendanceIngestionService:
    """
    Pulls today's punches for a set of employees, archives their photos and
    upserts one attendance row per employee.

    Employees are processed in small batches; members of a batch run
    concurrently, batches run one after another with a fixed pause between
    them. One employee's failure is counted, never raised.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        api_client: AttendanceApiClient = attendance_api_client,
        archiver: ImageArchiver = image_archiver,
        batch_size: int = INGEST_BATCH_SIZE,
        batch_delay: float = INGEST_BATCH_DELAY,
        migration_batch_size: int = MIGRATION_BATCH_SIZE,
        migration_batch_delay: float = MIGRATION_BATCH_DELAY,
        sleep: Callable[[float], Any] = asyncio.sleep,
        today: Callable[[], date] = today_local,
    ):
        self.session_factory = session_factory
        self.api_client = api_client
        self.archiver = archiver
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.migration_batch_size = max(1, migration_batch_size)
        self.migration_batch_delay = migration_batch_delay
        self.sleep = sleep
        self.today = today

    # ---------- single employee ----------
    async def _archive_photos(self, report: TripReport, day: date) -> Dict[str, Optional[str]]:
        kinds = [k for k in PUNCH_KINDS if report.image(k)]
        urls = await asyncio.gather(
            *(self.archiver.archive(report.image(k), report.employee_id, day, k) for k in kinds),
            return_exceptions=True,
        )
        images = {}
        for kind, url in zip(kinds, urls):
            if isinstance(url, Exception):
                logger.warning(f"Keeping source {kind} image for user {report.employee_id}: {url}")
                url = report.image(kind)
            images[f"{kind}_image"] = url
        return images

    async def fetch_employee(self, employee_id: str, name: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch, archive and store one employee's record for today.
        Raises AttendanceApiError when the time-clock call fails.
        """
        day = self.today()
        report = await self.api_client.fetch_trip_report(employee_id)
        images = await self._archive_photos(report, day)

        values: Dict[str, Any] = {}
        for kind in PUNCH_KINDS:
            values[f"{kind}_time"] = report.time(kind)
            values[f"{kind}_address"] = report.address(kind)
            values[f"{kind}_image"] = images.get(f"{kind}_image", report.image(kind))
        if name:
            values["name"] = name

        with self.session_factory() as db:
            record = upsert_attendance(db, employee_id, day, values)
            db.commit()
            db.refresh(record)
            stored = {c.name: getattr(record, c.name) for c in Attendance.__table__.columns}

        logger.info(f"Stored attendance for user {employee_id} on {day}")
        return stored

    async def _process(self, employee_id: str, name: Optional[str]) -> EmployeeOutcome:
        try:
            await self.fetch_employee(employee_id, name)
        except Exception as exc:
            logger.error(f"Failed to ingest attendance for user {employee_id}: {exc}")
            return EmployeeOutcome(employee_id, ok=False, error=str(exc))
        return EmployeeOutcome(employee_id, ok=True)

    # ---------- batch run ----------
    async def run(
        self,
        employee_ids: Sequence[str],
        names: Optional[Dict[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        names = names or {}
        employee_ids = list(employee_ids)
        total = len(employee_ids)
        batches = list(chunked(employee_ids, self.batch_size))
        outcomes: List[EmployeeOutcome] = []

        logger.info(f"Ingesting attendance for {total} employees in {len(batches)} batches")
        for index, batch in enumerate(batches, start=1):
            results = await asyncio.gather(*(self._process(emp, names.get(emp)) for emp in batch))
            outcomes.extend(results)

            if on_progress is not None:
                on_progress(len(outcomes), total, batch=index, total_batches=len(batches))

            if index < len(batches) and self.batch_delay > 0:
                await self.sleep(self.batch_delay)

        failed = [o for o in outcomes if not o.ok]
        summary = {
            "total": total,
            "succeeded": total - len(failed),
            "failed": len(failed),
            "errors": [{"employeeId": o.employee_id, "error": o.error} for o in failed],
            "date": self.today().isoformat(),
        }
        logger.info(
            f"Attendance ingestion done: {summary['succeeded']}/{total} succeeded, {summary['failed']} failed"
        )
        return summary

    def load_employees(self) -> List[Tuple[str, str]]:
        with self.session_factory() as db:
            return scheduled_employees(db)

    async def run_scheduled(self, on_progress: Optional[ProgressCallback] = None) -> Dict[str, Any]:
        employees = self.load_employees()
        return await self.run([e for e, _ in employees], dict(employees), on_progress=on_progress)

    async def run_job(self, job_manager: JobManager, job_id: str) -> None:
        """Drive an already-started job to completed or failed."""
        def progress(current: int, total: int, **extra: Any) -> None:
            job_manager.update_progress(job_id, current, total, **extra)

        try:
            result = await self.run_scheduled(on_progress=progress)
        except Exception as exc:
            logger.exception(f"Attendance fetch job {job_id} crashed")
            job_manager.fail(job_id, str(exc))
            return
        job_manager.complete(job_id, result)

    # ---------- photo migration ----------
    def _migration_filter(self, force_update: bool):
        marker = self.archiver.host_marker
        columns = [getattr(Attendance, f) for f in IMAGE_FIELDS]
        if force_update:
            return or_(*(_has_image(c) for c in columns))
        return or_(*(_needs_migration(c, marker) for c in columns))

    async def _migrate_record(self, row: Dict[str, Any], force_update: bool) -> MigrationOutcome:
        outcome = MigrationOutcome(row["employee_id"], row["date"].isoformat(), ok=True)
        try:
            fields = [f for f in IMAGE_FIELDS if row[f] and row[f].strip()]
            pending = []
            for f in fields:
                if not force_update and self.archiver.is_archived(row[f]):
                    outcome.images[f] = {"original": row[f], "migrated": row[f], "status": "skipped"}
                else:
                    pending.append(f)

            urls = await asyncio.gather(
                *(
                    self.archiver.archive(
                        row[f], row["employee_id"], row["date"], f[: -len("_image")], force=force_update
                    )
                    for f in pending
                ),
                return_exceptions=True,
            )
            updates = {}
            for f, url in zip(pending, urls):
                if isinstance(url, Exception):
                    logger.warning(f"Failed to migrate {f} for user {row['employee_id']}: {url}")
                    url = row[f]
                changed = bool(url) and url != row[f]
                outcome.images[f] = {
                    "original": row[f],
                    "migrated": url,
                    "status": "migrated" if changed else "failed",
                }
                if changed:
                    updates[f] = url

            if updates:
                with self.session_factory() as db:
                    record = db.get(Attendance, row["id"])
                    for f, url in updates.items():
                        setattr(record, f, url)
                    db.commit()
                logger.info(f"Migrated images for user {row['employee_id']} on {row['date']}")
        except Exception as exc:
            logger.error(f"Failed to migrate images for user {row['employee_id']}: {exc}")
            return MigrationOutcome(row["employee_id"], row["date"].isoformat(), ok=False, images={"error": str(exc)})
        return outcome

    async def migrate(self, limit: int = 50, skip: int = 0, force_update: bool = False) -> Dict[str, Any]:
        """Re-archive stored photo URLs without calling the time-clock again."""
        criteria = self._migration_filter(force_update)
        with self.session_factory() as db:
            total_records = db.query(Attendance).filter(criteria).count()
            records = (
                db.query(Attendance)
                .filter(criteria)
                .order_by(Attendance.date.desc(), Attendance.id.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )
            rows = [
                {"id": r.id, "employee_id": r.employee_id, "date": r.date, **{f: getattr(r, f) for f in IMAGE_FIELDS}}
                for r in records
            ]

        outcomes: List[MigrationOutcome] = []
        batches = list(chunked(rows, self.migration_batch_size))
        for index, batch in enumerate(batches, start=1):
            outcomes.extend(await asyncio.gather(*(self._migrate_record(r, force_update) for r in batch)))
            if index < len(batches) and self.migration_batch_delay > 0:
                await self.sleep(self.migration_batch_delay)

        has_more = bool(rows) and skip + limit < total_records
        succeeded = sum(1 for o in outcomes if o.ok)
        return {
            "totalRecords": total_records,
            "processed": len(rows),
            "success": succeeded,
            "failed": len(outcomes) - succeeded,
            "hasMore": has_more,
            "nextSkip": skip + limit if has_more else None,
            "results": [o.to_dict() for o in outcomes],
        }

    def migration_stats(self) -> Dict[str, Any]:
        marker = self.archiver.host_marker
        columns = [getattr(Attendance, f) for f in IMAGE_FIELDS]
        need = self._migration_filter(force_update=False)

        with self.session_factory() as db:
            total_with_images = db.query(Attendance).filter(or_(*(_has_image(c) for c in columns))).count()
            already_migrated = db.query(Attendance).filter(or_(*(c.ilike(f"%{marker}%") for c in columns))).count()
            need_migration = db.query(Attendance).filter(need).count()
            samples = db.query(Attendance).filter(need).order_by(Attendance.date.desc()).limit(5).all()
            sample_records = [
                {
                    "userid": r.employee_id,
                    "date": r.date.isoformat(),
                    "imageUrls": {f: getattr(r, f) for f in IMAGE_FIELDS},
                }
                for r in samples
            ]

        progress = round(already_migrated / total_with_images * 100, 2) if total_with_images else 0
        return {
            "totalWithImages": total_with_images,
            "alreadyMigrated": already_migrated,
            "needMigration": need_migration,
            "migrationProgress": progress,
            "sampleRecords": sample_records,
        }


ingestion_service = AttendanceIngestionService()


def get_ingestion_service() -> AttendanceIngestionService:
    return ingestion_service
