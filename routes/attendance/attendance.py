from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from typing import Literal, Optional
from datetime import date
import logging

from db.connection import get_db
from db.models import Attendance as AttendanceModel, Schedule
from db.Schema.attendance import AttendanceOut, FetchAllSyncResult, JobAccepted
from routes.auth.auth_dependency import get_current_user
from services.attendance_ingestion import AttendanceIngestionService, get_ingestion_service
from services.exceptions import JobAlreadyRunningError, ScheduleNotFoundError
from services.job_queue import ATTENDANCE_FETCH, FAILED, JobManager, get_job_manager
from services.lateness_service import month_bounds
from utils.api_response import success_response
from utils.time_and_ids import today_local

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/attendance",
    tags=["Attendance"],
    dependencies=[Depends(get_current_user)],
)


@router.post(
    "/fetch-all",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Fetch today's attendance for every scheduled employee",
)
async def fetch_all(
    response: Response,
    background_tasks: BackgroundTasks,
    mode: Literal["async", "sync"] = Query("async", description="async returns a job id, sync waits"),
    triggered_by: Literal["manual", "scheduled"] = Query("manual", alias="triggeredBy"),
    service: AttendanceIngestionService = Depends(get_ingestion_service),
    jobs: JobManager = Depends(get_job_manager),
):
    if jobs.has_running(ATTENDANCE_FETCH):
        raise JobAlreadyRunningError("An attendance fetch is already running")

    job = jobs.create(ATTENDANCE_FETCH, triggered_by=triggered_by)
    jobs.start(job.id)

    if mode == "sync":
        await service.run_job(jobs, job.id)
        job = jobs.get(job.id)
        if job.status == FAILED:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=job.error)
        result = job.result
        response.status_code = status.HTTP_200_OK
        data = FetchAllSyncResult(
            processed=result["total"],
            success=result["succeeded"],
            failed=result["failed"],
            date=result["date"],
            jobId=job.id,
            errors=result["errors"],
        )
        return success_response(data.model_dump(), "Attendance fetch completed")

    background_tasks.add_task(service.run_job, jobs, job.id)
    data = JobAccepted(
        jobId=job.id,
        status=job.status,
        statusUrl=f"/api/v1/attendance/job-status/{job.id}",
    )
    return success_response(data.model_dump(), "Attendance fetch started")


@router.get("/fetch/{employee_id}", summary="Fetch and store one employee's attendance now")
async def fetch_one(
    employee_id: str,
    db: Session = Depends(get_db),
    service: AttendanceIngestionService = Depends(get_ingestion_service),
):
    schedule = (
        db.query(Schedule)
        .filter(Schedule.employee_id == employee_id, Schedule.is_active.is_(True))
        .first()
    )
    if schedule is None:
        raise ScheduleNotFoundError(employee_id)

    stored = await service.fetch_employee(employee_id, schedule.name)
    return success_response(AttendanceOut(**stored).model_dump(), "Attendance fetched")


@router.get("/job-status/{job_id}", summary="Poll an attendance fetch job")
def job_status(job_id: str, jobs: JobManager = Depends(get_job_manager)):
    return success_response(jobs.get(job_id).to_dict(), "Job status retrieved")


@router.get("/jobs", summary="List recent jobs, newest first")
def list_jobs(jobs: JobManager = Depends(get_job_manager)):
    return success_response(
        {
            "jobs": [j.to_dict() for j in jobs.list_all()],
            "stats": jobs.stats(),
        },
        "Jobs retrieved",
    )


@router.post("/migrate-images", summary="Re-archive stored photo URLs")
async def migrate_images(
    limit: int = Query(50, ge=1, le=500),
    skip: int = Query(0, ge=0),
    force_update: bool = Query(False, alias="forceUpdate"),
    service: AttendanceIngestionService = Depends(get_ingestion_service),
):
    result = await service.migrate(limit=limit, skip=skip, force_update=force_update)
    return success_response(result, f"Processed {result['processed']} records")


@router.get("/migration-stats", summary="How many stored photos still need archiving")
def migration_stats(service: AttendanceIngestionService = Depends(get_ingestion_service)):
    return success_response(service.migration_stats(), "Migration statistics retrieved")


@router.get("/{employee_id}/filter", summary="Stored attendance for one employee")
def filter_attendance(
    employee_id: str,
    day: Optional[date] = Query(None, alias="date", description="Exact date (defaults to today)"),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
):
    q = db.query(AttendanceModel).filter(AttendanceModel.employee_id == employee_id)

    if day is None and month and year:
        start, end = month_bounds(month, year)
        records = (
            q.filter(AttendanceModel.date >= start, AttendanceModel.date <= end)
            .order_by(AttendanceModel.date)
            .all()
        )
        return success_response(
            [AttendanceOut.model_validate(r).model_dump() for r in records],
            f"Found {len(records)} records",
        )

    target = day or today_local()
    record = q.filter(AttendanceModel.date == target).first()
    if not record:
        raise HTTPException(status_code=404, detail=f"No attendance for {employee_id} on {target}")
    return success_response(AttendanceOut.model_validate(record).model_dump(), "Attendance record found")
