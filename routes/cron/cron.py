from fastapi import APIRouter, Depends
import logging

from routes.auth.auth_dependency import get_current_user
from Scheduler.attendance_scheduler import AttendanceCronScheduler, get_cron_scheduler
from utils.api_response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/status")
def cron_status(cron: AttendanceCronScheduler = Depends(get_cron_scheduler)):
    last = cron.orchestrator.last_summary
    return success_response(
        {
            "schedulerRunning": cron.running,
            "jobs": cron.status(),
            "lastRun": last.to_dict() if last else None,
        },
        "Cron status retrieved",
    )


@router.post("/trigger/attendance-fetch")
async def trigger_attendance_fetch(cron: AttendanceCronScheduler = Depends(get_cron_scheduler)):
    summary = await cron.orchestrator.run(triggered_by="manual")
    message = "Attendance fetch completed" if summary.success else "Attendance fetch failed"
    return success_response(summary.to_dict(), message)


@router.post("/start/{job_name}")
def start_job(job_name: str, cron: AttendanceCronScheduler = Depends(get_cron_scheduler)):
    cron.start_job(job_name)
    return success_response({"job": job_name, "running": True}, f"Cron job {job_name} started")


@router.post("/stop/{job_name}")
def stop_job(job_name: str, cron: AttendanceCronScheduler = Depends(get_cron_scheduler)):
    cron.stop_job(job_name)
    return success_response({"job": job_name, "running": False}, f"Cron job {job_name} stopped")


@router.get("/config")
def cron_config(cron: AttendanceCronScheduler = Depends(get_cron_scheduler)):
    return success_response(cron.config(), "Cron configuration retrieved")
