from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Literal, Optional
from datetime import date
import logging

from db.connection import get_db
from db.Schema.lateness import (
    BulkCalculateRequest,
    CalculateDateRequest,
    CalculateMonthRequest,
    CalculateRangeRequest,
    LatenessOut,
)
from routes.auth.auth_dependency import get_current_user
from services.lateness_service import LatenessService, lateness_counts, month_bounds
from utils.api_response import success_response
from utils.time_and_ids import today_local

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/lateness",
    tags=["Lateness"],
    dependencies=[Depends(get_current_user)],
)


def get_lateness_service(db: Session = Depends(get_db)) -> LatenessService:
    return LatenessService(db)


def _dump(records):
    return [LatenessOut.model_validate(r).model_dump() for r in records]


@router.post("/calculate/date/{employee_id}", summary="Lateness for one employee on one date")
def calculate_for_date(
    employee_id: str,
    payload: CalculateDateRequest,
    service: LatenessService = Depends(get_lateness_service),
):
    result = service.calculate_for_date(employee_id, payload.date)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No schedule found for {employee_id} on {payload.date}",
        )
    if payload.saveToDb:
        service.save(result)
    return success_response(
        LatenessOut.model_validate(result).model_dump(),
        "Lateness calculated" + (" and saved" if payload.saveToDb else ""),
    )


@router.post("/calculate/range/{employee_id}", summary="Lateness for a date range")
def calculate_for_range(
    employee_id: str,
    payload: CalculateRangeRequest,
    service: LatenessService = Depends(get_lateness_service),
):
    results = service.calculate_for_range(employee_id, payload.startDate, payload.endDate)
    if payload.saveToDb and results:
        service.save_all(results)
    return success_response(
        {
            "employeeId": employee_id,
            "period": {"startDate": payload.startDate, "endDate": payload.endDate},
            "summary": lateness_counts(results),
            "records": _dump(results),
        },
        f"Calculated {len(results)} days",
    )


@router.post("/calculate/month/{employee_id}", summary="Lateness for a calendar month")
def calculate_for_month(
    employee_id: str,
    payload: CalculateMonthRequest,
    service: LatenessService = Depends(get_lateness_service),
):
    results = service.calculate_for_month(employee_id, payload.month, payload.year)
    if payload.saveToDb and results:
        service.save_all(results)
    return success_response(
        {
            "employeeId": employee_id,
            "period": {"month": payload.month, "year": payload.year},
            "summary": lateness_counts(results),
            "records": _dump(results),
        },
        f"Calculated {len(results)} days",
    )


@router.post("/calculate/bulk", summary="Lateness for many employees at once")
def calculate_bulk(
    payload: BulkCalculateRequest,
    service: LatenessService = Depends(get_lateness_service),
):
    day, month, year = payload.date, payload.month, payload.year

    if payload.period == "today":
        day = today_local()
        employee_ids = service.employees_scheduled_between(day, day)
        source = f"today_auto_discovery ({day.isoformat()})"
    elif payload.employeeIds:
        employee_ids = payload.employeeIds
        source = "manual_selection"
    elif month and year:
        employee_ids = service.employees_scheduled_for_month(month, year)
        source = f"month_based_auto_discovery ({month}/{year})"
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide period='today', month and year, or a list of employeeIds",
        )

    if not employee_ids:
        raise HTTPException(status_code=404, detail="No employees found with schedules for the requested period")

    result = service.bulk_calculate(
        employee_ids,
        day=day,
        start=payload.startDate,
        end=payload.endDate,
        month=month,
        year=year,
        save=payload.saveToDb,
    )
    result["source"] = source
    result["period"] = {
        "date": day,
        "startDate": payload.startDate,
        "endDate": payload.endDate,
        "month": month,
        "year": year,
    }
    return success_response(result, "Bulk lateness calculation completed")


@router.get("/data/{employee_id}", summary="Stored lateness records")
def get_data(
    employee_id: str,
    day: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    service: LatenessService = Depends(get_lateness_service),
):
    records = service.get_data(employee_id, day=day, start=start_date, end=end_date)
    return success_response(_dump(records), f"Found {len(records)} records")


@router.get("/stats", summary="Aggregate lateness statistics")
def get_stats(
    employee_id: Optional[str] = Query(None, alias="employeeId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    group_by: Optional[Literal["week", "month"]] = Query(None, alias="groupBy"),
    service: LatenessService = Depends(get_lateness_service),
):
    if month and year and not (start_date and end_date):
        start_date, end_date = month_bounds(month, year)
    return success_response(
        service.stats(employee_id, start=start_date, end=end_date, group_by=group_by),
        "Lateness statistics retrieved",
    )


@router.get("/late-employees", summary="Employees who were late on a date")
def late_employees(
    day: Optional[date] = Query(None, alias="date"),
    service: LatenessService = Depends(get_lateness_service),
):
    report = service.late_employees(day or today_local())
    report["categorized"] = {k: _dump(v) for k, v in report["categorized"].items()}
    report["allLateEmployees"] = _dump(report["allLateEmployees"])
    return success_response(report, "Late employees retrieved")
