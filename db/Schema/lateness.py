# db/Schema/lateness.py

from pydantic import BaseModel, Field, ConfigDict, model_validator
import datetime
from typing import List, Literal, Optional


class LatenessOut(BaseModel):
    employee_id: str
    name: Optional[str] = None
    date: datetime.date
    shift: str
    scheduled_start_time: str
    scheduled_end_time: str
    actual_start_time: Optional[str] = None
    actual_end_time: Optional[str] = None
    actual_break_out_time: Optional[str] = None
    actual_break_in_time: Optional[str] = None
    start_lateness_minutes: float = 0.0
    end_lateness_minutes: float = 0.0
    break_lateness_minutes: float = 0.0
    attendance_status: str
    break_status: str
    total_working_minutes: float = 0.0
    is_complete_attendance: bool = False

    model_config = ConfigDict(from_attributes=True)


class CalculateDateRequest(BaseModel):
    date: datetime.date
    saveToDb: bool = False


class CalculateRangeRequest(BaseModel):
    startDate: datetime.date
    endDate: datetime.date
    saveToDb: bool = False

    @model_validator(mode="after")
    def check_order(self):
        if self.endDate < self.startDate:
            raise ValueError("startDate must not be after endDate")
        return self


class CalculateMonthRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    saveToDb: bool = False


class BulkCalculateRequest(BaseModel):
    employeeIds: Optional[List[str]] = None
    date: Optional[datetime.date] = None
    startDate: Optional[datetime.date] = None
    endDate: Optional[datetime.date] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    period: Optional[Literal["today"]] = None
    saveToDb: bool = False
