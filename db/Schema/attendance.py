# db/Schema/attendance.py

from pydantic import BaseModel, Field, ConfigDict
import datetime
from typing import Any, Dict, List, Optional


class AttendanceOut(BaseModel):
    id: int
    employee_id: str
    name: Optional[str] = None
    # fully qualify the date type so it cannot be confused
    date: datetime.date
    start_time: Optional[str] = None
    start_address: Optional[str] = None
    start_image: Optional[str] = None
    break_out_time: Optional[str] = None
    break_out_address: Optional[str] = None
    break_out_image: Optional[str] = None
    break_in_time: Optional[str] = None
    break_in_address: Optional[str] = None
    break_in_image: Optional[str] = None
    end_time: Optional[str] = None
    end_address: Optional[str] = None
    end_image: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    # tell Pydantic to pull values off ORM objects
    model_config = ConfigDict(from_attributes=True)


class FetchAllSyncResult(BaseModel):
    processed: int
    success: int
    failed: int
    date: str
    jobId: Optional[str] = None
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class JobAccepted(BaseModel):
    jobId: str
    status: str
    statusUrl: str


class MigrationRequest(BaseModel):
    limit: int = Field(50, ge=1, le=500, description="Records to process in this page")
    skip: int = Field(0, ge=0, description="Records to skip")
    forceUpdate: bool = Field(False, description="Re-archive URLs that are already archived")
