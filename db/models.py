from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Float, Boolean,
    ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from db.connection import Base


# Schedule markers meaning "not a working day"
OFF_DAY_MARKERS = ("OFF", "CT")

IMAGE_FIELDS = ("start_image", "break_out_image", "break_in_image", "end_image")


class Schedule(Base):
    __tablename__ = "schedules"

    id            = Column(Integer, primary_key=True, autoincrement=True)
    employee_id   = Column(String(100), nullable=True, index=True)
    name          = Column(String(100), nullable=False, index=True)
    department    = Column(String(100), nullable=False)
    position      = Column(String(100), nullable=False)
    is_active     = Column(Boolean, default=True, nullable=False)

    created_at    = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at    = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    entries       = relationship(
        "ScheduleEntry",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduleEntry.date",
    )

    def entry_for(self, day):
        for entry in self.entries:
            if entry.date == day:
                return entry
        return None


class ScheduleEntry(Base):
    __tablename__ = "schedule_entries"
    __table_args__ = (UniqueConstraint("schedule_id", "date", name="uq_schedule_entries_schedule_date"),)

    id            = Column(Integer, primary_key=True, autoincrement=True)
    schedule_id   = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False)
    date          = Column(Date, nullable=False, index=True)
    shift         = Column(String(50), nullable=False)

    schedule      = relationship("Schedule", back_populates="entries")

    @property
    def is_off_day(self) -> bool:
        return (self.shift or "").strip().upper() in OFF_DAY_MARKERS


class Attendance(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_attendance_records_employee_date"),)

    id                = Column(Integer, primary_key=True, autoincrement=True)
    employee_id       = Column(String(100), nullable=False, index=True)
    name              = Column(String(100), nullable=True)
    date              = Column(Date, nullable=False, index=True)

    start_time        = Column(String(16), nullable=True)
    start_address     = Column(String(500), nullable=True)
    start_image       = Column(String(1000), nullable=True)
    break_out_time    = Column(String(16), nullable=True)
    break_out_address = Column(String(500), nullable=True)
    break_out_image   = Column(String(1000), nullable=True)
    break_in_time     = Column(String(16), nullable=True)
    break_in_address  = Column(String(500), nullable=True)
    break_in_image    = Column(String(1000), nullable=True)
    end_time          = Column(String(16), nullable=True)
    end_address       = Column(String(500), nullable=True)
    end_image         = Column(String(1000), nullable=True)

    created_at        = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at        = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Lateness(Base):
    __tablename__ = "lateness_records"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_lateness_records_employee_date"),)

    id                      = Column(Integer, primary_key=True, autoincrement=True)
    employee_id             = Column(String(100), nullable=False, index=True)
    name                    = Column(String(100), nullable=True)
    date                    = Column(Date, nullable=False, index=True)
    shift                   = Column(String(50), nullable=False)

    scheduled_start_time    = Column(String(8), nullable=False)
    scheduled_end_time      = Column(String(8), nullable=False)

    actual_start_time       = Column(String(16), nullable=True)
    actual_end_time         = Column(String(16), nullable=True)
    actual_break_out_time   = Column(String(16), nullable=True)
    actual_break_in_time    = Column(String(16), nullable=True)

    start_lateness_minutes  = Column(Float, default=0.0, nullable=False)
    end_lateness_minutes    = Column(Float, default=0.0, nullable=False)
    break_lateness_minutes  = Column(Float, default=0.0, nullable=False)

    attendance_status       = Column(String(20), nullable=False, index=True)
    break_status            = Column(String(20), nullable=False)
    total_working_minutes   = Column(Float, default=0.0, nullable=False)
    is_complete_attendance  = Column(Boolean, default=False, nullable=False)

    created_at              = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at              = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
