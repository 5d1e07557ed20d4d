# services/exceptions.py


class AttendanceServiceError(Exception):
    """Base class for errors raised by the attendance services."""


class InvalidShiftError(AttendanceServiceError):
    def __init__(self, shift_code: str):
        super().__init__(f"Invalid shift type: {shift_code}")
        self.shift_code = shift_code


class InvalidDateError(AttendanceServiceError):
    pass


class BulkLimitError(AttendanceServiceError):
    def __init__(self, limit: int, requested: int):
        super().__init__(f"Maximum {limit} employees allowed per bulk request, got {requested}")
        self.limit = limit
        self.requested = requested


class ScheduleNotFoundError(AttendanceServiceError):
    def __init__(self, employee_id: str):
        super().__init__(f"Schedule not found for employee {employee_id}")
        self.employee_id = employee_id


class AttendanceApiError(AttendanceServiceError):
    """The external time-clock system was unreachable or reported failure."""


class ImageArchiveError(AttendanceServiceError):
    """A photo could not be downloaded or re-uploaded."""


class JobNotFoundError(AttendanceServiceError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobStateError(AttendanceServiceError):
    """A job transition was requested from a state that does not allow it."""


class JobAlreadyRunningError(AttendanceServiceError):
    pass


class AuthenticationError(AttendanceServiceError):
    pass


class JobTimeoutError(AttendanceServiceError):
    pass
