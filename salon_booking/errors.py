# salon_booking/errors.py
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError


class ErrorCode(str, Enum):
    """Machine-readable failure codes. Each one carries its HTTP status."""

    STAFF_UNAVAILABLE = "STAFF_UNAVAILABLE"
    SERVICES_NOT_FOUND = "SERVICES_NOT_FOUND"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    PAST_DATE = "PAST_DATE"
    DAY_BLOCKED = "DAY_BLOCKED"
    OUT_OF_HOURS = "OUT_OF_HOURS"
    INVALID_DURATION = "INVALID_DURATION"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    CONFLICT = "CONFLICT"
    TIMEOUT = "TIMEOUT"
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def retryable(self) -> bool:
        return self in (ErrorCode.CONFLICT, ErrorCode.TIMEOUT)


_STATUS_CODES = {
    ErrorCode.STAFF_UNAVAILABLE: 400,
    ErrorCode.SERVICES_NOT_FOUND: 404,
    ErrorCode.SERVICE_UNAVAILABLE: 400,
    ErrorCode.PAST_DATE: 400,
    ErrorCode.DAY_BLOCKED: 400,
    ErrorCode.OUT_OF_HOURS: 409,
    ErrorCode.INVALID_DURATION: 400,
    ErrorCode.SCHEDULE_CONFLICT: 409,
    ErrorCode.CONFLICT: 409,
    ErrorCode.TIMEOUT: 408,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INACTIVE: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
}


class BookingError(Exception):
    """
    The one failure type raised by the scheduling core.

    Callers branch on ``code``; ``details`` holds structured extras such as
    the ids that could not be resolved.
    """

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return self.code.status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "retryable": self.code.retryable,
        }

    def __repr__(self):
        return f"BookingError({self.code.value}, {self.message!r})"

    # Constructors for each failure of the booking flow

    @classmethod
    def staff_unavailable(cls, staff_id: str) -> "BookingError":
        return cls(
            ErrorCode.STAFF_UNAVAILABLE,
            "The selected staff member is not available at the moment",
            {"staff_id": staff_id},
        )

    @classmethod
    def services_not_found(cls, missing_ids) -> "BookingError":
        missing_ids = list(missing_ids)
        return cls(
            ErrorCode.SERVICES_NOT_FOUND,
            f"The following services were not found: {', '.join(missing_ids)}",
            {"missing_ids": missing_ids},
        )

    @classmethod
    def service_unavailable(cls, service_name: str, service_id: str) -> "BookingError":
        return cls(
            ErrorCode.SERVICE_UNAVAILABLE,
            f'The service "{service_name}" is not available',
            {"service_id": service_id},
        )

    @classmethod
    def past_date(cls) -> "BookingError":
        return cls(ErrorCode.PAST_DATE, "Appointments cannot be booked in the past")

    @classmethod
    def day_blocked(cls, day) -> "BookingError":
        return cls(
            ErrorCode.DAY_BLOCKED,
            f"{day} is blocked and no appointments are accepted",
            {"date": str(day)},
        )

    @classmethod
    def out_of_hours(cls, opening, closing) -> "BookingError":
        return cls(
            ErrorCode.OUT_OF_HOURS,
            f"Time not available: business hours are {opening:%H:%M} to {closing:%H:%M}",
            {"opening": f"{opening:%H:%M}", "closing": f"{closing:%H:%M}"},
        )

    @classmethod
    def invalid_duration(cls, duration: int, maximum: int) -> "BookingError":
        return cls(
            ErrorCode.INVALID_DURATION,
            f"Total duration of {duration} minutes exceeds the maximum of {maximum} minutes",
            {"duration_minutes": duration, "max_duration_minutes": maximum},
        )

    @classmethod
    def schedule_conflict(cls) -> "BookingError":
        return cls(
            ErrorCode.SCHEDULE_CONFLICT,
            "An appointment already exists at that time. Please choose another time.",
        )

    @classmethod
    def conflict(cls) -> "BookingError":
        return cls(
            ErrorCode.CONFLICT,
            "The data was modified by another request at the same time. Please try again.",
        )

    @classmethod
    def timeout(cls) -> "BookingError":
        return cls(ErrorCode.TIMEOUT, "The operation took too long. Please try again.")


# SQLSTATE codes reported by PostgreSQL drivers
_CONFLICT_SQLSTATES = {"40001", "40P01", "23505"}
_TIMEOUT_SQLSTATES = {"55P03", "57014"}


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_storage_error(exc: SQLAlchemyError) -> Optional[BookingError]:
    """
    Map a storage failure to the error taxonomy.

    Returns None when the failure is not a known concurrency signal; the
    caller re-raises the original exception in that case.
    """
    if isinstance(exc, DBAPIError):
        state = _sqlstate(exc)
        if state in _CONFLICT_SQLSTATES:
            return BookingError.conflict()
        if state in _TIMEOUT_SQLSTATES:
            return BookingError.timeout()

    # SQLite unique violations; other integrity failures propagate
    if isinstance(exc, IntegrityError) and "UNIQUE constraint failed" in str(exc.orig):
        return BookingError.conflict()

    if isinstance(exc, OperationalError) and "database is locked" in str(exc.orig):
        return BookingError.timeout()

    return None
