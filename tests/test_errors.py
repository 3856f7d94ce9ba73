# tests/test_errors.py
import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from salon_booking.errors import BookingError, ErrorCode, translate_storage_error


class DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


@pytest.mark.parametrize(
    "code,status",
    [
        (ErrorCode.STAFF_UNAVAILABLE, 400),
        (ErrorCode.SERVICES_NOT_FOUND, 404),
        (ErrorCode.SERVICE_UNAVAILABLE, 400),
        (ErrorCode.PAST_DATE, 400),
        (ErrorCode.DAY_BLOCKED, 400),
        (ErrorCode.OUT_OF_HOURS, 409),
        (ErrorCode.INVALID_DURATION, 400),
        (ErrorCode.SCHEDULE_CONFLICT, 409),
        (ErrorCode.CONFLICT, 409),
        (ErrorCode.TIMEOUT, 408),
    ],
)
def test_status_codes(code, status):
    assert code.status_code == status


def test_only_concurrency_failures_are_retryable():
    retryable = {code for code in ErrorCode if code.retryable}
    assert retryable == {ErrorCode.CONFLICT, ErrorCode.TIMEOUT}


def test_to_dict():
    error = BookingError.services_not_found(["a", "b"])

    assert error.to_dict() == {
        "success": False,
        "code": "SERVICES_NOT_FOUND",
        "message": "The following services were not found: a, b",
        "details": {"missing_ids": ["a", "b"]},
        "retryable": False,
    }


@pytest.mark.parametrize("pgcode", ["40001", "40P01", "23505"])
def test_serialization_and_unique_failures_are_conflicts(pgcode):
    exc = DBAPIError("UPDATE staff", {}, DriverError("could not serialize access", pgcode))

    assert translate_storage_error(exc).code == ErrorCode.CONFLICT


@pytest.mark.parametrize("pgcode", ["55P03", "57014"])
def test_lock_and_statement_timeouts_are_timeouts(pgcode):
    exc = OperationalError("SELECT 1", {}, DriverError("canceling statement", pgcode))

    assert translate_storage_error(exc).code == ErrorCode.TIMEOUT


def test_sqlite_integrity_error_is_a_conflict():
    exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: clients.phone"))

    assert translate_storage_error(exc).code == ErrorCode.CONFLICT


def test_sqlite_lock_is_a_timeout():
    exc = OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))

    assert translate_storage_error(exc).code == ErrorCode.TIMEOUT


def test_unknown_storage_failures_are_not_translated():
    exc = OperationalError("SELECT 1", {}, Exception("no such table: appointments"))

    assert translate_storage_error(exc) is None


@pytest.mark.parametrize(
    "message",
    ["NOT NULL constraint failed: appointments.client_id", "FOREIGN KEY constraint failed"],
)
def test_other_sqlite_integrity_errors_are_not_retryable(message):
    exc = IntegrityError("INSERT", {}, Exception(message))

    assert translate_storage_error(exc) is None


@pytest.mark.parametrize("pgcode", ["23502", "23503"])
def test_postgres_not_null_and_foreign_key_violations_propagate(pgcode):
    exc = IntegrityError("INSERT", {}, DriverError("violates constraint", pgcode))

    assert translate_storage_error(exc) is None
