"""
Domain error taxonomy and global exception handlers.

Every expected failure of the attendance engine is an ``AttendanceError``
subclass carrying its own HTTP status and machine-readable ``code``.  The
handlers below render them, and also prevent stack-trace leakage for
anything unexpected.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class AttendanceError(Exception):
    status_code: int = 400
    code: str = "attendance_error"
    default_message: str = "Attendance action failed"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class PolicyBlocked(AttendanceError):
    """Expected denial from the shift-authorization gate."""

    status_code = 403
    code = "policy_blocked"

    def __init__(self, reason: str, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or f"Action blocked: {reason}", reason=reason)


class SessionInvalid(AttendanceError):
    code = "session_invalid"
    default_message = "Session invalid"


class SessionExpired(AttendanceError):
    code = "session_expired"
    default_message = "Session expired"


class AlreadyIn(AttendanceError):
    status_code = 409
    code = "already_in"
    default_message = "Already clocked in today"


class AlreadyOut(AttendanceError):
    status_code = 409
    code = "already_out"
    default_message = "Already clocked out today"


class NoOpenSession(AttendanceError):
    status_code = 409
    code = "no_open_session"
    default_message = "No clock-in recorded"


class ShiftNotClosed(AttendanceError):
    status_code = 409
    code = "shift_not_closed"
    default_message = "Clock out of the regular shift before starting overtime"


class InvalidAttendanceTimes(AttendanceError):
    code = "invalid_attendance_times"
    default_message = "Clock-out must be after clock-in"


class NoActiveException(AttendanceError):
    status_code = 404
    code = "no_active_exception"
    default_message = "No active UnTime exception"


class ExceptionAlreadyActive(AttendanceError):
    status_code = 409
    code = "exception_already_active"
    default_message = "An UnTime exception is already active"


class ExceptionNotApproved(AttendanceError):
    status_code = 409
    code = "exception_not_approved"
    default_message = "UnTime exception has not been approved"


class InvalidDuration(AttendanceError):
    code = "invalid_duration"
    default_message = "Duration must be greater than the current duration"


class BalanceExceeded(AttendanceError):
    status_code = 409
    code = "balance_exceeded"
    default_message = "Leave request exceeds the remaining balance"


class InvalidLeaveTransition(AttendanceError):
    status_code = 409
    code = "invalid_leave_transition"
    default_message = "Leave request can no longer be changed"


class InvalidWfhRequest(AttendanceError):
    code = "invalid_wfh_request"
    default_message = "Cannot request work from home for a past date"


class InvalidWfhTransition(AttendanceError):
    status_code = 409
    code = "invalid_wfh_transition"
    default_message = "Work-from-home request can no longer be changed"


class WfhNotApproved(AttendanceError):
    status_code = 409
    code = "wfh_not_approved"
    default_message = "No approved work-from-home request for today"


class AccountBlocked(AttendanceError):
    status_code = 403
    code = "account_blocked"
    default_message = "Account blocked pending administrator review"


class ScheduleConflict(AttendanceError):
    status_code = 422
    code = "schedule_conflict"
    default_message = "Schedule rejected"


class NotFound(AttendanceError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class StaffNotFound(NotFound):
    default_message = "Staff member not found"


class LeaveNotFound(NotFound):
    default_message = "Leave request not found"


class RecordNotFound(NotFound):
    default_message = "Attendance record not found"


class WfhNotFound(NotFound):
    default_message = "Work-from-home request not found"


# ── Handlers ────────────────────────────────────────────────────────
async def _attendance_error_handler(_request: Request, exc: AttendanceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "success": False, **exc.extra},
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AttendanceError, _attendance_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
