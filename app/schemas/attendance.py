"""Pydantic schemas for attendance records, QR sessions and UnTime."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field, field_validator

from app.core.clock import ensure_utc
from app.core.config import settings

UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


# ── Attendance ──────────────────────────────────────────────────────
class UnTimeSession(BaseModel):
    start: datetime
    end: datetime
    reason: str


class AttendanceRead(BaseModel):
    id: int
    staff_id: int
    attendance_date: date
    time_in: UTCDateTime | None = None
    time_out: UTCDateTime | None = None
    overtime_in: UTCDateTime | None = None
    overtime_out: UTCDateTime | None = None
    is_forced_out: bool = False
    untime_sessions: list[UnTimeSession] = []
    updated_by: int | None = None
    updated_at: UTCDateTime | None = None

    model_config = {"from_attributes": True}


class MarkRequest(BaseModel):
    session_code: str = Field(min_length=1, max_length=64)
    mark_type: Literal["in", "out", "overtime-in", "overtime-out"] = "in"

    @field_validator("session_code")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Session code must not be empty")
        return v


class AttendanceUpdate(BaseModel):
    time_in: datetime | None = None
    time_out: datetime | None = None


class ForceTimeoutResponse(BaseModel):
    closed_staff_ids: list[int]
    count: int
    revoked_sessions: int = 0


# ── QR ──────────────────────────────────────────────────────────────
class QRSessionRead(BaseModel):
    id: int
    session_code: str
    created_by: int | None = None
    created_at: UTCDateTime | None = None
    expires_at: UTCDateTime
    active: bool
    link: str | None = None

    model_config = {"from_attributes": True}


# ── UnTime ──────────────────────────────────────────────────────────
class UnTimeRead(BaseModel):
    staff_id: int
    staff_name: str | None = None
    reason: str
    started_at: UTCDateTime
    duration_minutes: int
    approved: bool
    ends_at: UTCDateTime


class ExtendRequest(BaseModel):
    minutes: int = Field(ge=1, le=settings.UNTIME_MAX_EXTEND_MINUTES)


class GrantRequest(BaseModel):
    minutes: int = Field(default=settings.UNTIME_DEFAULT_DURATION_MINUTES, ge=1, le=settings.UNTIME_MAX_EXTEND_MINUTES)


class BulkStatusRequest(BaseModel):
    status: Literal["approved", "rejected"]


class BulkStatusResponse(BaseModel):
    status: str
    staff_ids: list[int]
    count: int


class DecisionRead(BaseModel):
    status: str
    allowed: bool
    authorized: bool
    reason: str | None = None
    exception_approved: bool = False
    exception_ends_at: str | None = None
    shift_date: str | None = None
    window_start: str | None = None
    window_end: str | None = None


class MessageResponse(BaseModel):
    message: str
    success: bool = True
