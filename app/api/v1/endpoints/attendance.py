"""
Attendance endpoints — QR marking for staff, ledger views and edits for
admins.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_staff, get_db, require_admin
from app.models.staff import Staff
from app.models.user import User
from app.schemas.attendance import (AttendanceRead, AttendanceUpdate,
                                    ForceTimeoutResponse, MarkRequest)
from app.services import attendance
from app.services.staff import revoke_all_staff_sessions

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("/mark", response_model=AttendanceRead)
async def mark(
    body: MarkRequest,
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    """Clock in/out (or overtime) with the code shown on the kiosk."""
    return await attendance.mark_attendance(db, staff.id, body.session_code, body.mark_type)


@router.get("/me", response_model=list[AttendanceRead])
async def my_records(
    limit: int = Query(default=31, ge=1, le=366),
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    return await attendance.list_records(db, staff_id=staff.id, limit=limit)


@router.get("", response_model=list[AttendanceRead])
async def list_records(
    on: date | None = Query(default=None, alias="date"),
    staff_id: int | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return await attendance.list_records(db, staff_id=staff_id, on=on, limit=limit)


@router.patch("/{record_id}", response_model=AttendanceRead)
async def update_record(
    record_id: int,
    body: AttendanceUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Correct clock times; the only way to change a recorded clock-out."""
    return await attendance.admin_update_record(
        db,
        record_id,
        admin_id=admin.id,
        time_in=body.time_in,
        time_out=body.time_out,
    )


@router.post("/force-timeout", response_model=ForceTimeoutResponse)
async def force_timeout(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> ForceTimeoutResponse:
    """Close open records at each staff member's shift end and log all staff out."""
    closed = await attendance.force_close_open_today(db)
    revoked = await revoke_all_staff_sessions(db)
    return ForceTimeoutResponse(closed_staff_ids=closed, count=len(closed), revoked_sessions=revoked)
