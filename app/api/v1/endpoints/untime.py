"""
UnTime endpoints — staff self-service and administrator disposition of
off-schedule exceptions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_staff, get_db, require_admin
from app.models.staff import Staff
from app.models.untime import UnTimeException
from app.models.user import User
from app.schemas.attendance import (AttendanceRead, BulkStatusRequest,
                                    BulkStatusResponse, DecisionRead,
                                    ExtendRequest, GrantRequest, UnTimeRead)
from app.services import untime

router = APIRouter(prefix="/untime", tags=["untime"])


def _read(exception: UnTimeException, staff: Staff | None = None) -> UnTimeRead:
    return UnTimeRead(
        staff_id=exception.staff_id,
        staff_name=staff.full_name if staff else None,
        reason=exception.reason,
        started_at=exception.started_at,
        duration_minutes=exception.duration_minutes,
        approved=exception.approved,
        ends_at=exception.ends_at,
    )


# ── Staff ───────────────────────────────────────────────────────────
@router.post("/evaluate", response_model=DecisionRead)
async def evaluate_me(
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
) -> DecisionRead:
    """Re-check the caller against their shift window right now."""
    decision = await untime.evaluate(db, staff.id)
    return DecisionRead(**decision.as_dict())


@router.post("/end-self", response_model=AttendanceRead)
async def end_self(
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    """Close the caller's approved exception early."""
    return await untime.end_self(db, staff.id)


# ── Admin ───────────────────────────────────────────────────────────
@router.get("", response_model=list[UnTimeRead])
async def list_active(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[UnTimeRead]:
    return [_read(exc, staff) for exc, staff in await untime.list_active(db)]


@router.get("/pending", response_model=list[UnTimeRead])
async def list_pending(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[UnTimeRead]:
    return [_read(exc, staff) for exc, staff in await untime.list_active(db, pending_only=True)]


@router.patch("/status/bulk", response_model=BulkStatusResponse)
async def set_status_bulk(
    body: BulkStatusRequest,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> BulkStatusResponse:
    """Approve or reject every staff member currently flagged."""
    staff_ids = await untime.set_status_bulk(db, body.status)
    return BulkStatusResponse(status=body.status, staff_ids=staff_ids, count=len(staff_ids))


@router.post("/{staff_id}/approve", response_model=UnTimeRead)
async def approve(
    staff_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> UnTimeRead:
    return _read(await untime.approve(db, staff_id))


@router.post("/{staff_id}/reject", response_model=AttendanceRead)
async def reject(
    staff_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """Record the exception, clear it and block the account."""
    return await untime.reject(db, staff_id)


@router.post("/{staff_id}/extend", response_model=UnTimeRead)
async def extend(
    staff_id: int,
    body: ExtendRequest,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> UnTimeRead:
    """Raise the duration (1..60 min, above the current one) and approve."""
    return _read(await untime.extend_duration(db, staff_id, body.minutes))


@router.post("/{staff_id}/grant", response_model=UnTimeRead, status_code=201)
async def grant(
    staff_id: int,
    body: GrantRequest,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> UnTimeRead:
    """Open an approved manual-extend exception."""
    return _read(await untime.grant(db, staff_id, body.minutes))
