"""
Leave endpoints — staff file requests, admins decide them.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, require_admin
from app.models.leave import LeaveRequest
from app.models.user import User
from app.schemas.attendance import MessageResponse
from app.schemas.leave import LeaveCreate, LeaveRead, LeaveStatusUpdate
from app.services import leave as leave_service
from app.services.staff import get_staff_for_user

router = APIRouter(prefix="/leave", tags=["leave"])


async def _own_staff_id(db: AsyncSession, user: User) -> int | None:
    """Staff callers are scoped to themselves; admins see everything."""
    if user.role == "admin":
        return None
    return (await get_staff_for_user(db, user.id)).id


@router.post("", response_model=LeaveRead, status_code=201)
async def request_leave(
    body: LeaveCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    staff_id = await _own_staff_id(db, current_user)
    if staff_id is None:
        if body.staff_id is None:
            raise HTTPException(status_code=400, detail="staff_id is required")
        staff_id = body.staff_id
    return await leave_service.request_leave(
        db, staff_id, body.start_date, body.end_date, body.reason
    )


@router.get("", response_model=list[LeaveRead])
async def list_leave(
    status_filter: str | None = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    staff_id = await _own_staff_id(db, current_user)
    return await leave_service.list_requests(db, staff_id=staff_id, status=status_filter)


@router.patch("/{leave_id}/status", response_model=LeaveRead)
async def set_status(
    leave_id: int,
    body: LeaveStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> LeaveRequest:
    """Approve (deducting the balance) or reject a pending request."""
    if body.status == leave_service.APPROVED:
        return await leave_service.approve(db, leave_id, decided_by=admin.id)
    return await leave_service.reject(db, leave_id, decided_by=admin.id)


@router.delete("/{leave_id}", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def delete_leave(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MessageResponse:
    """Delete a request; approved leave is refunded if it has not started.

    Staff may delete only their own requests.
    """
    staff_id = await _own_staff_id(db, current_user)
    await leave_service.delete(db, leave_id, staff_id=staff_id)
    return MessageResponse(message="Leave request deleted")
