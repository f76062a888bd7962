"""
Work-from-home endpoints — staff request and check in remotely, admins
decide the requests.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_staff, get_db, require_admin
from app.core import clock
from app.models.staff import Staff
from app.models.user import User
from app.models.wfh import WfhRequest
from app.schemas.attendance import AttendanceRead
from app.schemas.wfh import WfhCreate, WfhRead, WfhStatusUpdate
from app.services import wfh as wfh_service

router = APIRouter(prefix="/wfh", tags=["wfh"])


def _read(requests: list[WfhRequest]) -> list[WfhRead]:
    today = clock.local_date(clock.now())
    return [
        WfhRead.model_validate(r).model_copy(update={"date_status": wfh_service.date_status(r, today)})
        for r in requests
    ]


@router.post("/request", response_model=WfhRead, status_code=201)
async def request_wfh(
    body: WfhCreate,
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    request = await wfh_service.request_wfh(db, staff.id, body.request_date, body.reason)
    return _read([request])[0]


@router.get("/me", response_model=list[WfhRead])
async def my_requests(
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    return _read(await wfh_service.list_requests(db, staff_id=staff.id))


@router.get("", response_model=list[WfhRead])
async def list_requests(
    status_filter: str | None = Query(default=None, alias="status"),
    staff_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return _read(await wfh_service.list_requests(db, staff_id=staff_id, status=status_filter))


@router.patch("/{request_id}/status", response_model=WfhRead)
async def set_status(
    request_id: int,
    body: WfhStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    request = await wfh_service.set_status(db, request_id, body.status, decided_by=admin.id)
    return _read([request])[0]


@router.post("/check-in", response_model=AttendanceRead)
async def check_in(
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    """Clock in without the kiosk code under an approved request for today."""
    return await wfh_service.check_in(db, staff.id)


@router.post("/check-out", response_model=AttendanceRead)
async def check_out(
    db: AsyncSession = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    return await wfh_service.check_out(db, staff.id)
