"""
Staff administration — accounts, weekly shift schedules and unblocking.

All routes require the admin role.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_admin
from app.models.user import User
from app.schemas.attendance import MessageResponse
from app.schemas.staff import (DaySchedule, StaffCreate, StaffRead,
                               WeeklyScheduleBody)
from app.services import shifts
from app.services import staff as staff_service
from app.services.shifts import Weekday, WeeklySchedule

router = APIRouter(prefix="/staff", tags=["staff"])
logger = logging.getLogger(__name__)


def _to_schedule(body: WeeklyScheduleBody) -> WeeklySchedule:
    pairs = {}
    for day in Weekday:
        entry: DaySchedule | None = getattr(body, day.name.lower())
        pairs[day] = (entry.start, entry.end) if entry is not None else None
    return WeeklySchedule.from_pairs(pairs)


def _to_body(schedule: WeeklySchedule) -> WeeklyScheduleBody:
    return WeeklyScheduleBody(
        **{
            day.name.lower(): DaySchedule(start=window.start, end=window.end)
            for day, window in schedule.working_days()
        }
    )


@router.post("", response_model=StaffRead, status_code=201)
async def create_staff(
    body: StaffCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """Create a staff login and its profile."""
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")
    return await staff_service.create_staff(
        db,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        leave_entitlement=body.leave_entitlement,
    )


@router.get("", response_model=list[StaffRead])
async def list_staff(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return await staff_service.list_staff(db)


@router.get("/{staff_id}", response_model=StaffRead)
async def get_staff(
    staff_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return await staff_service.get_staff(db, staff_id)


@router.get("/{staff_id}/schedule", response_model=WeeklyScheduleBody)
async def get_schedule(
    staff_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    await staff_service.get_staff(db, staff_id)
    return _to_body(await shifts.get_weekly_schedule(db, staff_id))


@router.put("/{staff_id}/schedule", response_model=WeeklyScheduleBody)
async def set_schedule(
    staff_id: int,
    body: WeeklyScheduleBody,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """Replace the weekly schedule; every day must fit the global window."""
    await staff_service.get_staff(db, staff_id)
    schedule = await shifts.set_weekly_schedule(db, staff_id, _to_schedule(body))
    return _to_body(schedule)


@router.post("/{staff_id}/unblock", response_model=MessageResponse)
async def unblock_staff(
    staff_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> MessageResponse:
    """Lift the block placed by a rejected UnTime exception."""
    await staff_service.unblock(db, staff_id)
    return MessageResponse(message="Staff account unblocked")
