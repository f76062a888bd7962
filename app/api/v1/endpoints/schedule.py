"""
Global schedule config — the organization's nominal shift bounds.

Singleton pattern: GET retrieves the row (seeding defaults on first use),
PUT validates against every staff schedule and re-arms the enforcement
jobs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, require_admin
from app.models.user import User
from app.schemas.staff import ScheduleConfigRead, ScheduleConfigUpdate
from app.services import shifts
from app.services.scheduler import enforcement_scheduler

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("/config", response_model=ScheduleConfigRead)
async def get_config(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
):
    config = await shifts.get_schedule_config(db)
    await db.commit()
    return config


@router.put("/config", response_model=ScheduleConfigRead)
async def update_config(
    body: ScheduleConfigUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """Update bounds, margin or alert lead time.

    Rejected with 422 (and nothing applied) if any staff window would fall
    outside the new bounds.
    """
    config = await shifts.update_schedule_config(db, **body.model_dump(exclude_unset=True))
    if enforcement_scheduler.running:
        await enforcement_scheduler.reschedule(shifts.ScheduleSnapshot.of(config))
    return config
