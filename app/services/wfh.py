"""
Work-from-home requests and the remote check-in/out they permit.

An approved request for today replaces the kiosk QR proof of presence;
the clock actions themselves still go through the attendance ledger and
its UnTime gate.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.exceptions import (InvalidWfhRequest, InvalidWfhTransition,
                                 StaffNotFound, WfhNotApproved, WfhNotFound)
from app.models.attendance import AttendanceRecord
from app.models.staff import Staff
from app.models.wfh import WfhRequest
from app.services import attendance
from app.services.leave import APPROVED, PENDING, REJECTED

logger = logging.getLogger(__name__)


def date_status(request: WfhRequest, today: date) -> str:
    if request.request_date == today:
        return "today"
    return "future" if request.request_date > today else "past"


async def _find(db: AsyncSession, staff_id: int, on: date) -> WfhRequest | None:
    result = await db.execute(
        select(WfhRequest).where(WfhRequest.staff_id == staff_id, WfhRequest.request_date == on)
    )
    return result.scalar_one_or_none()


async def request_wfh(
    db: AsyncSession,
    staff_id: int,
    on: date | None = None,
    reason: str | None = None,
    today: date | None = None,
) -> WfhRequest:
    """File a request for ``on`` (default today); refiling updates the reason."""
    today = today or clock.local_date(clock.now())
    on = on or today
    if on < today:
        raise InvalidWfhRequest()
    if await db.get(Staff, staff_id) is None:
        raise StaffNotFound()

    request = await _find(db, staff_id, on)
    if request is None:
        request = WfhRequest(staff_id=staff_id, request_date=on, reason=reason, status=PENDING)
        db.add(request)
    else:
        request.reason = reason
    await db.commit()
    await db.refresh(request)
    logger.info("WFH %s requested by staff %s for %s", request.id, staff_id, on)
    return request


async def set_status(
    db: AsyncSession,
    request_id: int,
    status: str,
    decided_by: int | None = None,
    now: datetime | None = None,
) -> WfhRequest:
    """Approve or reject a pending request."""
    now = now or clock.now()
    result = await db.execute(
        select(WfhRequest)
        .where(WfhRequest.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise WfhNotFound()
    if status not in (APPROVED, REJECTED):
        await db.rollback()
        raise InvalidWfhTransition(f"Unknown status: {status}")
    if request.status != PENDING:
        current = request.status
        await db.rollback()
        raise InvalidWfhTransition(f"Work-from-home request is already {current}")

    request.status = status
    request.decided_by = decided_by
    request.decided_at = clock.to_utc(now)
    await db.commit()
    await db.refresh(request)
    logger.info("WFH %s %s", request.id, status)
    return request


async def _require_approved(db: AsyncSession, staff_id: int, on: date) -> None:
    request = await _find(db, staff_id, on)
    if request is None or request.status != APPROVED:
        await db.rollback()
        raise WfhNotApproved()


async def _mirror(
    db: AsyncSession, staff_id: int, on: date, record: AttendanceRecord
) -> None:
    request = await _find(db, staff_id, on)
    if request is None:
        return
    request.time_in = record.time_in
    request.time_out = record.time_out
    await db.commit()


async def check_in(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    now = now or clock.now()
    today = clock.local_date(now)
    await _require_approved(db, staff_id, today)
    record = await attendance.clock_in(db, staff_id, now)
    await _mirror(db, staff_id, today, record)
    logger.info("Staff %s checked in remotely", staff_id)
    return record


async def check_out(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    now = now or clock.now()
    today = clock.local_date(now)
    await _require_approved(db, staff_id, today)
    record = await attendance.clock_out(db, staff_id, now)
    await _mirror(db, staff_id, today, record)
    logger.info("Staff %s checked out remotely", staff_id)
    return record


async def list_requests(
    db: AsyncSession,
    staff_id: int | None = None,
    status: str | None = None,
) -> list[WfhRequest]:
    stmt = select(WfhRequest).order_by(WfhRequest.request_date.desc(), WfhRequest.id.desc())
    if staff_id is not None:
        stmt = stmt.where(WfhRequest.staff_id == staff_id)
    if status is not None:
        stmt = stmt.where(WfhRequest.status == status)
    return list((await db.execute(stmt)).scalars().all())
