"""
Leave registry — full-day leave requests and the staff leave balance.

Approval and deletion lock the staff row before the leave row, the same
order every other engine transition uses, so concurrent approvals cannot
double-deduct.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.exceptions import (BalanceExceeded, InvalidLeaveTransition,
                                 LeaveNotFound, StaffNotFound)
from app.models.leave import LeaveRequest
from app.models.staff import Staff
from app.services.staff import lock_staff

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
STATUSES = (PENDING, APPROVED, REJECTED)


def leave_days(leave: LeaveRequest) -> int:
    """Inclusive day count of a request."""
    return (leave.end_date - leave.start_date).days + 1


async def _get_leave(db: AsyncSession, leave_id: int, *, for_update: bool = False) -> LeaveRequest:
    stmt = select(LeaveRequest).where(LeaveRequest.id == leave_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    leave = (await db.execute(stmt)).scalar_one_or_none()
    if leave is None:
        raise LeaveNotFound()
    return leave


async def _lock_leave_and_staff(db: AsyncSession, leave_id: int) -> tuple[Staff, LeaveRequest]:
    owner = await _get_leave(db, leave_id)
    staff = await lock_staff(db, owner.staff_id)
    leave = await _get_leave(db, leave_id, for_update=True)
    return staff, leave


async def request_leave(
    db: AsyncSession,
    staff_id: int,
    start_date: date,
    end_date: date,
    reason: str | None = None,
) -> LeaveRequest:
    if end_date < start_date:
        raise InvalidLeaveTransition("Leave end date must not precede its start date")
    if await db.get(Staff, staff_id) is None:
        raise StaffNotFound()

    leave = LeaveRequest(
        staff_id=staff_id,
        start_date=start_date,
        end_date=end_date,
        reason=reason,
        status=PENDING,
    )
    db.add(leave)
    await db.commit()
    await db.refresh(leave)
    logger.info("Leave %s requested by staff %s (%s..%s)", leave.id, staff_id, start_date, end_date)
    return leave


async def approve(db: AsyncSession, leave_id: int, decided_by: int | None = None) -> LeaveRequest:
    staff, leave = await _lock_leave_and_staff(db, leave_id)
    if leave.status != PENDING:
        status = leave.status
        await db.rollback()
        raise InvalidLeaveTransition(f"Leave request is already {status}")

    days = leave_days(leave)
    balance = staff.leave_balance
    if days > balance:
        await db.rollback()
        raise BalanceExceeded(requested=days, balance=balance)

    staff.leave_balance -= days
    leave.status = APPROVED
    leave.decided_by = decided_by
    await db.commit()
    await db.refresh(leave)
    logger.info(
        "Leave %s approved for staff %s: -%s day(s), balance now %s",
        leave.id, staff.id, days, staff.leave_balance,
    )
    return leave


async def reject(db: AsyncSession, leave_id: int, decided_by: int | None = None) -> LeaveRequest:
    _staff, leave = await _lock_leave_and_staff(db, leave_id)
    if leave.status != PENDING:
        status = leave.status
        await db.rollback()
        raise InvalidLeaveTransition(f"Leave request is already {status}")

    leave.status = REJECTED
    leave.decided_by = decided_by
    await db.commit()
    await db.refresh(leave)
    logger.info("Leave %s rejected", leave.id)
    return leave


async def delete(
    db: AsyncSession,
    leave_id: int,
    today: date | None = None,
    *,
    staff_id: int | None = None,
) -> None:
    """Remove a request; an approved one only before it starts, with refund.

    With ``staff_id`` only that staff member's own requests are visible.
    """
    today = today or clock.local_date(clock.now())
    staff, leave = await _lock_leave_and_staff(db, leave_id)
    if staff_id is not None and leave.staff_id != staff_id:
        await db.rollback()
        raise LeaveNotFound()

    if leave.status == APPROVED:
        if leave.start_date <= today:
            await db.rollback()
            raise InvalidLeaveTransition("Approved leave that has started cannot be deleted")
        staff.leave_balance = min(staff.leave_entitlement, staff.leave_balance + leave_days(leave))
        logger.info("Leave %s refunded, balance now %s", leave.id, staff.leave_balance)

    await db.delete(leave)
    await db.commit()
    logger.info("Leave %s deleted", leave_id)


async def is_on_leave(db: AsyncSession, staff_id: int, on: date) -> bool:
    result = await db.execute(
        select(LeaveRequest.id)
        .where(
            LeaveRequest.staff_id == staff_id,
            LeaveRequest.status == APPROVED,
            LeaveRequest.start_date <= on,
            LeaveRequest.end_date >= on,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_requests(
    db: AsyncSession,
    staff_id: int | None = None,
    status: str | None = None,
) -> list[LeaveRequest]:
    stmt = select(LeaveRequest).order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc())
    if staff_id is not None:
        stmt = stmt.where(LeaveRequest.staff_id == staff_id)
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status)
    return list((await db.execute(stmt)).scalars().all())
