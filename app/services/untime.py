"""
UnTime state machine — the shift-authorization gate.

``evaluate`` decides, for one staff member at one instant, whether an
attendance action is allowed.  The checks run in a fixed order (see
``decide``) and the first match wins:

1. shift already ended for the day      -> blocked, reason ``ended``
2. approved leave covers the day        -> blocked, reason ``on-leave``
3. no shift, or outside the margin window -> blocked, reason ``outside-window``
4. otherwise                            -> allowed

A blocked decision opens an UnTime exception (once; repeat evaluations
leave it untouched).  An allowed decision folds any open exception into
the day's attendance record as a closed UnTime session.

Every transition here holds the staff row lock for its whole transaction.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.exceptions import (AccountBlocked, ExceptionAlreadyActive,
                                 ExceptionNotApproved, InvalidDuration,
                                 NoActiveException)
from app.models.attendance import AttendanceRecord
from app.models.staff import Staff
from app.models.untime import UnTimeException
from app.models.user import User
from app.services import leave, records, shifts
from app.services.staff import block_account, lock_staff, revoke_sessions

logger = logging.getLogger(__name__)


class UnTimeReason(str, enum.Enum):
    ENDED = "ended"
    ON_LEAVE = "on-leave"
    OUTSIDE_WINDOW = "outside-window"
    MANUAL_EXTEND = "manual-extend"


_STATUS_BY_REASON = {
    UnTimeReason.ENDED: "blocked-shift-ended",
    UnTimeReason.ON_LEAVE: "blocked-on-leave",
    UnTimeReason.OUTSIDE_WINDOW: "blocked-pending-approval",
    UnTimeReason.MANUAL_EXTEND: "blocked-pending-approval",
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: UnTimeReason | None = None
    exception_approved: bool = False
    exception_ends_at: datetime | None = None
    shift_date: date | None = None
    shift: shifts.ResolvedShift | None = None
    window: tuple[datetime, datetime] | None = None

    @property
    def authorized(self) -> bool:
        """Allowed outright, or blocked but covered by an approved exception."""
        return self.allowed or self.exception_approved

    @property
    def status(self) -> str:
        if self.allowed:
            return "allowed"
        return _STATUS_BY_REASON[self.reason]  # type: ignore[index]

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "allowed": self.allowed,
            "authorized": self.authorized,
            "reason": self.reason.value if self.reason else None,
            "exception_approved": self.exception_approved,
            "exception_ends_at": self.exception_ends_at.isoformat() if self.exception_ends_at else None,
            "shift_date": self.shift_date.isoformat() if self.shift_date else None,
            "window_start": self.window[0].isoformat() if self.window else None,
            "window_end": self.window[1].isoformat() if self.window else None,
        }


def decide(
    *,
    shift_ended: bool,
    on_leave: bool,
    window: tuple[datetime, datetime] | None,
    now: datetime,
) -> Decision:
    """Pure policy.  Order of the checks is the precedence."""
    if shift_ended:
        return Decision(allowed=False, reason=UnTimeReason.ENDED)
    if on_leave:
        return Decision(allowed=False, reason=UnTimeReason.ON_LEAVE)
    if window is None or not clock.contains(now, *window):
        return Decision(allowed=False, reason=UnTimeReason.OUTSIDE_WINDOW)
    return Decision(allowed=True)


# ── Internals ───────────────────────────────────────────────────────
async def get_active(db: AsyncSession, staff_id: int) -> UnTimeException | None:
    result = await db.execute(
        select(UnTimeException)
        .where(UnTimeException.staff_id == staff_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _shift_context(
    db: AsyncSession, staff_id: int, now: datetime
) -> tuple[date, shifts.ResolvedShift | None, tuple[datetime, datetime] | None]:
    """Pick the calendar day whose shift governs ``now``.

    Margins can push a window across midnight, so yesterday's and
    tomorrow's windows are consulted too; without a match, today's shift
    (if any) is the one reported.
    """
    schedule = await shifts.get_weekly_schedule(db, staff_id)
    config = await shifts.get_snapshot(db)
    today = clock.local_date(now)

    for on in (today, today - timedelta(days=1), today + timedelta(days=1)):
        shift = shifts.resolve_from(schedule, config, on)
        if shift is None:
            continue
        window = shift.window(on)
        if clock.contains(now, *window):
            return on, shift, window

    shift = shifts.resolve_from(schedule, config, today)
    return today, shift, shift.window(today) if shift else None


async def _close(
    db: AsyncSession,
    exception: UnTimeException,
    end: datetime,
    *,
    end_overtime: bool = True,
) -> AttendanceRecord:
    """Record the exception as a session ending at ``end`` and clear it."""
    record = await records.append_untime_session(
        db,
        exception.staff_id,
        exception.started_at,
        end,
        exception.reason,
        end_overtime=end_overtime,
    )
    await db.delete(exception)
    await db.flush()
    return record


async def _require_active(db: AsyncSession, staff_id: int, now: datetime) -> UnTimeException:
    """The staff's live exception; an expired one is timed out first."""
    exception = await get_active(db, staff_id)
    if exception is not None and exception.is_expired(now):
        await _close(db, exception, now)
        await db.commit()
        logger.info("UnTime exception for staff %s expired on access", staff_id)
        exception = None
    if exception is None:
        await db.rollback()
        raise NoActiveException()
    return exception


async def _ensure_not_blocked(db: AsyncSession, staff: Staff) -> None:
    user = await db.get(User, staff.user_id)
    if user is not None and user.is_blocked:
        raise AccountBlocked()


# ── Evaluation ──────────────────────────────────────────────────────
async def evaluate_locked(db: AsyncSession, staff: Staff, now: datetime) -> Decision:
    """Evaluate with the staff row already locked; the caller commits."""
    await _ensure_not_blocked(db, staff)

    exception = await get_active(db, staff.id)
    if exception is not None and exception.is_expired(now):
        await _close(db, exception, now)
        logger.info("UnTime exception for staff %s timed out", staff.id)
        exception = None

    on, shift, window = await _shift_context(db, staff.id, now)
    record = await records.get_record(db, staff.id, on)
    decision = decide(
        shift_ended=records.shift_ended(record),
        on_leave=await leave.is_on_leave(db, staff.id, on),
        window=window,
        now=now,
    )
    decision = replace(decision, shift_date=on, shift=shift, window=window)

    if not decision.allowed:
        if exception is None:
            exception = UnTimeException(
                staff_id=staff.id,
                reason=decision.reason.value,  # type: ignore[union-attr]
                started_at=clock.to_utc(now),
                duration_minutes=settings.UNTIME_DEFAULT_DURATION_MINUTES,
                approved=False,
            )
            db.add(exception)
            await db.flush()
            logger.info("UnTime exception opened for staff %s: %s", staff.id, exception.reason)
        return replace(
            decision,
            exception_approved=exception.approved,
            exception_ends_at=exception.ends_at,
        )

    if exception is not None:
        await _close(db, exception, now, end_overtime=False)
        logger.info("UnTime exception for staff %s cleared: back inside shift window", staff.id)
    return decision


async def evaluate(db: AsyncSession, staff_id: int, now: datetime | None = None) -> Decision:
    """Lock, evaluate, commit.  Side effects persist whatever the outcome."""
    now = now or clock.now()
    staff = await lock_staff(db, staff_id)
    try:
        decision = await evaluate_locked(db, staff, now)
    except AccountBlocked:
        await db.rollback()
        raise
    await db.commit()
    return decision


# ── Administrative operations ───────────────────────────────────────
async def approve(db: AsyncSession, staff_id: int, now: datetime | None = None) -> UnTimeException:
    """Authorize the open exception without clearing it."""
    now = now or clock.now()
    await lock_staff(db, staff_id)
    exception = await _require_active(db, staff_id, now)
    exception.approved = True
    await db.commit()
    logger.info("UnTime exception for staff %s approved", staff_id)
    return exception


async def reject(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    """Record the exception as ended now, clear it and block the account."""
    now = now or clock.now()
    staff = await lock_staff(db, staff_id)
    exception = await _require_active(db, staff_id, now)
    record = await _close(db, exception, now)
    await block_account(db, staff.user_id)
    await db.commit()
    logger.info("UnTime exception for staff %s rejected; account blocked", staff_id)
    return record


async def extend_duration(
    db: AsyncSession, staff_id: int, minutes: int, now: datetime | None = None
) -> UnTimeException:
    """Grow the exception's duration (never shrink it) and approve it."""
    now = now or clock.now()
    await lock_staff(db, staff_id)
    exception = await _require_active(db, staff_id, now)
    current = exception.duration_minutes
    if minutes <= current:
        await db.rollback()
        raise InvalidDuration(
            f"New duration must be greater than current duration ({current} min)",
            current_duration=current,
        )
    exception.duration_minutes = minutes
    exception.approved = True
    await db.commit()
    logger.info("UnTime exception for staff %s extended to %s min", staff_id, minutes)
    return exception


async def grant(
    db: AsyncSession, staff_id: int, minutes: int, now: datetime | None = None
) -> UnTimeException:
    """Open an approved manual-extend exception for a staff member."""
    now = now or clock.now()
    staff = await lock_staff(db, staff_id)
    await _ensure_not_blocked(db, staff)
    existing = await get_active(db, staff_id)
    if existing is not None and existing.is_expired(now):
        await _close(db, existing, now)
        existing = None
    if existing is not None:
        await db.rollback()
        raise ExceptionAlreadyActive()
    if minutes <= 0:
        await db.rollback()
        raise InvalidDuration("Duration must be a positive number of minutes")

    exception = UnTimeException(
        staff_id=staff_id,
        reason=UnTimeReason.MANUAL_EXTEND.value,
        started_at=clock.to_utc(now),
        duration_minutes=minutes,
        approved=True,
    )
    db.add(exception)
    await db.commit()
    logger.info("Manual UnTime granted to staff %s for %s min", staff_id, minutes)
    return exception


async def end_self(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    """Staff closes their own approved exception early."""
    now = now or clock.now()
    await lock_staff(db, staff_id)
    exception = await _require_active(db, staff_id, now)
    if not exception.approved:
        await db.rollback()
        raise ExceptionNotApproved()
    record = await _close(db, exception, now)
    await db.commit()
    logger.info("Staff %s ended their UnTime exception", staff_id)
    return record


async def expire(db: AsyncSession, staff_id: int, now: datetime | None = None) -> bool:
    """Timeout closure: like ``reject`` without blocking the account.

    The holder is signed out.  Returns whether an expired exception was
    closed.
    """
    now = now or clock.now()
    staff = await lock_staff(db, staff_id)
    exception = await get_active(db, staff_id)
    if exception is None or not exception.is_expired(now):
        await db.rollback()
        return False
    await _close(db, exception, now)
    await revoke_sessions(db, staff.user_id)
    await db.commit()
    logger.info("UnTime exception for staff %s timed out; sessions revoked", staff_id)
    return True


async def set_status_bulk(
    db: AsyncSession,
    status: Literal["approved", "rejected"],
    now: datetime | None = None,
) -> list[int]:
    """Approve or reject every open exception in one transaction.

    All affected staff rows are locked (in id order) before any change.
    """
    now = now or clock.now()
    staff_ids = list(
        (await db.execute(select(UnTimeException.staff_id).order_by(UnTimeException.staff_id)))
        .scalars()
        .all()
    )
    affected: list[int] = []
    for staff_id in staff_ids:
        staff = await lock_staff(db, staff_id)
        exception = await get_active(db, staff_id)
        if exception is None:
            continue
        if exception.is_expired(now):
            await _close(db, exception, now)
            continue
        if status == "approved":
            exception.approved = True
        else:
            await _close(db, exception, now)
            await block_account(db, staff.user_id)
        affected.append(staff_id)
    await db.commit()
    logger.info("Bulk UnTime %s applied to %s staff", status, len(affected))
    return affected


# ── Queries ─────────────────────────────────────────────────────────
async def list_active(
    db: AsyncSession, *, pending_only: bool = False
) -> list[tuple[UnTimeException, Staff]]:
    stmt = (
        select(UnTimeException, Staff)
        .join(Staff, Staff.id == UnTimeException.staff_id)
        .order_by(UnTimeException.started_at)
    )
    if pending_only:
        stmt = stmt.where(UnTimeException.approved.is_(False))
    return [(row[0], row[1]) for row in (await db.execute(stmt)).all()]


async def active_staff_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(select(UnTimeException.staff_id).order_by(UnTimeException.staff_id))
    return list(result.scalars().all())
