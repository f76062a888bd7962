"""
Attendance ledger — clock-in/out, overtime, forced close and admin edits.

Every staff action passes the UnTime gate inside the same transaction
that writes the record.  Side effects of that evaluation (an exception
opened or folded) are committed even when the action itself fails.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Literal, NoReturn

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.exceptions import (AccountBlocked, AlreadyIn, AlreadyOut,
                                 AttendanceError, InvalidAttendanceTimes,
                                 NoOpenSession, PolicyBlocked, RecordNotFound,
                                 ShiftNotClosed)
from app.models.attendance import AttendanceRecord
from app.services import qr_sessions, records, shifts
from app.services.staff import lock_staff
from app.services.untime import Decision, evaluate_locked, get_active

logger = logging.getLogger(__name__)

MarkType = Literal["in", "out", "overtime-in", "overtime-out"]


async def _fail(db: AsyncSession, exc: AttendanceError) -> NoReturn:
    await db.commit()
    raise exc


async def _gate(db: AsyncSession, staff_id: int, now: datetime) -> Decision:
    staff = await lock_staff(db, staff_id)
    try:
        decision = await evaluate_locked(db, staff, now)
    except AccountBlocked:
        await db.rollback()
        raise
    if not decision.authorized:
        await _fail(db, PolicyBlocked(decision.reason.value))  # type: ignore[union-attr]
    return decision


async def _closed_today(db: AsyncSession, staff_id: int, now: datetime) -> bool:
    """Today's record is clocked out and no approved exception reopens it."""
    record = await records.get_record(db, staff_id, clock.local_date(now))
    if record is None or record.time_out is None:
        return False
    exception = await get_active(db, staff_id)
    return exception is None or not exception.approved or exception.is_expired(now)


# ── Grace ───────────────────────────────────────────────────────────
def _grace_in(now: datetime, decision: Decision) -> datetime:
    """A check-in shortly after the nominal start is booked at the start."""
    now = clock.to_utc(now)
    if decision.shift is None or decision.shift_date is None:
        return now
    start = clock.combine(decision.shift_date, decision.shift.start)
    if start < now <= start + timedelta(minutes=settings.CLOCK_GRACE_MINUTES):
        return start
    return now


def _grace_out(now: datetime, decision: Decision) -> datetime:
    """A check-out shortly before the nominal end is booked at the end."""
    now = clock.to_utc(now)
    if decision.shift is None or decision.shift_date is None:
        return now
    end = clock.combine(decision.shift_date, decision.shift.end)
    if end - timedelta(minutes=settings.CLOCK_GRACE_MINUTES) <= now < end:
        return end
    return now


# ── Staff actions ───────────────────────────────────────────────────
async def clock_in(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    now = now or clock.now()
    decision = await _gate(db, staff_id, now)
    record = await records.get_or_create_record(db, staff_id, decision.shift_date)  # type: ignore[arg-type]
    if record.time_in is not None:
        await _fail(db, AlreadyIn())

    record.time_in = _grace_in(now, decision)
    record.updated_at = clock.to_utc(now)
    await db.commit()
    await db.refresh(record)
    logger.info("Staff %s clocked in at %s", staff_id, record.time_in)
    return record


async def clock_out(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    now = now or clock.now()
    await lock_staff(db, staff_id)
    if await _closed_today(db, staff_id, now):
        await db.rollback()
        raise AlreadyOut()
    decision = await _gate(db, staff_id, now)
    record = await records.get_record(db, staff_id, decision.shift_date, for_update=True)  # type: ignore[arg-type]
    if record is None or record.time_in is None:
        await _fail(db, NoOpenSession())
    if record.time_out is not None:
        await _fail(db, AlreadyOut())

    time_out = _grace_out(now, decision)
    if time_out <= clock.ensure_utc(record.time_in):  # type: ignore[operator]
        await _fail(db, InvalidAttendanceTimes())
    record.time_out = time_out
    record.updated_at = clock.to_utc(now)
    await db.commit()
    await db.refresh(record)
    logger.info("Staff %s clocked out at %s", staff_id, record.time_out)
    return record


async def overtime_in(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    """Start overtime once the regular shift is closed.

    After clock-out the gate reports ``ended``, so overtime needs an
    approved UnTime exception.
    """
    now = now or clock.now()
    decision = await _gate(db, staff_id, now)
    record = await records.get_record(db, staff_id, decision.shift_date, for_update=True)  # type: ignore[arg-type]
    if record is None or record.time_in is None:
        await _fail(db, NoOpenSession())
    if record.time_out is None:
        await _fail(db, ShiftNotClosed())
    if record.overtime_in is not None:
        await _fail(db, AlreadyIn("Overtime already started today"))

    record.overtime_in = clock.to_utc(now)
    record.updated_at = clock.to_utc(now)
    await db.commit()
    await db.refresh(record)
    logger.info("Staff %s started overtime", staff_id)
    return record


async def overtime_out(db: AsyncSession, staff_id: int, now: datetime | None = None) -> AttendanceRecord:
    """End overtime.  Closing time is never blocked by the gate."""
    now = now or clock.now()
    await lock_staff(db, staff_id)
    result = await db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.staff_id == staff_id, AttendanceRecord.overtime_in.is_not(None))
        .order_by(AttendanceRecord.attendance_date.desc())
        .limit(1)
        .with_for_update()
    )
    record = result.scalar_one_or_none()
    if record is None:
        await _fail(db, NoOpenSession("No overtime started"))
    if record.overtime_out is not None:
        await _fail(db, AlreadyOut("Overtime already ended"))

    record.overtime_out = clock.to_utc(now)
    record.updated_at = clock.to_utc(now)
    await db.commit()
    await db.refresh(record)
    logger.info("Staff %s ended overtime", staff_id)
    return record


_ACTIONS = {
    "in": clock_in,
    "out": clock_out,
    "overtime-in": overtime_in,
    "overtime-out": overtime_out,
}


async def mark_attendance(
    db: AsyncSession,
    staff_id: int,
    qr_code: str,
    mark_type: MarkType = "in",
    now: datetime | None = None,
) -> AttendanceRecord:
    """Kiosk scan entry point: prove presence with the QR code, then act."""
    now = now or clock.now()
    action = _ACTIONS.get(mark_type)
    if action is None:
        raise AttendanceError(f"Unknown mark type: {mark_type}")
    await qr_sessions.redeem(db, qr_code, now)
    return await action(db, staff_id, now)


# ── Enforcement ─────────────────────────────────────────────────────
async def open_records(db: AsyncSession, now: datetime) -> list[tuple[int, date]]:
    """``(staff_id, date)`` of records left open yesterday or today.

    When end + margin crosses midnight the forced close runs on the next
    calendar day, so yesterday's records are still its to close.
    """
    today = clock.local_date(now)
    result = await db.execute(
        select(AttendanceRecord.staff_id, AttendanceRecord.attendance_date)
        .where(
            AttendanceRecord.attendance_date >= today - timedelta(days=1),
            AttendanceRecord.attendance_date <= today,
            AttendanceRecord.time_in.is_not(None),
            AttendanceRecord.time_out.is_(None),
        )
        .order_by(AttendanceRecord.attendance_date, AttendanceRecord.staff_id)
    )
    return [(row[0], row[1]) for row in result.all()]


async def force_close(db: AsyncSession, staff_id: int, on: date, now: datetime) -> bool:
    """Close one forgotten record at the nominal shift end.

    Staff without a shift that day fall back to the global end, taken on
    the following day when the global window runs overnight.  If no such
    end falls between the clock-in and ``now``, the record closes at
    ``now``.
    """
    await lock_staff(db, staff_id)
    record = await records.get_record(db, staff_id, on, for_update=True)
    if record is None or not record.is_open:
        await db.rollback()
        return False

    shift = await shifts.resolve(db, staff_id, on)
    end_time = shift.end if shift is not None else (await shifts.get_snapshot(db)).end
    time_in = clock.ensure_utc(record.time_in)
    time_out = clock.combine(on, end_time)
    if time_out <= time_in:  # type: ignore[operator]
        time_out = clock.combine(on + timedelta(days=1), end_time)
    if time_out <= time_in or time_out > clock.to_utc(now):  # type: ignore[operator]
        time_out = clock.to_utc(now)

    record.time_out = time_out
    record.is_forced_out = True
    record.updated_at = clock.to_utc(now)
    await db.commit()
    logger.info("Forced clock-out for staff %s at %s", staff_id, time_out)
    return True


async def force_close_open_today(db: AsyncSession, now: datetime | None = None) -> list[int]:
    """Close every record still open for the current shift day."""
    now = now or clock.now()
    closed = []
    for staff_id, on in await open_records(db, now):
        if await force_close(db, staff_id, on, now):
            closed.append(staff_id)
    return closed


# ── Admin ───────────────────────────────────────────────────────────
async def admin_update_record(
    db: AsyncSession,
    record_id: int,
    *,
    admin_id: int,
    time_in: datetime | None = None,
    time_out: datetime | None = None,
    now: datetime | None = None,
) -> AttendanceRecord:
    """The only path that may rewrite a record's clock-out."""
    now = now or clock.now()
    existing = await db.get(AttendanceRecord, record_id)
    if existing is None:
        raise RecordNotFound()
    await lock_staff(db, existing.staff_id)
    record = (
        await db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one()

    new_in = clock.to_utc(time_in) if time_in is not None else clock.ensure_utc(record.time_in)
    new_out = clock.to_utc(time_out) if time_out is not None else clock.ensure_utc(record.time_out)
    if new_out is not None and (new_in is None or new_out <= new_in):
        await db.rollback()
        raise InvalidAttendanceTimes()

    record.time_in = new_in
    record.time_out = new_out
    record.updated_by = admin_id
    record.updated_at = clock.to_utc(now)
    await db.commit()
    await db.refresh(record)
    logger.info("Attendance record %s edited by admin %s", record_id, admin_id)
    return record


async def list_records(
    db: AsyncSession,
    staff_id: int | None = None,
    on: date | None = None,
    limit: int = 100,
) -> list[AttendanceRecord]:
    stmt = (
        select(AttendanceRecord)
        .order_by(AttendanceRecord.attendance_date.desc(), AttendanceRecord.staff_id)
        .limit(limit)
    )
    if staff_id is not None:
        stmt = stmt.where(AttendanceRecord.staff_id == staff_id)
    if on is not None:
        stmt = stmt.where(AttendanceRecord.attendance_date == on)
    return list((await db.execute(stmt)).scalars().all())
