"""
Attendance record access shared by the ledger and the UnTime machine.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.models.attendance import AttendanceRecord

logger = logging.getLogger(__name__)


async def get_record(
    db: AsyncSession, staff_id: int, on: date, *, for_update: bool = False
) -> AttendanceRecord | None:
    stmt = select(AttendanceRecord).where(
        AttendanceRecord.staff_id == staff_id,
        AttendanceRecord.attendance_date == on,
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_record(db: AsyncSession, staff_id: int, on: date) -> AttendanceRecord:
    """Callers hold the staff lock, so the insert cannot race another writer."""
    record = await get_record(db, staff_id, on, for_update=True)
    if record is None:
        record = AttendanceRecord(staff_id=staff_id, attendance_date=on, untime_sessions=[])
        db.add(record)
        await db.flush()
    return record


def shift_ended(record: AttendanceRecord | None) -> bool:
    """Clocked out, with no overtime still running."""
    if record is None or record.time_out is None:
        return False
    return record.overtime_in is None or record.overtime_out is not None


async def append_untime_session(
    db: AsyncSession,
    staff_id: int,
    start: datetime,
    end: datetime,
    reason: str,
    *,
    end_overtime: bool = True,
) -> AttendanceRecord:
    """Fold a closed UnTime period into the record of the day it started.

    Unless told otherwise, overtime still running on that record is ended
    at ``end``.
    """
    record = await get_or_create_record(db, staff_id, clock.local_date(start))
    session = {
        "start": clock.to_utc(start).isoformat(),
        "end": clock.to_utc(end).isoformat(),
        "reason": reason,
    }
    record.untime_sessions = [*(record.untime_sessions or []), session]
    if end_overtime and record.overtime_open:
        record.overtime_out = clock.to_utc(end)
    record.updated_at = clock.to_utc(end)
    logger.info(
        "UnTime session %s–%s (%s) recorded for staff %s on %s",
        session["start"], session["end"], reason, staff_id, record.attendance_date,
    )
    return record
