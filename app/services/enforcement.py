"""
Enforcement ticks driven by the scheduler.

Each tick is idempotent and never raises.  Work is done one staff member
per session, so a failure is logged and skipped without aborting the
tick; a store outage simply means the next tick tries again.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import clock
from app.core.config import settings
from app.core.exceptions import AccountBlocked
from app.models.attendance import AttendanceRecord
from app.models.staff import Staff
from app.models.untime import UnTimeException
from app.services import attendance, qr_sessions, shifts, untime
from app.services.notifications import SHIFT_ALERT, UNTIME_ALERT, NotificationHub
from app.services.staff import revoke_all_staff_sessions

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


# ── Minute tick: UnTime expiry ──────────────────────────────────────
async def expire_untime(session_factory: SessionFactory, now: datetime | None = None) -> list[int]:
    """Time out expired exceptions and re-evaluate the rest.

    Returns the staff ids whose exception was closed by timeout.
    """
    now = now or clock.now()
    try:
        async with session_factory() as db:
            staff_ids = await untime.active_staff_ids(db)
    except Exception:
        logger.exception("UnTime expiry tick could not list active exceptions")
        return []

    expired: list[int] = []
    for staff_id in staff_ids:
        try:
            async with session_factory() as db:
                if await untime.expire(db, staff_id, now):
                    expired.append(staff_id)
                    continue
                await untime.evaluate(db, staff_id, now)
        except AccountBlocked:
            logger.debug("Skipping blocked staff %s", staff_id)
        except Exception:
            logger.exception("UnTime expiry failed for staff %s", staff_id)
    if expired:
        logger.info("UnTime expiry tick closed %s exception(s)", len(expired))
    return expired


# ── Daily tick: forced logout ───────────────────────────────────────
async def force_logout(session_factory: SessionFactory, now: datetime | None = None) -> list[int]:
    """Close every record still open for the shift day, then log all staff out."""
    now = now or clock.now()
    try:
        async with session_factory() as db:
            open_records = await attendance.open_records(db, now)
    except Exception:
        logger.exception("Forced logout tick could not list open records")
        return []

    closed: list[int] = []
    for staff_id, on in open_records:
        try:
            async with session_factory() as db:
                if await attendance.force_close(db, staff_id, on, now):
                    closed.append(staff_id)
        except Exception:
            logger.exception("Forced clock-out failed for staff %s", staff_id)

    try:
        async with session_factory() as db:
            await revoke_all_staff_sessions(db)
    except Exception:
        logger.exception("Session revocation failed during forced logout")
    logger.info("Forced logout: %s record(s) closed", len(closed))
    return closed


# ── Sub-minute tick: ending-soon alerts ─────────────────────────────
def _alert_payload(end: datetime, alert_minutes: int, meta: dict) -> dict:
    return {
        "end_local_time": clock.format_local_time(end),
        "end_at_iso": clock.to_local(end).isoformat(),
        "timezone": settings.ORG_TIMEZONE,
        "alert_minutes": alert_minutes,
        "meta": meta,
    }


async def send_ending_soon_alerts(
    session_factory: SessionFactory,
    hub: NotificationHub,
    snapshot: shifts.ScheduleSnapshot,
    now: datetime | None = None,
) -> dict[str, list[int]]:
    """Notify staff whose shift or UnTime exception is about to end.

    Returns the user ids alerted, per event type.
    """
    now = now or clock.now()
    sent: dict[str, list[int]] = {SHIFT_ALERT: [], UNTIME_ALERT: []}
    alert = timedelta(minutes=snapshot.alert_minutes)
    today = clock.local_date(now)

    try:
        async with session_factory() as db:
            end = clock.combine(today, snapshot.end) + timedelta(minutes=snapshot.margin_minutes)
            if end - alert <= clock.to_utc(now) <= end:
                rows = await db.execute(
                    select(Staff.user_id)
                    .join(AttendanceRecord, AttendanceRecord.staff_id == Staff.id)
                    .outerjoin(UnTimeException, UnTimeException.staff_id == Staff.id)
                    .where(
                        AttendanceRecord.attendance_date == today,
                        AttendanceRecord.time_in.is_not(None),
                        AttendanceRecord.time_out.is_(None),
                        UnTimeException.staff_id.is_(None),
                    )
                )
                payload = _alert_payload(
                    end,
                    snapshot.alert_minutes,
                    {"kind": "margin-end", "margin_minutes": snapshot.margin_minutes},
                )
                for user_id in rows.scalars().all():
                    await hub.publish(user_id, SHIFT_ALERT, payload)
                    sent[SHIFT_ALERT].append(user_id)

            exceptions = await db.execute(
                select(UnTimeException, Staff.user_id).join(
                    Staff, Staff.id == UnTimeException.staff_id
                )
            )
            for exception, user_id in exceptions.all():
                ends_at = exception.ends_at
                if ends_at - alert <= clock.to_utc(now) <= ends_at:
                    payload = _alert_payload(
                        ends_at, snapshot.alert_minutes, {"kind": "untime-end"}
                    )
                    await hub.publish(user_id, UNTIME_ALERT, payload)
                    sent[UNTIME_ALERT].append(user_id)
    except Exception:
        logger.exception("Ending-soon alert tick failed")

    if sent[SHIFT_ALERT] or sent[UNTIME_ALERT]:
        logger.info(
            "Alerts sent: %s shift, %s untime",
            len(sent[SHIFT_ALERT]), len(sent[UNTIME_ALERT]),
        )
    return sent


# ── QR rotation ─────────────────────────────────────────────────────
async def rotate_qr(session_factory: SessionFactory) -> None:
    try:
        async with session_factory() as db:
            await qr_sessions.rotate(db)
    except Exception:
        logger.exception("QR rotation tick failed")
