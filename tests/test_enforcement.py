"""Tests for the enforcement ticks and the job scheduler."""

from datetime import date, time

import pytest

from app.api.v1.deps import user_from_token
from app.core import clock
from app.core.security import create_access_token
from app.models.user import User
from app.services import attendance, enforcement, records, shifts, untime
from app.services.notifications import SHIFT_ALERT, UNTIME_ALERT
from app.services.scheduler import FORCED_LOGOUT, JOB_IDS, EnforcementScheduler
from app.services.shifts import ScheduleSnapshot

MONDAY = date(2026, 10, 19)
DEFAULT_SNAPSHOT = ScheduleSnapshot(time(9, 0), time(17, 0), 30, 10)


class RecordingHub:
    """Stands in for the WebSocket hub; remembers what was published."""

    def __init__(self):
        self.events = []

    async def publish(self, user_id, event, payload):
        self.events.append((user_id, event, payload))
        return 1


async def _sessions(session_factory, staff_id, on=MONDAY):
    async with session_factory() as db:
        record = await records.get_record(db, staff_id, on)
        return record.untime_sessions if record is not None else []


# ── UnTime expiry ───────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_expiry_tick_closes_lapsed_exception(db_session, session_factory, make_staff, at):
    """Exception opened 09:15 for 10 minutes is closed by the 09:26 tick."""
    member = await make_staff(schedule={})
    await untime.evaluate(db_session, member.id, at(9, 15))

    expired = await enforcement.expire_untime(session_factory, at(9, 26))
    assert expired == [member.id]

    async with session_factory() as db:
        assert await untime.get_active(db, member.id) is None
    assert await _sessions(session_factory, member.id) == [
        {
            "start": clock.to_utc(at(9, 15)).isoformat(),
            "end": clock.to_utc(at(9, 26)).isoformat(),
            "reason": "outside-window",
        }
    ]


@pytest.mark.asyncio
async def test_expiry_tick_leaves_live_exception(db_session, session_factory, make_staff, at):
    member = await make_staff(schedule={})
    await untime.evaluate(db_session, member.id, at(9, 15))

    assert await enforcement.expire_untime(session_factory, at(9, 20)) == []
    async with session_factory() as db:
        exception = await untime.get_active(db, member.id)
    assert clock.ensure_utc(exception.started_at) == clock.to_utc(at(9, 15))


@pytest.mark.asyncio
async def test_expiry_tick_folds_when_window_opens(db_session, session_factory, staff, at):
    """A pending exception is folded once its holder is back inside the window."""
    await untime.evaluate(db_session, staff.id, at(8, 22))

    assert await enforcement.expire_untime(session_factory, at(8, 30)) == []
    async with session_factory() as db:
        assert await untime.get_active(db, staff.id) is None
    assert len(await _sessions(session_factory, staff.id)) == 1


@pytest.mark.asyncio
async def test_expiry_tick_isolates_failures(db_session, session_factory, make_staff, monkeypatch, at):
    broken, healthy = await make_staff(schedule={}), await make_staff(schedule={})
    await untime.evaluate(db_session, broken.id, at(9, 0))
    await untime.evaluate(db_session, healthy.id, at(9, 0))

    original = untime.expire

    async def flaky(db, staff_id, now=None):
        if staff_id == broken.id:
            raise RuntimeError("store unavailable")
        return await original(db, staff_id, now)

    monkeypatch.setattr(untime, "expire", flaky)
    assert await enforcement.expire_untime(session_factory, at(9, 11)) == [healthy.id]


@pytest.mark.asyncio
async def test_expiry_tick_signs_out_holder(db_session, session_factory, make_staff, at):
    """A timed-out holder loses their sessions but is not blocked."""
    member = await make_staff(schedule={})
    async with session_factory() as db:
        user = await db.get(User, member.user_id)
        user.is_login = True
        await db.commit()
    token = create_access_token(member.user_id, version=0)
    await untime.grant(db_session, member.id, 10, at(18, 0))

    assert await enforcement.expire_untime(session_factory, at(18, 11)) == [member.id]

    async with session_factory() as db:
        user = await db.get(User, member.user_id)
        assert user.is_login is False
        assert user.token_version == 1
        assert user.is_blocked is False
        assert await user_from_token(db, token) is None


# ── Forced logout ───────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_forced_logout_closes_and_revokes(db_session, session_factory, staff, at):
    """At end + margin open records close at the shift end and tokens die."""
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    async with session_factory() as db:
        user = await db.get(User, staff.user_id)
        user.is_login = True
        await db.commit()
    token = create_access_token(staff.user_id, version=0)

    closed = await enforcement.force_logout(session_factory, at(17, 30))
    assert closed == [staff.id]

    async with session_factory() as db:
        record = await records.get_record(db, staff.id, MONDAY)
        assert clock.ensure_utc(record.time_out) == clock.to_utc(at(17, 0))
        assert record.is_forced_out is True

        user = await db.get(User, staff.user_id)
        assert user.is_login is False
        assert user.token_version == 1
        assert await user_from_token(db, token) is None


@pytest.mark.asyncio
async def test_forced_logout_after_midnight_closes_previous_day(db_session, session_factory, make_staff, at):
    """With end + margin past midnight the tick lands on the next day."""
    await shifts.update_schedule_config(db_session, start=time(16, 0), end=time(23, 45))
    assert (await shifts.get_snapshot(db_session)).enforcement_time() == time(0, 15)
    member = await make_staff(schedule={shifts.Weekday.MONDAY: (time(16, 0), time(23, 0))})
    await attendance.clock_in(db_session, member.id, at(16, 0))

    closed = await enforcement.force_logout(session_factory, at(0, 15, day_offset=1))
    assert closed == [member.id]

    async with session_factory() as db:
        record = await records.get_record(db, member.id, MONDAY)
        assert clock.ensure_utc(record.time_out) == clock.to_utc(at(23, 0))
        assert record.is_forced_out is True


@pytest.mark.asyncio
async def test_forced_logout_leaves_admins_signed_in(session_factory, admin_user, at):
    token = create_access_token(admin_user.id)
    await enforcement.force_logout(session_factory, at(17, 30))
    async with session_factory() as db:
        assert (await user_from_token(db, token)).id == admin_user.id


# ── Ending-soon alerts ──────────────────────────────────────────────
@pytest.mark.asyncio
async def test_alerts_in_final_minutes(db_session, session_factory, make_staff, at):
    working, covered, granted = await make_staff(), await make_staff(), await make_staff()
    await attendance.clock_in(db_session, working.id, at(9, 0))
    await attendance.clock_in(db_session, covered.id, at(9, 0))
    await untime.grant(db_session, covered.id, 60, at(17, 21))
    await untime.grant(db_session, granted.id, 30, at(17, 0))

    hub = RecordingHub()
    sent = await enforcement.send_ending_soon_alerts(session_factory, hub, DEFAULT_SNAPSHOT, at(17, 25))

    assert sent == {SHIFT_ALERT: [working.user_id], UNTIME_ALERT: [granted.user_id]}
    shift_payload = next(p for u, e, p in hub.events if e == SHIFT_ALERT)
    assert shift_payload["end_local_time"] == "17:30:00"
    assert shift_payload["timezone"] == "America/Toronto"
    assert shift_payload["meta"] == {"kind": "margin-end", "margin_minutes": 30}


@pytest.mark.asyncio
async def test_no_alerts_outside_lead_time(db_session, session_factory, staff, at):
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    hub = RecordingHub()
    sent = await enforcement.send_ending_soon_alerts(session_factory, hub, DEFAULT_SNAPSHOT, at(17, 0))
    assert sent == {SHIFT_ALERT: [], UNTIME_ALERT: []}
    assert hub.events == []


# ── Scheduler ───────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_reschedule_replaces_every_job(session_factory):
    """Re-arming never leaves a duplicate or stale job behind."""
    scheduler = EnforcementScheduler(session_factory, RecordingHub())
    await scheduler.reschedule(DEFAULT_SNAPSHOT)
    later = ScheduleSnapshot(time(9, 0), time(17, 30), 30, 10)
    await scheduler.reschedule(later)

    assert sorted(scheduler.job_ids()) == sorted(JOB_IDS)
    assert scheduler.snapshot == later
    trigger = str(scheduler.scheduler.get_job(FORCED_LOGOUT).trigger)
    assert "hour='18'" in trigger
    assert "minute='0'" in trigger
    assert scheduler.running is False
