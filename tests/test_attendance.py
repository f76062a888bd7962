"""Tests for the attendance ledger: clock-in/out, overtime, forced close."""

from datetime import date

import pytest

from app.core import clock
from app.core.exceptions import (AlreadyIn, AlreadyOut, InvalidAttendanceTimes,
                                 NoOpenSession, PolicyBlocked, SessionInvalid,
                                 ShiftNotClosed)
from app.services import attendance, qr_sessions, records, untime

MONDAY = date(2026, 10, 19)


def _utc(value):
    return clock.ensure_utc(value)


async def _record(session_factory, staff_id, on=MONDAY):
    async with session_factory() as db:
        return await records.get_record(db, staff_id, on)


# ── Clock-in / clock-out ────────────────────────────────────────────
@pytest.mark.asyncio
async def test_clock_in_within_grace_snaps_to_start(db_session, staff, at):
    """09:03 is booked as 09:00."""
    record = await attendance.clock_in(db_session, staff.id, at(9, 3))
    assert record.attendance_date == MONDAY
    assert _utc(record.time_in) == clock.to_utc(at(9, 0))


@pytest.mark.asyncio
async def test_clock_in_after_grace_keeps_actual_time(db_session, staff, at):
    record = await attendance.clock_in(db_session, staff.id, at(9, 10))
    assert _utc(record.time_in) == clock.to_utc(at(9, 10))


@pytest.mark.asyncio
async def test_early_clock_in_is_not_moved(db_session, staff, at):
    record = await attendance.clock_in(db_session, staff.id, at(8, 40))
    assert _utc(record.time_in) == clock.to_utc(at(8, 40))


@pytest.mark.asyncio
async def test_second_clock_in_fails(db_session, staff, at):
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    with pytest.raises(AlreadyIn):
        await attendance.clock_in(db_session, staff.id, at(9, 30))


@pytest.mark.asyncio
async def test_clock_out_without_clock_in(db_session, staff, at):
    with pytest.raises(NoOpenSession):
        await attendance.clock_out(db_session, staff.id, at(9, 5))


@pytest.mark.asyncio
async def test_clock_out_within_grace_snaps_to_end(db_session, staff, at):
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    record = await attendance.clock_out(db_session, staff.id, at(16, 57))
    assert _utc(record.time_out) == clock.to_utc(at(17, 0))
    assert record.is_forced_out is False


@pytest.mark.asyncio
async def test_second_clock_out_fails(db_session, session_factory, staff, at):
    """A repeated tap is refused without opening an exception."""
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    await attendance.clock_out(db_session, staff.id, at(12, 0))
    with pytest.raises(AlreadyOut):
        await attendance.clock_out(db_session, staff.id, at(12, 5))

    async with session_factory() as db:
        assert await untime.get_active(db, staff.id) is None
    record = await _record(session_factory, staff.id)
    assert _utc(record.time_out) == clock.to_utc(at(12, 0))


# ── Gate ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_blocked_clock_in_still_opens_exception(db_session, session_factory, staff, at):
    """The refusal is raised, but the exception it created persists."""
    with pytest.raises(PolicyBlocked) as excinfo:
        await attendance.clock_in(db_session, staff.id, at(8, 0))
    assert excinfo.value.reason == "outside-window"

    async with session_factory() as db:
        exception = await untime.get_active(db, staff.id)
    assert exception is not None
    assert await _record(session_factory, staff.id) is None


@pytest.mark.asyncio
async def test_approved_exception_authorizes_clock_in(db_session, staff, at):
    await untime.evaluate(db_session, staff.id, at(8, 15))
    await untime.approve(db_session, staff.id, at(8, 16))

    record = await attendance.clock_in(db_session, staff.id, at(8, 20))
    assert _utc(record.time_in) == clock.to_utc(at(8, 20))


# ── QR marking ──────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_mark_attendance_with_live_code(db_session, staff, at):
    session = await qr_sessions.rotate(db_session, now=at(9, 0))

    record = await attendance.mark_attendance(db_session, staff.id, session.session_code, "in", at(9, 1))
    assert _utc(record.time_in) == clock.to_utc(at(9, 0))

    record = await attendance.mark_attendance(db_session, staff.id, session.session_code, "out", at(9, 2))
    assert _utc(record.time_out) == clock.to_utc(at(9, 2))


@pytest.mark.asyncio
async def test_mark_attendance_with_unknown_code(db_session, session_factory, staff, at):
    with pytest.raises(SessionInvalid):
        await attendance.mark_attendance(db_session, staff.id, "bogus", "in", at(9, 1))
    assert await _record(session_factory, staff.id) is None


# ── Overtime ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_overtime_requires_closed_shift(db_session, staff, at):
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    with pytest.raises(ShiftNotClosed):
        await attendance.overtime_in(db_session, staff.id, at(10, 0))


@pytest.mark.asyncio
async def test_overtime_after_approval(db_session, staff, at):
    """After clock-out the gate reports ended; an approval lets overtime start."""
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    await attendance.clock_out(db_session, staff.id, at(17, 0))

    with pytest.raises(PolicyBlocked) as excinfo:
        await attendance.overtime_in(db_session, staff.id, at(17, 10))
    assert excinfo.value.reason == "ended"

    await untime.approve(db_session, staff.id, at(17, 11))
    record = await attendance.overtime_in(db_session, staff.id, at(17, 12))
    assert _utc(record.overtime_in) == clock.to_utc(at(17, 12))

    record = await attendance.overtime_out(db_session, staff.id, at(18, 0))
    assert _utc(record.overtime_out) == clock.to_utc(at(18, 0))

    with pytest.raises(AlreadyOut):
        await attendance.overtime_out(db_session, staff.id, at(18, 5))


@pytest.mark.asyncio
async def test_rejecting_exception_ends_overtime(db_session, session_factory, staff, at):
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    await attendance.clock_out(db_session, staff.id, at(17, 0))
    await untime.evaluate(db_session, staff.id, at(17, 10))
    await untime.approve(db_session, staff.id, at(17, 11))
    await attendance.overtime_in(db_session, staff.id, at(17, 12))

    await untime.reject(db_session, staff.id, at(17, 15))

    record = await _record(session_factory, staff.id)
    assert _utc(record.overtime_out) == clock.to_utc(at(17, 15))
    assert len(record.untime_sessions) == 1


@pytest.mark.asyncio
async def test_overtime_out_without_overtime(db_session, staff, at):
    with pytest.raises(NoOpenSession):
        await attendance.overtime_out(db_session, staff.id, at(18, 0))


# ── Forced close ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_force_close_uses_shift_end(db_session, session_factory, staff, at):
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    closed = await attendance.force_close_open_today(db_session, at(17, 30))
    assert closed == [staff.id]

    record = await _record(session_factory, staff.id)
    assert _utc(record.time_out) == clock.to_utc(at(17, 0))
    assert record.is_forced_out is True


@pytest.mark.asyncio
async def test_force_close_without_shift_uses_global_end(db_session, session_factory, make_staff, at):
    member = await make_staff(schedule={})
    await untime.grant(db_session, member.id, 60, at(10, 0))
    await attendance.clock_in(db_session, member.id, at(10, 5))

    await attendance.force_close_open_today(db_session, at(17, 30))
    record = await _record(session_factory, member.id)
    assert _utc(record.time_out) == clock.to_utc(at(17, 0))
    assert record.is_forced_out is True


@pytest.mark.asyncio
async def test_force_close_after_late_clock_in_uses_now(db_session, session_factory, make_staff, at):
    """A nominal end before the clock-in would be invalid; now is used instead."""
    member = await make_staff(schedule={})
    await untime.grant(db_session, member.id, 60, at(17, 5))
    await attendance.clock_in(db_session, member.id, at(17, 10))

    await attendance.force_close_open_today(db_session, at(17, 30))
    record = await _record(session_factory, member.id)
    assert _utc(record.time_out) == clock.to_utc(at(17, 30))


@pytest.mark.asyncio
async def test_force_close_skips_closed_records(db_session, staff, at):
    await attendance.clock_in(db_session, staff.id, at(9, 0))
    await attendance.clock_out(db_session, staff.id, at(17, 0))
    assert await attendance.force_close_open_today(db_session, at(17, 30)) == []


# ── Admin edits ─────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_admin_edits_clock_out(db_session, staff, admin_user, at):
    record = await attendance.clock_in(db_session, staff.id, at(9, 0))
    updated = await attendance.admin_update_record(
        db_session, record.id, admin_id=admin_user.id, time_out=at(17, 15), now=at(18, 0)
    )
    assert _utc(updated.time_out) == clock.to_utc(at(17, 15))
    assert updated.updated_by == admin_user.id


@pytest.mark.asyncio
async def test_admin_edit_rejects_out_before_in(db_session, staff, admin_user, at):
    record = await attendance.clock_in(db_session, staff.id, at(9, 0))
    with pytest.raises(InvalidAttendanceTimes):
        await attendance.admin_update_record(
            db_session, record.id, admin_id=admin_user.id, time_out=at(8, 0)
        )


@pytest.mark.asyncio
async def test_list_records_filters(db_session, make_staff, at):
    first, second = await make_staff(), await make_staff()
    await attendance.clock_in(db_session, first.id, at(9, 0))
    await attendance.clock_in(db_session, second.id, at(9, 0))

    assert len(await attendance.list_records(db_session, on=MONDAY)) == 2
    only = await attendance.list_records(db_session, staff_id=second.id)
    assert [r.staff_id for r in only] == [second.id]
