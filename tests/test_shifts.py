"""Tests for weekly schedules and the global schedule config."""

from datetime import date, time

import pytest
from sqlalchemy import select

from app.core.exceptions import ScheduleConflict
from app.models.schedule_config import GlobalScheduleConfig
from app.services import shifts
from app.services.shifts import ScheduleSnapshot, ShiftWindow, Weekday, WeeklySchedule

MONDAY = date(2026, 10, 19)
SATURDAY = date(2026, 10, 24)


def test_weekday_of_date():
    assert Weekday.of(MONDAY) is Weekday.MONDAY
    assert Weekday.of(SATURDAY) is Weekday.SATURDAY
    assert Weekday.SUNDAY.prefix == "sun"


def test_day_needs_both_start_and_end():
    with pytest.raises(ScheduleConflict):
        WeeklySchedule.from_pairs({Weekday.MONDAY: (time(9, 0), None)})
    with pytest.raises(ScheduleConflict):
        WeeklySchedule.from_pairs({Weekday.TUESDAY: (None, time(17, 0))})


def test_shift_start_must_precede_end():
    with pytest.raises(ScheduleConflict):
        ShiftWindow(time(17, 0), time(9, 0))
    with pytest.raises(ScheduleConflict):
        ShiftWindow(time(9, 0), time(9, 0))


def test_unset_days_are_days_off():
    schedule = WeeklySchedule.from_pairs({Weekday.MONDAY: (time(9, 0), time(17, 0))})
    assert len(schedule) == 7
    assert schedule[Weekday.MONDAY] == ShiftWindow(time(9, 0), time(17, 0))
    assert schedule[Weekday.SUNDAY] is None
    assert [day for day, _ in schedule.working_days()] == [Weekday.MONDAY]


@pytest.mark.parametrize(
    "window, inside",
    [
        (ShiftWindow(time(23, 0), time(23, 30)), True),
        (ShiftWindow(time(1, 0), time(5, 0)), True),
        (ShiftWindow(time(0, 0), time(6, 0)), True),
        (ShiftWindow(time(21, 0), time(23, 0)), False),
        (ShiftWindow(time(5, 0), time(7, 0)), False),
    ],
)
def test_window_inside_overnight_global(window, inside):
    """Global 22:00–06:00 accepts windows in either the late or early segment."""
    assert shifts.window_inside_global(time(22, 0), time(6, 0), window) is inside


def test_window_inside_daytime_global():
    assert shifts.window_inside_global(time(8, 0), time(18, 0), ShiftWindow(time(9, 0), time(17, 0)))
    assert not shifts.window_inside_global(time(8, 0), time(18, 0), ShiftWindow(time(7, 0), time(17, 0)))


def test_enforcement_time_wraps_past_midnight():
    assert ScheduleSnapshot(time(9, 0), time(17, 0), 30, 10).enforcement_time() == time(17, 30)
    assert ScheduleSnapshot(time(22, 0), time(23, 45), 30, 10).enforcement_time() == time(0, 15)


@pytest.mark.asyncio
async def test_config_is_seeded_with_defaults(db_session):
    """First read creates the singleton row."""
    snapshot = await shifts.get_snapshot(db_session)
    await db_session.commit()
    assert snapshot == ScheduleSnapshot(time(9, 0), time(17, 0), 30, 10)

    rows = (await db_session.execute(select(GlobalScheduleConfig))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_resolve_returns_none_on_day_off(db_session, staff):
    """No fallback to the global schedule for a missing day."""
    assert await shifts.resolve(db_session, staff.id, SATURDAY) is None

    shift = await shifts.resolve(db_session, staff.id, MONDAY)
    assert shift is not None
    assert (shift.start, shift.end) == (time(9, 0), time(17, 0))
    assert shift.margin_minutes == 30
    assert shift.alert_minutes == 10


@pytest.mark.asyncio
async def test_staff_window_must_fit_global_bounds(db_session, staff):
    early = WeeklySchedule.from_pairs({Weekday.MONDAY: (time(6, 0), time(12, 0))})
    with pytest.raises(ScheduleConflict):
        await shifts.set_weekly_schedule(db_session, staff.id, early)


@pytest.mark.asyncio
async def test_set_weekly_schedule_replaces_profile(db_session, staff):
    new = WeeklySchedule.from_pairs({Weekday.SATURDAY: (time(10, 0), time(14, 0))})
    await shifts.set_weekly_schedule(db_session, staff.id, new)

    stored = await shifts.get_weekly_schedule(db_session, staff.id)
    assert stored[Weekday.MONDAY] is None
    assert stored[Weekday.SATURDAY] == ShiftWindow(time(10, 0), time(14, 0))


@pytest.mark.asyncio
async def test_config_update_rejected_when_staff_window_falls_outside(db_session, staff):
    """Narrowing the global bounds past a staff shift is refused, nothing applied."""
    with pytest.raises(ScheduleConflict) as excinfo:
        await shifts.update_schedule_config(db_session, start=time(10, 0))
    assert excinfo.value.extra["staff_id"] == staff.id
    await db_session.rollback()

    snapshot = await shifts.get_snapshot(db_session)
    assert snapshot.start == time(9, 0)


@pytest.mark.asyncio
async def test_config_update_applies_partial_changes(db_session, staff):
    config = await shifts.update_schedule_config(db_session, margin_minutes=15, alert_minutes=5)
    assert config.margin_minutes == 15
    assert config.alert_minutes == 5
    assert config.start == time(9, 0)

    shift = await shifts.resolve(db_session, staff.id, MONDAY)
    assert shift.margin_minutes == 15


@pytest.mark.asyncio
async def test_config_update_rejects_equal_bounds(db_session):
    with pytest.raises(ScheduleConflict):
        await shifts.update_schedule_config(db_session, start=time(17, 0), end=time(17, 0))
