"""
Shift-window resolver and global schedule configuration.

A staff member's week is a ``WeeklySchedule``: each weekday maps to a
``ShiftWindow`` or ``None`` (day off).  Enforcement never falls back to
the global schedule for a missing day; the global bounds only validate
per-staff windows and supply the margin and alert lead time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import IntEnum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.exceptions import ScheduleConflict
from app.models.schedule_config import GlobalScheduleConfig
from app.models.shift_profile import DAY_PREFIXES, StaffShiftProfile

logger = logging.getLogger(__name__)


class Weekday(IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, on: date) -> "Weekday":
        return cls(on.weekday())

    @property
    def prefix(self) -> str:
        return DAY_PREFIXES[self.value]


@dataclass(frozen=True)
class ShiftWindow:
    start: time
    end: time

    def __post_init__(self) -> None:
        if not self.start < self.end:
            raise ScheduleConflict(
                f"Shift start {self.start:%H:%M} must be before end {self.end:%H:%M}"
            )


class WeeklySchedule(Mapping[Weekday, "ShiftWindow | None"]):
    """Immutable Monday..Sunday mapping of shift windows."""

    def __init__(self, days: Mapping[Weekday, ShiftWindow | None] | None = None) -> None:
        self._days: dict[Weekday, ShiftWindow | None] = {day: None for day in Weekday}
        for day, window in (days or {}).items():
            self._days[Weekday(day)] = window

    @classmethod
    def from_pairs(
        cls,
        pairs: Mapping[Weekday | int, tuple[time | None, time | None] | None],
    ) -> "WeeklySchedule":
        """Build from raw (start, end) pairs; each day needs both or neither."""
        days: dict[Weekday, ShiftWindow | None] = {}
        for key, pair in pairs.items():
            day = Weekday(key)
            start, end = pair if pair is not None else (None, None)
            if (start is None) != (end is None):
                raise ScheduleConflict(
                    f"{day.name.title()}: start and end must both be set or both be empty"
                )
            days[day] = ShiftWindow(start, end) if start is not None else None
        return cls(days)

    @classmethod
    def from_profile(cls, profile: StaffShiftProfile | None) -> "WeeklySchedule":
        if profile is None:
            return cls()
        return cls.from_pairs(
            {
                day: (getattr(profile, f"{day.prefix}_start"), getattr(profile, f"{day.prefix}_end"))
                for day in Weekday
            }
        )

    def apply_to(self, profile: StaffShiftProfile) -> None:
        for day, window in self._days.items():
            setattr(profile, f"{day.prefix}_start", window.start if window else None)
            setattr(profile, f"{day.prefix}_end", window.end if window else None)

    def working_days(self) -> Iterator[tuple[Weekday, ShiftWindow]]:
        for day, window in self._days.items():
            if window is not None:
                yield day, window

    def __getitem__(self, day: Weekday) -> ShiftWindow | None:
        return self._days[Weekday(day)]

    def __iter__(self) -> Iterator[Weekday]:
        return iter(self._days)

    def __len__(self) -> int:
        return len(self._days)


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Detached copy of the global config, safe to hand to scheduler jobs."""

    start: time
    end: time
    margin_minutes: int
    alert_minutes: int

    @classmethod
    def of(cls, config: GlobalScheduleConfig) -> "ScheduleSnapshot":
        return cls(config.start, config.end, config.margin_minutes, config.alert_minutes)

    def window(self, on: date) -> tuple[datetime, datetime]:
        return clock.build_window(self.start, self.end, self.margin_minutes, on)

    def enforcement_time(self) -> time:
        """Local wall-clock time of ``end + margin`` (the forced-logout moment)."""
        minutes = (self.end.hour * 60 + self.end.minute + self.margin_minutes) % (24 * 60)
        return time(minutes // 60, minutes % 60, self.end.second)


@dataclass(frozen=True)
class ResolvedShift:
    start: time
    end: time
    margin_minutes: int
    alert_minutes: int

    def window(self, on: date) -> tuple[datetime, datetime]:
        return clock.build_window(self.start, self.end, self.margin_minutes, on)


# ── Bounds ──────────────────────────────────────────────────────────
def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def window_inside_global(global_start: time, global_end: time, window: ShiftWindow) -> bool:
    """True when the staff window fits the global bounds.

    Overnight global bounds (e.g. 22:00–06:00) split into a late and an
    early segment; the staff window must sit entirely in one of them.
    """
    g_start, g_end = _minutes(global_start), _minutes(global_end)
    s_start, s_end = _minutes(window.start), _minutes(window.end)
    if g_end >= g_start:
        return s_start >= g_start and s_end <= g_end
    return s_start >= g_start or s_end <= g_end


def _check_inside(config: ScheduleSnapshot, schedule: WeeklySchedule, staff_id: int | None = None) -> None:
    for day, window in schedule.working_days():
        if not window_inside_global(config.start, config.end, window):
            raise ScheduleConflict(
                f"{day.name.title()} shift {window.start:%H:%M}–{window.end:%H:%M} "
                f"must be within global window {config.start:%H:%M}–{config.end:%H:%M}",
                staff_id=staff_id,
                weekday=day.name.lower(),
            )


# ── Global config ───────────────────────────────────────────────────
async def get_schedule_config(db: AsyncSession) -> GlobalScheduleConfig:
    """Fetch the singleton config row, creating it with defaults if absent.

    The seed row is only flushed, so callers holding row locks keep their
    transaction open; they commit it with the rest of their work.
    """
    result = await db.execute(select(GlobalScheduleConfig).where(GlobalScheduleConfig.id == 1))
    config = result.scalar_one_or_none()
    if config is None:
        config = GlobalScheduleConfig(
            id=1,
            start=settings.DEFAULT_SHIFT_START,
            end=settings.DEFAULT_SHIFT_END,
            margin_minutes=settings.DEFAULT_MARGIN_MINUTES,
            alert_minutes=settings.DEFAULT_ALERT_MINUTES,
        )
        db.add(config)
        await db.flush()
        logger.info("Created default schedule config")
    return config


async def get_snapshot(db: AsyncSession) -> ScheduleSnapshot:
    return ScheduleSnapshot.of(await get_schedule_config(db))


async def update_schedule_config(
    db: AsyncSession,
    *,
    start: time | None = None,
    end: time | None = None,
    margin_minutes: int | None = None,
    alert_minutes: int | None = None,
) -> GlobalScheduleConfig:
    """Apply a partial update; rejected without changes if any staff window
    would fall outside the new bounds."""
    config = await get_schedule_config(db)
    proposed = ScheduleSnapshot(
        start if start is not None else config.start,
        end if end is not None else config.end,
        margin_minutes if margin_minutes is not None else config.margin_minutes,
        alert_minutes if alert_minutes is not None else config.alert_minutes,
    )
    if proposed.start == proposed.end:
        raise ScheduleConflict("Global start and end must differ")
    if proposed.margin_minutes < 0 or proposed.alert_minutes < 0:
        raise ScheduleConflict("Margin and alert minutes must not be negative")

    profiles = (await db.execute(select(StaffShiftProfile))).scalars().all()
    for profile in profiles:
        _check_inside(proposed, WeeklySchedule.from_profile(profile), profile.staff_id)

    config.start = proposed.start
    config.end = proposed.end
    config.margin_minutes = proposed.margin_minutes
    config.alert_minutes = proposed.alert_minutes
    await db.commit()
    await db.refresh(config)
    logger.info(
        "Schedule config updated: %s-%s margin=%s alert=%s",
        config.start, config.end, config.margin_minutes, config.alert_minutes,
    )
    return config


# ── Per-staff schedule ──────────────────────────────────────────────
async def get_weekly_schedule(db: AsyncSession, staff_id: int) -> WeeklySchedule:
    profile = await db.get(StaffShiftProfile, staff_id)
    return WeeklySchedule.from_profile(profile)


async def set_weekly_schedule(
    db: AsyncSession, staff_id: int, schedule: WeeklySchedule
) -> WeeklySchedule:
    config = await get_snapshot(db)
    _check_inside(config, schedule, staff_id)

    profile = await db.get(StaffShiftProfile, staff_id)
    if profile is None:
        profile = StaffShiftProfile(staff_id=staff_id)
        db.add(profile)
    schedule.apply_to(profile)
    await db.commit()
    logger.info("Shift profile saved for staff %s", staff_id)
    return schedule


def resolve_from(
    schedule: WeeklySchedule, config: ScheduleSnapshot, on: date
) -> ResolvedShift | None:
    window = schedule[Weekday.of(on)]
    if window is None:
        return None
    return ResolvedShift(window.start, window.end, config.margin_minutes, config.alert_minutes)


async def resolve(db: AsyncSession, staff_id: int, on: date) -> ResolvedShift | None:
    """The staff member's shift for ``on``, or ``None`` on a day off."""
    schedule = await get_weekly_schedule(db, staff_id)
    return resolve_from(schedule, await get_snapshot(db), on)
