"""
Organization clock and shift-window arithmetic.

Everything here is pure: no I/O and no database access.  Instants handed
out by this module are timezone-aware; values coming back from the store
without tzinfo (SQLite) are interpreted as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.core.config import settings


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def org_tz() -> ZoneInfo:
    return _zone(settings.ORG_TIMEZONE)


def now() -> datetime:
    """Current instant in the organization timezone."""
    return datetime.now(org_tz())


# ── Conversions ─────────────────────────────────────────────────────
def ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize an instant for storage."""
    return ensure_utc(value)  # type: ignore[return-value]


def to_local(value: datetime) -> datetime:
    return to_utc(value).astimezone(org_tz())


def local_date(instant: datetime) -> date:
    """Organization calendar date the instant falls on."""
    return to_local(instant).date()


def combine(on: date, at: time) -> datetime:
    """Local wall-clock time on a calendar day, as a UTC instant."""
    return datetime.combine(on, at.replace(tzinfo=None), tzinfo=org_tz()).astimezone(
        timezone.utc
    )


# ── Windows ─────────────────────────────────────────────────────────
def build_window(
    start: time,
    end: time,
    margin_minutes: int,
    on: date,
) -> tuple[datetime, datetime]:
    """Return ``(start - margin, end + margin)`` on ``on``.

    When the end lands before the start (overnight window) it is pushed
    to the following day.
    """
    margin = timedelta(minutes=margin_minutes)
    window_start = combine(on, start) - margin
    window_end = combine(on, end) + margin
    if window_end < window_start:
        window_end = combine(on + timedelta(days=1), end) + margin
    return window_start, window_end


def contains(instant: datetime, start: datetime, end: datetime) -> bool:
    """Half-open interval test ``[start, end)``."""
    return to_utc(start) <= to_utc(instant) < to_utc(end)


def format_local_time(instant: datetime) -> str:
    return to_local(instant).strftime("%H:%M:%S")
