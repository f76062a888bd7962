"""
Per-staff weekly shift profile: seven optional (start, end) local-time pairs.
"""

from __future__ import annotations

from datetime import datetime, time, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Time

from app.db.base import Base

DAY_PREFIXES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class StaffShiftProfile(Base):
    __tablename__ = "staff_shift_profiles"

    staff_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("staff.id", ondelete="CASCADE"), primary_key=True
    )
    mon_start: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    mon_end: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    tue_start: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    tue_end: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    wed_start: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    wed_end: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    thu_start: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    thu_end: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    fri_start: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    fri_end: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    sat_start: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    sat_end: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    sun_start: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    sun_end: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
