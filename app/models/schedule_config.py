"""
Global schedule config — singleton row holding the organization's nominal
shift bounds, margin and alert lead time.

Per-staff windows must fit inside these bounds; the margin and alert
values apply to every staff member.
"""

from __future__ import annotations

from datetime import datetime, time, timezone

from sqlalchemy import Column, DateTime, Integer, Time

from app.db.base import Base


class GlobalScheduleConfig(Base):
    __tablename__ = "schedule_config"

    id: int = Column(Integer, primary_key=True, default=1)  # type: ignore[assignment]
    start: time = Column(Time, nullable=False)  # type: ignore[assignment]
    end: time = Column(Time, nullable=False)  # type: ignore[assignment]
    margin_minutes: int = Column(Integer, nullable=False, default=30)  # type: ignore[assignment]
    alert_minutes: int = Column(Integer, nullable=False, default=10)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
