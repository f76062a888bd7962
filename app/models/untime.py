"""
UnTime exception — the off-schedule period a staff member is currently in.

A row exists only while the exception is active; "no active exception"
is the absence of a row.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.core.clock import ensure_utc
from app.db.base import Base


class UnTimeException(Base):
    __tablename__ = "untime_exceptions"

    staff_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("staff.id", ondelete="CASCADE"), primary_key=True
    )
    reason: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    # ended | on-leave | outside-window | manual-extend
    started_at: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    duration_minutes: int = Column(Integer, nullable=False, default=10)  # type: ignore[assignment]
    approved: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]

    @property
    def ends_at(self) -> datetime:
        return ensure_utc(self.started_at) + timedelta(minutes=self.duration_minutes)  # type: ignore[operator]

    def is_expired(self, now: datetime) -> bool:
        return self.ends_at < ensure_utc(now)  # type: ignore[operator]
