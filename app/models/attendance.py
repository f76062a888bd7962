"""
Attendance record — one row per staff member per organization calendar day.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, ForeignKey,
                        Integer, UniqueConstraint)

from app.db.base import Base


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("staff_id", "attendance_date", name="uq_attendance_staff_date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    staff_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attendance_date: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    time_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    time_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    overtime_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    overtime_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    is_forced_out: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    # [{"start": iso, "end": iso, "reason": str}, ...]; reassign, never mutate in place
    untime_sessions: list = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_by: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    @property
    def is_open(self) -> bool:
        return self.time_in is not None and self.time_out is None

    @property
    def overtime_open(self) -> bool:
        return self.overtime_in is not None and self.overtime_out is None
