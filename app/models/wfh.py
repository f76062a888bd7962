"""
Work-from-home request — one per staff member per calendar day.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Column, Date, DateTime, ForeignKey, Integer, String,
                        UniqueConstraint)

from app.db.base import Base


class WfhRequest(Base):
    __tablename__ = "wfh_requests"
    __table_args__ = (UniqueConstraint("staff_id", "request_date", name="uq_wfh_staff_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    staff_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True
    )
    request_date: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="pending", index=True)  # type: ignore[assignment]
    # pending | approved | rejected
    decided_by: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    decided_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    # Mirrors the attendance record written by the remote check-in/out
    time_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    time_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        onupdate=lambda: datetime.now(timezone.utc),
    )
