"""
Leave request model — inclusive, full-day date ranges.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Column, Date, DateTime, ForeignKey, Index, Integer,
                        String)

from app.db.base import Base


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (Index("ix_leave_staff_range", "staff_id", "start_date", "end_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    staff_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False
    )
    start_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    end_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="pending", index=True)  # type: ignore[assignment]
    # pending | approved | rejected
    decided_by: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        onupdate=lambda: datetime.now(timezone.utc),
    )
