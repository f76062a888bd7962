"""
Staff model — the per-employee aggregate.

The staff row doubles as the authorization row: every transition of a
staff member's UnTime exception or attendance record holds an exclusive
lock on it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base


class Staff(Base):
    __tablename__ = "staff"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    full_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    leave_entitlement: int = Column(Integer, nullable=False, default=20)  # type: ignore[assignment]
    leave_balance: int = Column(Integer, nullable=False, default=20)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
