"""
QR session model — short-lived rotating check-in codes.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Index, Integer,
                        String, text)

from app.db.base import Base


class QRSession(Base):
    __tablename__ = "qr_sessions"
    # At most one active row
    __table_args__ = (
        Index(
            "uq_qr_sessions_single_active",
            "active",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    session_code: str = Column(String(64), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    created_by: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    active: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
