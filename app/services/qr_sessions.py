"""
QR session manager — rotating check-in codes proving presence at a kiosk.

Sessions expire lazily: every read deactivates rows whose expiry has
passed, so no timer is needed for correctness.  The rotation job only
keeps a fresh code on screen.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from urllib.parse import quote

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.exceptions import SessionExpired, SessionInvalid
from app.models.qr_session import QRSession

logger = logging.getLogger(__name__)


def _is_expired(session: QRSession, now: datetime) -> bool:
    return clock.ensure_utc(session.expires_at) <= clock.to_utc(now)  # type: ignore[operator]


async def rotate(
    db: AsyncSession,
    ttl_minutes: int | None = None,
    created_by: int | None = None,
    now: datetime | None = None,
) -> QRSession:
    """Deactivate the active session (if any) and issue a new one."""
    now = clock.to_utc(now or clock.now())
    ttl = ttl_minutes if ttl_minutes is not None else settings.QR_SESSION_TTL_MINUTES

    await db.execute(update(QRSession).where(QRSession.active.is_(True)).values(active=False))
    session = QRSession(
        session_code=str(uuid.uuid4()),
        created_by=created_by,
        created_at=now,
        expires_at=now + timedelta(minutes=ttl),
        active=True,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    logger.info("QR session %s issued (expires %s)", session.id, session.expires_at)
    return session


async def current(db: AsyncSession, now: datetime | None = None) -> QRSession | None:
    """The active, unexpired session, or ``None``."""
    now = clock.to_utc(now or clock.now())
    result = await db.execute(
        update(QRSession)
        .where(QRSession.active.is_(True), QRSession.expires_at <= now)
        .values(active=False)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        await db.commit()
        logger.debug("Deactivated %s expired QR session(s)", result.rowcount)

    active = await db.execute(
        select(QRSession)
        .where(QRSession.active.is_(True))
        .order_by(QRSession.created_at.desc())
        .limit(1)
    )
    return active.scalar_one_or_none()


async def redeem(db: AsyncSession, code: str, now: datetime | None = None) -> QRSession:
    """Validate a scanned code.  Redemption never consumes the session."""
    now = now or clock.now()
    result = await db.execute(
        select(QRSession)
        .where(QRSession.session_code == code)
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise SessionInvalid()

    if not session.active or _is_expired(session, now):
        if session.active:
            session.active = False
            await db.commit()
        raise SessionExpired()
    return session


def session_link(session: QRSession, app_url: str | None = None) -> str:
    """URL encoded into the kiosk's QR image."""
    base = (app_url or settings.APP_URL).rstrip("/")
    return f"{base}/attendance/mark?session={quote(session.session_code)}"
