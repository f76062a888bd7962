"""Tests for rotating QR check-in sessions."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from app.core.exceptions import SessionExpired, SessionInvalid
from app.models.qr_session import QRSession
from app.services import qr_sessions


@pytest.mark.asyncio
async def test_rotate_leaves_exactly_one_active(db_session, at):
    """Rotating deactivates the previous code."""
    first = await qr_sessions.rotate(db_session, now=at(9, 0))
    second = await qr_sessions.rotate(db_session, now=at(9, 1))
    assert first.session_code != second.session_code

    active = (
        await db_session.execute(select(QRSession).where(QRSession.active.is_(True)))
    ).scalars().all()
    assert [s.id for s in active] == [second.id]


@pytest.mark.asyncio
async def test_rotate_uses_configured_ttl(db_session, at):
    session = await qr_sessions.rotate(db_session, ttl_minutes=5, now=at(9, 0))
    from app.core import clock

    assert clock.ensure_utc(session.expires_at) == clock.to_utc(at(9, 5))


@pytest.mark.asyncio
async def test_current_returns_live_session(db_session, at):
    issued = await qr_sessions.rotate(db_session, now=at(9, 0))
    current = await qr_sessions.current(db_session, now=at(9, 2))
    assert current is not None
    assert current.id == issued.id


@pytest.mark.asyncio
async def test_current_expires_lazily(db_session, at):
    """A read past expiry deactivates the row and returns nothing."""
    issued = await qr_sessions.rotate(db_session, ttl_minutes=3, now=at(9, 0))
    assert await qr_sessions.current(db_session, now=at(9, 3)) is None

    row = (
        await db_session.execute(
            select(QRSession)
            .where(QRSession.id == issued.id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert row.active is False


@pytest.mark.asyncio
async def test_redeem_unknown_code(db_session, at):
    with pytest.raises(SessionInvalid):
        await qr_sessions.redeem(db_session, "not-a-real-code", now=at(9, 0))


@pytest.mark.asyncio
async def test_redeem_does_not_consume(db_session, at):
    """The same code can be scanned by several staff while it is live."""
    issued = await qr_sessions.rotate(db_session, now=at(9, 0))
    for minute in (0, 1, 2):
        redeemed = await qr_sessions.redeem(db_session, issued.session_code, now=at(9, minute))
        assert redeemed.id == issued.id
        assert redeemed.active is True


@pytest.mark.asyncio
async def test_redeem_expired_code_deactivates_it(db_session, at):
    issued = await qr_sessions.rotate(db_session, ttl_minutes=3, now=at(9, 0))
    with pytest.raises(SessionExpired):
        await qr_sessions.redeem(db_session, issued.session_code, now=at(9, 3) + timedelta(seconds=1))
    assert issued.active is False


@pytest.mark.asyncio
async def test_redeem_superseded_code_is_expired(db_session, at):
    old = await qr_sessions.rotate(db_session, now=at(9, 0))
    await qr_sessions.rotate(db_session, now=at(9, 1))
    with pytest.raises(SessionExpired):
        await qr_sessions.redeem(db_session, old.session_code, now=at(9, 1))


def test_session_link_encodes_code():
    session = QRSession(session_code="abc-123")
    assert (
        qr_sessions.session_link(session, "https://kiosk.example.com/")
        == "https://kiosk.example.com/attendance/mark?session=abc-123"
    )
