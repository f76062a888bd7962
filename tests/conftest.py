"""
Shared test fixtures for the ShiftGate test suite.

Async throughout (aiosqlite + AsyncSession).  Every test gets a fresh
in-memory database; the organization clock is frozen with ``freeze``.
"""

import os
import sys
from datetime import datetime, time
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["ORG_TIMEZONE"] = "America/Toronto"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.core import clock
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.main import app
from app.models.staff import Staff
from app.models.user import User
from app.services import shifts
from app.services import staff as staff_service

TORONTO = ZoneInfo("America/Toronto")

# 2026-10-19 is a Monday (EDT, UTC-4)
MONDAY = (2026, 10, 19)

NINE_TO_FIVE = {
    shifts.Weekday.MONDAY: (time(9, 0), time(17, 0)),
    shifts.Weekday.TUESDAY: (time(9, 0), time(17, 0)),
    shifts.Weekday.WEDNESDAY: (time(9, 0), time(17, 0)),
    shifts.Weekday.THURSDAY: (time(9, 0), time(17, 0)),
    shifts.Weekday.FRIDAY: (time(9, 0), time(17, 0)),
}


def toronto(hour: int, minute: int = 0, second: int = 0, day_offset: int = 0) -> datetime:
    """Local instant on the reference Monday (or ``day_offset`` days later)."""
    year, month, day = MONDAY
    return datetime(year, month, day + day_offset, hour, minute, second, tzinfo=TORONTO)


@pytest.fixture
def at():
    return toronto


@pytest.fixture
def freeze(monkeypatch):
    """Pin ``clock.now()`` to a fixed instant for code that reads the clock."""

    def _freeze(instant: datetime) -> datetime:
        monkeypatch.setattr(clock, "now", lambda: instant)
        return instant

    return _freeze


# ── Database ────────────────────────────────────────────────────────
@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct service calls in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app and the test database."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ── Accounts ────────────────────────────────────────────────────────
@pytest.fixture
def make_staff(session_factory):
    """Factory: create a staff member, by default working Mon–Fri 09:00–17:00."""
    counter = {"n": 0}

    async def _make(
        schedule: dict | None = None,
        *,
        full_name: str | None = None,
        leave_entitlement: int = 20,
    ) -> Staff:
        counter["n"] += 1
        async with session_factory() as db:
            staff = await staff_service.create_staff(
                db,
                email=f"staff{counter['n']}@test.local",
                password="password123",
                full_name=full_name or f"Staff {counter['n']}",
                leave_entitlement=leave_entitlement,
            )
            pairs = NINE_TO_FIVE if schedule is None else schedule
            await shifts.set_weekly_schedule(db, staff.id, shifts.WeeklySchedule.from_pairs(pairs))
        return staff

    return _make


@pytest.fixture
async def staff(make_staff) -> Staff:
    return await make_staff()


@pytest.fixture
async def admin_user(session_factory) -> User:
    async with session_factory() as db:
        user = User(
            email="admin@test.local",
            hashed_password=get_password_hash("adminpass123"),
            full_name="Admin",
            role="admin",
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def staff_headers(staff) -> dict:
    return {"Authorization": f"Bearer {create_access_token(staff.user_id)}"}
