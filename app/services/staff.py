"""
Staff accounts: creation, lookup, the authorization-row lock and session
revocation.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import StaffNotFound
from app.core.security import get_password_hash
from app.models.staff import Staff
from app.models.user import User

logger = logging.getLogger(__name__)


async def lock_staff(db: AsyncSession, staff_id: int) -> Staff:
    """Take the exclusive lock on a staff member's authorization row.

    Held until the caller commits or rolls back; every transition of the
    member's UnTime exception or attendance record runs under it.
    """
    result = await db.execute(
        select(Staff)
        .where(Staff.id == staff_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    staff = result.scalar_one_or_none()
    if staff is None:
        raise StaffNotFound()
    return staff


async def get_staff(db: AsyncSession, staff_id: int) -> Staff:
    staff = await db.get(Staff, staff_id)
    if staff is None:
        raise StaffNotFound()
    return staff


async def get_staff_for_user(db: AsyncSession, user_id: int) -> Staff:
    result = await db.execute(select(Staff).where(Staff.user_id == user_id))
    staff = result.scalar_one_or_none()
    if staff is None:
        raise StaffNotFound("No staff profile for this account")
    return staff


async def list_staff(db: AsyncSession) -> list[Staff]:
    result = await db.execute(select(Staff).order_by(Staff.full_name))
    return list(result.scalars().all())


async def create_staff(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    full_name: str,
    leave_entitlement: int | None = None,
) -> Staff:
    """Create a staff login together with its staff profile."""
    entitlement = (
        leave_entitlement if leave_entitlement is not None else settings.DEFAULT_LEAVE_ENTITLEMENT
    )
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        full_name=full_name,
        role="staff",
    )
    db.add(user)
    await db.flush()

    staff = Staff(
        user_id=user.id,
        full_name=full_name,
        leave_entitlement=entitlement,
        leave_balance=entitlement,
    )
    db.add(staff)
    await db.commit()
    await db.refresh(staff)
    logger.info("Staff %s created for %s", staff.id, email)
    return staff


# ── Sessions & blocking ─────────────────────────────────────────────
async def revoke_all_staff_sessions(db: AsyncSession) -> int:
    """Log every staff account out; outstanding tokens stop validating."""
    result = await db.execute(
        update(User)
        .where(User.role == "staff")
        .values(is_login=False, token_version=User.token_version + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Revoked sessions for %s staff account(s)", result.rowcount)
    return result.rowcount


async def revoke_sessions(db: AsyncSession, user_id: int) -> None:
    """Sign one account out; the caller commits."""
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(is_login=False, token_version=User.token_version + 1)
        .execution_options(synchronize_session=False)
    )


async def block_account(db: AsyncSession, user_id: int) -> None:
    """Flag the account; the caller commits."""
    user = await db.get(User, user_id)
    if user is None:
        return
    user.is_blocked = True


async def unblock(db: AsyncSession, staff_id: int) -> User:
    staff = await lock_staff(db, staff_id)
    user = await db.get(User, staff.user_id)
    user.is_blocked = False
    await db.commit()
    logger.info("Staff %s unblocked", staff_id)
    return user
