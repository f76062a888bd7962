"""
QR session endpoints — the kiosk displays the current code.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, require_admin
from app.models.qr_session import QRSession
from app.models.user import User
from app.schemas.attendance import QRSessionRead
from app.services import qr_sessions

router = APIRouter(prefix="/qr", tags=["qr"])


def _read(session: QRSession) -> QRSessionRead:
    data = QRSessionRead.model_validate(session)
    data.link = qr_sessions.session_link(session)
    return data


@router.get("/current", response_model=QRSessionRead)
async def current_session(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> QRSessionRead:
    session = await qr_sessions.current(db)
    if session is None:
        raise HTTPException(status_code=404, detail="No active QR session")
    return _read(session)


@router.post("/rotate", response_model=QRSessionRead, status_code=201)
async def rotate_session(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> QRSessionRead:
    """Issue a fresh code, deactivating the previous one."""
    return _read(await qr_sessions.rotate(db, created_by=admin.id))
