"""
Notification WebSocket — each user listens on their private channel.

Connect with ``ws://<host>/api/v1/ws/notifications?token=<access token>``.
"""

from __future__ import annotations

import logging

from fastapi import (APIRouter, Depends, Query, WebSocket, WebSocketDisconnect,
                     status)
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, user_from_token
from app.services.notifications import notification_hub

router = APIRouter(tags=["notifications"])
logger = logging.getLogger(__name__)


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    user = await user_from_token(db, token)
    if user is None or not user.is_active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Not authorized")
        return

    await notification_hub.connect(websocket, user.id)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        notification_hub.disconnect(websocket, user.id)
