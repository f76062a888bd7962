"""
Per-user notification channels over WebSocket.

Each authenticated user may hold several sockets (tabs, devices); an event
published to a user reaches all of them.  Delivery is best effort: a
socket that fails to send is dropped.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)

SHIFT_ALERT = "shift-alert"
UNTIME_ALERT = "untime-alert"


class NotificationHub:
    def __init__(self) -> None:
        self.active_connections: dict[int, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, user_id: int) -> None:
        await websocket.accept()
        self.active_connections[user_id].add(websocket)
        logger.info(
            "User %s subscribed to notifications (%s socket(s))",
            user_id, len(self.active_connections[user_id]),
        )

    def disconnect(self, websocket: WebSocket, user_id: int) -> None:
        sockets = self.active_connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.active_connections[user_id]
        logger.info("User %s notification socket closed", user_id)

    async def publish(self, user_id: int, event: str, payload: dict) -> int:
        """Send ``{"type": event, **payload}`` to the user's private channel."""
        message = json.dumps({"type": event, **payload})
        delivered = 0
        for websocket in list(self.active_connections.get(user_id, ())):
            try:
                await websocket.send_text(message)
                delivered += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("Dropping notification socket for user %s: %s", user_id, exc)
                self.disconnect(websocket, user_id)
        return delivered


# Global instance
notification_hub = NotificationHub()
