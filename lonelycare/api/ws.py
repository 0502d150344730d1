"""WebSocket endpoint for in-app alert channels."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from lonelycare.core.ws_manager import ws_manager
from lonelycare.db.session import SessionLocal
from lonelycare.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


def _known_user(user_id: int) -> bool:
    db = SessionLocal()
    try:
        user = db.get(User, user_id)
        return bool(user and user.is_active)
    finally:
        db.close()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint. Client connects with ?user_id=<id>.
    Server pushes events: alert.banner, alert.sound, alert.takeover
    """
    raw = websocket.query_params.get("user_id")
    if not raw or not raw.isdigit():
        await websocket.close(code=4001, reason="Missing user_id")
        return

    user_id = int(raw)
    if not _known_user(user_id):
        await websocket.close(code=4003, reason="Unknown user")
        return

    await ws_manager.connect(websocket, user_id)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"event":"pong"}')
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket, user_id)
