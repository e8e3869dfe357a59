"""Websocket endpoint streaming change events."""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from advance_tracker.database import get_session
from advance_tracker.models import User
from advance_tracker.realtime.hub import hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/changes", tags=["changes"])


@router.websocket("/ws")
async def changes_ws(websocket: WebSocket, user_id: UUID = Query(...)) -> None:
    """Push ``{table, eventType, new}`` events to a connected client."""
    async with get_session() as session:
        user = await session.get(User, user_id)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    key = str(user_id)
    await hub.connect(key, websocket)
    logger.info("Change stream opened for user %s", key)
    try:
        while True:
            # Client messages are ignored; receiving keeps the socket alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(key, websocket)
        logger.info("Change stream closed for user %s", key)
