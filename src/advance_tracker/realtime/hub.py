"""Websocket fan-out of change events to connected clients."""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from advance_tracker.realtime.events import ChangeEvent

logger = logging.getLogger(__name__)


class ConnectionHub:
    def __init__(self) -> None:
        # user_id (str) -> set of WebSocket connections
        self._user_connections: dict[str, set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str, ws: WebSocket) -> None:
        async with self._lock:
            conns = self._user_connections.setdefault(user_id, set())
            conns.add(ws)

    async def disconnect(self, user_id: str, ws: WebSocket) -> None:
        async with self._lock:
            conns = self._user_connections.get(user_id)
            if conns is not None:
                conns.discard(ws)
                if not conns:
                    self._user_connections.pop(user_id, None)

    def connected_users(self) -> set[str]:
        return set(self._user_connections)

    async def __call__(self, event: ChangeEvent) -> None:
        """Forward an event to connected clients.

        A notification goes in full to its addressee only. Any other change is
        sent to everyone as a bare ``{table, eventType}`` signal without the
        row; clients refetch through the scoped API.
        """
        async with self._lock:
            if event.table == "notifications":
                user_id = str(event.new_record.get("user_id"))
                targets = [(user_id, ws) for ws in self._user_connections.get(user_id, set())]
                payload = event.to_dict()
            else:
                targets = [
                    (uid, ws)
                    for uid, conns in self._user_connections.items()
                    for ws in conns
                ]
                payload = event.to_signal()

        for user_id, ws in targets:
            try:
                await ws.send_json(payload)
            except Exception:
                logger.warning("Dropping websocket for user %s after send failure", user_id)
                await self.disconnect(user_id, ws)


hub = ConnectionHub()
