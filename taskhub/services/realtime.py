"""WebSocket room registry for chat and notification pushes.

Rooms are ``task:{id}`` for chat and ``user:{id}`` for a user's
notifications. Delivery is best effort: a socket that fails to receive is
dropped and the recipient catches up from the persisted rows.
"""

import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger("taskhub.realtime")


def task_room(task_id: int) -> str:
    return f"task:{task_id}"


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


class ConnectionManager:
    """WebSocket connection manager keyed by room name."""

    def __init__(self):
        self.rooms: dict[str, list[WebSocket]] = {}

    def join(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.setdefault(room, [])
        if websocket not in members:
            members.append(websocket)

    def leave(self, websocket: WebSocket, room: str) -> None:
        if room in self.rooms:
            self.rooms[room] = [ws for ws in self.rooms[room] if ws is not websocket]
            if not self.rooms[room]:
                del self.rooms[room]

    def disconnect(self, websocket: WebSocket) -> None:
        for room in list(self.rooms):
            self.leave(websocket, room)

    def members(self, room: str) -> int:
        return len(self.rooms.get(room, []))

    async def emit(self, room: str, event: str, data: Any, exclude: WebSocket = None) -> int:
        """Send ``{"event", "data"}`` to every socket in the room; returns deliveries."""
        delivered = 0
        for ws in list(self.rooms.get(room, [])):
            if ws is exclude:
                continue
            try:
                await ws.send_json({"event": event, "data": data})
                delivered += 1
            except (WebSocketDisconnect, RuntimeError, ConnectionError) as e:
                logger.info("Dropping dead socket from %s: %s", room, e)
                self.disconnect(ws)
        return delivered
