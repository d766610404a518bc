"""Room-based push notifications over WebSocket.

Clients connect to ``/ws`` and join their role's room by sending
``{"event": "joinRole", "data": "Kitchen"}``. The server pushes
``{"event": <name>, "data": <payload>}``. Delivery is fire-and-forget: a
socket that fails to receive is dropped, nothing is retried.
"""
import logging
from collections import defaultdict
from typing import Any, Iterable

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

# which rooms hear which event; events not listed go to everyone
EVENT_ROOMS: dict[str, tuple[str, ...]] = {
    "newOrder": ("Kitchen", "Waiter", "Admin"),
    "billCreated": ("Cashier", "Admin"),
}


class NotificationHub:
    def __init__(self):
        self._sockets: set[WebSocket] = set()
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._sockets.add(ws)

    def join(self, ws: WebSocket, room: str) -> None:
        self._rooms[room].add(ws)
        logger.info("socket %s joined role: %s", id(ws), room)

    def disconnect(self, ws: WebSocket) -> None:
        self._sockets.discard(ws)
        for members in self._rooms.values():
            members.discard(ws)

    def members(self, rooms: Iterable[str] | None = None) -> set[WebSocket]:
        if rooms is None:
            return set(self._sockets)
        out: set[WebSocket] = set()
        for r in rooms:
            out |= self._rooms.get(r, set())
        return out

    async def publish(self, event: str, payload: Any, rooms: Iterable[str] | None = None) -> int:
        """Push ``event`` to ``rooms`` (default from EVENT_ROOMS, else all). Returns deliveries."""
        if rooms is None:
            rooms = EVENT_ROOMS.get(event)
        msg = {"event": event, "data": jsonable_encoder(payload)}
        sent = 0
        for ws in self.members(rooms):
            try:
                await ws.send_json(msg)
                sent += 1
            except Exception as exc:
                logger.debug("dropping socket %s: %s", id(ws), exc)
                self.disconnect(ws)
        return sent
