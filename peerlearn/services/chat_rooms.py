"""
In-process room registry for the hub chat relay.

Rooms are keyed by hub id and hold live websockets only; nothing here is
persisted. Broadcasts are fire-and-forget: a socket that fails to receive is
dropped from its room.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Set
from fastapi import WebSocket

logger = logging.getLogger(__name__)

class RoomRegistry:
    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    def join(self, hub_id: str, ws: WebSocket) -> None:
        self.rooms[hub_id].add(ws)
        logger.info("socket joined hub %s (%d connected)", hub_id, len(self.rooms[hub_id]))

    def leave(self, hub_id: str, ws: WebSocket) -> None:
        room = self.rooms.get(hub_id)
        if room is None:
            return
        room.discard(ws)
        if not room:
            del self.rooms[hub_id]

    def size(self, hub_id: str) -> int:
        return len(self.rooms.get(hub_id, ()))

    async def broadcast(self, hub_id: str, event: str, data: Any, exclude: Optional[WebSocket] = None) -> int:
        delivered = 0
        for ws in list(self.rooms.get(hub_id, ())):
            if ws is exclude:
                continue
            try:
                await ws.send_json({"event": event, "data": data})
                delivered += 1
            except Exception as e:
                logger.warning("dropping socket from hub %s: %s", hub_id, e)
                self.leave(hub_id, ws)
        return delivered

rooms = RoomRegistry()
