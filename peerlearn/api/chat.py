import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from peerlearn.services.chat_rooms import rooms

logger = logging.getLogger(__name__)
router = APIRouter()

@router.websocket("/ws/hubs/{hub_id}")
async def hub_chat(ws: WebSocket, hub_id: str):
    await ws.accept()
    rooms.join(hub_id, ws)
    try:
        while True:
            frame = await ws.receive_json()
            if not isinstance(frame, dict):
                continue
            event, data = frame.get("event"), frame.get("data")
            if event == "send-message":
                await rooms.broadcast(hub_id, "receive-message", data)
            elif event == "typing":
                await rooms.broadcast(hub_id, "user-typing", data, exclude=ws)
            else:
                logger.debug("ignoring %r event on hub %s", event, hub_id)
    except WebSocketDisconnect:
        pass
    finally:
        rooms.leave(hub_id, ws)
