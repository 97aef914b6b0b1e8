# routers/websocket_router.py
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import json
import logging

from paydash.services.notifier import ChangeNotifier

router = APIRouter(tags=["Realtime"])
logger = logging.getLogger("paydash.ws")

JOIN_ROOM = "joinRoom"
LEAVE_ROOM = "leaveRoom"


async def handle_message(notifier: ChangeNotifier, connection_id: str, message) -> None:
    """Apply one client frame: {"event": "joinRoom" | "leaveRoom", "data": "<room>"}."""
    if not isinstance(message, dict):
        logger.warning(f"Ignoring non-object frame from {connection_id}")
        return

    event = message.get("event")
    room = message.get("data")
    if not isinstance(room, str) or not room.strip():
        logger.warning(f"Ignoring {event} from {connection_id}: missing room name")
        return

    if event == JOIN_ROOM:
        await notifier.join(connection_id, room.strip())
    elif event == LEAVE_ROOM:
        await notifier.leave(connection_id, room.strip())
    else:
        logger.warning(f"Ignoring unknown event {event!r} from {connection_id}")


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket):
    notifier: ChangeNotifier = websocket.app.state.notifier

    await websocket.accept()
    connection_id = notifier.connect(websocket)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))

            text = frame.get("text")
            if text is None:
                logger.warning(f"Ignoring binary frame from {connection_id}")
                continue
            try:
                message = json.loads(text)
            except ValueError:
                logger.warning(f"Ignoring malformed frame from {connection_id}")
                continue
            await handle_message(notifier, connection_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        notifier.disconnect(connection_id)
