from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...realtime.notifier import get_notifier

router = APIRouter(tags=["Realtime"])

@router.websocket("/ws/appointments")
async def appointments_updates(websocket: WebSocket):
    """Push ``appointments:update`` signals; incoming messages are ignored."""
    notifier = get_notifier()
    await notifier.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        notifier.disconnect(websocket)
