from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.context import GatewayContext
from app.middleware import extract_api_key
from app.logging import setup_logger

router = APIRouter(tags=["Realtime"])

logger = setup_logger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4401


@router.websocket("/ws")
async def realtime_events(websocket: WebSocket):
    """
    Session events stream.

    Sends a `status` snapshot on connect, then every session event as
    {"event": name, "data": payload}.
    """
    ctx: GatewayContext = websocket.app.state.context

    api_key = extract_api_key(websocket)
    if not api_key or not ctx.keys.validate(api_key):
        logger.warning(f"Rejected real-time connection from {websocket.client}")
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    await websocket.accept()
    await ctx.broadcaster.subscribe(websocket, ctx.controller.snapshot())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        ctx.broadcaster.unsubscribe(websocket)
