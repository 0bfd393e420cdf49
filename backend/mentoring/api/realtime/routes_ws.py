"""Realtime WebSocket routes."""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from mentoring.infra.realtime.ws_manager import WebSocketConnection, is_valid_topic

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket):
    """Stream events for every ?topic= (conversation:{id} or identity:{id}). Replies pong to ping."""
    topics = websocket.query_params.getlist("topic")
    if not topics or not all(is_valid_topic(t) for t in topics):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid or missing topic")
        return
    dispatcher = getattr(websocket.app.state, "dispatcher", None)
    if dispatcher is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Realtime dispatcher is not configured")
        return

    await websocket.accept()
    connection = WebSocketConnection(websocket, dispatcher)
    try:
        await connection.subscribe(topics)
        await websocket.send_json({"type": "connection.established", "topics": topics})
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    except (RuntimeError, ConnectionError) as e:
        logger.warning(f"⚠️ [WEBSOCKET] Connection error: {e}")
    finally:
        await connection.close()
