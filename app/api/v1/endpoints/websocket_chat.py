"""WebSocket endpoint for real-time chat."""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.core.security import get_token_subject
from app.schemas.message import MessageResponse
from app.services.realtime import realtime_hub

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ws",
    tags=["WebSocket Chat"],
)


def message_event(message: MessageResponse) -> dict:
    return {"type": "new_message", "message": message.model_dump(mode="json")}


def read_receipt_event(reader_id: str, sender_id: str, read_count: int) -> dict:
    return {
        "type": "read_receipt",
        "reader_id": reader_id,
        "sender_id": sender_id,
        "read_count": read_count,
    }


async def _pump(websocket: WebSocket, outbox: "asyncio.Queue[dict]") -> None:
    """Single writer: everything sent to the socket goes through the outbox."""
    while True:
        payload = await outbox.get()
        await websocket.send_json(payload)


async def _listen(websocket: WebSocket, outbox: "asyncio.Queue[dict]") -> None:
    """Answer heartbeats until the client goes away."""
    while True:
        data = await websocket.receive_text()

        try:
            message_data = json.loads(data)
        except json.JSONDecodeError:
            outbox.put_nowait({"type": "error", "message": "Invalid JSON format"})
            continue

        if isinstance(message_data, dict) and message_data.get("type") == "ping":
            outbox.put_nowait({"type": "pong"})
        else:
            outbox.put_nowait({"type": "error", "message": "Unsupported frame; send messages via the REST API"})


@router.websocket("/chat")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = None,
    partner_id: Optional[str] = None,
):
    """
    WebSocket endpoint for real-time chat.

    Query parameters:
    - token: JWT token for authentication
    - partner_id: Scope the stream to one conversation. Without it the socket
      receives every message addressed to the current user (inbox/badge).

    Server -> client frames: `connection`, `new_message`, `read_receipt`,
    `pong`, `error`. Client -> server: `{"type": "ping"}`.
    Messages are sent via the REST API, not over this socket. After a
    reconnect, clients re-fetch history instead of expecting a replay.
    """
    if not token:
        await websocket.close(code=1008, reason="Token required")
        return

    user_id = get_token_subject(token)
    if not user_id:
        await websocket.close(code=1008, reason="Invalid token")
        return

    if partner_id == user_id:
        await websocket.close(code=1008, reason="Invalid conversation")
        return

    await websocket.accept()

    loop = asyncio.get_running_loop()
    outbox: "asyncio.Queue[dict]" = asyncio.Queue()

    # Hub callbacks run on the publishing thread; hop onto this loop.
    def on_message(message: MessageResponse) -> None:
        loop.call_soon_threadsafe(outbox.put_nowait, message_event(message))

    def on_read(reader_id: str, sender_id: str, read_count: int) -> None:
        loop.call_soon_threadsafe(outbox.put_nowait, read_receipt_event(reader_id, sender_id, read_count))

    unsubscribe = realtime_hub.subscribe(user_id, partner_id, on_message, on_read)
    pump = asyncio.create_task(_pump(websocket, outbox))
    logger.info(f"[WS] {user_id} connected (partner={partner_id or '*'})")

    # Send connection confirmation
    outbox.put_nowait({
        "type": "connection",
        "message": "Connected to chat",
        "user_id": user_id,
        "partner_id": partner_id,
    })
    listener = asyncio.create_task(_listen(websocket, outbox))

    try:
        # Whichever side stops first ends the connection
        await asyncio.wait({pump, listener}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        unsubscribe()
        for task in (pump, listener):
            task.cancel()
        for task in (pump, listener):
            try:
                await task
            except asyncio.CancelledError:
                pass
            except WebSocketDisconnect:
                logger.info(f"[WS] {user_id} disconnected")
            except Exception as e:
                logger.warning(f"[WS] {user_id} connection failed: {e}")
