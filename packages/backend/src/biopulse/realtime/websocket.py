"""WebSocket endpoint — live biomarker updates for the dashboard.

Learn: Each client connects to /ws and then drives its own
subscriptions by sending frames:

  {"event": "start_live_updates", "data": "<patient id>"}
  {"event": "stop_live_updates",  "data": "<patient id>"}
  {"event": "ping"}

One socket can watch several patients at once. Bad frames (binary,
not JSON, unknown event) get an {"event": "error"} reply and the socket
stays open. When the socket closes, gateway.disconnect() fires the
broadcaster's disconnect hook, which drops every subscription the
socket still held.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from biopulse.api.deps import get_broadcaster, get_gateway
from biopulse.realtime.broadcaster import LiveUpdateBroadcaster
from biopulse.realtime.events import (
    ERROR,
    PING,
    PONG,
    START_LIVE_UPDATES,
    STOP_LIVE_UPDATES,
)
from biopulse.realtime.gateway import ConnectionGateway

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def live_updates_websocket(
    websocket: WebSocket,
    gateway: ConnectionGateway = Depends(get_gateway),
    broadcaster: LiveUpdateBroadcaster = Depends(get_broadcaster),
):
    """Long-lived connection; one per dashboard tab."""
    await websocket.accept()
    connection_id = gateway.connect(websocket)
    logger.info("biopulse.ws.connected", connection_id=connection_id)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            raw = message.get("text")
            if raw is None:
                await _send_error(websocket, "Frames must be text")
                continue
            await _handle_frame(websocket, connection_id, raw, broadcaster)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(connection_id)
        logger.info("biopulse.ws.disconnected", connection_id=connection_id)


async def _handle_frame(
    websocket: WebSocket,
    connection_id: str,
    raw: str,
    broadcaster: LiveUpdateBroadcaster,
) -> None:
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        await _send_error(websocket, "Invalid JSON")
        return
    if not isinstance(frame, dict):
        await _send_error(websocket, "Frame must be a JSON object")
        return

    event = frame.get("event")
    data = frame.get("data")

    if event == PING:
        await websocket.send_json({"event": PONG, "data": data})
        return

    if event in (START_LIVE_UPDATES, STOP_LIVE_UPDATES):
        if not isinstance(data, str) or not data:
            await _send_error(websocket, f"{event} requires a patient id")
            return
        if event == START_LIVE_UPDATES:
            broadcaster.subscribe(connection_id, data)
        else:
            broadcaster.unsubscribe(connection_id, data)
        return

    await _send_error(websocket, f"Unknown event: {event}")


async def _send_error(websocket: WebSocket, message: Any) -> None:
    await websocket.send_json({"event": ERROR, "data": {"message": message}})
