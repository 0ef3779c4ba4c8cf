"""
perfboard.api.routes.realtime — ``/ws`` notification channel
=============================================================

Unauthenticated and broadcast-only.  The only message a client may send
is a ``PING`` text frame; anything else, binary frames included, is
answered with an ``ERROR`` event.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from perfboard.api.deps import get_broadcaster
from perfboard.engine import events
from perfboard.engine.events import EventType, parse_event
from perfboard.realtime.broadcaster import Broadcaster

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


def _reply_for(raw: str) -> events.NotificationEvent:
    try:
        event = parse_event(raw)
    except json.JSONDecodeError:
        return events.error("Invalid JSON message")
    except ValueError:
        return events.error("Unknown message type")
    if event.type is EventType.PING:
        return events.pong()
    return events.error(f"Unsupported message type: {event.type}")


@router.websocket("/ws")
async def notifications(
    websocket: WebSocket,
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    conn_id = await broadcaster.connect(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                reply = events.error("Binary messages are not supported")
            else:
                reply = _reply_for(text)
            await websocket.send_text(reply.to_json())
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(conn_id)
