"""
perfboard.realtime.broadcaster — WebSocket Connection Registry & Fan-out
=========================================================================

Owns the set of open notification sockets for this process.  All access
happens on the event loop; the ``asyncio.Lock`` keeps registration and
snapshotting from interleaving across ``await`` points.

Delivery is best-effort: no replay, no backlog.  A socket that is closing
or raises on send is dropped from the registry and the failure is logged,
never propagated to the caller that triggered the broadcast.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from perfboard.engine.events import NotificationEvent, connection_established

logger = logging.getLogger(__name__)


def _is_ready(ws: WebSocket) -> bool:
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class Broadcaster:
    """Registry of open connections keyed by a per-connection id.

    Usage::

        broadcaster = Broadcaster()
        conn_id = await broadcaster.connect(websocket)
        ...
        await broadcaster.broadcast(events.points_awarded(1, 50, "bugfix"))
        ...
        await broadcaster.disconnect(conn_id)
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> str:
        """Accept *ws*, send the handshake event, and register it."""
        await ws.accept()
        conn_id = uuid.uuid4().hex
        await ws.send_text(connection_established().to_json())
        async with self._lock:
            self._connections[conn_id] = ws
        client = f"{ws.client.host}:{ws.client.port}" if ws.client else "unknown"
        logger.info("WebSocket client connected from %s (id=%s, open=%d)",
                    client, conn_id, len(self._connections))
        return conn_id

    async def disconnect(self, conn_id: str) -> None:
        async with self._lock:
            removed = self._connections.pop(conn_id, None)
        if removed is not None:
            logger.info("WebSocket client disconnected (id=%s, open=%d)",
                        conn_id, len(self._connections))

    async def broadcast(self, event: NotificationEvent) -> int:
        """Send *event* to every ready connection.  Returns the delivery count."""
        payload = event.to_json()
        async with self._lock:
            snapshot = list(self._connections.items())

        delivered = 0
        stale: list[str] = []
        for conn_id, ws in snapshot:
            if not _is_ready(ws):
                stale.append(conn_id)
                continue
            try:
                await ws.send_text(payload)
            except (WebSocketDisconnect, RuntimeError, OSError):
                logger.debug("Dropping connection %s after failed send", conn_id,
                             exc_info=True)
                stale.append(conn_id)
                continue
            delivered += 1

        if stale:
            async with self._lock:
                for conn_id in stale:
                    self._connections.pop(conn_id, None)

        logger.debug("Broadcast %s to %d/%d clients",
                     event.type, delivered, len(snapshot))
        return delivered

    async def broadcast_all(self, events: list[NotificationEvent]) -> None:
        """Broadcast several events in order, swallowing any failure."""
        for event in events:
            try:
                await self.broadcast(event)
            except Exception:
                logger.exception("Broadcast of %s failed", event.type)
