"""
perfboard.realtime.client — Reconnecting Notification Client
=============================================================

Subscribes to the ``/ws`` channel and hands each decoded event to a single
handler.  After an unexpected close it reconnects with capped exponential
backoff (``base * 2**attempt``, clamped to ``max_delay``) and gives up once
``max_attempts`` consecutive retries have failed.  A successful connect
resets the retry count.

While the client is marked hidden (``set_visible(False)``) no reconnect is
scheduled; the next attempt happens as soon as visibility returns and does
not count as a retry.

Usage::

    client = NotificationClient("ws://localhost:8000/ws")
    client.on_event(lambda event: print(event.type, event.payload))
    await client.run()
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from perfboard.engine.events import EventType, NotificationEvent, parse_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[NotificationEvent], Awaitable[None] | None]


class ConnectionState(enum.StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before retry number *attempt* (0-based)."""
    return min(cap, base * (2 ** attempt))


class NotificationClient:
    """Long-lived subscriber to the server's notification channel.

    ``connect`` and ``sleep`` are injectable so the reconnect schedule can be
    driven without a network or a real clock.
    """

    def __init__(
        self,
        url: str,
        *,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 5,
        connect: Callable[[str], Any] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.url = url
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self._connect = connect or ws_connect
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._retries = 0
        self._handler: EventHandler | None = None
        self._ws = None
        self._closing = False
        self._visible = asyncio.Event()
        self._visible.set()

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def visible(self) -> bool:
        return self._visible.is_set()

    def on_event(self, handler: EventHandler) -> None:
        """Register the event handler; a later registration replaces it."""
        self._handler = handler

    def set_visible(self, visible: bool) -> None:
        if visible:
            self._visible.set()
        else:
            self._visible.clear()

    async def send(self, message: NotificationEvent | dict[str, Any]) -> bool:
        """Send *message* if the connection is open.  Returns ``False`` if dropped."""
        ws = self._ws
        if ws is None or self._state is not ConnectionState.OPEN:
            logger.debug("Dropping outbound message; connection is %s", self._state)
            return False
        if isinstance(message, NotificationEvent):
            data = message.to_json()
        else:
            data = json.dumps(message)
        try:
            await ws.send(data)
        except (WebSocketException, OSError):
            logger.debug("Outbound send failed", exc_info=True)
            return False
        return True

    async def ping(self) -> bool:
        return await self.send(NotificationEvent(EventType.PING))

    async def close(self) -> None:
        """Stop reconnecting and close the current connection, if any."""
        self._closing = True
        # Release a run() parked on visibility.
        self._visible.set()
        ws = self._ws
        if ws is not None:
            await ws.close()

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------
    async def run(self) -> None:
        """Connect and dispatch events until closed or retries run out."""
        while not self._closing:
            await self._visible.wait()
            if self._closing:
                break

            self._state = ConnectionState.CONNECTING
            try:
                async with self._connect(self.url) as ws:
                    self._ws = ws
                    self._state = ConnectionState.OPEN
                    self._retries = 0
                    logger.info("Connected to %s", self.url)
                    await self._read_loop(ws)
            except ConnectionClosed as exc:
                logger.warning("Connection to %s closed: %s", self.url, exc)
            except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
                logger.warning("Connection to %s failed: %s", self.url, exc)
            finally:
                self._ws = None
                self._state = ConnectionState.DISCONNECTED

            if self._closing:
                break
            if not self._visible.is_set():
                logger.info("Hidden; reconnect deferred until visible")
                continue
            if self._retries >= self.max_attempts:
                logger.error(
                    "Giving up on %s after %d reconnect attempts",
                    self.url, self._retries,
                )
                break

            delay = backoff_delay(self._retries, self.base_delay, self.max_delay)
            self._retries += 1
            logger.info(
                "Reconnecting in %.1fs (attempt %d/%d)",
                delay, self._retries, self.max_attempts,
            )
            await self._sleep(delay)

        logger.info("Notification client stopped")

    async def _read_loop(self, ws) -> None:
        async for raw in ws:
            try:
                event = parse_event(raw)
            except ValueError:
                logger.warning("Ignoring malformed message: %.200r", raw)
                continue
            await self._dispatch(event)

    async def _dispatch(self, event: NotificationEvent) -> None:
        handler = self._handler
        if handler is None:
            return
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Event handler failed for %s", event.type)
