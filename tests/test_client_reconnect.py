"""
tests/test_client_reconnect.py — Notification Client Reconnect Tests
=====================================================================

The client's ``connect`` and ``sleep`` are swapped for fakes, so the
backoff schedule is observed as a list of requested delays instead of
real waiting.
"""

from __future__ import annotations

import asyncio
import inspect

import pytest

from conftest import run_async
from perfboard.engine import events
from perfboard.realtime.client import ConnectionState, NotificationClient, backoff_delay


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
class FakeConnection:
    """One scripted connection: refuse, or stream *messages* then drop."""

    def __init__(self, messages=(), *, fail: bool = False, on_drained=None) -> None:
        self.messages = list(messages)
        self.fail = fail
        self.on_drained = on_drained
        self.sent: list[str] = []
        self.closed = False

    async def __aenter__(self):
        if self.fail:
            raise ConnectionRefusedError("connection refused")
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    def __aiter__(self):
        return self._stream()

    async def _stream(self):
        for message in self.messages:
            yield message
        if self.on_drained is not None:
            result = self.on_drained()
            if inspect.isawaitable(result):
                await result

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Hands out scripted connections; refuses once the script runs out."""

    def __init__(self, script=()) -> None:
        self.script = list(script)
        self.urls: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.urls)

    def __call__(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.script:
            return self.script.pop(0)
        return FakeConnection(fail=True)


class RecordedSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _client(connector, sleep, **kwargs) -> NotificationClient:
    kwargs.setdefault("base_delay", 1.0)
    kwargs.setdefault("max_delay", 10.0)
    kwargs.setdefault("max_attempts", 5)
    return NotificationClient("ws://test/ws", connect=connector, sleep=sleep, **kwargs)


async def _settle() -> None:
    for _ in range(20):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Backoff schedule
# ---------------------------------------------------------------------------
class TestBackoffDelay:
    @pytest.mark.parametrize(
        "attempt, expected", [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0), (4, 10.0), (9, 10.0)]
    )
    def test_doubles_then_caps(self, attempt, expected):
        assert backoff_delay(attempt, 1.0, 10.0) == expected


class TestReconnect:
    def test_gives_up_after_max_attempts(self):
        connector, sleep = FakeConnector(), RecordedSleep()
        client = _client(connector, sleep)

        run_async(client.run())

        assert sleep.delays == [1.0, 2.0, 4.0, 8.0, 10.0]
        assert connector.calls == 6  # first try + five retries
        assert client.state is ConnectionState.DISCONNECTED

    def test_abrupt_drop_then_backoff_never_shrinks(self):
        connector = FakeConnector([FakeConnection(on_drained=_raise_reset)])
        sleep = RecordedSleep()
        client = _client(connector, sleep, max_attempts=4)

        run_async(client.run())

        assert sleep.delays == sorted(sleep.delays)
        assert len(sleep.delays) == 4
        assert all(d <= 10.0 for d in sleep.delays)

    def test_successful_connect_resets_retries(self):
        connector = FakeConnector([
            FakeConnection(fail=True),
            FakeConnection(fail=True),
            FakeConnection(),          # opens, then drops
        ])
        sleep = RecordedSleep()
        client = _client(connector, sleep, max_attempts=2)

        run_async(client.run())

        assert sleep.delays == [1.0, 2.0, 1.0, 2.0]
        assert connector.calls == 5

    def test_hidden_defers_reconnect_until_visible(self):
        async def _inner():
            connector, sleep = FakeConnector(), RecordedSleep()
            client = _client(connector, sleep)
            connector.script = [
                FakeConnection(on_drained=lambda: client.set_visible(False)),
                FakeConnection(on_drained=client.close),
            ]

            task = asyncio.create_task(client.run())
            await _settle()
            assert connector.calls == 1
            assert client.state is ConnectionState.DISCONNECTED
            assert sleep.delays == []
            assert not task.done()

            client.set_visible(True)
            await asyncio.wait_for(task, timeout=1)
            assert connector.calls == 2
            assert sleep.delays == []

        run_async(_inner())

    def test_close_stops_the_loop(self):
        async def _inner():
            connector, sleep = FakeConnector(), RecordedSleep()
            client = _client(connector, sleep)
            connector.script = [FakeConnection(on_drained=client.close)]
            await asyncio.wait_for(client.run(), timeout=1)
            assert connector.calls == 1
            assert sleep.delays == []

        run_async(_inner())


async def _raise_reset() -> None:
    raise ConnectionResetError("peer reset")


# ---------------------------------------------------------------------------
# Dispatch & send
# ---------------------------------------------------------------------------
class TestDispatch:
    def test_latest_handler_wins_and_malformed_is_skipped(self):
        async def _inner():
            connector, sleep = FakeConnector(), RecordedSleep()
            client = _client(connector, sleep)
            first, second = [], []
            client.on_event(first.append)
            client.on_event(second.append)
            connector.script = [FakeConnection(
                [
                    events.connection_established().to_json(),
                    "not json",
                    '{"type": "NOPE"}',
                    events.points_awarded(2, 25, "Laptop rollout").to_json(),
                ],
                on_drained=client.close,
            )]

            await asyncio.wait_for(client.run(), timeout=1)

            assert first == []
            assert [e.type for e in second] == ["CONNECTION_ESTABLISHED", "POINTS_AWARDED"]
            assert second[1].payload["points"] == 25

        run_async(_inner())

    def test_async_handler_failure_does_not_drop_connection(self):
        async def _inner():
            connector, sleep = FakeConnector(), RecordedSleep()
            client = _client(connector, sleep)
            seen = []

            async def handler(event):
                seen.append(event.type)
                raise RuntimeError("boom")

            client.on_event(handler)
            connector.script = [FakeConnection(
                [events.pong().to_json(), events.pong().to_json()],
                on_drained=client.close,
            )]
            await asyncio.wait_for(client.run(), timeout=1)
            assert seen == ["PONG", "PONG"]

        run_async(_inner())


class TestSend:
    def test_send_dropped_unless_open(self):
        async def _inner():
            client = _client(FakeConnector(), RecordedSleep())
            assert client.state is ConnectionState.DISCONNECTED
            assert await client.send({"type": "PING"}) is False

        run_async(_inner())

    def test_send_while_open(self):
        async def _inner():
            connector, sleep = FakeConnector(), RecordedSleep()
            client = _client(connector, sleep)
            conn = FakeConnection()
            results = []

            async def ping_then_close():
                results.append(await client.ping())
                await client.close()

            conn.on_drained = ping_then_close
            connector.script = [conn]
            await asyncio.wait_for(client.run(), timeout=1)

            assert results == [True]
            assert conn.sent == ['{"type": "PING"}']
            assert conn.closed

        run_async(_inner())


# ---------------------------------------------------------------------------
# Terminal notifications
# ---------------------------------------------------------------------------
class TestToastText:
    def test_known_events_render(self):
        from perfboard.realtime.__main__ import render

        assert render(events.points_awarded(3, 50, "Fixed VPN")) == (
            'Points Awarded! Employee 3 earned 50 points for "Fixed VPN"'
        )
        assert render(events.achievement_unlocked(3, "Rising Star")).startswith(
            "Achievement Unlocked!"
        )
        assert render(events.rank_changed(3, 2)) == "Rank Updated! Employee 3 is now rank #2"

    def test_housekeeping_events_are_silent(self):
        from perfboard.realtime.__main__ import render

        assert render(events.pong()) is None
        assert render(events.connection_established()) is None
