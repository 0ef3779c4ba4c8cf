"""
perfboard.realtime.__main__ — Entry point for ``python -m perfboard.realtime``
==============================================================================

A terminal subscriber to the notification channel.  Each event is logged
as a one-line toast:

    Points Awarded!        Employee 3 earned 50 points for "Fixed VPN"
    Achievement Unlocked!  Employee 3 unlocked "Rising Star"
    Rank Updated!          Employee 3 is now rank #2

Run with::

    uv run python -m perfboard.realtime --url ws://localhost:8000/ws
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from perfboard.config import PerfboardConfig, load_config
from perfboard.engine.events import EventType, NotificationEvent
from perfboard.realtime.client import NotificationClient

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("perfboard")


def render(event: NotificationEvent) -> str | None:
    """Toast text for *event*, or ``None`` for events nobody needs to see."""
    p = event.payload
    if event.type is EventType.POINTS_AWARDED:
        return (
            f"Points Awarded! Employee {p.get('employeeId')} earned "
            f"{p.get('points')} points for \"{p.get('reason')}\""
        )
    if event.type is EventType.ACHIEVEMENT_UNLOCKED:
        return (
            f"Achievement Unlocked! Employee {p.get('employeeId')} unlocked "
            f"\"{p.get('achievementName')}\""
        )
    if event.type is EventType.RANK_CHANGED:
        return f"Rank Updated! Employee {p.get('employeeId')} is now rank #{p.get('newRank')}"
    if event.type is EventType.ERROR:
        return f"Server error: {p.get('message')}"
    return None


def _toast(event: NotificationEvent) -> None:
    text = render(event)
    if text:
        logger.info(text)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m perfboard.realtime",
        description="Print live leaderboard notifications",
    )
    parser.add_argument("--url", help="WebSocket URL (defaults to ws_url in config.yaml)")
    parser.add_argument("--config", help="Path to config.yaml")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = _parse_args(argv)

    try:
        cfg = load_config(args.config)
    except FileNotFoundError:
        logger.warning("No config file found; using built-in reconnect defaults")
        cfg = PerfboardConfig(app_name="perfboard", dashboard_port=8000)

    client = NotificationClient(
        args.url or cfg.ws_url,
        base_delay=cfg.reconnect_base_delay,
        max_delay=cfg.reconnect_max_delay,
        max_attempts=cfg.reconnect_max_attempts,
    )
    client.on_event(_toast)

    logger.info("Listening on %s…", client.url)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
