"""
perfboard.engine.events — Broadcast Event Envelopes
====================================================

Every message on the notification channel is a JSON object tagged with a
``type`` field.  Payload keys are camelCase because browsers consume them
directly.

Server → client:
    POINTS_AWARDED, ACHIEVEMENT_UNLOCKED, RANK_CHANGED,
    CONNECTION_ESTABLISHED, PONG, ERROR
Client → server:
    PING
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "EventType",
    "NotificationEvent",
    "points_awarded",
    "achievement_unlocked",
    "rank_changed",
    "connection_established",
    "pong",
    "error",
    "parse_event",
]


class EventType(enum.StrEnum):
    POINTS_AWARDED = "POINTS_AWARDED"
    ACHIEVEMENT_UNLOCKED = "ACHIEVEMENT_UNLOCKED"
    RANK_CHANGED = "RANK_CHANGED"
    PING = "PING"
    PONG = "PONG"
    CONNECTION_ESTABLISHED = "CONNECTION_ESTABLISHED"
    ERROR = "ERROR"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    """A tagged event.  ``payload`` keys are merged next to ``type`` on the wire."""

    type: EventType
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, **self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------
def points_awarded(employee_id: int, points: int, reason: str) -> NotificationEvent:
    return NotificationEvent(
        EventType.POINTS_AWARDED,
        {"employeeId": employee_id, "points": points, "reason": reason},
    )


def achievement_unlocked(employee_id: int, achievement_name: str) -> NotificationEvent:
    return NotificationEvent(
        EventType.ACHIEVEMENT_UNLOCKED,
        {"employeeId": employee_id, "achievementName": achievement_name},
    )


def rank_changed(employee_id: int, new_rank: int) -> NotificationEvent:
    return NotificationEvent(
        EventType.RANK_CHANGED,
        {"employeeId": employee_id, "newRank": new_rank},
    )


def connection_established() -> NotificationEvent:
    return NotificationEvent(EventType.CONNECTION_ESTABLISHED, {"timestamp": _now_iso()})


def pong() -> NotificationEvent:
    return NotificationEvent(EventType.PONG, {"timestamp": _now_iso()})


def error(message: str) -> NotificationEvent:
    return NotificationEvent(EventType.ERROR, {"message": message})


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------
def parse_event(raw: str | bytes) -> NotificationEvent:
    """Decode a wire message.

    Raises
    ------
    ValueError
        If *raw* is not a JSON object or carries an unknown ``type``.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Event must be a JSON object")
    tag = data.pop("type", None)
    try:
        event_type = EventType(tag)
    except ValueError:
        raise ValueError(f"Unknown event type: {tag!r}") from None
    return NotificationEvent(event_type, data)
