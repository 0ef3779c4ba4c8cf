"""
perfboard.engine.achievements — Threshold Achievement Check
============================================================

Pure calculation — no database I/O, no network I/O.  The persistence side
lives in :mod:`perfboard.services.achievement_service`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

logger = logging.getLogger(__name__)


class ThresholdAchievement(Protocol):
    id: int
    name: str
    points_required: int


def qualifies(total_points: int, achievement: ThresholdAchievement) -> bool:
    """True when *total_points* meets the achievement's threshold."""
    return achievement.points_required <= total_points


def newly_unlocked(
    total_points: int,
    catalog: Iterable[ThresholdAchievement],
    already_earned: set[int],
) -> list[ThresholdAchievement]:
    """Return the catalogue entries the employee qualifies for but lacks.

    Parameters
    ----------
    total_points : The employee's current cached total.
    catalog : Achievements to consider (may include ones out of reach).
    already_earned : Achievement IDs the employee already holds.

    Returns
    -------
    Achievements ordered by ascending threshold, so unlock notifications
    go out lowest tier first.
    """
    unlocked = [
        a for a in catalog
        if a.id not in already_earned and qualifies(total_points, a)
    ]
    unlocked.sort(key=lambda a: (a.points_required, a.id))
    for a in unlocked:
        logger.debug("Achievement qualifies: %s (id=%d) at %d points",
                     a.name, a.id, total_points)
    return unlocked
