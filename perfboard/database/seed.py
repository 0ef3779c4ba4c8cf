"""
perfboard.database.seed — Default Achievement Catalogue
========================================================

Baseline achievements seeded on first startup so the leaderboard has
something to unlock out of the box.

Idempotent — only inserts names that don't already exist.  Catalogue
rows edited directly in the database are never overwritten.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select

from perfboard.database.engine import get_session
from perfboard.database.models import Achievement

logger = logging.getLogger(__name__)


# name → (points_required, description)
DEFAULT_ACHIEVEMENTS: dict[str, tuple[int, str]] = {
    "First Steps": (10, "Earned your first 10 points"),
    "Rising Star": (100, "Reached 100 points"),
    "Problem Solver": (250, "Reached 250 points"),
    "High Achiever": (500, "Reached 500 points"),
    "IT Legend": (1000, "Reached 1,000 points"),
}


def seed_default_achievements(engine: Engine) -> int:
    """Insert any missing default achievements.  Returns the number inserted."""
    with get_session(engine) as session:
        existing = set(session.scalars(select(Achievement.name)).all())
        inserted = 0
        for name, (required, description) in DEFAULT_ACHIEVEMENTS.items():
            if name in existing:
                continue
            session.add(Achievement(
                name=name,
                description=description,
                points_required=required,
            ))
            inserted += 1

    if inserted:
        logger.info("Seeded %d default achievements", inserted)
    return inserted
