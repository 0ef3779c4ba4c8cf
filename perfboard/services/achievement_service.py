"""
perfboard.services.achievement_service — Achievement Evaluation
================================================================

Runs after a successful award: loads the employee's current total, finds
every catalogue entry at or below it that the employee doesn't hold yet,
and records the new ones.

The existence check alone cannot stop two concurrent evaluations from
both inserting the same pair, so each insert runs in a SAVEPOINT and the
``employee_achievements`` composite primary key decides the winner.  The
loser's ``IntegrityError`` is swallowed and that achievement is not
reported as newly unlocked.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from perfboard.database.models import Achievement, Employee, EmployeeAchievement
from perfboard.engine.achievements import newly_unlocked
from perfboard.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)


def get_earned_achievement_ids(session: Session, employee_id: int) -> set[int]:
    """Achievement IDs the employee has already earned."""
    rows = session.scalars(
        select(EmployeeAchievement.achievement_id).where(
            EmployeeAchievement.employee_id == employee_id
        )
    ).all()
    return set(rows)


def evaluate(engine: Engine, employee_id: int) -> list[Achievement]:
    """Record and return achievements newly unlocked by *employee_id*.

    Idempotent: a second call with no intervening award returns ``[]``
    and writes nothing.

    Raises
    ------
    NotFoundError
        Unknown employee.
    StorageError
        The database failed; nothing from this call was committed.
    """
    try:
        with Session(engine, expire_on_commit=False) as session:
            employee = session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("Employee not found")

            reachable = session.scalars(
                select(Achievement).where(Achievement.points_required <= employee.points)
            ).all()
            earned = get_earned_achievement_ids(session, employee_id)

            unlocked: list[Achievement] = []
            for achievement in newly_unlocked(employee.points, reachable, earned):
                try:
                    with session.begin_nested():   # SAVEPOINT
                        session.add(EmployeeAchievement(
                            employee_id=employee_id,
                            achievement_id=achievement.id,
                        ))
                except IntegrityError:
                    # A concurrent evaluation recorded this pair first.
                    logger.info(
                        "Achievement %d already recorded for employee %d",
                        achievement.id, employee_id,
                    )
                    continue
                unlocked.append(achievement)

            session.commit()
            for achievement in unlocked:
                session.expunge(achievement)
    except SQLAlchemyError as exc:
        logger.exception("Achievement evaluation for employee %d failed", employee_id)
        raise StorageError("Failed to evaluate achievements") from exc

    for achievement in unlocked:
        logger.info(
            "Achievement unlocked: %s (id=%d) for employee %d",
            achievement.name, achievement.id, employee_id,
        )
    return unlocked
