"""
perfboard.services.ledger_service — Points Ledger
==================================================

The only writer of ``employees.points`` and ``points_history``.  Every
mutation follows the same pattern inside **one** transaction:

  1. Lock the rows involved (``SELECT … FOR UPDATE``)
  2. Re-read the employee's current total under that lock
  3. Apply the negative-balance guard (edit / delete only)
  4. Write the history change
  5. Apply the delta to the cached total (``points = points + :delta``,
     with the floor repeated in its WHERE clause for edit / delete)
  6. Commit

Any exception before step 6 rolls the whole thing back, so the cached
total and the history never disagree.

Awards deliberately skip the negative-balance guard; only edits and
deletes of existing grants are checked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from perfboard.database.models import Employee, PointsHistory
from perfboard.errors import (
    NegativeBalanceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from perfboard.services.employee_service import rank_for_points, require_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LedgerChange:
    """Outcome of a committed ledger mutation.

    ``history`` is the created / updated row, or the removed row for a
    delete.  ``employee`` is the post-commit snapshot.  Both are detached.
    ``delta`` is the signed change applied to the employee's total.
    """

    history: PointsHistory
    employee: Employee
    delta: int
    old_rank: int
    new_rank: int

    @property
    def rank_changed(self) -> bool:
        return self.old_rank != self.new_rank


# ---------------------------------------------------------------------------
# Validation (runs before any transaction)
# ---------------------------------------------------------------------------
def _require_points(points: object) -> int:
    if isinstance(points, bool) or not isinstance(points, int):
        raise ValidationError("Points must be an integer")
    return points


# ---------------------------------------------------------------------------
# Locked reads
# ---------------------------------------------------------------------------
def _lock_employee(session: Session, employee_id: int) -> Employee:
    employee = session.scalar(
        select(Employee)
        .where(Employee.id == employee_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


def _lock_history(session: Session, history_id: int) -> PointsHistory:
    entry = session.scalar(
        select(PointsHistory)
        .where(PointsHistory.id == history_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if entry is None:
        raise NotFoundError("Points history record not found")
    return entry


def _apply_delta(
    session: Session,
    employee: Employee,
    delta: int,
    *,
    floor_message: str | None = None,
) -> None:
    """Add *delta* to the cached total in SQL.

    With *floor_message* the zero floor is part of the UPDATE itself, so a
    total changed by a concurrent commit since it was read is still
    checked.  SQLite ignores ``FOR UPDATE``; this is what holds there.
    """
    stmt = update(Employee).where(Employee.id == employee.id)
    if floor_message is not None:
        stmt = stmt.where(Employee.points + delta >= 0)
    result = session.execute(
        stmt.values(points=Employee.points + delta)
        .execution_options(synchronize_session=False)
    )
    if floor_message is not None and result.rowcount == 0:
        raise NegativeBalanceError(floor_message)
    session.refresh(employee)


def _snapshot(session: Session, *objs) -> None:
    for obj in objs:
        session.refresh(obj)
        session.expunge(obj)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
def award(
    engine: Engine,
    *,
    employee_id: int,
    points: int,
    reason: str,
    actor: str,
) -> LedgerChange:
    """Grant *points* (may be negative) to an employee.

    Raises
    ------
    ValidationError
        Non-integer points, or blank reason / actor.
    NotFoundError
        Unknown employee.
    StorageError
        The transaction failed; nothing was written.
    """
    points = _require_points(points)
    reason = require_text(reason, "reason")
    actor = require_text(actor, "actor")

    try:
        with Session(engine, expire_on_commit=False) as session:
            employee = _lock_employee(session, employee_id)
            old_rank = rank_for_points(session, employee.points)

            entry = PointsHistory(
                employee_id=employee.id,
                points=points,
                reason=reason,
                awarded_by=actor,
            )
            session.add(entry)
            session.flush()
            _apply_delta(session, employee, points)
            new_rank = rank_for_points(session, employee.points)

            session.commit()
            _snapshot(session, entry, employee)
    except SQLAlchemyError as exc:
        logger.exception("Award of %d points to employee %d failed", points, employee_id)
        raise StorageError("Failed to award points") from exc

    logger.info(
        "Awarded %+d points to employee %d by %s (total=%d, rank %d→%d)",
        points, employee_id, actor, employee.points, old_rank, new_rank,
    )
    return LedgerChange(entry, employee, points, old_rank, new_rank)


def edit_history_entry(
    engine: Engine,
    history_id: int,
    *,
    points: int,
    reason: str,
) -> LedgerChange:
    """Replace a grant's points and reason, adjusting the total by the diff.

    Raises
    ------
    NegativeBalanceError
        ``employee.points + (new - old) < 0``; nothing is written.
    """
    points = _require_points(points)
    reason = require_text(reason, "reason")

    try:
        with Session(engine, expire_on_commit=False) as session:
            entry = _lock_history(session, history_id)
            employee = _lock_employee(session, entry.employee_id)

            diff = points - entry.points
            if employee.points + diff < 0:
                raise NegativeBalanceError(
                    "Cannot update points: would result in negative balance"
                )
            old_rank = rank_for_points(session, employee.points)

            entry.points = points
            entry.reason = reason
            session.flush()
            _apply_delta(
                session, employee, diff,
                floor_message="Cannot update points: would result in negative balance",
            )
            new_rank = rank_for_points(session, employee.points)

            session.commit()
            _snapshot(session, entry, employee)
    except SQLAlchemyError as exc:
        logger.exception("Edit of points history %d failed", history_id)
        raise StorageError("Failed to update points") from exc

    logger.info(
        "Edited points history %d (diff=%+d, employee %d total=%d)",
        history_id, diff, employee.id, employee.points,
    )
    return LedgerChange(entry, employee, diff, old_rank, new_rank)


def delete_history_entry(engine: Engine, history_id: int) -> LedgerChange:
    """Remove a grant and subtract its points from the total.

    Raises
    ------
    NegativeBalanceError
        ``employee.points < entry.points``; nothing is written.
    """
    try:
        with Session(engine, expire_on_commit=False) as session:
            entry = _lock_history(session, history_id)
            employee = _lock_employee(session, entry.employee_id)

            if employee.points < entry.points:
                raise NegativeBalanceError(
                    "Cannot delete points: would result in negative balance"
                )
            old_rank = rank_for_points(session, employee.points)

            _apply_delta(
                session, employee, -entry.points,
                floor_message="Cannot delete points: would result in negative balance",
            )
            session.delete(entry)
            session.flush()
            new_rank = rank_for_points(session, employee.points)

            session.commit()
            session.refresh(employee)
            session.expunge(employee)
    except SQLAlchemyError as exc:
        logger.exception("Delete of points history %d failed", history_id)
        raise StorageError("Failed to delete points history") from exc

    logger.info(
        "Deleted points history %d (%+d points, employee %d total=%d)",
        history_id, entry.points, employee.id, employee.points,
    )
    return LedgerChange(entry, employee, -entry.points, old_rank, new_rank)


def get_history(engine: Engine, employee_id: int) -> list[PointsHistory]:
    """All grants for an employee, newest first."""
    try:
        with Session(engine) as session:
            if session.get(Employee, employee_id) is None:
                raise NotFoundError("Employee not found")
            rows = session.scalars(
                select(PointsHistory)
                .where(PointsHistory.employee_id == employee_id)
                .order_by(PointsHistory.created_at.desc(), PointsHistory.id.desc())
            ).all()
            for row in rows:
                session.expunge(row)
            return list(rows)
    except SQLAlchemyError as exc:
        logger.exception("Reading points history for employee %d failed", employee_id)
        raise StorageError("Failed to fetch points history") from exc
