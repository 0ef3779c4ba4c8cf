"""
perfboard.services.employee_service — Employee CRUD & Leaderboard
==================================================================

Admin mutations on employee profile fields.  The ``points`` column is
never written here; it belongs to :mod:`perfboard.services.ledger_service`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from perfboard.database.models import Achievement, Employee, EmployeeAchievement
from perfboard.errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def require_text(value: object, field_name: str) -> str:
    """Return *value* stripped, or raise if it isn't a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name.capitalize()} is required and must be a non-empty string"
        )
    return value.strip()


def rank_for_points(session: Session, points: int) -> int:
    """Competition rank (1 = top) of a total among all employees."""
    ahead = session.scalar(
        select(func.count()).select_from(Employee).where(Employee.points > points)
    ) or 0
    return ahead + 1


def _detach(session: Session, obj):
    session.refresh(obj)
    session.expunge(obj)
    return obj


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_employee(engine: Engine, employee_id: int) -> Employee:
    try:
        with Session(engine) as session:
            employee = session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("Employee not found")
            session.expunge(employee)
            return employee
    except SQLAlchemyError as exc:
        logger.exception("Failed to read employee %d", employee_id)
        raise StorageError("Failed to fetch employee") from exc


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    rank: int
    employee: Employee


def get_leaderboard(engine: Engine) -> list[LeaderboardRow]:
    """All employees by points descending, ties sharing a rank."""
    try:
        with Session(engine) as session:
            employees = session.scalars(
                select(Employee).order_by(Employee.points.desc(), Employee.id)
            ).all()
            for emp in employees:
                session.expunge(emp)
    except SQLAlchemyError as exc:
        logger.exception("Failed to read leaderboard")
        raise StorageError("Failed to fetch leaderboard") from exc

    rows: list[LeaderboardRow] = []
    prev_points: int | None = None
    rank = 0
    for position, emp in enumerate(employees, start=1):
        if emp.points != prev_points:
            rank = position
            prev_points = emp.points
        rows.append(LeaderboardRow(rank=rank, employee=emp))
    return rows


@dataclass(frozen=True, slots=True)
class AchievementStatus:
    achievement: Achievement
    earned_at: datetime | None


def get_achievement_status(engine: Engine, employee_id: int) -> list[AchievementStatus]:
    """The full catalogue annotated with when *employee_id* earned each entry."""
    try:
        with Session(engine) as session:
            if session.get(Employee, employee_id) is None:
                raise NotFoundError("Employee not found")
            catalog = session.scalars(
                select(Achievement).order_by(Achievement.points_required, Achievement.id)
            ).all()
            earned = dict(session.execute(
                select(EmployeeAchievement.achievement_id, EmployeeAchievement.earned_at)
                .where(EmployeeAchievement.employee_id == employee_id)
            ).all())
            for a in catalog:
                session.expunge(a)
    except SQLAlchemyError as exc:
        logger.exception("Failed to read achievements for employee %d", employee_id)
        raise StorageError("Failed to fetch achievements") from exc
    return [AchievementStatus(a, earned.get(a.id)) for a in catalog]


def list_achievements(engine: Engine) -> list[Achievement]:
    try:
        with Session(engine) as session:
            catalog = session.scalars(
                select(Achievement).order_by(Achievement.points_required, Achievement.id)
            ).all()
            for a in catalog:
                session.expunge(a)
            return list(catalog)
    except SQLAlchemyError as exc:
        logger.exception("Failed to read achievement catalogue")
        raise StorageError("Failed to fetch achievements") from exc


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def create_employee(
    engine: Engine,
    *,
    name: str,
    title: str,
    department: str,
    image_url: str | None = None,
    is_admin: bool = False,
) -> Employee:
    """Create an employee with zero points."""
    row = Employee(
        name=require_text(name, "name"),
        title=require_text(title, "title"),
        department=require_text(department, "department"),
        image_url=image_url or None,
        is_admin=is_admin,
        points=0,
    )
    try:
        with Session(engine, expire_on_commit=False) as session:
            session.add(row)
            session.commit()
            logger.info("Employee created: %s (id=%d)", row.name, row.id)
            return _detach(session, row)
    except SQLAlchemyError as exc:
        logger.exception("Failed to create employee %r", name)
        raise StorageError("Failed to create employee") from exc


def update_employee(
    engine: Engine,
    employee_id: int,
    *,
    name: str | None = None,
    title: str | None = None,
    department: str | None = None,
    image_url: str | None = None,
) -> Employee:
    """Apply a partial profile update.

    Blank or missing text fields keep their current value.
    """
    changes = {
        key: value.strip()
        for key, value in (("name", name), ("title", title), ("department", department))
        if isinstance(value, str) and value.strip()
    }
    try:
        with Session(engine, expire_on_commit=False) as session:
            employee = session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("Employee not found")
            for key, value in changes.items():
                setattr(employee, key, value)
            if image_url is not None:
                employee.image_url = image_url or None
            session.commit()
            logger.info("Employee updated: id=%d fields=%s", employee_id,
                        sorted(changes) + (["image_url"] if image_url is not None else []))
            return _detach(session, employee)
    except SQLAlchemyError as exc:
        logger.exception("Failed to update employee %d", employee_id)
        raise StorageError("Failed to update employee") from exc


def delete_employee(engine: Engine, employee_id: int) -> Employee:
    """Delete an employee together with their history and earned badges."""
    try:
        with Session(engine, expire_on_commit=False) as session:
            employee = session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("Employee not found")
            session.delete(employee)
            session.commit()
            logger.info("Employee deleted: %s (id=%d)", employee.name, employee_id)
            return employee
    except SQLAlchemyError as exc:
        logger.exception("Failed to delete employee %d", employee_id)
        raise StorageError("Failed to delete employee") from exc
