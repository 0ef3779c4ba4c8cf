"""
perfboard.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- employees             — Leaderboard members with a cached point total
- points_history        — Signed point grants (the ledger)
- achievements          — Static threshold catalogue
- employee_achievements — Earned badges, one row per (employee, achievement)

``employees.points`` is a materialised aggregate: it must always equal
``SUM(points_history.points)`` for that employee.  Only
:mod:`perfboard.services.ledger_service` writes either side.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all perfboard ORM models."""


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------
class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    history: Mapped[list[PointsHistory]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )
    achievements: Mapped[list[EmployeeAchievement]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_employees_points_desc", "points"),
    )

    def __repr__(self) -> str:
        return f"<Employee id={self.id} name={self.name!r} points={self.points}>"


# ---------------------------------------------------------------------------
# PointsHistory — the ledger
# ---------------------------------------------------------------------------
class PointsHistory(Base):
    """One signed point grant.

    Created by an award, amended or removed only through the ledger
    service's edit / delete operations.
    """
    __tablename__ = "points_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    awarded_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    employee: Mapped[Employee] = relationship(back_populates="history")

    __table_args__ = (
        Index("ix_points_history_employee_time", "employee_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointsHistory id={self.id} employee={self.employee_id} "
            f"points={self.points}>"
        )


# ---------------------------------------------------------------------------
# Achievements — static catalogue
# ---------------------------------------------------------------------------
class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    points_required: Mapped[int] = mapped_column(Integer, nullable=False)
    badge_image_url: Mapped[str | None] = mapped_column(String(500), default=None)

    earned_by: Mapped[list[EmployeeAchievement]] = relationship(
        back_populates="achievement", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_achievements_points_required", "points_required"),
    )

    def __repr__(self) -> str:
        return (
            f"<Achievement id={self.id} name={self.name!r} "
            f"required={self.points_required}>"
        )


# ---------------------------------------------------------------------------
# EmployeeAchievement — earned badges
# ---------------------------------------------------------------------------
class EmployeeAchievement(Base):
    """Composite primary key backs the one-award-per-pair rule."""
    __tablename__ = "employee_achievements"

    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), primary_key=True
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    employee: Mapped[Employee] = relationship(back_populates="achievements")
    achievement: Mapped[Achievement] = relationship(back_populates="earned_by")

    def __repr__(self) -> str:
        return (
            f"<EmployeeAchievement employee={self.employee_id} "
            f"achievement={self.achievement_id}>"
        )
