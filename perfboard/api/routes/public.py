"""
perfboard.api.routes.public — Read-only public endpoints
=========================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import Engine

from perfboard.api.deps import get_engine
from perfboard.database.models import Achievement, Employee, PointsHistory
from perfboard.services import employee_service, ledger_service

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# Serializers (camelCase for the browser)
# ---------------------------------------------------------------------------
def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def employee_dict(e: Employee) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "title": e.title,
        "department": e.department,
        "imageUrl": e.image_url,
        "points": e.points,
        "isAdmin": e.is_admin,
        "createdAt": _iso(e.created_at),
    }


def history_dict(h: PointsHistory) -> dict:
    return {
        "id": h.id,
        "employeeId": h.employee_id,
        "points": h.points,
        "reason": h.reason,
        "awardedBy": h.awarded_by,
        "createdAt": _iso(h.created_at),
    }


def achievement_dict(a: Achievement) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "description": a.description,
        "pointsRequired": a.points_required,
        "badgeImageUrl": a.badge_image_url,
    }


# ---------------------------------------------------------------------------
# Leaderboard & employees
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
def leaderboard(engine: Engine = Depends(get_engine)):
    """All employees, highest total first, with competition rank."""
    return [
        {**employee_dict(row.employee), "rank": row.rank}
        for row in employee_service.get_leaderboard(engine)
    ]


@router.get("/employees/{employee_id}")
def get_employee(employee_id: int, engine: Engine = Depends(get_engine)):
    return employee_dict(employee_service.get_employee(engine, employee_id))


@router.get("/points/history/{employee_id}")
def points_history(employee_id: int, engine: Engine = Depends(get_engine)):
    """Every grant for an employee, newest first."""
    return [history_dict(h) for h in ledger_service.get_history(engine, employee_id)]


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
@router.get("/achievements")
def achievements(engine: Engine = Depends(get_engine)):
    return [achievement_dict(a) for a in employee_service.list_achievements(engine)]


@router.get("/achievements/{employee_id}")
def employee_achievements(employee_id: int, engine: Engine = Depends(get_engine)):
    """The catalogue with ``earnedAt`` set for the ones this employee holds."""
    return [
        {**achievement_dict(s.achievement), "earnedAt": _iso(s.earned_at)}
        for s in employee_service.get_achievement_status(engine, employee_id)
    ]
