"""
perfboard.api.routes.admin — Employee CRUD & ledger mutations (JWT-protected)
==============================================================================

Ledger operations run on a worker thread via ``run_db``; notifications are
broadcast only after the transaction has committed, so a failed mutation
never produces an event.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Engine

from perfboard.api.deps import get_broadcaster, get_current_admin, get_engine
from perfboard.api.routes.public import employee_dict, history_dict
from perfboard.database.engine import run_db
from perfboard.engine import events
from perfboard.engine.events import NotificationEvent
from perfboard.errors import PerfboardError
from perfboard.realtime.broadcaster import Broadcaster
from perfboard.services import achievement_service, employee_service, ledger_service
from perfboard.services.ledger_service import LedgerChange

logger = logging.getLogger(__name__)
router = APIRouter(tags=["admin"], dependencies=[Depends(get_current_admin)])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class EmployeeCreate(_CamelModel):
    name: str
    title: str
    department: str
    image_url: str | None = Field(default=None, alias="imageUrl")
    is_admin: bool = Field(default=False, alias="isAdmin")


class EmployeeUpdate(_CamelModel):
    name: str | None = None
    title: str | None = None
    department: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")


class PointsAward(_CamelModel):
    employee_id: int = Field(alias="employeeId")
    points: int
    reason: str


class PointsEdit(BaseModel):
    points: int
    reason: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def _unlocked_events(engine: Engine, employee_id: int) -> list[NotificationEvent]:
    """Evaluate achievements after a committed change.

    Failures are logged, not raised: the ledger change already stands.
    """
    try:
        unlocked = await run_db(achievement_service.evaluate, engine, employee_id)
    except PerfboardError:
        logger.exception("Achievement evaluation failed for employee %d", employee_id)
        return []
    return [events.achievement_unlocked(employee_id, a.name) for a in unlocked]


def _points_event(change: LedgerChange) -> NotificationEvent:
    """``POINTS_AWARDED`` carrying the signed change to the total."""
    return events.points_awarded(change.employee.id, change.delta, change.history.reason)


def _rank_events(change: LedgerChange) -> list[NotificationEvent]:
    if not change.rank_changed:
        return []
    return [events.rank_changed(change.employee.id, change.new_rank)]


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------
@router.post("/employees", status_code=201)
async def create_employee(body: EmployeeCreate, engine: Engine = Depends(get_engine)):
    employee = await run_db(
        employee_service.create_employee,
        engine,
        name=body.name,
        title=body.title,
        department=body.department,
        image_url=body.image_url,
        is_admin=body.is_admin,
    )
    return employee_dict(employee)


@router.put("/employees/{employee_id}")
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    engine: Engine = Depends(get_engine),
):
    """Partial profile update; blank fields keep their current value."""
    employee = await run_db(
        employee_service.update_employee,
        engine,
        employee_id,
        name=body.name,
        title=body.title,
        department=body.department,
        image_url=body.image_url,
    )
    return employee_dict(employee)


@router.delete("/employees/{employee_id}")
async def delete_employee(employee_id: int, engine: Engine = Depends(get_engine)):
    employee = await run_db(employee_service.delete_employee, engine, employee_id)
    return {"message": "Employee deleted", "employee": employee_dict(employee)}


# ---------------------------------------------------------------------------
# Points ledger
# ---------------------------------------------------------------------------
@router.post("/points/award")
async def award_points(
    body: PointsAward,
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    change = await run_db(
        ledger_service.award,
        engine,
        employee_id=body.employee_id,
        points=body.points,
        reason=body.reason,
        actor=admin.get("sub") or "admin",
    )

    outgoing = [_points_event(change)]
    outgoing += await _unlocked_events(engine, change.employee.id)
    outgoing += _rank_events(change)
    await broadcaster.broadcast_all(outgoing)

    return {"history": history_dict(change.history), "employee": employee_dict(change.employee)}


@router.put("/points/{history_id}")
async def edit_points(
    history_id: int,
    body: PointsEdit,
    engine: Engine = Depends(get_engine),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Replace a grant's points and reason; refuses to drive the total negative."""
    change = await run_db(
        ledger_service.edit_history_entry,
        engine,
        history_id,
        points=body.points,
        reason=body.reason,
    )

    outgoing = [_points_event(change)]
    outgoing += await _unlocked_events(engine, change.employee.id)
    outgoing += _rank_events(change)
    await broadcaster.broadcast_all(outgoing)

    return {"history": history_dict(change.history), "employee": employee_dict(change.employee)}


@router.delete("/points/{history_id}")
async def delete_points(
    history_id: int,
    engine: Engine = Depends(get_engine),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    change = await run_db(ledger_service.delete_history_entry, engine, history_id)
    await broadcaster.broadcast_all([_points_event(change)] + _rank_events(change))
    return {
        "message": "Points history record deleted",
        "deletedRecord": history_dict(change.history),
        "employee": employee_dict(change.employee),
    }
