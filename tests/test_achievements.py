"""
tests/test_achievements.py — Threshold Achievement Tests
=========================================================

Covers the pure qualification check and the evaluator that records
unlocks, including that re-running it never double-awards.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_achievement, make_employee
from perfboard.database.models import EmployeeAchievement
from perfboard.database.seed import DEFAULT_ACHIEVEMENTS, seed_default_achievements
from perfboard.engine.achievements import newly_unlocked, qualifies
from perfboard.errors import NotFoundError
from perfboard.services import achievement_service, employee_service, ledger_service


def _ach(id: int, required: int, name: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=id, name=name or f"ach_{id}", points_required=required)


def _earned_count(engine, employee_id: int) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count()).select_from(EmployeeAchievement)
            .where(EmployeeAchievement.employee_id == employee_id)
        )


def _award(engine, employee_id: int, points: int):
    return ledger_service.award(
        engine, employee_id=employee_id, points=points, reason="Helpdesk", actor="admin",
    )


# ---------------------------------------------------------------------------
# Pure check
# ---------------------------------------------------------------------------
class TestQualification:
    def test_threshold_is_inclusive(self):
        assert qualifies(100, _ach(1, 100))
        assert not qualifies(99, _ach(1, 100))

    def test_newly_unlocked_skips_earned_and_out_of_reach(self):
        catalog = [_ach(1, 10), _ach(2, 100), _ach(3, 250)]
        result = newly_unlocked(120, catalog, already_earned={1})
        assert [a.id for a in result] == [2]

    def test_newly_unlocked_orders_by_threshold(self):
        catalog = [_ach(5, 500), _ach(2, 10), _ach(9, 100)]
        result = newly_unlocked(1000, catalog, already_earned=set())
        assert [a.points_required for a in result] == [10, 100, 500]

    def test_negative_total_unlocks_nothing(self):
        assert newly_unlocked(-5, [_ach(1, 10)], already_earned=set()) == []


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------
class TestEvaluate:
    def test_unlocks_every_reached_tier(self, seeded_engine):
        emp = make_employee(seeded_engine)
        _award(seeded_engine, emp, 260)

        unlocked = achievement_service.evaluate(seeded_engine, emp)
        assert [a.name for a in unlocked] == ["First Steps", "Rising Star", "Problem Solver"]

    def test_second_run_is_a_no_op(self, seeded_engine):
        emp = make_employee(seeded_engine)
        _award(seeded_engine, emp, 150)

        first = achievement_service.evaluate(seeded_engine, emp)
        second = achievement_service.evaluate(seeded_engine, emp)
        assert len(first) == 2
        assert second == []
        assert _earned_count(seeded_engine, emp) == 2

    def test_earned_badges_survive_a_drop_in_points(self, seeded_engine):
        emp = make_employee(seeded_engine)
        grant = _award(seeded_engine, emp, 15)
        achievement_service.evaluate(seeded_engine, emp)
        ledger_service.delete_history_entry(seeded_engine, grant.history.id)

        assert achievement_service.evaluate(seeded_engine, emp) == []
        assert _earned_count(seeded_engine, emp) == 1

    def test_racing_insert_is_skipped_not_raised(self, db_engine):
        make_achievement(db_engine, "Ten", 10)
        emp = make_employee(db_engine, points=10)
        assert len(achievement_service.evaluate(db_engine, emp)) == 1

        # Simulate a concurrent evaluation that read before the row existed.
        with patch.object(achievement_service, "get_earned_achievement_ids", return_value=set()):
            assert achievement_service.evaluate(db_engine, emp) == []
        assert _earned_count(db_engine, emp) == 1

    def test_unknown_employee(self, seeded_engine):
        with pytest.raises(NotFoundError):
            achievement_service.evaluate(seeded_engine, 404)

    def test_status_marks_earned_entries(self, seeded_engine):
        emp = make_employee(seeded_engine)
        _award(seeded_engine, emp, 120)
        achievement_service.evaluate(seeded_engine, emp)

        status = employee_service.get_achievement_status(seeded_engine, emp)
        earned = {s.achievement.name for s in status if s.earned_at is not None}
        assert earned == {"First Steps", "Rising Star"}
        assert len(status) == len(DEFAULT_ACHIEVEMENTS)


class TestSeed:
    def test_seed_is_idempotent(self, db_engine):
        assert seed_default_achievements(db_engine) == len(DEFAULT_ACHIEVEMENTS)
        assert seed_default_achievements(db_engine) == 0
        assert len(employee_service.list_achievements(db_engine)) == len(DEFAULT_ACHIEVEMENTS)
