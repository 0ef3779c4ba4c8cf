"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of perfboard.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)
os.environ.setdefault("ADMIN_PASSWORD", "correct-horse-battery-staple")
os.environ.setdefault(
    "PERFBOARD_CONFIG", str(Path(__file__).with_name("config.test.yaml"))
)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from perfboard.database.models import Achievement, Base, Employee  # noqa: E402
from perfboard.database.seed import seed_default_achievements  # noqa: E402


def run_async(coro):
    """Run *coro* to completion without pytest-asyncio."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all perfboard tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def seeded_engine(db_engine: Engine) -> Engine:
    """``db_engine`` with the default achievement catalogue loaded."""
    seed_default_achievements(db_engine)
    return db_engine


def make_employee(engine: Engine, name: str = "Ada", points: int = 0) -> int:
    """Insert an employee directly and return its id.

    ``points`` seeds the cached total with no backing history, so only use a
    non-zero value where the ledger sum isn't under test.
    """
    with Session(engine) as session:
        row = Employee(name=name, title="Engineer", department="IT", points=points)
        session.add(row)
        session.commit()
        return row.id


def make_achievement(engine: Engine, name: str, required: int) -> int:
    with Session(engine) as session:
        row = Achievement(name=name, description=name, points_required=required)
        session.add(row)
        session.commit()
        return row.id


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_admin_token()


def make_admin_token(sub: str = "fixture-admin", is_admin: bool = True) -> str:
    """Create a JWT.  Usable as both a fixture and a factory function."""
    import jwt

    from perfboard.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub, "is_admin": is_admin}, JWT_SECRET, algorithm=JWT_ALGORITHM)
