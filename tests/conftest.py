from __future__ import annotations

import os

os.environ.setdefault("APP_ENVIRONMENT", "testing")

from collections.abc import Iterator  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from volunteer_eval.application.evaluations import approve_evaluation, create_evaluation  # noqa: E402
from volunteer_eval.application.volunteers import create_volunteer  # noqa: E402
from volunteer_eval.domain.models import Actor  # noqa: E402
from volunteer_eval.infrastructure.db import create_session_factory  # noqa: E402
from volunteer_eval.infrastructure.models import Base, CriterionORM  # noqa: E402
from volunteer_eval.web.dependencies import get_db_session  # noqa: E402
from volunteer_eval.web.main import create_application  # noqa: E402


def build_engine() -> Engine:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    engine = build_engine()
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def session(session_factory) -> Iterator[Session]:
    s = session_factory()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=1, role="admin")


@pytest.fixture
def evaluator() -> Actor:
    return Actor(user_id=2, role="evaluator")


@pytest.fixture
def other_evaluator() -> Actor:
    return Actor(user_id=3, role="evaluator")


@pytest.fixture
def criteria(session) -> dict[str, CriterionORM]:
    """Attendance (numeric, weight 2), commitment (choice) and group interaction (numeric)."""
    rows = {
        "attendance": CriterionORM(
            name="Attendance", category="basic", data_type="numeric", max_score=10, weight=2, sort_order=1
        ),
        "commitment": CriterionORM(
            name="Commitment level",
            category="responsibility",
            data_type="choice",
            max_score=10,
            weight=1,
            choices={"excellent": 10, "good": 8, "weak": 3, "absent": 0},
            sort_order=2,
        ),
        "interaction": CriterionORM(
            name="Group interaction", category="basic", data_type="numeric", max_score=10, weight=1, sort_order=3
        ),
    }
    session.add_all(rows.values())
    session.commit()
    return rows


@pytest.fixture
def make_volunteer(session, admin):
    counter = {"n": 0}

    def _make(**overrides: Any) -> dict[str, Any]:
        counter["n"] += 1
        data = {
            "full_name": f"Volunteer {counter['n']}",
            "phone": f"+20100000{counter['n']:04d}",
            "role_type": "field",
        }
        data.update(overrides)
        volunteer = create_volunteer(session, admin, data)
        session.commit()
        return volunteer

    return _make


@pytest.fixture
def volunteer(make_volunteer) -> dict[str, Any]:
    return make_volunteer(full_name="Mona Adel")


@pytest.fixture
def make_evaluation(session, evaluator, criteria):
    """Create (and by default approve) an evaluation whose percentage equals ``attendance * 10``."""

    def _make(
        volunteer_id: int,
        month: int,
        attendance: float,
        year: int = 2024,
        approve: bool = True,
        actor: Actor | None = None,
        **extra: Any,
    ) -> dict[str, Any]:
        actor = actor or evaluator
        data = {
            "volunteer_id": volunteer_id,
            "evaluation_month": month,
            "evaluation_year": year,
            "criteria_scores": [
                {"criteria_id": criteria["attendance"].id, "score_value": attendance},
            ],
        }
        data.update(extra)
        evaluation = create_evaluation(session, actor, data)
        if approve:
            evaluation = approve_evaluation(session, actor, evaluation["id"])
        session.commit()
        return evaluation

    return _make


@pytest.fixture
def client(session_factory) -> Iterator[TestClient]:
    app = create_application()

    def override_get_db_session():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db_session] = override_get_db_session
    with TestClient(app) as test_client:
        yield test_client

