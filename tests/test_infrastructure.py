import json
import logging
from datetime import date, datetime
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from volunteer_eval.application.evaluations import create_evaluation, update_evaluation
from volunteer_eval.infrastructure.config import DatabaseConfig, ScoringConfig
from volunteer_eval.infrastructure.exceptions import (
    AlertAlreadyOpenError,
    ConflictError,
    DatabaseError,
    DatabaseUnavailableError,
    DataIntegrityError,
    DuplicateRecordError,
    EvaluationNotFoundError,
    FreezeLimitExceededError,
    NotFoundError,
    ValidationError,
    VolunteerNotFoundError,
    handle_database_error,
)
from volunteer_eval.infrastructure.logging import (
    ContextFilter,
    LogContext,
    StructuredFormatter,
    clear_context,
    current_context,
    get_logger,
    set_context,
)
from volunteer_eval.infrastructure.models import CriterionORM
from volunteer_eval.infrastructure.repositories import AlertRepo, AuditTrailRepo, FreezeRepo, VolunteerRepo
from volunteer_eval.infrastructure.uow import UnitOfWork
from volunteer_eval.utils.seed import DEFAULT_CRITERIA, seed_default_criteria


class TestDatabaseConfig:
    def test_sqlite_url_gets_extension(self, tmp_path):
        config = DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "data" / "volunteers"))
        assert config.get_connection_url() == f"sqlite:///{tmp_path / 'data' / 'volunteers.db'}"
        assert (tmp_path / "data").is_dir()

    def test_mysql_url(self):
        config = DatabaseConfig(
            backend="mysql",
            mysql_host="db",
            mysql_user="app",
            mysql_password="secret",
            mysql_database="volunteers",
        )
        assert (
            config.get_connection_url()
            == "mysql+pymysql://app:secret@db:3306/volunteers?charset=utf8mb4"
        )

    def test_mysql_requires_database(self):
        with pytest.raises(PydanticValidationError):
            DatabaseConfig(backend="mysql", mysql_database="")


def test_scoring_defaults():
    config = ScoringConfig()
    assert config.max_freezes_per_year == 2
    assert config.weak_performance_threshold == 60.0
    assert config.weak_performance_min_months == 3
    assert config.no_interaction_min_months == 2
    assert config.choice_fallback_ratio == 0.8


class TestExceptions:
    def test_not_found(self):
        err = VolunteerNotFoundError(7)
        assert isinstance(err, NotFoundError)
        assert err.message == "Volunteer with ID 7 not found"
        assert err.details == {"entity": "volunteer", "id": 7}

    def test_conflict_codes(self):
        err = FreezeLimitExceededError(3, 2024, 2)
        assert isinstance(err, ConflictError)
        assert err.code == "FREEZE_LIMIT_EXCEEDED"
        assert err.details["limit"] == 2
        assert DuplicateRecordError("phone", "123").user_message == "This phone is already in use."

    def test_validation_messages(self):
        err = ValidationError("evaluation_month", "must be between 1 and 12", 13)
        assert err.message == "Validation failed for field 'evaluation_month': must be between 1 and 12"
        assert err.user_message == "Invalid evaluation month: must be between 1 and 12"
        assert str(err).startswith("ValidationError: ")


class TestRepositories:
    def test_volunteer_search(self, session, make_volunteer):
        make_volunteer(full_name="Ahmed Nabil", role_type="administrative")
        make_volunteer(full_name="Sara Nabil")
        make_volunteer(full_name="Omar Farid")
        repo = VolunteerRepo(session)

        rows, total = repo.search(search="nabil", sort_by="full_name", sort_order="asc")
        assert total == 2
        assert [v.full_name for v in rows] == ["Ahmed Nabil", "Sara Nabil"]

        rows, total = repo.search(role_type="administrative")
        assert [v.full_name for v in rows] == ["Ahmed Nabil"]

        rows, total = repo.search(sort_by="full_name", sort_order="asc", limit=1, offset=1)
        assert total == 3
        assert [v.full_name for v in rows] == ["Omar Farid"]

    def test_get_by_id_required(self, session):
        with pytest.raises(VolunteerNotFoundError):
            VolunteerRepo(session).get_by_id_required(12345)

    def test_single_open_alert_per_type(self, session, volunteer):
        repo = AlertRepo(session)
        alert = repo.create_alert(
            volunteer_id=volunteer["id"],
            alert_type="weak_performance",
            severity="high",
            alert_message="Weak",
            trigger_condition={"type": "manual", "note": None},
        )
        assert alert.open_marker == 1

        with pytest.raises(AlertAlreadyOpenError):
            repo.create_alert(
                volunteer_id=volunteer["id"],
                alert_type="weak_performance",
                severity="high",
                alert_message="Weak again",
                trigger_condition={"type": "manual", "note": None},
            )

        repo.resolve(alert, resolved_by=1, notes=None, now=datetime(2024, 4, 1, 9, 0))
        assert alert.open_marker is None
        reopened = repo.create_alert(
            volunteer_id=volunteer["id"],
            alert_type="weak_performance",
            severity="high",
            alert_message="Weak once more",
            trigger_condition={"type": "manual", "note": None},
        )
        assert reopened.id != alert.id

    def test_open_alert_constraint_backs_up_the_lookup(self, session, volunteer):
        repo = AlertRepo(session)
        manual = {"type": "manual", "note": None}
        repo.create_alert(volunteer["id"], "weak_performance", "high", "Weak", manual)

        # a concurrent writer that passed the lookup before this alert was committed
        with patch.object(AlertRepo, "get_open", return_value=None):
            with pytest.raises(AlertAlreadyOpenError) as exc_info:
                repo.create_alert(volunteer["id"], "weak_performance", "high", "Weak again", manual)
        session.rollback()
        assert exc_info.value.code == "ALERT_ALREADY_OPEN"

    def test_freeze_slot_taken_twice_is_a_limit_conflict(self, session, volunteer):
        repo = FreezeRepo(session)
        period = {"start_date": date(2024, 1, 1), "end_date": date(2024, 1, 31), "reason": "Exams"}
        repo.create_freeze(volunteer["id"], 2024, slot=1, limit=2, **period)

        with pytest.raises(FreezeLimitExceededError) as exc_info:
            repo.create_freeze(volunteer["id"], 2024, slot=1, limit=2, **period)
        session.rollback()
        assert exc_info.value.details == {"volunteer_id": volunteer["id"], "year": 2024, "limit": 2}

    def test_audit_values_are_json(self, session):
        entry = AuditTrailRepo(session).record(
            5,
            "UPDATE",
            "volunteers",
            9,
            old_values={"join_date": date(2024, 1, 2)},
            new_values={"join_date": date(2024, 2, 3)},
        )
        assert entry.record_id == "9"
        assert entry.old_values == {"join_date": "2024-01-02"}
        assert AuditTrailRepo(session).for_record("volunteers", 9) == [entry]


def test_seed_is_idempotent(session):
    assert seed_default_criteria(session) == len(DEFAULT_CRITERIA)
    assert seed_default_criteria(session) == 0
    names = [c.name for c in session.query(CriterionORM).order_by(CriterionORM.sort_order)]
    assert names == [c["name"] for c in DEFAULT_CRITERIA]


class TestUnitOfWork:
    def test_commits_on_success(self, session_factory):
        with UnitOfWork(session_factory).begin() as s:
            seed_default_criteria(s)
        with session_factory() as s:
            assert s.query(CriterionORM).count() == len(DEFAULT_CRITERIA)

    def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            with UnitOfWork(session_factory).begin() as s:
                seed_default_criteria(s)
                raise RuntimeError("abort")
        with session_factory() as s:
            assert s.query(CriterionORM).count() == 0


class TestLoggingContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_log_context_restores_previous_values(self):
        set_context(user_id=4)
        with LogContext(operation="approve_evaluation", evaluation_id=9):
            assert current_context() == {
                "user_id": 4,
                "operation": "approve_evaluation",
                "evaluation_id": 9,
            }
        assert current_context() == {"user_id": 4}

    def test_structured_records_include_context(self):
        set_context(user_id=4, volunteer_id=12)
        record = logging.LogRecord(
            "volunteer_eval.test", logging.INFO, __file__, 1, "Froze %s", ("March",), None
        )
        ContextFilter().filter(record)

        entry = json.loads(StructuredFormatter().format(record))
        assert entry["message"] == "Froze March"
        assert entry["user_id"] == 4
        assert entry["volunteer_id"] == 12
        assert "operation" not in entry

    def test_logger_namespace(self):
        assert get_logger("reports").name == "volunteer_eval.reports"
        assert get_logger("volunteer_eval.reports").name == "volunteer_eval.reports"

    def test_service_calls_leave_no_context_behind(self, session, evaluator, volunteer, criteria):
        create_evaluation(
            session,
            evaluator,
            {
                "volunteer_id": volunteer["id"],
                "evaluation_month": 1,
                "evaluation_year": 2024,
                "criteria_scores": [{"criteria_id": criteria["attendance"].id, "score_value": 7}],
            },
        )
        assert current_context() == {}

        with pytest.raises(EvaluationNotFoundError):
            update_evaluation(session, evaluator, 999, {"human_note": "Late"})
        assert current_context() == {}


class TestStorageFailures:
    def test_repository_wraps_driver_errors(self, session):
        repo = VolunteerRepo(session)
        gone = OperationalError("INSERT INTO volunteers", {}, Exception("server has gone away"))
        with (
            patch.object(session, "flush", side_effect=gone),
            pytest.raises(DatabaseUnavailableError) as exc_info,
        ):
            repo.create_volunteer(full_name="Laila Hassan", phone="+201000000009")
        assert isinstance(exc_info.value, DatabaseError)
        assert exc_info.value.operation == "create_volunteer"

    def test_unit_of_work_wraps_commit_failures(self, session_factory):
        with (
            patch.object(Session, "commit", side_effect=SQLAlchemyError("commit failed")),
            pytest.raises(DatabaseError) as exc_info,
        ):
            with UnitOfWork(session_factory).begin() as s:
                seed_default_criteria(s)
        assert exc_info.value.operation == "unit of work"
        with session_factory() as s:
            assert s.query(CriterionORM).count() == 0

    def test_application_errors_pass_through(self):
        original = DataIntegrityError("foreign key mismatch", "delete_volunteer")
        assert handle_database_error(original) is original
        assert "refers to records that changed" in original.user_message
