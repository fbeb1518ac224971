from datetime import date

import pytest

from volunteer_eval.application.evaluations import delete_evaluation, update_evaluation
from volunteer_eval.application.volunteers import get_volunteer, list_volunteers
from volunteer_eval.domain.models import FreezeRequest
from volunteer_eval.domain.services import FreezePolicy
from volunteer_eval.infrastructure.exceptions import (
    ConflictError,
    FreezeLimitExceededError,
    IncompleteFreezeDataError,
    ValidationError,
)
from volunteer_eval.infrastructure.models import FreezeRecordORM

FREEZE = {
    "is_frozen": True,
    "freeze_reason": "Exams",
    "freeze_start_date": "2024-01-01",
    "freeze_end_date": "2024-01-31",
}


def active_freezes(session, volunteer_id):
    return (
        session.query(FreezeRecordORM)
        .filter(FreezeRecordORM.volunteer_id == volunteer_id, FreezeRecordORM.is_active.is_(True))
        .count()
    )


def test_check_complete_lists_missing_fields():
    with pytest.raises(IncompleteFreezeDataError) as exc_info:
        FreezePolicy.check_complete(FreezeRequest(reason=" ", start_date=date(2024, 1, 1), end_date=None))
    assert exc_info.value.missing == ["freeze_reason", "freeze_end_date"]


def test_check_complete_rejects_reversed_dates():
    with pytest.raises(ValidationError) as exc_info:
        FreezePolicy.check_complete(
            FreezeRequest(reason="Travel", start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))
        )
    assert exc_info.value.field == "freeze_end_date"


def test_frozen_evaluation_records_a_freeze(session, volunteer, make_evaluation):
    evaluation = make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)
    assert evaluation["is_frozen"] is True
    assert evaluation["freeze_reason"] == "Exams"

    record = session.query(FreezeRecordORM).one()
    assert (record.freeze_year, record.slot, record.evaluation_month) == (2024, 1, 1)


def test_third_freeze_in_a_year_is_refused(session, volunteer, make_evaluation):
    make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)
    make_evaluation(volunteer["id"], 2, 7, approve=False, **FREEZE)

    with pytest.raises(FreezeLimitExceededError) as exc_info:
        make_evaluation(volunteer["id"], 3, 7, approve=False, **FREEZE)
    session.rollback()

    assert isinstance(exc_info.value, ConflictError)
    assert exc_info.value.code == "FREEZE_LIMIT_EXCEEDED"
    assert active_freezes(session, volunteer["id"]) == 2


def test_freeze_limit_is_per_year(session, volunteer, make_evaluation):
    make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)
    make_evaluation(volunteer["id"], 2, 7, approve=False, **FREEZE)
    make_evaluation(volunteer["id"], 1, 7, year=2025, approve=False, **FREEZE)
    assert active_freezes(session, volunteer["id"]) == 3


def test_can_freeze_until_the_cap(session, volunteer, make_evaluation):
    policy = FreezePolicy(session)
    assert policy.can_freeze(volunteer["id"], 2024)

    make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)
    assert policy.can_freeze(volunteer["id"], 2024)

    make_evaluation(volunteer["id"], 2, 7, approve=False, **FREEZE)
    assert not policy.can_freeze(volunteer["id"], 2024)
    assert policy.can_freeze(volunteer["id"], 2025)


def test_incomplete_freeze_is_rejected_before_saving(session, volunteer, make_evaluation):
    with pytest.raises(IncompleteFreezeDataError):
        make_evaluation(volunteer["id"], 1, 7, approve=False, is_frozen=True, freeze_reason="Exams")
    session.rollback()
    assert active_freezes(session, volunteer["id"]) == 0


def test_deleting_a_frozen_evaluation_releases_its_slot(
    session, admin, volunteer, make_evaluation
):
    first = make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)
    make_evaluation(volunteer["id"], 2, 7, approve=False, **FREEZE)

    delete_evaluation(session, admin, first["id"])
    session.commit()

    make_evaluation(volunteer["id"], 3, 7, approve=False, **FREEZE)
    assert active_freezes(session, volunteer["id"]) == 2


def test_unfreezing_releases_the_slot_and_clears_fields(
    session, evaluator, volunteer, make_evaluation
):
    evaluation = make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)

    updated = update_evaluation(session, evaluator, evaluation["id"], {"is_frozen": False})
    session.commit()

    assert updated["is_frozen"] is False
    assert updated["freeze_reason"] is None
    assert active_freezes(session, volunteer["id"]) == 0


def test_freezing_on_update_applies_the_policy(session, evaluator, volunteer, make_evaluation):
    make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)
    make_evaluation(volunteer["id"], 2, 7, approve=False, **FREEZE)
    third = make_evaluation(volunteer["id"], 3, 7, approve=False)

    with pytest.raises(FreezeLimitExceededError):
        update_evaluation(session, evaluator, third["id"], FREEZE)
    session.rollback()


def test_volunteer_views_show_freeze_usage(session, volunteer, make_evaluation):
    make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)

    detail = get_volunteer(session, volunteer["id"], today=date(2024, 1, 15))
    assert detail["current_freeze_count"] == 1
    assert detail["is_currently_frozen"] is True

    listing = list_volunteers(session, {}, today=date(2024, 2, 15))
    item = listing["volunteers"][0]
    assert item["current_freeze_count"] == 1
    assert item["is_currently_frozen"] is False


def test_editing_freeze_details_updates_the_active_record(
    session, evaluator, volunteer, make_evaluation
):
    evaluation = make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)

    updated = update_evaluation(
        session,
        evaluator,
        evaluation["id"],
        {"freeze_reason": "Travel", "freeze_end_date": "2024-03-31"},
    )
    session.commit()

    assert updated["freeze_reason"] == "Travel"
    record = session.query(FreezeRecordORM).filter_by(is_active=True).one()
    assert (record.reason, record.start_date, record.end_date) == (
        "Travel",
        date(2024, 1, 1),
        date(2024, 3, 31),
    )
    assert record.slot == 1


def test_editing_freeze_details_is_validated(session, evaluator, volunteer, make_evaluation):
    evaluation = make_evaluation(volunteer["id"], 1, 7, approve=False, **FREEZE)

    with pytest.raises(ValidationError) as exc_info:
        update_evaluation(session, evaluator, evaluation["id"], {"freeze_end_date": "2023-12-31"})
    session.rollback()
    assert exc_info.value.field == "freeze_end_date"

    with pytest.raises(IncompleteFreezeDataError):
        update_evaluation(session, evaluator, evaluation["id"], {"freeze_reason": "  "})
    session.rollback()

    record = session.query(FreezeRecordORM).one()
    assert (record.reason, record.end_date) == ("Exams", date(2024, 1, 31))
