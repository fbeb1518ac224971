import pytest

from volunteer_eval.application.evaluations import (
    approve_evaluation,
    create_evaluation,
    delete_evaluation,
    evaluation_statistics,
    get_evaluation,
    list_evaluations,
    update_evaluation,
)
from volunteer_eval.application.volunteers import set_volunteer_status
from volunteer_eval.infrastructure.exceptions import (
    DuplicateCriterionScoreError,
    DuplicateEvaluationError,
    EvaluationApprovedError,
    EvaluationNotFoundError,
    UnauthorizedError,
    ValidationError,
    VolunteerNotFoundError,
)
from volunteer_eval.infrastructure.models import AuditEntryORM, CriterionORM, EvaluationDetailORM


def full_scores(criteria, attendance=9, commitment="good", interaction=6):
    return [
        {"criteria_id": criteria["attendance"].id, "score_value": attendance},
        {"criteria_id": criteria["commitment"].id, "choice_value": commitment},
        {"criteria_id": criteria["interaction"].id, "score_value": interaction},
    ]


def test_create_evaluation_scores_and_groups_details(session, evaluator, volunteer, criteria):
    result = create_evaluation(
        session,
        evaluator,
        {
            "volunteer_id": volunteer["id"],
            "evaluation_month": 3,
            "evaluation_year": 2024,
            "criteria_scores": full_scores(criteria),
            "praise_note": "Great month",
        },
    )
    session.commit()

    # (9*2 + 8 + 6) / (20 + 10 + 10)
    assert result["total_score"] == 32
    assert result["max_possible_score"] == 40
    assert result["percentage"] == 80.0
    assert result["performance_grade"] == "very_good"
    assert result["status"] == "draft"
    assert result["evaluator_id"] == evaluator.user_id
    assert result["volunteer_name"] == "Mona Adel"
    assert sorted(result["details_by_category"]) == ["basic", "responsibility"]
    assert [d["criteria_name"] for d in result["details_by_category"]["basic"]] == [
        "Attendance",
        "Group interaction",
    ]
    assert result["details_by_category"]["responsibility"][0]["score_value"] == 8

    audit = session.query(AuditEntryORM).filter_by(table_name="evaluations").one()
    assert audit.action_type == "CREATE"
    assert audit.new_values["percentage"] == 80.0


def test_numeric_input_above_max_is_clamped(session, evaluator, volunteer, criteria):
    result = create_evaluation(
        session,
        evaluator,
        {
            "volunteer_id": volunteer["id"],
            "evaluation_month": 1,
            "evaluation_year": 2024,
            "criteria_scores": [{"criteria_id": criteria["attendance"].id, "score_value": 12}],
        },
    )
    detail = result["details_by_category"]["basic"][0]
    assert detail["score_value"] == 10
    assert detail["raw_score"] == 12
    assert (result["total_score"], result["max_possible_score"], result["percentage"]) == (20, 20, 100.0)


def test_one_evaluation_per_volunteer_and_month(session, volunteer, make_evaluation):
    make_evaluation(volunteer["id"], 1, 7)
    with pytest.raises(DuplicateEvaluationError):
        make_evaluation(volunteer["id"], 1, 8)
    session.rollback()


def test_inactive_or_missing_volunteer(session, admin, evaluator, volunteer, make_evaluation):
    with pytest.raises(VolunteerNotFoundError):
        make_evaluation(999, 1, 7)
    session.rollback()

    set_volunteer_status(session, admin, volunteer["id"], False, "Moved away")
    session.commit()
    with pytest.raises(ValidationError):
        make_evaluation(volunteer["id"], 1, 7)
    session.rollback()


def test_scoring_the_same_criterion_twice(session, evaluator, volunteer, criteria):
    with pytest.raises(DuplicateCriterionScoreError):
        create_evaluation(
            session,
            evaluator,
            {
                "volunteer_id": volunteer["id"],
                "evaluation_month": 1,
                "evaluation_year": 2024,
                "criteria_scores": [
                    {"criteria_id": criteria["attendance"].id, "score_value": 5},
                    {"criteria_id": criteria["attendance"].id, "score_value": 6},
                ],
            },
        )


def test_invalid_payload_raises_validation_error(session, evaluator, volunteer):
    with pytest.raises(ValidationError):
        create_evaluation(
            session,
            evaluator,
            {"volunteer_id": volunteer["id"], "evaluation_month": 0, "evaluation_year": 2024},
        )


def test_reaggregation_is_idempotent(session, evaluator, volunteer, criteria, make_evaluation):
    evaluation = make_evaluation(volunteer["id"], 2, 5, approve=False)
    payload = {"criteria_scores": full_scores(criteria, attendance=6)}

    first = update_evaluation(session, evaluator, evaluation["id"], payload)
    session.commit()
    second = update_evaluation(session, evaluator, evaluation["id"], payload)
    session.commit()

    for key in ("total_score", "max_possible_score", "percentage"):
        assert first[key] == second[key]
    assert first["details_by_category"] == second["details_by_category"]
    count = session.query(EvaluationDetailORM).filter_by(evaluation_id=evaluation["id"]).count()
    assert count == 3


def test_update_replaces_every_detail(session, evaluator, volunteer, criteria, make_evaluation):
    evaluation = make_evaluation(volunteer["id"], 2, 5, approve=False)
    update_evaluation(session, evaluator, evaluation["id"], {"criteria_scores": full_scores(criteria)})
    session.commit()

    result = update_evaluation(
        session,
        evaluator,
        evaluation["id"],
        {"criteria_scores": [{"criteria_id": criteria["interaction"].id, "score_value": 4}]},
    )
    session.commit()

    assert result["percentage"] == 40.0
    assert list(result["details_by_category"]) == ["basic"]
    assert len(result["details_by_category"]["basic"]) == 1


def test_update_notes_without_rescoring(session, evaluator, volunteer, make_evaluation):
    evaluation = make_evaluation(volunteer["id"], 2, 5, approve=False)
    result = update_evaluation(
        session, evaluator, evaluation["id"], {"human_note": "Needs a buddy", "criteria_scores": []}
    )
    assert result["human_note"] == "Needs a buddy"
    assert result["percentage"] == 50.0


def test_only_owner_or_admin_may_edit(
    session, admin, other_evaluator, volunteer, make_evaluation
):
    evaluation = make_evaluation(volunteer["id"], 2, 5, approve=False)
    with pytest.raises(UnauthorizedError):
        update_evaluation(session, other_evaluator, evaluation["id"], {"human_note": "x"})

    result = update_evaluation(session, admin, evaluation["id"], {"human_note": "Checked"})
    assert result["human_note"] == "Checked"


def test_approved_evaluations_are_locked_for_evaluators(
    session, admin, evaluator, volunteer, make_evaluation
):
    evaluation = make_evaluation(volunteer["id"], 2, 5)
    assert evaluation["status"] == "approved"

    with pytest.raises(EvaluationApprovedError):
        update_evaluation(session, evaluator, evaluation["id"], {"human_note": "late edit"})
    with pytest.raises(EvaluationApprovedError):
        approve_evaluation(session, evaluator, evaluation["id"])

    result = update_evaluation(session, admin, evaluation["id"], {"human_note": "admin edit"})
    assert result["human_note"] == "admin edit"


def test_delete_requires_admin(session, admin, evaluator, volunteer, make_evaluation):
    evaluation = make_evaluation(volunteer["id"], 2, 5)
    with pytest.raises(UnauthorizedError):
        delete_evaluation(session, evaluator, evaluation["id"])

    delete_evaluation(session, admin, evaluation["id"])
    session.commit()
    with pytest.raises(EvaluationNotFoundError):
        get_evaluation(session, evaluation["id"])
    assert session.query(EvaluationDetailORM).count() == 0


def test_list_filters_and_grade(session, make_volunteer, make_evaluation):
    first = make_volunteer()
    second = make_volunteer()
    make_evaluation(first["id"], 1, 9.5)
    make_evaluation(first["id"], 2, 6.5, approve=False)
    make_evaluation(second["id"], 1, 4)

    everything = list_evaluations(session, {}, page=1, per_page=2)
    assert everything["pagination"] == {"current_page": 1, "per_page": 2, "total": 3, "total_pages": 2}

    approved = list_evaluations(session, {"status": "approved"})
    assert approved["pagination"]["total"] == 2

    excellent = list_evaluations(session, {}, grade="excellent")
    assert [e["percentage"] for e in excellent["evaluations"]] == [95.0]

    weak = list_evaluations(session, {"year": 2024}, grade="needs_improvement")
    assert [e["volunteer_id"] for e in weak["evaluations"]] == [second["id"]]

    with pytest.raises(ValidationError):
        list_evaluations(session, {}, grade="outstanding")


def test_evaluation_statistics(session, make_volunteer, make_evaluation):
    steady = make_volunteer(full_name="Steady")
    newcomer = make_volunteer(full_name="Newcomer")
    for month, score in [(1, 8), (2, 9), (3, 10)]:
        make_evaluation(steady["id"], month, score)
    make_evaluation(newcomer["id"], 1, 5, approve=False)

    stats = evaluation_statistics(session, 2024)
    assert stats["general"]["total"] == 4
    assert stats["general"]["approved"] == 3
    assert stats["general"]["draft"] == 1
    assert stats["general"]["volunteers_evaluated"] == 2
    assert stats["grades"]["excellent"] == 2
    assert stats["grades"]["needs_improvement"] == 1
    assert stats["monthly"][0] == {"month": 1, "count": 2, "average_percentage": 65.0}
    assert [t["full_name"] for t in stats["top_performers"]] == ["Steady"]
    assert stats["top_performers"][0]["average_percentage"] == 90.0


def test_evaluation_statistics_for_empty_year(session):
    stats = evaluation_statistics(session, 2030)
    assert stats["general"]["total"] == 0
    assert stats["top_performers"] == []


def test_free_text_scores_are_stored_verbatim(session, evaluator, volunteer, criteria):
    remarks = CriterionORM(name="Remarks", category="bonus", data_type="text", sort_order=4)
    session.add(remarks)
    session.commit()
    text = "  Attendance < 5 days in May; > 3 in June, R&amp;D <b>team</b>  "
    result = create_evaluation(
        session,
        evaluator,
        {
            "volunteer_id": volunteer["id"],
            "evaluation_month": 1,
            "evaluation_year": 2024,
            "criteria_scores": [
                *full_scores(criteria),
                {"criteria_id": remarks.id, "text_value": text, "notes": "<i>kept</i> & raw"},
            ],
        },
    )
    session.commit()

    detail = result["details_by_category"]["bonus"][0]
    assert detail["text_value"] == text
    assert detail["notes"] == "<i>kept</i> & raw"
    stored = session.query(EvaluationDetailORM).filter_by(criteria_id=remarks.id).one()
    assert stored.text_value == text
