import pytest

from volunteer_eval.domain.models import CriterionDefinition, ScoreSubmission
from volunteer_eval.domain.scoring import (
    aggregate_scores,
    criterion_percentage,
    parse_number,
    resolve_score,
)
from volunteer_eval.infrastructure.exceptions import DuplicateCriterionScoreError, ValidationError

ATTENDANCE = CriterionDefinition(1, "Attendance", "basic", "numeric", max_score=10, weight=2)
COMMITMENT = CriterionDefinition(
    2,
    "Commitment level",
    "responsibility",
    "choice",
    max_score=10,
    weight=1,
    choices={"excellent": 10, "good": 8, "absent": 0},
)
LEADS_TEAM = CriterionDefinition(3, "Leads a team", "responsibility", "boolean", max_score=5)
COMMENTS = CriterionDefinition(4, "Comments", "bonus", "text", max_score=1, weight=0)
FILES_ONLY = CriterionDefinition(
    5, "File keeping", "basic", "numeric", max_score=10, applies_to_role="file_manager"
)
RETIRED = CriterionDefinition(6, "Retired", "basic", "numeric", max_score=10, is_active=False)


def test_numeric_score_is_clamped_to_max():
    result = aggregate_scores("field", [ATTENDANCE], [ScoreSubmission(1, score_value=12)])
    assert result.details[0].score_value == 10
    assert result.total_score == 20
    assert result.max_possible_score == 20
    assert result.percentage == 100.0


def test_numeric_score_negative_and_unparseable():
    assert resolve_score(ATTENDANCE, ScoreSubmission(1, score_value=-3)) == 0
    assert resolve_score(ATTENDANCE, ScoreSubmission(1, score_value="abc")) == 0
    assert resolve_score(ATTENDANCE, ScoreSubmission(1, score_value=" 7.5 ")) == 7.5
    assert resolve_score(ATTENDANCE, ScoreSubmission(1, score_value=None)) == 0


def test_choice_scores_use_the_table():
    assert resolve_score(COMMITMENT, ScoreSubmission(2, choice_value="good")) == 8
    assert resolve_score(COMMITMENT, ScoreSubmission(2, choice_value="absent")) == 0


def test_unlisted_choice_falls_back_to_ratio_of_max():
    assert resolve_score(COMMITMENT, ScoreSubmission(2, choice_value="amazing")) == 8.0
    assert resolve_score(COMMITMENT, ScoreSubmission(2, choice_value="amazing"), 0.5) == 5.0
    assert resolve_score(COMMITMENT, ScoreSubmission(2, choice_value="  ")) == 0


def test_boolean_and_text_scores():
    assert resolve_score(LEADS_TEAM, ScoreSubmission(3, boolean_value=True)) == 5
    assert resolve_score(LEADS_TEAM, ScoreSubmission(3, boolean_value=False)) == 0
    assert resolve_score(LEADS_TEAM, ScoreSubmission(3)) == 0
    assert resolve_score(COMMENTS, ScoreSubmission(4, text_value="Very helpful")) == 0


def test_text_value_is_kept_on_the_detail():
    result = aggregate_scores("field", [COMMENTS], [ScoreSubmission(4, text_value="Very helpful")])
    assert result.details[0].text_value == "Very helpful"
    assert result.total_score == 0
    assert result.percentage == 0.0


def test_weighted_mix():
    result = aggregate_scores(
        "field",
        [ATTENDANCE, COMMITMENT, LEADS_TEAM],
        [
            ScoreSubmission(1, score_value=9),
            ScoreSubmission(2, choice_value="good"),
            ScoreSubmission(3, boolean_value=False),
        ],
    )
    # (9*2 + 8 + 0) / (20 + 10 + 5)
    assert result.total_score == 26
    assert result.max_possible_score == 35
    assert result.percentage == 74.29


def test_inapplicable_unknown_and_inactive_criteria_are_skipped():
    result = aggregate_scores(
        "field",
        [ATTENDANCE, FILES_ONLY, RETIRED],
        [
            ScoreSubmission(1, score_value=5),
            ScoreSubmission(5, score_value=10),
            ScoreSubmission(6, score_value=10),
            ScoreSubmission(99, score_value=10),
        ],
    )
    assert [d.criteria_id for d in result.details] == [1]
    assert sorted(result.skipped_criteria_ids) == [5, 6, 99]
    assert result.percentage == 50.0


def test_role_specific_criterion_applies_to_its_role():
    result = aggregate_scores("file_manager", [FILES_ONLY], [ScoreSubmission(5, score_value=6)])
    assert result.percentage == 60.0


def test_empty_submission_scores_zero():
    result = aggregate_scores("field", [ATTENDANCE], [])
    assert (result.total_score, result.max_possible_score, result.percentage) == (0, 0, 0.0)


def test_scoring_a_criterion_twice_is_rejected():
    with pytest.raises(DuplicateCriterionScoreError) as exc_info:
        aggregate_scores(
            "field",
            [ATTENDANCE],
            [ScoreSubmission(1, score_value=5), ScoreSubmission(1, score_value=6)],
        )
    assert exc_info.value.criteria_ids == [1]
    assert isinstance(exc_info.value, ValidationError)


def test_parse_number_rejects_non_finite():
    assert parse_number("nan") is None
    assert parse_number(float("inf")) is None
    assert parse_number(True) is None
    assert parse_number("4") == 4.0


def test_criterion_percentage():
    assert criterion_percentage(8, 10) == 80.0
    assert criterion_percentage(None, 10) == 0.0
    assert criterion_percentage(1, 3) == 33.33


def test_percentage_rounds_halves_up():
    quarter_points = CriterionDefinition(7, "Punctuality", "basic", "numeric", max_score=8)
    result = aggregate_scores("field", [quarter_points], [ScoreSubmission(7, score_value=0.25)])
    assert result.percentage == 3.13
    assert criterion_percentage(0.25, 8) == 3.13
