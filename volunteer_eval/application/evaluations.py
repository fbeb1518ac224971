"""
Monthly evaluations: creation with scoring and freeze handling, updates that
replace the scored details, approval, deletion and yearly statistics.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

import pandas as pd
from sqlalchemy.orm import Session

from ..domain.analytics import GRADE_BANDS, grade_range, performance_grade
from ..domain.models import Actor, FreezeRequest, ScoreSubmission
from ..domain.schemas import EvaluationCreateInput, EvaluationFilterInput, EvaluationUpdateInput
from ..domain.scoring import criterion_percentage, find_duplicate_ids, round2
from ..domain.services import EvaluationScoringService, FreezePolicy
from ..infrastructure.exceptions import (
    DuplicateCriterionScoreError,
    DuplicateEvaluationError,
    EvaluationApprovedError,
    UnauthorizedError,
    ValidationError,
)
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.models import EvaluationORM, VolunteerORM
from ..infrastructure.repositories import (
    AuditTrailRepo,
    EvaluationRepo,
    FreezeRepo,
    VolunteerRepo,
)
from .common import evaluation_to_dict, fail, page_window, pagination, require_admin, validated

logger = get_logger(__name__)

NOTE_FIELDS = ("human_note", "praise_note", "improvement_suggestions")
FREEZE_FIELDS = ("freeze_reason", "freeze_start_date", "freeze_end_date")


def _submissions(scores: list[dict[str, Any]]) -> list[ScoreSubmission]:
    submissions = [ScoreSubmission(**score) for score in scores]
    duplicates = find_duplicate_ids(submissions)
    if duplicates:
        raise DuplicateCriterionScoreError(duplicates)
    return submissions


def _details_by_category(evaluation: EvaluationORM) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    details = sorted(
        evaluation.details, key=lambda d: (d.criterion.category, d.criterion.sort_order, d.criterion.name)
    )
    for d in details:
        grouped[d.criterion.category].append(
            {
                "criteria_id": d.criteria_id,
                "criteria_name": d.criterion.name,
                "criteria_name_en": d.criterion.name_en,
                "data_type": d.criterion.data_type,
                "max_score": d.criterion.max_score,
                "score_value": d.score_value,
                "raw_score": d.raw_score,
                "text_value": d.text_value,
                "choice_value": d.choice_value,
                "boolean_value": d.boolean_value,
                "notes": d.notes,
                "weight_used": d.weight_used,
                "criteria_percentage": criterion_percentage(d.score_value, d.criterion.max_score),
            }
        )
    return dict(grouped)


def _check_editable(actor: Actor, evaluation: EvaluationORM) -> None:
    if not actor.can_edit(evaluation.evaluator_id):
        raise UnauthorizedError(
            "Evaluators may only modify their own evaluations", operation="update_evaluation"
        )
    if evaluation.status == "approved" and not actor.is_admin:
        raise EvaluationApprovedError(
            evaluation.id, "Approved evaluations can only be modified by an admin"
        )


def _freeze_request(evaluation: EvaluationORM) -> FreezeRequest:
    return FreezeRequest(
        reason=evaluation.freeze_reason,
        start_date=evaluation.freeze_start_date,
        end_date=evaluation.freeze_end_date,
        evaluation_month=evaluation.evaluation_month,
        evaluation_year=evaluation.evaluation_year,
    )


@log_operation("create_evaluation")
def create_evaluation(session: Session, actor: Actor, data: dict[str, Any]) -> dict[str, Any]:
    """
    Create a draft evaluation, score it and, when frozen, record the freeze.

    Args:
        session: Database session
        actor: The evaluator; stored as ``evaluator_id``
        data: Evaluation fields with ``criteria_scores`` and optional freeze fields

    Returns:
        The evaluation with its details grouped by category

    Raises:
        ValidationError: If input is invalid, the volunteer is inactive, a freeze
            is incomplete or a criterion is scored twice
        VolunteerNotFoundError: If the volunteer does not exist
        DuplicateEvaluationError: If the period is already evaluated
        FreezeLimitExceededError: If the volunteer has no freeze left this year

    Example:
        >>> result = create_evaluation(session, Actor(3, "evaluator"), {
        ...     "volunteer_id": 7, "evaluation_month": 3, "evaluation_year": 2024,
        ...     "criteria_scores": [{"criteria_id": 1, "score_value": 12}],
        ... })
        >>> result["percentage"]
        100.0
    """
    values = validated(EvaluationCreateInput, data, "evaluation_data")
    volunteer_id = values["volunteer_id"]
    month, year = values["evaluation_month"], values["evaluation_year"]

    try:
        set_context(operation="create_evaluation", user_id=actor.user_id, volunteer_id=volunteer_id)
        submissions = _submissions(values["criteria_scores"])

        volunteer = VolunteerRepo(session).get_by_id_required(volunteer_id)
        if not volunteer.is_active:
            raise ValidationError("volunteer_id", "Volunteer is not active", volunteer_id)

        repo = EvaluationRepo(session)
        if repo.get_for_period(volunteer_id, month, year) is not None:
            raise DuplicateEvaluationError(volunteer_id, month, year)

        freeze = None
        if values["is_frozen"]:
            freeze = FreezeRequest(
                reason=values["freeze_reason"],
                start_date=values["freeze_start_date"],
                end_date=values["freeze_end_date"],
                evaluation_month=month,
                evaluation_year=year,
            )
            FreezePolicy.check_complete(freeze)

        evaluation = repo.create_evaluation(
            volunteer_id=volunteer_id,
            evaluator_id=actor.user_id,
            evaluation_month=month,
            evaluation_year=year,
            status="draft",
            is_frozen=values["is_frozen"],
            **{k: values[k] if values["is_frozen"] else None for k in FREEZE_FIELDS},
            **{k: values[k] for k in NOTE_FIELDS},
        )
        if freeze is not None:
            FreezePolicy(session).apply_freeze(volunteer_id, freeze, approved_by=actor.user_id)

        result = EvaluationScoringService(session).apply(evaluation, volunteer.role_type, submissions)

        AuditTrailRepo(session).record(
            actor.user_id,
            "CREATE",
            "evaluations",
            evaluation.id,
            new_values={
                "volunteer_id": volunteer_id,
                "evaluation_month": month,
                "evaluation_year": year,
                "percentage": result.percentage,
                "is_frozen": values["is_frozen"],
            },
        )
        logger.info(
            f"Created evaluation {evaluation.id} for volunteer {volunteer_id} "
            f"({month:02d}/{year}): {result.percentage}%"
        )
        return get_evaluation(session, evaluation.id)

    except Exception as e:
        fail(e, "Failed to create evaluation", {"volunteer_id": volunteer_id, "month": month, "year": year})


@log_operation("get_evaluation")
def get_evaluation(session: Session, evaluation_id: int) -> dict[str, Any]:
    try:
        evaluation = EvaluationRepo(session).get_with_details(evaluation_id)
        data = evaluation_to_dict(evaluation, with_volunteer=True)
        data["details_by_category"] = _details_by_category(evaluation)
        return data

    except Exception as e:
        fail(e, "Failed to load evaluation", {"evaluation_id": evaluation_id})


@log_operation("list_evaluations")
def list_evaluations(
    session: Session,
    filters: dict[str, Any] | None = None,
    page: int = 1,
    per_page: int = 10,
    grade: str | None = None,
) -> dict[str, Any]:
    """Filtered, paginated evaluations; ``grade`` restricts to one performance band."""
    values = validated(EvaluationFilterInput, filters or {}, "evaluation_filters")
    window = page_window(page, per_page)
    if grade is not None:
        try:
            lower, upper = grade_range(grade)
        except ValueError as e:
            raise ValidationError("performance_grade", str(e), grade) from e
        values["min_percentage"] = max(values["min_percentage"] or 0.0, lower)
        values["percentage_below"] = upper

    try:
        rows, total = EvaluationRepo(session).search(
            **values, limit=window.per_page, offset=window.offset
        )
        return {
            "evaluations": [evaluation_to_dict(e, with_volunteer=True) for e in rows],
            "pagination": pagination(total, window.page, window.per_page),
        }

    except Exception as e:
        fail(e, "Failed to list evaluations", {"filters": values})


@log_operation("update_evaluation")
def update_evaluation(
    session: Session, actor: Actor, evaluation_id: int, data: dict[str, Any]
) -> dict[str, Any]:
    """
    Update notes, freeze state and scores of an evaluation.

    A non-empty ``criteria_scores`` list replaces every stored detail and
    recomputes the totals. Switching ``is_frozen`` on applies the freeze policy;
    switching it off releases the freeze. Freeze fields edited while the
    evaluation stays frozen are checked again and copied to its freeze record.
    """
    values = validated(EvaluationUpdateInput, data, "evaluation_data")
    provided = {k for k in data if k in values}

    try:
        set_context(operation="update_evaluation", user_id=actor.user_id)
        repo = EvaluationRepo(session)
        evaluation = repo.get_by_id_required(evaluation_id)
        _check_editable(actor, evaluation)

        submissions = _submissions(values["criteria_scores"]) if values["criteria_scores"] else []
        old_values = {
            "percentage": evaluation.percentage,
            "is_frozen": evaluation.is_frozen,
            **{k: getattr(evaluation, k) for k in provided & set(NOTE_FIELDS)},
        }

        for field in NOTE_FIELDS:
            if field in provided:
                setattr(evaluation, field, values[field])
        for field in FREEZE_FIELDS:
            if field in provided:
                setattr(evaluation, field, values[field])

        unfreezing = "is_frozen" in provided and values["is_frozen"] is False
        if evaluation.is_frozen and not unfreezing and provided & set(FREEZE_FIELDS):
            freeze = _freeze_request(evaluation)
            FreezePolicy.check_complete(freeze)
            FreezeRepo(session).update_for_evaluation(
                evaluation.volunteer_id,
                evaluation.evaluation_month,
                evaluation.evaluation_year,
                reason=freeze.reason,
                start_date=freeze.start_date,
                end_date=freeze.end_date,
            )

        if "is_frozen" in provided and values["is_frozen"] is not None:
            if values["is_frozen"] and not evaluation.is_frozen:
                FreezePolicy(session).apply_freeze(
                    evaluation.volunteer_id, _freeze_request(evaluation), approved_by=actor.user_id
                )
            elif not values["is_frozen"] and evaluation.is_frozen:
                FreezeRepo(session).deactivate_for_evaluation(
                    evaluation.volunteer_id, evaluation.evaluation_month, evaluation.evaluation_year
                )
                for field in FREEZE_FIELDS:
                    setattr(evaluation, field, None)
            evaluation.is_frozen = values["is_frozen"]

        if submissions:
            role = session.get(VolunteerORM, evaluation.volunteer_id).role_type
            EvaluationScoringService(session).apply(evaluation, role, submissions)

        session.flush()
        AuditTrailRepo(session).record(
            actor.user_id,
            "UPDATE",
            "evaluations",
            evaluation_id,
            old_values=old_values,
            new_values={
                "percentage": evaluation.percentage,
                "is_frozen": evaluation.is_frozen,
                **{k: getattr(evaluation, k) for k in provided & set(NOTE_FIELDS)},
            },
        )
        return get_evaluation(session, evaluation_id)

    except Exception as e:
        fail(e, "Failed to update evaluation", {"evaluation_id": evaluation_id})


@log_operation("approve_evaluation")
def approve_evaluation(session: Session, actor: Actor, evaluation_id: int) -> dict[str, Any]:
    try:
        repo = EvaluationRepo(session)
        evaluation = repo.get_by_id_required(evaluation_id)
        if not actor.can_edit(evaluation.evaluator_id):
            raise UnauthorizedError(
                "Only the evaluator or an admin may approve this evaluation",
                operation="approve_evaluation",
            )
        if evaluation.status == "approved":
            raise EvaluationApprovedError(evaluation_id)

        repo.update(evaluation, status="approved")
        AuditTrailRepo(session).record(
            actor.user_id,
            "UPDATE",
            "evaluations",
            evaluation_id,
            old_values={"status": "draft"},
            new_values={"status": "approved"},
        )
        logger.info(f"Evaluation {evaluation_id} approved by user {actor.user_id}")
        return evaluation_to_dict(evaluation)

    except Exception as e:
        fail(e, "Failed to approve evaluation", {"evaluation_id": evaluation_id})


@log_operation("delete_evaluation")
def delete_evaluation(session: Session, actor: Actor, evaluation_id: int) -> None:
    """Delete an evaluation and its details (admin only); its freeze, if any, is released."""
    require_admin(actor, "delete_evaluation")
    try:
        repo = EvaluationRepo(session)
        evaluation = repo.get_by_id_required(evaluation_id)
        if evaluation.is_frozen:
            FreezeRepo(session).deactivate_for_evaluation(
                evaluation.volunteer_id, evaluation.evaluation_month, evaluation.evaluation_year
            )
        old_values = evaluation_to_dict(evaluation)
        repo.delete(evaluation)
        AuditTrailRepo(session).record(
            actor.user_id, "DELETE", "evaluations", evaluation_id, old_values=old_values
        )

    except Exception as e:
        fail(e, "Failed to delete evaluation", {"evaluation_id": evaluation_id})


def _evaluations_frame(session: Session, year: int) -> pd.DataFrame:
    rows = (
        session.query(
            EvaluationORM.volunteer_id,
            VolunteerORM.full_name,
            EvaluationORM.evaluation_month,
            EvaluationORM.status,
            EvaluationORM.is_frozen,
            EvaluationORM.percentage,
        )
        .join(VolunteerORM, VolunteerORM.id == EvaluationORM.volunteer_id)
        .filter(EvaluationORM.evaluation_year == year)
        .all()
    )
    return pd.DataFrame(
        rows,
        columns=["volunteer_id", "full_name", "month", "status", "is_frozen", "percentage"],
    )


@log_operation("evaluation_statistics")
def evaluation_statistics(session: Session, year: int) -> dict[str, Any]:
    """
    Yearly overview: counts, grade distribution, monthly averages and the top
    performers (approved evaluations, at least 3 of them, best 10 averages).
    """
    try:
        df = _evaluations_frame(session, year)
        if df.empty:
            return {
                "year": year,
                "general": {
                    "total": 0,
                    "approved": 0,
                    "draft": 0,
                    "frozen": 0,
                    "volunteers_evaluated": 0,
                    "average_percentage": 0.0,
                    "highest_percentage": None,
                    "lowest_percentage": None,
                },
                "grades": {label: 0 for _, label in GRADE_BANDS} | {"needs_improvement": 0},
                "monthly": [],
                "top_performers": [],
            }

        df["grade"] = df["percentage"].map(performance_grade)
        grades = {label: 0 for _, label in GRADE_BANDS} | {"needs_improvement": 0}
        grades.update({k: int(v) for k, v in df["grade"].value_counts().items()})

        monthly = (
            df.groupby("month")
            .agg(evaluations=("percentage", "size"), average=("percentage", "mean"))
            .reset_index()
            .sort_values("month")
        )

        approved = df[df["status"] == "approved"]
        if approved.empty:
            per_volunteer = pd.DataFrame(columns=["volunteer_id", "full_name", "evaluations", "average"])
        else:
            per_volunteer = (
                approved.groupby(["volunteer_id", "full_name"])
                .agg(evaluations=("percentage", "size"), average=("percentage", "mean"))
                .reset_index()
            )
        top = (
            per_volunteer[per_volunteer["evaluations"] >= 3]
            .sort_values(["average", "volunteer_id"], ascending=[False, True])
            .head(10)
        )

        return {
            "year": year,
            "general": {
                "total": int(len(df)),
                "approved": int((df["status"] == "approved").sum()),
                "draft": int((df["status"] == "draft").sum()),
                "frozen": int(df["is_frozen"].astype(bool).sum()),
                "volunteers_evaluated": int(df["volunteer_id"].nunique()),
                "average_percentage": round2(float(df["percentage"].mean())),
                "highest_percentage": float(df["percentage"].max()),
                "lowest_percentage": float(df["percentage"].min()),
            },
            "grades": grades,
            "monthly": [
                {"month": int(r.month), "count": int(r.evaluations), "average_percentage": round2(float(r.average))}
                for r in monthly.itertuples(index=False)
            ],
            "top_performers": [
                {
                    "volunteer_id": int(r.volunteer_id),
                    "full_name": r.full_name,
                    "evaluations": int(r.evaluations),
                    "average_percentage": round2(float(r.average)),
                }
                for r in top.itertuples(index=False)
            ],
        }

    except Exception as e:
        fail(e, "Failed to build evaluation statistics", {"year": year})
