from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from volunteer_eval.application import evaluations as evaluation_api
from volunteer_eval.domain.models import Actor
from volunteer_eval.web.dependencies import get_db_session, require_admin, require_evaluator
from volunteer_eval.web.schemas import (
    EvaluationCreateRequest,
    EvaluationDetail,
    EvaluationList,
    EvaluationSummary,
    EvaluationUpdateRequest,
)

router = APIRouter(prefix="/api/evaluations", tags=["evaluations"])


@router.get("", response_model=EvaluationList)
def list_evaluations(
    volunteer_id: Optional[int] = None,
    evaluator_id: Optional[int] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    min_percentage: Optional[float] = None,
    max_percentage: Optional[float] = None,
    performance_grade: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> EvaluationList:
    filters = {
        "volunteer_id": volunteer_id,
        "evaluator_id": evaluator_id,
        "year": year,
        "month": month,
        "status": status_filter,
        "min_percentage": min_percentage,
        "max_percentage": max_percentage,
    }
    payload = evaluation_api.list_evaluations(
        db, filters, page=page, per_page=per_page, grade=performance_grade
    )
    return EvaluationList(**payload)


@router.get("/statistics/overview")
def evaluation_statistics(
    year: Optional[int] = None,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> dict[str, Any]:
    return evaluation_api.evaluation_statistics(db, year or date.today().year)


@router.get("/{evaluation_id}", response_model=EvaluationDetail)
def get_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> EvaluationDetail:
    return EvaluationDetail(**evaluation_api.get_evaluation(db, evaluation_id))


@router.post("", response_model=EvaluationDetail, status_code=status.HTTP_201_CREATED)
def create_evaluation(
    payload: EvaluationCreateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> EvaluationDetail:
    try:
        evaluation = evaluation_api.create_evaluation(db, actor, payload.model_dump())
        db.commit()
    except Exception:
        db.rollback()
        raise
    return EvaluationDetail(**evaluation)


@router.put("/{evaluation_id}", response_model=EvaluationDetail)
def update_evaluation(
    evaluation_id: int,
    payload: EvaluationUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> EvaluationDetail:
    try:
        evaluation = evaluation_api.update_evaluation(
            db, actor, evaluation_id, payload.model_dump(exclude_unset=True)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return EvaluationDetail(**evaluation)


@router.patch("/{evaluation_id}/approve", response_model=EvaluationSummary)
def approve_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> EvaluationSummary:
    try:
        evaluation = evaluation_api.approve_evaluation(db, actor, evaluation_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return EvaluationSummary(**evaluation)


@router.delete("/{evaluation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> None:
    try:
        evaluation_api.delete_evaluation(db, actor, evaluation_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
