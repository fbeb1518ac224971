from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from volunteer_eval.application import criteria as criteria_api
from volunteer_eval.domain.models import Actor
from volunteer_eval.web.dependencies import get_db_session, require_admin, require_evaluator
from volunteer_eval.web.schemas import (
    Criterion,
    CriterionCreateRequest,
    CriterionDetail,
    CriterionDuplicateRequest,
    CriterionList,
    CriterionReorderRequest,
    CriterionStatusRequest,
    CriterionUpdateRequest,
)

router = APIRouter(prefix="/api/criteria", tags=["criteria"])


@router.get("", response_model=CriterionList)
def list_criteria(
    category: Optional[str] = None,
    applies_to_role: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> CriterionList:
    filters = {
        "category": category,
        "applies_to_role": applies_to_role,
        "include_inactive": include_inactive,
    }
    return CriterionList(**criteria_api.list_criteria(db, filters))


@router.get("/{criterion_id}", response_model=CriterionDetail)
def get_criterion(
    criterion_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> CriterionDetail:
    return CriterionDetail(**criteria_api.get_criterion(db, criterion_id))


@router.post("", response_model=Criterion, status_code=status.HTTP_201_CREATED)
def create_criterion(
    payload: CriterionCreateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> Criterion:
    try:
        criterion = criteria_api.create_criterion(db, actor, payload.model_dump())
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Criterion(**criterion)


@router.put("/reorder", response_model=list[Criterion])
def reorder_criteria(
    payload: CriterionReorderRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> list[Criterion]:
    try:
        updated = criteria_api.reorder_criteria(
            db, actor, [item.model_dump() for item in payload.criteria_order]
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return [Criterion(**c) for c in updated]


@router.put("/{criterion_id}", response_model=Criterion)
def update_criterion(
    criterion_id: int,
    payload: CriterionUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> Criterion:
    try:
        criterion = criteria_api.update_criterion(
            db, actor, criterion_id, payload.model_dump(exclude_unset=True)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Criterion(**criterion)


@router.patch("/{criterion_id}/status", response_model=Criterion)
def set_criterion_status(
    criterion_id: int,
    payload: CriterionStatusRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> Criterion:
    try:
        criterion = criteria_api.set_criterion_status(db, actor, criterion_id, payload.is_active)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Criterion(**criterion)


@router.delete("/{criterion_id}")
def delete_criterion(
    criterion_id: int,
    force: bool = False,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> dict[str, Any]:
    try:
        result = criteria_api.delete_criterion(db, actor, criterion_id, force=force)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result


@router.post(
    "/{criterion_id}/duplicate", response_model=Criterion, status_code=status.HTTP_201_CREATED
)
def duplicate_criterion(
    criterion_id: int,
    payload: CriterionDuplicateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> Criterion:
    try:
        criterion = criteria_api.duplicate_criterion(db, actor, criterion_id, payload.new_name)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Criterion(**criterion)
