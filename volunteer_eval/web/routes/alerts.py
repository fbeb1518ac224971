from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from volunteer_eval.application import alerts as alert_api
from volunteer_eval.domain.models import Actor
from volunteer_eval.web.dependencies import get_db_session, require_admin, require_evaluator
from volunteer_eval.web.schemas import (
    Alert,
    AlertCheckResponse,
    AlertCreateRequest,
    AlertDetail,
    AlertList,
    AlertResolveRequest,
)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("", response_model=AlertList)
def list_alerts(
    volunteer_id: Optional[int] = None,
    alert_type: Optional[str] = None,
    severity: Optional[str] = None,
    is_resolved: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> AlertList:
    filters = {
        "volunteer_id": volunteer_id,
        "alert_type": alert_type,
        "severity": severity,
        "is_resolved": is_resolved,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    return AlertList(**alert_api.list_alerts(db, filters, page=page, per_page=per_page))


@router.get("/statistics/overview")
def alert_statistics(
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> dict[str, Any]:
    return alert_api.alert_statistics(db)


@router.post("/check-automatic", response_model=AlertCheckResponse)
def check_automatic_alerts(
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> AlertCheckResponse:
    try:
        result = alert_api.check_automatic_alerts(db, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return AlertCheckResponse(**result)


@router.get("/{alert_id}", response_model=AlertDetail)
def get_alert(
    alert_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> AlertDetail:
    return AlertDetail(**alert_api.get_alert(db, alert_id))


@router.post("", response_model=Alert, status_code=status.HTTP_201_CREATED)
def create_alert(
    payload: AlertCreateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> Alert:
    try:
        alert = alert_api.create_manual_alert(db, actor, payload.model_dump(exclude_none=True))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Alert(**alert)


@router.patch("/{alert_id}/resolve", response_model=Alert)
def resolve_alert(
    alert_id: int,
    payload: AlertResolveRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> Alert:
    try:
        alert = alert_api.resolve_alert(db, actor, alert_id, payload.resolution_notes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Alert(**alert)


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_alert(
    alert_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> None:
    try:
        alert_api.delete_alert(db, actor, alert_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
