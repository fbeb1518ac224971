from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from volunteer_eval.application import reports as report_api
from volunteer_eval.domain.models import Actor
from volunteer_eval.infrastructure.exceptions import ValidationError
from volunteer_eval.web.dependencies import get_db_session, require_evaluator

router = APIRouter(prefix="/api/reports", tags=["reports"])


def _parse_ids(raw: str, field: str) -> list[int]:
    """Parse a comma separated list of integers such as ``"1,2,3"``."""
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise ValidationError(field, "must be a comma separated list of integers", raw) from exc


@router.get("/volunteer/{volunteer_id}")
def volunteer_report(
    volunteer_id: int,
    year: Optional[int] = None,
    months: Optional[str] = None,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> dict[str, Any]:
    month_list = _parse_ids(months, "months") if months else None
    return report_api.volunteer_report(db, volunteer_id, year=year, months=month_list)


@router.get("/organization")
def organization_report(
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> dict[str, Any]:
    try:
        report = report_api.organization_report(db, actor, year=year, month=month)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return report


@router.get("/comparison")
def comparison_report(
    volunteer_ids: str,
    year: Optional[int] = None,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> dict[str, Any]:
    ids = _parse_ids(volunteer_ids, "volunteer_ids")
    return report_api.comparison_report(db, ids, year=year)
