from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from volunteer_eval.application import volunteers as volunteer_api
from volunteer_eval.domain.models import Actor
from volunteer_eval.web.dependencies import get_db_session, require_admin, require_evaluator
from volunteer_eval.web.schemas import (
    Note,
    NoteCreateRequest,
    Volunteer,
    VolunteerCreateRequest,
    VolunteerList,
    VolunteerStatusRequest,
    VolunteerUpdateRequest,
)

router = APIRouter(prefix="/api/volunteers", tags=["volunteers"])


@router.get("", response_model=VolunteerList)
def list_volunteers(
    search: Optional[str] = None,
    role_type: Optional[str] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> VolunteerList:
    filters = {
        "search": search,
        "role_type": role_type,
        "is_active": is_active,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    payload = volunteer_api.list_volunteers(db, filters, page=page, per_page=per_page)
    return VolunteerList(**payload)


@router.get("/statistics/overview")
def volunteer_statistics(
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> dict[str, Any]:
    return volunteer_api.volunteer_statistics(db)


@router.get("/{volunteer_id}")
def get_volunteer(
    volunteer_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> dict[str, Any]:
    return volunteer_api.get_volunteer(db, volunteer_id)


@router.post("", response_model=Volunteer, status_code=status.HTTP_201_CREATED)
def create_volunteer(
    payload: VolunteerCreateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> Volunteer:
    try:
        volunteer = volunteer_api.create_volunteer(db, actor, payload.model_dump(exclude_none=True))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Volunteer(**volunteer)


@router.put("/{volunteer_id}", response_model=Volunteer)
def update_volunteer(
    volunteer_id: int,
    payload: VolunteerUpdateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> Volunteer:
    try:
        volunteer = volunteer_api.update_volunteer(
            db, actor, volunteer_id, payload.model_dump(exclude_unset=True)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Volunteer(**volunteer)


@router.patch("/{volunteer_id}/status", response_model=Volunteer)
def set_volunteer_status(
    volunteer_id: int,
    payload: VolunteerStatusRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> Volunteer:
    try:
        volunteer = volunteer_api.set_volunteer_status(
            db, actor, volunteer_id, payload.is_active, payload.reason
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Volunteer(**volunteer)


@router.delete("/{volunteer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_volunteer(
    volunteer_id: int,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_admin),
) -> None:
    try:
        volunteer_api.delete_volunteer(db, actor, volunteer_id)
        db.commit()
    except Exception:
        db.rollback()
        raise


@router.post("/{volunteer_id}/notes", response_model=Note, status_code=status.HTTP_201_CREATED)
def add_note(
    volunteer_id: int,
    payload: NoteCreateRequest,
    db: Session = Depends(get_db_session),
    actor: Actor = Depends(require_evaluator),
) -> Note:
    try:
        note = volunteer_api.add_note(db, actor, volunteer_id, payload.model_dump())
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Note(**note)
