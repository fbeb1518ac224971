"""
Volunteer management: registration, lookup, listing, status changes,
cumulative notes and the volunteers overview.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..domain.models import Actor
from ..domain.schemas import (
    NoteInput,
    VolunteerFilterInput,
    VolunteerInput,
    VolunteerStatusInput,
    VolunteerUpdateInput,
)
from ..infrastructure.exceptions import DuplicateRecordError
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.models import AlertRecordORM, EvaluationORM, FreezeRecordORM
from ..infrastructure.repositories import (
    AlertRepo,
    AuditTrailRepo,
    EvaluationRepo,
    NoteRepo,
    VolunteerRepo,
)
from .common import (
    alert_to_dict,
    evaluation_to_dict,
    fail,
    note_to_dict,
    page_window,
    pagination,
    require_admin,
    validated,
    volunteer_to_dict,
)

logger = get_logger(__name__)

WELCOME_NOTE = "Volunteer registered and welcomed to the team"


@log_operation("create_volunteer")
def create_volunteer(session: Session, actor: Actor, data: dict[str, Any]) -> dict[str, Any]:
    """
    Register a volunteer and record a welcome note.

    Args:
        session: Database session
        actor: The user performing the registration
        data: Volunteer fields (full_name, phone, join_date, role_type, personality_notes)

    Returns:
        The stored volunteer as a dictionary

    Raises:
        ValidationError: If input data is invalid
        DuplicateRecordError: If the phone number is already registered
    """
    values = validated(VolunteerInput, data, "volunteer_data")

    try:
        set_context(operation="create_volunteer", user_id=actor.user_id)
        repo = VolunteerRepo(session)
        if repo.get_by_phone(values["phone"]) is not None:
            raise DuplicateRecordError("phone", values["phone"])

        volunteer = repo.create_volunteer(**values, is_active=True, created_by=actor.user_id)
        NoteRepo(session).add(
            volunteer.id, WELCOME_NOTE, note_type="achievement", is_positive=True, created_by=actor.user_id
        )
        AuditTrailRepo(session).record(
            actor.user_id, "CREATE", "volunteers", volunteer.id, new_values=values
        )

        logger.info(f"Registered volunteer '{volunteer.full_name}' with ID {volunteer.id}")
        return volunteer_to_dict(volunteer)

    except Exception as e:
        fail(e, "Failed to create volunteer", {"phone": values.get("phone")})


@log_operation("get_volunteer")
def get_volunteer(
    session: Session, volunteer_id: int, today: date | None = None
) -> dict[str, Any]:
    """Volunteer with freeze status, last 5 evaluations, last 10 notes and active alerts."""
    today = today or date.today()
    try:
        set_context(volunteer_id=volunteer_id)
        repo = VolunteerRepo(session)
        volunteer = repo.get_by_id_required(volunteer_id)

        data = volunteer_to_dict(volunteer)
        data["current_freeze_count"] = repo.freeze_counts([volunteer_id], today.year).get(volunteer_id, 0)
        data["is_currently_frozen"] = volunteer_id in repo.currently_frozen([volunteer_id], today)
        data["recent_evaluations"] = [
            evaluation_to_dict(e) for e in EvaluationRepo(session).for_volunteer(volunteer_id, limit=5)
        ]
        data["recent_notes"] = [note_to_dict(n) for n in NoteRepo(session).recent(volunteer_id, 10)]
        data["active_alerts"] = [alert_to_dict(a) for a in AlertRepo(session).active_for_volunteer(volunteer_id)]
        return data

    except Exception as e:
        fail(e, "Failed to load volunteer", {"volunteer_id": volunteer_id})


@log_operation("list_volunteers")
def list_volunteers(
    session: Session,
    filters: dict[str, Any] | None = None,
    page: int = 1,
    per_page: int = 10,
    today: date | None = None,
) -> dict[str, Any]:
    """Filtered, paginated volunteers, each with its freeze count and currently-frozen flag."""
    today = today or date.today()
    criteria = validated(VolunteerFilterInput, filters or {}, "volunteer_filters")
    window = page_window(page, per_page)

    try:
        repo = VolunteerRepo(session)
        rows, total = repo.search(**criteria, limit=window.per_page, offset=window.offset)
        ids = [v.id for v in rows]
        freeze_counts = repo.freeze_counts(ids, today.year)
        frozen = repo.currently_frozen(ids, today)

        volunteers = []
        for v in rows:
            item = volunteer_to_dict(v)
            item["current_freeze_count"] = freeze_counts.get(v.id, 0)
            item["is_currently_frozen"] = v.id in frozen
            volunteers.append(item)

        return {"volunteers": volunteers, "pagination": pagination(total, window.page, window.per_page)}

    except Exception as e:
        fail(e, "Failed to list volunteers", {"filters": criteria})


@log_operation("update_volunteer")
def update_volunteer(
    session: Session, actor: Actor, volunteer_id: int, data: dict[str, Any]
) -> dict[str, Any]:
    """Update the given volunteer fields; the phone number stays unique."""
    values = validated(VolunteerUpdateInput, data, "volunteer_data")
    changes = {k: values[k] for k in data if k in values}

    try:
        set_context(operation="update_volunteer", user_id=actor.user_id, volunteer_id=volunteer_id)
        repo = VolunteerRepo(session)
        volunteer = repo.get_by_id_required(volunteer_id)

        phone = changes.get("phone")
        if phone and phone != volunteer.phone:
            existing = repo.get_by_phone(phone)
            if existing is not None and existing.id != volunteer_id:
                raise DuplicateRecordError("phone", phone)

        old_values = {k: getattr(volunteer, k) for k in changes}
        repo.update_volunteer(volunteer, **changes, updated_by=actor.user_id)
        AuditTrailRepo(session).record(
            actor.user_id, "UPDATE", "volunteers", volunteer_id, old_values=old_values, new_values=changes
        )

        logger.info(f"Updated volunteer {volunteer_id}: {', '.join(sorted(changes))}")
        return volunteer_to_dict(volunteer)

    except Exception as e:
        fail(e, "Failed to update volunteer", {"volunteer_id": volunteer_id})


@log_operation("set_volunteer_status")
def set_volunteer_status(
    session: Session,
    actor: Actor,
    volunteer_id: int,
    is_active: Any,
    reason: str | None = None,
) -> dict[str, Any]:
    """
    Activate or deactivate a volunteer, recording the reason as a cumulative note.

    Example:
        >>> set_volunteer_status(session, admin, 4, False, "Moved abroad")["is_active"]
        False
    """
    values = validated(VolunteerStatusInput, {"is_active": is_active, "reason": reason}, "status")

    try:
        repo = VolunteerRepo(session)
        volunteer = repo.get_by_id_required(volunteer_id)
        previous = volunteer.is_active
        repo.update(volunteer, is_active=values["is_active"], updated_by=actor.user_id)

        content = f"Volunteer {'activated' if values['is_active'] else 'deactivated'}"
        if values["reason"]:
            content += f" - Reason: {values['reason']}"
        NoteRepo(session).add(
            volunteer_id,
            content,
            note_type="improvement",
            is_positive=values["is_active"],
            created_by=actor.user_id,
        )
        AuditTrailRepo(session).record(
            actor.user_id,
            "UPDATE",
            "volunteers",
            volunteer_id,
            old_values={"is_active": previous},
            new_values={"is_active": values["is_active"], "reason": values["reason"]},
        )
        return volunteer_to_dict(volunteer)

    except Exception as e:
        fail(e, "Failed to change volunteer status", {"volunteer_id": volunteer_id})


@log_operation("delete_volunteer")
def delete_volunteer(session: Session, actor: Actor, volunteer_id: int) -> None:
    """Delete a volunteer with all evaluations, freezes, alerts and notes (admin only)."""
    require_admin(actor, "delete_volunteer")
    try:
        repo = VolunteerRepo(session)
        volunteer = repo.get_by_id_required(volunteer_id)
        old_values = volunteer_to_dict(volunteer)
        repo.delete(volunteer)
        AuditTrailRepo(session).record(
            actor.user_id, "DELETE", "volunteers", volunteer_id, old_values=old_values
        )
        logger.info(f"Deleted volunteer {volunteer_id}")

    except Exception as e:
        fail(e, "Failed to delete volunteer", {"volunteer_id": volunteer_id})


@log_operation("add_volunteer_note")
def add_note(
    session: Session, actor: Actor, volunteer_id: int, data: dict[str, Any]
) -> dict[str, Any]:
    values = validated(NoteInput, data, "note_data")
    try:
        VolunteerRepo(session).get_by_id_required(volunteer_id)
        note = NoteRepo(session).add(volunteer_id, created_by=actor.user_id, **values)
        return note_to_dict(note)

    except Exception as e:
        fail(e, "Failed to add note", {"volunteer_id": volunteer_id})


@log_operation("volunteer_statistics")
def volunteer_statistics(session: Session, today: date | None = None) -> dict[str, Any]:
    """Headcounts, freeze usage, evaluation activity and open alerts across all volunteers."""
    today = today or date.today()
    try:
        repo = VolunteerRepo(session)
        active = repo.count_by("is_active")
        total_active = active.get("True", 0)
        total_inactive = active.get("False", 0)

        active_freezes = (
            session.query(func.count(FreezeRecordORM.id))
            .filter(FreezeRecordORM.freeze_year == today.year, FreezeRecordORM.is_active.is_(True))
            .scalar()
        )
        currently_frozen = (
            session.query(func.count(func.distinct(FreezeRecordORM.volunteer_id)))
            .filter(
                FreezeRecordORM.is_active.is_(True),
                FreezeRecordORM.start_date <= today,
                FreezeRecordORM.end_date >= today,
            )
            .scalar()
        )

        evaluated, avg_percentage = (
            session.query(
                func.count(func.distinct(EvaluationORM.volunteer_id)), func.avg(EvaluationORM.percentage)
            )
            .filter(EvaluationORM.evaluation_year == today.year)
            .one()
        )
        this_month = (
            session.query(func.count(EvaluationORM.id))
            .filter(
                EvaluationORM.evaluation_year == today.year,
                EvaluationORM.evaluation_month == today.month,
            )
            .scalar()
        )

        open_alerts = AlertRepo(session).counts_by("severity", AlertRecordORM.is_resolved.is_(False))

        return {
            "general": {
                "total": total_active + total_inactive,
                "active": total_active,
                "inactive": total_inactive,
                "by_role": repo.count_by("role_type"),
            },
            "freeze": {
                "active_freezes_this_year": int(active_freezes or 0),
                "currently_frozen": int(currently_frozen or 0),
            },
            "evaluations": {
                "volunteers_evaluated_this_year": int(evaluated or 0),
                "average_percentage": round(float(avg_percentage), 2) if avg_percentage is not None else 0.0,
                "evaluations_this_month": int(this_month or 0),
            },
            "alerts": {
                "active": sum(open_alerts.values()),
                "high_severity": open_alerts.get("high", 0),
            },
        }

    except Exception as e:
        fail(e, "Failed to build volunteer statistics", {})
