"""
Helpers shared by the application modules: input validation, permission
checks, error wrapping, pagination and row serialisation.
"""

from __future__ import annotations

import math
from typing import Any, NoReturn

from pydantic import BaseModel

from ..domain.analytics import performance_grade
from ..domain.models import Actor
from ..domain.schemas import PaginationInput, validate_input
from ..infrastructure.exceptions import (
    UnauthorizedError,
    ValidationError,
    VolunteerEvaluationError,
    create_user_friendly_error_message,
    log_error_details,
)
from ..infrastructure.logging import get_logger
from ..infrastructure.models import (
    AlertRecordORM,
    CriterionORM,
    CumulativeNoteORM,
    EvaluationORM,
    VolunteerORM,
)

logger = get_logger(__name__)


def validated(schema_class: type[BaseModel], data: dict[str, Any], field: str) -> dict[str, Any]:
    """Validate ``data`` against ``schema_class`` or raise ValidationError naming ``field``."""
    result = validate_input(schema_class, data)
    if not result.success:
        error_msg = "; ".join([f"{e.field}: {e.message}" for e in result.errors])
        logger.warning(f"Validation failed for {field}: {error_msg}")
        raise ValidationError(field, error_msg)
    if result.data is None:
        raise RuntimeError("Validation succeeded but returned no data")
    return result.data


def require_admin(actor: Actor, operation: str) -> None:
    if not actor.is_admin:
        raise UnauthorizedError(f"Only admins may {operation.replace('_', ' ')}", operation=operation)


def fail(e: Exception, message: str, context: dict[str, Any]) -> NoReturn:
    """Log ``e`` and re-raise it; unexpected exceptions are wrapped in the base error."""
    error_details = log_error_details(e, context)
    logger.error(message, extra=error_details)

    if isinstance(e, VolunteerEvaluationError):
        raise e

    raise VolunteerEvaluationError(
        f"{message}: {str(e)}",
        details=error_details,
        user_message=create_user_friendly_error_message(e),
    ) from e


def page_window(page: int, per_page: int) -> PaginationInput:
    """Validated paging parameters; ``offset`` is the first row of the page."""
    values = validated(PaginationInput, {"page": page, "per_page": per_page}, "pagination")
    return PaginationInput(**values)


def pagination(total: int, page: int, per_page: int) -> dict[str, int]:
    return {
        "current_page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": math.ceil(total / per_page) if per_page else 0,
    }


def volunteer_to_dict(v: VolunteerORM) -> dict[str, Any]:
    return {
        "id": v.id,
        "full_name": v.full_name,
        "phone": v.phone,
        "join_date": v.join_date,
        "role_type": v.role_type,
        "personality_notes": v.personality_notes,
        "is_active": v.is_active,
        "created_by": v.created_by,
        "created_at": v.created_at,
        "updated_at": v.updated_at,
    }


def criterion_to_dict(c: CriterionORM) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "name_en": c.name_en,
        "description": c.description,
        "category": c.category,
        "data_type": c.data_type,
        "max_score": c.max_score,
        "weight": c.weight,
        "applies_to_role": c.applies_to_role,
        "choices": c.choices,
        "is_required": c.is_required,
        "show_in_report": c.show_in_report,
        "sort_order": c.sort_order,
        "is_active": c.is_active,
    }


def evaluation_to_dict(e: EvaluationORM, with_volunteer: bool = False) -> dict[str, Any]:
    data = {
        "id": e.id,
        "volunteer_id": e.volunteer_id,
        "evaluator_id": e.evaluator_id,
        "evaluation_month": e.evaluation_month,
        "evaluation_year": e.evaluation_year,
        "status": e.status,
        "total_score": e.total_score,
        "max_possible_score": e.max_possible_score,
        "percentage": e.percentage,
        "performance_grade": performance_grade(e.percentage),
        "is_frozen": e.is_frozen,
        "freeze_reason": e.freeze_reason,
        "freeze_start_date": e.freeze_start_date,
        "freeze_end_date": e.freeze_end_date,
        "human_note": e.human_note,
        "praise_note": e.praise_note,
        "improvement_suggestions": e.improvement_suggestions,
        "created_at": e.created_at,
        "updated_at": e.updated_at,
    }
    if with_volunteer and e.volunteer is not None:
        data["volunteer_name"] = e.volunteer.full_name
        data["role_type"] = e.volunteer.role_type
    return data


def alert_to_dict(a: AlertRecordORM) -> dict[str, Any]:
    return {
        "id": a.id,
        "volunteer_id": a.volunteer_id,
        "volunteer_name": a.volunteer.full_name if a.volunteer is not None else None,
        "alert_type": a.alert_type,
        "severity": a.severity,
        "criteria_id": a.criteria_id,
        "criteria_name": a.criterion.name if a.criterion is not None else None,
        "trigger_condition": a.trigger_condition,
        "alert_message": a.alert_message,
        "consecutive_months": a.consecutive_months,
        "is_resolved": a.is_resolved,
        "resolved_by": a.resolved_by,
        "resolved_at": a.resolved_at,
        "resolution_notes": a.resolution_notes,
        "created_at": a.created_at,
    }


def note_to_dict(n: CumulativeNoteORM) -> dict[str, Any]:
    return {
        "id": n.id,
        "volunteer_id": n.volunteer_id,
        "note_type": n.note_type,
        "content": n.content,
        "is_positive": n.is_positive,
        "created_by": n.created_by,
        "created_at": n.created_at,
    }
