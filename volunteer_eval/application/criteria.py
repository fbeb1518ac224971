"""
Criterion registry: the configurable catalogue of scoring criteria.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from sqlalchemy.orm import Session

from ..domain.models import Actor
from ..domain.schemas import (
    CriterionDuplicateInput,
    CriterionFilterInput,
    CriterionInput,
    CriterionReorderInput,
    CriterionUpdateInput,
)
from ..infrastructure.exceptions import CriterionInUseError, DuplicateRecordError
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.repositories import AuditTrailRepo, CriterionRepo
from .common import criterion_to_dict, fail, require_admin, validated

logger = get_logger(__name__)


@log_operation("list_criteria")
def list_criteria(session: Session, filters: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Criteria ordered by category, sort order and name, plus the same list grouped by category.

    ``applies_to_role`` also matches criteria that apply to all roles.
    """
    values = validated(CriterionFilterInput, filters or {}, "criteria_filters")
    try:
        rows = CriterionRepo(session).list_filtered(**values)
        criteria = [criterion_to_dict(c) for c in rows]
        grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for item in criteria:
            grouped[item["category"]].append(item)
        return {"criteria": criteria, "grouped": dict(grouped), "total": len(criteria)}

    except Exception as e:
        fail(e, "Failed to list criteria", {"filters": values})


@log_operation("get_criterion")
def get_criterion(session: Session, criterion_id: int) -> dict[str, Any]:
    try:
        repo = CriterionRepo(session)
        criterion = repo.get_by_id_required(criterion_id)
        data = criterion_to_dict(criterion)
        data["usage_stats"] = repo.usage_stats(criterion)
        return data

    except Exception as e:
        fail(e, "Failed to load criterion", {"criterion_id": criterion_id})


@log_operation("create_criterion")
def create_criterion(session: Session, actor: Actor, data: dict[str, Any]) -> dict[str, Any]:
    """
    Add a criterion to the catalogue (admin only).

    Raises:
        UnauthorizedError: If the actor is not an admin
        ValidationError: If input data is invalid
        DuplicateRecordError: If a criterion with the same name exists
    """
    require_admin(actor, "create_criterion")
    values = validated(CriterionInput, data, "criterion_data")

    try:
        set_context(operation="create_criterion", user_id=actor.user_id)
        repo = CriterionRepo(session)
        if repo.get_by_name(values["name"]) is not None:
            raise DuplicateRecordError("name", values["name"])

        criterion = repo.create_criterion(**values, is_active=True)
        AuditTrailRepo(session).record(
            actor.user_id, "CREATE", "evaluation_criteria", criterion.id, new_values=values
        )
        logger.info(f"Created criterion '{criterion.name}' with ID {criterion.id}")
        return criterion_to_dict(criterion)

    except Exception as e:
        fail(e, "Failed to create criterion", {"name": values.get("name")})


@log_operation("update_criterion")
def update_criterion(
    session: Session, actor: Actor, criterion_id: int, data: dict[str, Any]
) -> dict[str, Any]:
    require_admin(actor, "update_criterion")
    values = validated(CriterionUpdateInput, data, "criterion_data")
    changes = {k: values[k] for k in data if k in values}

    try:
        repo = CriterionRepo(session)
        criterion = repo.get_by_id_required(criterion_id)

        name = changes.get("name")
        if name and name != criterion.name:
            existing = repo.get_by_name(name)
            if existing is not None and existing.id != criterion_id:
                raise DuplicateRecordError("name", name)

        old_values = {k: getattr(criterion, k) for k in changes}
        repo.update_criterion(criterion, **changes)
        AuditTrailRepo(session).record(
            actor.user_id,
            "UPDATE",
            "evaluation_criteria",
            criterion_id,
            old_values=old_values,
            new_values=changes,
        )
        return criterion_to_dict(criterion)

    except Exception as e:
        fail(e, "Failed to update criterion", {"criterion_id": criterion_id})


@log_operation("set_criterion_status")
def set_criterion_status(
    session: Session, actor: Actor, criterion_id: int, is_active: bool
) -> dict[str, Any]:
    """Inactive criteria stay attached to past evaluations but are skipped by new scoring."""
    require_admin(actor, "change_criterion_status")
    try:
        repo = CriterionRepo(session)
        criterion = repo.get_by_id_required(criterion_id)
        previous = criterion.is_active
        repo.update(criterion, is_active=bool(is_active))
        AuditTrailRepo(session).record(
            actor.user_id,
            "UPDATE",
            "evaluation_criteria",
            criterion_id,
            old_values={"is_active": previous},
            new_values={"is_active": bool(is_active)},
        )
        return criterion_to_dict(criterion)

    except Exception as e:
        fail(e, "Failed to change criterion status", {"criterion_id": criterion_id})


@log_operation("delete_criterion")
def delete_criterion(
    session: Session, actor: Actor, criterion_id: int, force: bool = False
) -> dict[str, Any]:
    """
    Delete a criterion (admin only).

    A criterion with recorded scores is refused with CriterionInUseError unless
    ``force`` is set, in which case its evaluation details are deleted first.
    Stored evaluation totals are not recomputed.
    """
    require_admin(actor, "delete_criterion")
    try:
        repo = CriterionRepo(session)
        criterion = repo.get_by_id_required(criterion_id)
        usage = repo.usage_count(criterion_id)
        if usage > 0 and not force:
            raise CriterionInUseError(criterion_id, usage)

        removed = repo.delete_details(criterion_id) if usage > 0 else 0
        old_values = criterion_to_dict(criterion)
        repo.delete(criterion)
        AuditTrailRepo(session).record(
            actor.user_id,
            "DELETE",
            "evaluation_criteria",
            criterion_id,
            old_values=old_values,
            description=f"Removed {removed} evaluation details" if removed else None,
        )
        logger.info(f"Deleted criterion {criterion_id} ({removed} details removed)")
        return {"deleted_id": criterion_id, "deleted_details": removed}

    except Exception as e:
        fail(e, "Failed to delete criterion", {"criterion_id": criterion_id, "force": force})


@log_operation("duplicate_criterion")
def duplicate_criterion(
    session: Session, actor: Actor, criterion_id: int, new_name: str
) -> dict[str, Any]:
    """Copy a criterion under ``new_name``; the copy starts inactive and sorts after the source."""
    require_admin(actor, "duplicate_criterion")
    values = validated(CriterionDuplicateInput, {"new_name": new_name}, "new_name")

    try:
        repo = CriterionRepo(session)
        source = repo.get_by_id_required(criterion_id)
        if repo.get_by_name(values["new_name"]) is not None:
            raise DuplicateRecordError("name", values["new_name"])

        copy = repo.create_criterion(
            name=values["new_name"],
            name_en=f"{source.name_en} (Copy)" if source.name_en else None,
            description=source.description,
            category=source.category,
            data_type=source.data_type,
            max_score=source.max_score,
            weight=source.weight,
            applies_to_role=source.applies_to_role,
            choices=dict(source.choices) if source.choices else None,
            is_required=source.is_required,
            show_in_report=source.show_in_report,
            sort_order=source.sort_order + 1,
            is_active=False,
        )
        AuditTrailRepo(session).record(
            actor.user_id,
            "CREATE",
            "evaluation_criteria",
            copy.id,
            new_values={"duplicated_from": criterion_id, "name": copy.name},
        )
        return criterion_to_dict(copy)

    except Exception as e:
        fail(e, "Failed to duplicate criterion", {"criterion_id": criterion_id})


@log_operation("reorder_criteria")
def reorder_criteria(
    session: Session, actor: Actor, criteria_order: list[dict[str, int]]
) -> list[dict[str, Any]]:
    require_admin(actor, "reorder_criteria")
    values = validated(CriterionReorderInput, {"criteria_order": criteria_order}, "criteria_order")

    try:
        order = [(item["id"], item["sort_order"]) for item in values["criteria_order"]]
        updated = CriterionRepo(session).reorder(order)
        AuditTrailRepo(session).record(
            actor.user_id,
            "UPDATE",
            "evaluation_criteria",
            "reorder",
            new_values={"criteria_order": values["criteria_order"]},
        )
        return [criterion_to_dict(c) for c in updated]

    except Exception as e:
        fail(e, "Failed to reorder criteria", {"count": len(criteria_order)})
