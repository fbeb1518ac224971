"""
Alerts: listing, detail with recommendations, manual creation, resolution,
deletion, the automatic rule run and the alerts overview.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from ..domain.models import Actor
from ..domain.schemas import AlertFilterInput, AlertResolutionInput, ManualAlertInput, ManualTrigger
from ..domain.scoring import criterion_percentage
from ..domain.services import AlertRuleService
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.models import AlertRecordORM
from ..infrastructure.repositories import (
    AlertRepo,
    AuditTrailRepo,
    CriterionRepo,
    EvaluationRepo,
    NoteRepo,
    VolunteerRepo,
)
from .common import alert_to_dict, fail, page_window, pagination, require_admin, validated

logger = get_logger(__name__)

RECOMMENDATIONS: dict[str, list[str]] = {
    "weak_performance": [
        "Review the volunteer's goals and provide the necessary training",
        "Assign a mentor or supervisor to follow up on development",
        "Set up a tailored improvement plan with clear deadlines",
    ],
    "no_interaction": [
        "Contact the volunteer directly to understand the reasons",
        "Encourage participation in the team's social activities",
        "Offer workshops on the importance of communication and teamwork",
    ],
    "improvement_needed": [
        "Identify the specific areas that need development",
        "Set up a staged training plan",
        "Follow up on progress regularly",
    ],
    "achievement": [
        "Recognise and thank the volunteer for the outstanding achievement",
        "Share the success with the rest of the team",
        "Consider assigning additional or leadership responsibilities",
    ],
}
REASSIGNMENT_RECOMMENDATION = "Consider requalifying the volunteer or changing their role"
REASSIGNMENT_THRESHOLD = 40.0


def recommendations_for(alert_type: str, related_percentages: list[float]) -> list[str]:
    """
    Follow-up actions for an alert type.

    A weak performance alert whose related criterion averages below 40% also
    suggests a role change.
    """
    recommendations = list(RECOMMENDATIONS.get(alert_type, []))
    if alert_type == "weak_performance" and related_percentages:
        average = sum(related_percentages) / len(related_percentages)
        if average < REASSIGNMENT_THRESHOLD:
            recommendations.append(REASSIGNMENT_RECOMMENDATION)
    return recommendations


@log_operation("list_alerts")
def list_alerts(
    session: Session, filters: dict[str, Any] | None = None, page: int = 1, per_page: int = 10
) -> dict[str, Any]:
    values = validated(AlertFilterInput, filters or {}, "alert_filters")
    window = page_window(page, per_page)
    try:
        rows, total = AlertRepo(session).search(**values, limit=window.per_page, offset=window.offset)
        return {
            "alerts": [alert_to_dict(a) for a in rows],
            "pagination": pagination(total, window.page, window.per_page),
        }

    except Exception as e:
        fail(e, "Failed to list alerts", {"filters": values})


@log_operation("get_alert")
def get_alert(session: Session, alert_id: int) -> dict[str, Any]:
    """Alert with the last 6 approved evaluations of its criterion and recommendations."""
    try:
        alert = AlertRepo(session).get_by_id_required(alert_id)
        related = []
        if alert.criteria_id is not None:
            for evaluation, detail, criterion in EvaluationRepo(session).details_for_criterion(
                alert.volunteer_id, alert.criteria_id, limit=6
            ):
                related.append(
                    {
                        "evaluation_id": evaluation.id,
                        "evaluation_month": evaluation.evaluation_month,
                        "evaluation_year": evaluation.evaluation_year,
                        "overall_percentage": evaluation.percentage,
                        "criteria_score": detail.score_value,
                        "criteria_max_score": criterion.max_score,
                        "criteria_percentage": criterion_percentage(detail.score_value, criterion.max_score),
                    }
                )

        return {
            "alert": alert_to_dict(alert),
            "related_evaluations": related,
            "recommendations": recommendations_for(
                alert.alert_type, [r["criteria_percentage"] for r in related]
            ),
        }

    except Exception as e:
        fail(e, "Failed to load alert", {"alert_id": alert_id})


@log_operation("create_manual_alert")
def create_manual_alert(session: Session, actor: Actor, data: dict[str, Any]) -> dict[str, Any]:
    """
    Open an alert by hand.

    Only required fields and enum values are checked; an unresolved alert of
    the same type for the volunteer raises AlertAlreadyOpenError.
    """
    values = validated(ManualAlertInput, data, "alert_data")
    volunteer_id = values["volunteer_id"]

    try:
        set_context(operation="create_manual_alert", user_id=actor.user_id, volunteer_id=volunteer_id)
        VolunteerRepo(session).get_by_id_required(volunteer_id)
        if values["criteria_id"] is not None:
            CriterionRepo(session).get_by_id_required(values["criteria_id"])

        trigger = values["trigger_condition"] or ManualTrigger().model_dump()
        alert = AlertRepo(session).create_alert(
            volunteer_id=volunteer_id,
            alert_type=values["alert_type"],
            severity=values["severity"],
            alert_message=values["alert_message"],
            trigger_condition=trigger,
            consecutive_months=0,
            criteria_id=values["criteria_id"],
        )
        AuditTrailRepo(session).record(
            actor.user_id,
            "CREATE",
            "alert_records",
            alert.id,
            new_values={k: values[k] for k in ("volunteer_id", "alert_type", "severity", "criteria_id")},
        )
        logger.info(f"Opened manual {alert.alert_type} alert {alert.id} for volunteer {volunteer_id}")
        return alert_to_dict(alert)

    except Exception as e:
        fail(e, "Failed to create alert", {"volunteer_id": volunteer_id})


@log_operation("resolve_alert")
def resolve_alert(
    session: Session,
    actor: Actor,
    alert_id: int,
    resolution_notes: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Resolve an open alert and append a cumulative note describing the resolution."""
    values = validated(AlertResolutionInput, {"resolution_notes": resolution_notes}, "resolution")
    try:
        repo = AlertRepo(session)
        alert = repo.get_by_id_required(alert_id)
        repo.resolve(alert, actor.user_id, values["resolution_notes"], now or datetime.utcnow())

        content = f"Alert resolved: {alert.alert_message}"
        if values["resolution_notes"]:
            content += f" - {values['resolution_notes']}"
        NoteRepo(session).add(
            alert.volunteer_id,
            content,
            note_type="improvement",
            is_positive=True,
            created_by=actor.user_id,
        )
        AuditTrailRepo(session).record(
            actor.user_id,
            "UPDATE",
            "alert_records",
            alert_id,
            old_values={"is_resolved": False},
            new_values={"is_resolved": True, "resolution_notes": values["resolution_notes"]},
        )
        return alert_to_dict(alert)

    except Exception as e:
        fail(e, "Failed to resolve alert", {"alert_id": alert_id})


@log_operation("delete_alert")
def delete_alert(session: Session, actor: Actor, alert_id: int) -> None:
    require_admin(actor, "delete_alert")
    try:
        repo = AlertRepo(session)
        alert = repo.get_by_id_required(alert_id)
        old_values = alert_to_dict(alert)
        repo.delete(alert)
        AuditTrailRepo(session).record(
            actor.user_id, "DELETE", "alert_records", alert_id, old_values=old_values
        )

    except Exception as e:
        fail(e, "Failed to delete alert", {"alert_id": alert_id})


@log_operation("check_automatic_alerts")
def check_automatic_alerts(
    session: Session, actor: Actor, today: date | None = None
) -> dict[str, Any]:
    """
    Run the alert rules over all approved evaluations (admin only).

    Running it again without new evaluations or resolutions creates nothing.
    """
    require_admin(actor, "run_alert_checks")
    try:
        created = AlertRuleService(session).run_automatic_checks(today)
        AuditTrailRepo(session).record(
            actor.user_id,
            "CREATE",
            "alert_records",
            "automatic",
            new_values={"count": len(created)},
            description="Automatic alert check",
        )
        return {"count": len(created), "alerts": [alert_to_dict(a) for a in created]}

    except Exception as e:
        fail(e, "Failed to run automatic alert checks", {})


@log_operation("alert_statistics")
def alert_statistics(session: Session) -> dict[str, Any]:
    """Counts by status, severity and type, common open types, top volunteers and resolution rate."""
    try:
        repo = AlertRepo(session)
        by_status = repo.counts_by("is_resolved")
        resolved = by_status.get("True", 0)
        total = resolved + by_status.get("False", 0)
        open_by_type = repo.counts_by("alert_type", AlertRecordORM.is_resolved.is_(False))

        return {
            "general": {
                "total": total,
                "resolved": resolved,
                "unresolved": total - resolved,
                "by_severity": repo.counts_by("severity"),
                "by_type": repo.counts_by("alert_type"),
            },
            "common_unresolved_types": [
                {"alert_type": k, "count": v}
                for k, v in sorted(open_by_type.items(), key=lambda kv: (-kv[1], kv[0]))
            ],
            "top_volunteers": [
                {
                    "volunteer_id": vid,
                    "full_name": name,
                    "alert_count": count,
                    "unresolved_count": unresolved,
                }
                for vid, name, count, unresolved in repo.top_volunteers(10)
            ],
            "resolution_rate": round(resolved / total * 100) if total else 0,
        }

    except Exception as e:
        fail(e, "Failed to build alert statistics", {})
