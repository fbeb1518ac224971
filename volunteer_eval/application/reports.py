"""
Reports built from stored evaluations: a single volunteer's report, the
organization overview and the side-by-side volunteer comparison.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..domain import analytics
from ..domain.models import Actor
from ..domain.schemas import ComparisonInput, OrganizationReportInput, VolunteerReportInput
from ..domain.scoring import criterion_percentage, round2
from ..infrastructure.config import get_scoring_config
from ..infrastructure.exceptions import VolunteerNotFoundError
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.models import (
    AlertRecordORM,
    CriterionORM,
    EvaluationDetailORM,
    EvaluationORM,
    VolunteerORM,
)
from ..infrastructure.repositories import (
    AlertRepo,
    AuditTrailRepo,
    EvaluationRepo,
    FreezeRepo,
    NoteRepo,
    VolunteerRepo,
)
from .common import alert_to_dict, evaluation_to_dict, fail, note_to_dict, validated

logger = get_logger(__name__)

STRENGTH_THRESHOLD = 80.0
WEAKNESS_THRESHOLD = 60.0
OVERALL_FOCUS_THRESHOLD = 70.0
IMPROVEMENT_AREA_THRESHOLD = 70.0
NEEDS_ATTENTION_THRESHOLD = 60.0

ENCOURAGEMENT = (
    "We believe in your ability to grow and develop, and we look forward to your next achievements."
)
ORGANIZATION_RECOMMENDATIONS = [
    "Follow up with low-performing volunteers",
    "Strengthen the criteria with weak results",
    "Recognise outstanding volunteers",
    "Review the causes of active alerts",
]


def _praise_message(name: str, average: float) -> str:
    if average >= 80:
        body = (
            "thank you for your outstanding contribution and constant commitment to serving "
            "the community. Your performance deserves every appreciation."
        )
    elif average >= 70:
        body = "we value your sincere volunteering efforts and encourage you to keep growing."
    else:
        body = "we appreciate you joining the volunteer team and look forward to growing together."
    return f"Dear {name}, {body}"


@log_operation("volunteer_report")
def volunteer_report(
    session: Session,
    volunteer_id: int,
    year: int | None = None,
    months: list[int] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Performance report for one volunteer.

    Strengths and weaknesses come from the latest evaluation in the period:
    criteria at 80% or more of their maximum are strengths, below 60% are
    weaknesses. The trend compares the two most recent evaluations.
    """
    values = validated(VolunteerReportInput, {"year": year, "months": months}, "report_period")
    settings = get_scoring_config()

    try:
        set_context(volunteer_id=volunteer_id)
        volunteer = VolunteerRepo(session).get_by_id_required(volunteer_id)
        evaluations = EvaluationRepo(session).for_volunteer(
            volunteer_id, year=values["year"], months=values["months"]
        )
        percentages = [float(e.percentage or 0.0) for e in evaluations]
        average = round2(analytics.mean(percentages))

        trend = analytics.recent_change(
            percentages[0] if len(percentages) >= 2 else None,
            percentages[1] if len(percentages) >= 2 else None,
            settings.trend_delta,
        )

        strengths: list[dict[str, Any]] = []
        weaknesses: list[dict[str, Any]] = []
        by_category: dict[str, list[dict[str, Any]]] = {}
        if evaluations:
            latest = EvaluationRepo(session).get_with_details(evaluations[0].id)
            details = sorted(
                latest.details, key=lambda d: (d.criterion.category, d.criterion.sort_order)
            )
            for d in details:
                pct = criterion_percentage(d.score_value, d.criterion.max_score)
                entry = {
                    "criteria_id": d.criteria_id,
                    "criteria": d.criterion.name,
                    "category": d.criterion.category,
                    "score": d.score_value,
                    "max_score": d.criterion.max_score,
                    "weight": d.criterion.weight,
                    "percentage": pct,
                }
                by_category.setdefault(d.criterion.category, []).append(entry)
                if pct >= STRENGTH_THRESHOLD:
                    strengths.append(entry)
                elif pct < WEAKNESS_THRESHOLD:
                    weaknesses.append(entry)

        suggestions = [
            f"Develop skills in {w['criteria']} - current level {w['percentage']}%" for w in weaknesses
        ]
        if len(percentages) >= 3 and analytics.mean(percentages[:3]) < OVERALL_FOCUS_THRESHOLD:
            suggestions.append("Focus on improving overall performance over the coming months")

        history = []
        for e in evaluations:
            item = evaluation_to_dict(e)
            item["grade"] = analytics.performance_grade(e.percentage)
            history.append(item)

        return {
            "volunteer": {
                "id": volunteer.id,
                "name": volunteer.full_name,
                "role": volunteer.role_type,
                "phone": volunteer.phone,
                "join_date": volunteer.join_date,
            },
            "period": {"year": values["year"], "months": values["months"]},
            "summary": {
                "total_evaluations": len(evaluations),
                "average_performance": average,
                "trend": trend,
                "current_status": "active" if volunteer.is_active else "inactive",
            },
            "performance_analysis": {
                "strengths": strengths,
                "weaknesses": weaknesses,
                "detailed_by_category": by_category,
            },
            "evaluations_history": history,
            "cumulative_notes": [note_to_dict(n) for n in NoteRepo(session).recent(volunteer_id, 20)],
            "active_alerts": [alert_to_dict(a) for a in AlertRepo(session).active_for_volunteer(volunteer_id)],
            "improvement_plan": {
                "suggestions": suggestions,
                "priority_areas": [w["criteria"] for w in weaknesses[:3]],
            },
            "human_feedback": {
                "praise_message": _praise_message(volunteer.full_name, average),
                "encouragement": ENCOURAGEMENT,
            },
            "generated_at": now or datetime.utcnow(),
        }

    except Exception as e:
        fail(e, "Failed to build volunteer report", {"volunteer_id": volunteer_id})


def _period_filters(year: int, month: int | None) -> list[Any]:
    filters = [EvaluationORM.evaluation_year == year]
    if month is not None:
        filters.append(EvaluationORM.evaluation_month == month)
    return filters


def _evaluation_frame(session: Session, year: int, month: int | None) -> pd.DataFrame:
    rows = (
        session.query(
            EvaluationORM.volunteer_id,
            VolunteerORM.full_name,
            VolunteerORM.role_type,
            EvaluationORM.status,
            EvaluationORM.is_frozen,
            EvaluationORM.percentage,
        )
        .join(VolunteerORM, VolunteerORM.id == EvaluationORM.volunteer_id)
        .filter(*_period_filters(year, month))
        .all()
    )
    return pd.DataFrame(
        rows, columns=["volunteer_id", "full_name", "role_type", "status", "is_frozen", "percentage"]
    )


def _performer_rows(frame: pd.DataFrame) -> list[dict[str, Any]]:
    return [
        {
            "volunteer_id": int(r.volunteer_id),
            "full_name": r.full_name,
            "role_type": r.role_type,
            "avg_performance": round2(float(r.average)),
            "evaluations_count": int(r.evaluations),
        }
        for r in frame.itertuples(index=False)
    ]


def _criteria_performance(session: Session, year: int, month: int | None) -> list[dict[str, Any]]:
    rows = (
        session.query(
            CriterionORM.id,
            CriterionORM.name,
            CriterionORM.category,
            CriterionORM.max_score,
            func.avg(EvaluationDetailORM.score_value),
            func.count(EvaluationDetailORM.id),
        )
        .join(EvaluationDetailORM, EvaluationDetailORM.criteria_id == CriterionORM.id)
        .join(EvaluationORM, EvaluationORM.id == EvaluationDetailORM.evaluation_id)
        .filter(EvaluationORM.status == "approved", *_period_filters(year, month))
        .group_by(CriterionORM.id, CriterionORM.name, CriterionORM.category, CriterionORM.max_score)
        .all()
    )
    performance = [
        {
            "criteria_id": cid,
            "criteria_name": name,
            "category": category,
            "avg_score": round2(float(avg)),
            "max_score": max_score,
            "avg_percentage": criterion_percentage(float(avg), max_score),
            "usage_count": int(count),
        }
        for cid, name, category, max_score, avg, count in rows
    ]
    return sorted(performance, key=lambda c: (c["category"], -c["avg_percentage"]))


@log_operation("organization_report")
def organization_report(
    session: Session,
    actor: Actor,
    year: int | None = None,
    month: int | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Organization-wide report for a year, or one month of it.

    Top performers and volunteers needing attention use approved evaluations
    only; the report view is written to the audit trail.
    """
    today = today or date.today()
    data = {"month": month} if year is None else {"year": year, "month": month}
    values = validated(OrganizationReportInput, data, "report_period")
    year, month = values["year"], values["month"]

    try:
        volunteers = VolunteerRepo(session)
        active = volunteers.count_by("is_active")
        by_role = volunteers.count_by("role_type")

        df = _evaluation_frame(session, year, month)
        grades = {label: 0 for _, label in analytics.GRADE_BANDS} | {"needs_improvement": 0}
        if not df.empty:
            counted = df["percentage"].map(analytics.performance_grade).value_counts()
            grades.update({k: int(v) for k, v in counted.items()})
        avg_performance = round2(float(df["percentage"].mean())) if not df.empty else 0.0

        approved = df[df["status"] == "approved"]
        if approved.empty:
            per_volunteer = pd.DataFrame(
                columns=["volunteer_id", "full_name", "role_type", "average", "evaluations"]
            )
        else:
            per_volunteer = (
                approved.groupby(["volunteer_id", "full_name", "role_type"])
                .agg(average=("percentage", "mean"), evaluations=("percentage", "size"))
                .reset_index()
            )
        top = per_volunteer.sort_values(["average", "volunteer_id"], ascending=[False, True]).head(10)
        attention = (
            per_volunteer[per_volunteer["average"] < NEEDS_ATTENTION_THRESHOLD]
            .sort_values(["average", "volunteer_id"])
            .head(10)
        )

        freezes = FreezeRepo(session).active_for_year(year)
        durations = [(f.end_date - f.start_date).days for f in freezes]
        freeze_stats = {
            "total_freezes": len(freezes),
            "volunteers_with_freezes": len({f.volunteer_id for f in freezes}),
            "avg_freeze_duration": round2(analytics.mean(durations)) if durations else 0.0,
            "currently_frozen": sum(1 for f in freezes if f.start_date <= today <= f.end_date),
        }

        alerts = AlertRepo(session)
        open_filter = AlertRecordORM.is_resolved.is_(False)
        open_by_severity = alerts.counts_by("severity", open_filter)
        open_by_type = alerts.counts_by("alert_type", open_filter)

        criteria_performance = _criteria_performance(session, year, month)

        report = {
            "period": {"year": year, "month": month, "report_type": "monthly" if month else "yearly"},
            "organization_overview": {
                "total_volunteers": sum(active.values()),
                "active_volunteers": active.get("True", 0),
                "inactive_volunteers": active.get("False", 0),
                "field_volunteers": by_role.get("field", 0),
                "admin_volunteers": by_role.get("administrative", 0),
                "file_manager_volunteers": by_role.get("file_manager", 0),
            },
            "evaluation_summary": {
                "total_evaluations": int(len(df)),
                "approved_evaluations": int((df["status"] == "approved").sum()),
                "frozen_evaluations": int(df["is_frozen"].astype(bool).sum()),
                "avg_performance": avg_performance,
            },
            "performance_distribution": grades,
            "top_performers": _performer_rows(top),
            "needs_attention": _performer_rows(attention),
            "freeze_statistics": freeze_stats,
            "alerts_summary": {
                "total_active_alerts": sum(open_by_severity.values()),
                "high_priority_alerts": open_by_severity.get("high", 0),
                "performance_alerts": open_by_type.get("weak_performance", 0),
                "interaction_alerts": open_by_type.get("no_interaction", 0),
            },
            "criteria_performance": criteria_performance,
            "insights": {
                "overall_health": analytics.overall_health(avg_performance),
                "improvement_areas": [
                    c["criteria_name"]
                    for c in criteria_performance
                    if c["avg_percentage"] < IMPROVEMENT_AREA_THRESHOLD
                ][:5],
                "recommendations": list(ORGANIZATION_RECOMMENDATIONS),
            },
            "generated_at": datetime.utcnow(),
        }

        AuditTrailRepo(session).record(
            actor.user_id,
            "VIEW",
            "reports",
            "organization",
            new_values={"year": year, "month": month},
            description="Organization report viewed",
        )
        return report

    except Exception as e:
        fail(e, "Failed to build organization report", {"year": year, "month": month})


@log_operation("comparison_report")
def comparison_report(
    session: Session, volunteer_ids: list[int], year: int | None = None
) -> dict[str, Any]:
    """
    Compare 2 to 10 volunteers over the approved evaluations of one year.

    Every id must exist. Volunteers are ranked by average percentage;
    ``most_improved`` is the highest ranked volunteer with an improving trend.

    Example:
        >>> report = comparison_report(session, [1, 2], 2024)
        >>> [v["rank"] for v in report["volunteers_data"]]
        [1, 2]
    """
    data = {"volunteer_ids": volunteer_ids} if year is None else {"volunteer_ids": volunteer_ids, "year": year}
    values = validated(ComparisonInput, data, "comparison")
    ids, year = values["volunteer_ids"], values["year"]
    settings = get_scoring_config()

    try:
        volunteers = (
            session.query(VolunteerORM)
            .filter(VolunteerORM.id.in_(ids))
            .order_by(VolunteerORM.full_name)
            .all()
        )
        missing = sorted(set(ids) - {v.id for v in volunteers})
        if missing:
            raise VolunteerNotFoundError(missing[0], details={"missing_ids": missing})

        rows = (
            session.query(EvaluationORM.volunteer_id, EvaluationORM.evaluation_month, EvaluationORM.percentage)
            .filter(
                EvaluationORM.volunteer_id.in_(ids),
                EvaluationORM.evaluation_year == year,
                EvaluationORM.status == "approved",
            )
            .order_by(EvaluationORM.volunteer_id, EvaluationORM.evaluation_month)
            .all()
        )
        df = pd.DataFrame(rows, columns=["volunteer_id", "month", "percentage"])
        grid = (
            df.pivot_table(index="volunteer_id", columns="month", values="percentage", aggfunc="first")
            .reindex(columns=range(1, 13))
            if not df.empty
            else pd.DataFrame(columns=range(1, 13))
        )

        comparison = []
        for v in volunteers:
            scores = [float(p) for p in df.loc[df["volunteer_id"] == v.id, "percentage"]]
            monthly = {m: None for m in range(1, 13)}
            if v.id in grid.index:
                monthly.update(
                    {int(m): float(p) for m, p in grid.loc[v.id].items() if pd.notna(p)}
                )
            trend = analytics.trend(scores, settings.trend_delta)
            comparison.append(
                {
                    "volunteer": {
                        "id": v.id,
                        "full_name": v.full_name,
                        "role_type": v.role_type,
                        "join_date": v.join_date,
                    },
                    "statistics": {
                        "total_evaluations": len(scores),
                        "average_performance": round2(analytics.mean(scores)),
                        "highest_score": max(scores) if scores else 0.0,
                        "lowest_score": min(scores) if scores else 0.0,
                        "consistency_rating": round2(analytics.consistency(scores)),
                    },
                    "monthly_performance": monthly,
                    "trend_analysis": {
                        "direction": trend.direction,
                        "first_half_mean": trend.first_half_mean,
                        "second_half_mean": trend.second_half_mean,
                        "difference": trend.difference,
                    },
                }
            )

        ranked = sorted(comparison, key=lambda c: -c["statistics"]["average_performance"])
        for rank, item in enumerate(ranked, start=1):
            item["rank"] = rank

        most_consistent = ranked[0]
        for item in ranked[1:]:
            if item["statistics"]["consistency_rating"] >= most_consistent["statistics"]["consistency_rating"]:
                most_consistent = item

        return {
            "comparison_period": {"year": year, "volunteers_count": len(volunteers)},
            "volunteers_data": ranked,
            "insights": {
                "best_performer": ranked[0],
                "most_consistent": most_consistent,
                "most_improved": next(
                    (c for c in ranked if c["trend_analysis"]["direction"] == "improving"), None
                ),
                "average_of_group": round2(
                    analytics.mean([c["statistics"]["average_performance"] for c in ranked])
                ),
            },
            "generated_at": datetime.utcnow(),
        }

    except Exception as e:
        fail(e, "Failed to build comparison report", {"volunteer_ids": ids, "year": year})
