from datetime import datetime

import pytest

from volunteer_eval.application.reports import (
    ENCOURAGEMENT,
    comparison_report,
    organization_report,
    volunteer_report,
)
from volunteer_eval.infrastructure.exceptions import ValidationError, VolunteerNotFoundError
from volunteer_eval.infrastructure.models import AuditEntryORM


@pytest.fixture
def mixed_history(volunteer, criteria, make_evaluation):
    """Month 1 at 60%, month 2 at 77.5% with one strong, one average and one weak criterion."""
    make_evaluation(volunteer["id"], 1, 6)
    make_evaluation(
        volunteer["id"],
        2,
        9,
        criteria_scores=[
            {"criteria_id": criteria["attendance"].id, "score_value": 9},
            {"criteria_id": criteria["commitment"].id, "choice_value": "good"},
            {"criteria_id": criteria["interaction"].id, "score_value": 5},
        ],
    )
    return volunteer


class TestVolunteerReport:
    def test_summary_and_analysis(self, session, mixed_history):
        now = datetime(2024, 3, 1, 12, 0)
        report = volunteer_report(session, mixed_history["id"], year=2024, now=now)

        assert report["volunteer"]["name"] == "Mona Adel"
        assert report["summary"] == {
            "total_evaluations": 2,
            "average_performance": 68.75,
            "trend": "improving",
            "current_status": "active",
        }
        analysis = report["performance_analysis"]
        assert [s["criteria"] for s in analysis["strengths"]] == ["Attendance", "Commitment level"]
        assert [w["criteria"] for w in analysis["weaknesses"]] == ["Group interaction"]
        assert set(analysis["detailed_by_category"]) == {"basic", "responsibility"}

        assert [h["evaluation_month"] for h in report["evaluations_history"]] == [2, 1]
        assert report["evaluations_history"][0]["grade"] == "good"
        assert report["improvement_plan"]["priority_areas"] == ["Group interaction"]
        assert report["improvement_plan"]["suggestions"][0].startswith(
            "Develop skills in Group interaction"
        )
        assert report["human_feedback"]["praise_message"].startswith("Dear Mona Adel, we appreciate")
        assert report["human_feedback"]["encouragement"] == ENCOURAGEMENT
        assert report["generated_at"] == now

    def test_month_filter(self, session, mixed_history):
        report = volunteer_report(session, mixed_history["id"], year=2024, months=[1])
        assert report["summary"]["total_evaluations"] == 1
        assert report["summary"]["trend"] == "stable"
        assert report["period"] == {"year": 2024, "months": [1]}
        assert report["performance_analysis"]["strengths"] == []
        assert report["performance_analysis"]["weaknesses"] == []

    def test_high_average_praise(self, session, make_volunteer, make_evaluation):
        star = make_volunteer(full_name="Star")
        make_evaluation(star["id"], 1, 9)
        report = volunteer_report(session, star["id"])
        assert report["human_feedback"]["praise_message"].startswith(
            "Dear Star, thank you for your outstanding contribution"
        )

    def test_without_evaluations(self, session, volunteer):
        report = volunteer_report(session, volunteer["id"])
        assert report["summary"]["total_evaluations"] == 0
        assert report["summary"]["average_performance"] == 0.0
        assert report["evaluations_history"] == []

    def test_unknown_volunteer(self, session):
        with pytest.raises(VolunteerNotFoundError):
            volunteer_report(session, 404)

    def test_invalid_months(self, session, volunteer):
        with pytest.raises(ValidationError):
            volunteer_report(session, volunteer["id"], months=[13])


class TestOrganizationReport:
    @pytest.fixture
    def organization(self, make_volunteer, make_evaluation):
        strong = make_volunteer(full_name="Strong")
        weak = make_volunteer(full_name="Weak")
        pending = make_volunteer(full_name="Pending")
        make_evaluation(strong["id"], 1, 9)
        make_evaluation(strong["id"], 2, 8)
        make_evaluation(weak["id"], 1, 5)
        make_evaluation(pending["id"], 1, 7, approve=False)
        return {"strong": strong, "weak": weak, "pending": pending}

    def test_report_content(self, session, admin, organization):
        report = organization_report(session, admin, year=2024)

        assert report["period"] == {"year": 2024, "month": None, "report_type": "yearly"}
        overview = report["organization_overview"]
        assert overview["total_volunteers"] == 3
        assert overview["active_volunteers"] == 3
        assert overview["field_volunteers"] == 3

        assert report["evaluation_summary"] == {
            "total_evaluations": 4,
            "approved_evaluations": 3,
            "frozen_evaluations": 0,
            "avg_performance": 72.5,
        }
        assert report["performance_distribution"] == {
            "excellent": 1,
            "very_good": 1,
            "good": 1,
            "acceptable": 0,
            "needs_improvement": 1,
        }

        top = report["top_performers"]
        assert [p["full_name"] for p in top] == ["Strong", "Weak"]
        assert top[0]["avg_performance"] == 85.0
        assert top[0]["evaluations_count"] == 2
        assert [p["full_name"] for p in report["needs_attention"]] == ["Weak"]

        criteria_rows = report["criteria_performance"]
        assert len(criteria_rows) == 1
        assert criteria_rows[0]["criteria_name"] == "Attendance"
        assert criteria_rows[0]["usage_count"] == 3
        assert criteria_rows[0]["avg_percentage"] == 73.33
        assert report["insights"]["overall_health"] == "good"
        assert report["insights"]["improvement_areas"] == []

    def test_month_scope(self, session, admin, organization):
        report = organization_report(session, admin, year=2024, month=2)
        assert report["period"]["report_type"] == "monthly"
        assert report["evaluation_summary"]["total_evaluations"] == 1

    def test_empty_year(self, session, admin, organization):
        report = organization_report(session, admin, year=2023)
        assert report["evaluation_summary"]["total_evaluations"] == 0
        assert report["evaluation_summary"]["avg_performance"] == 0.0
        assert report["top_performers"] == []
        assert report["needs_attention"] == []

    def test_view_is_audited(self, session, admin, organization):
        organization_report(session, admin, year=2024)
        entry = (
            session.query(AuditEntryORM)
            .filter_by(action_type="VIEW", table_name="reports")
            .one()
        )
        assert entry.user_id == admin.user_id
        assert entry.new_values == {"year": 2024, "month": None}


class TestComparisonReport:
    def test_ranking_and_insights(self, session, make_volunteer, make_evaluation):
        rising = make_volunteer(full_name="Rising")
        flat = make_volunteer(full_name="Flat")
        for month, attendance in [(1, 5), (2, 7), (3, 9), (4, 9.5)]:
            make_evaluation(rising["id"], month, attendance)
        for month in (1, 2, 3):
            make_evaluation(flat["id"], month, 8)

        report = comparison_report(session, [flat["id"], rising["id"]], 2024)

        assert report["comparison_period"] == {"year": 2024, "volunteers_count": 2}
        ranked = report["volunteers_data"]
        assert [(v["volunteer"]["full_name"], v["rank"]) for v in ranked] == [
            ("Flat", 1),
            ("Rising", 2),
        ]
        flat_row, rising_row = ranked
        assert flat_row["statistics"]["consistency_rating"] == 100.0
        assert flat_row["trend_analysis"]["direction"] == "stable"
        assert rising_row["trend_analysis"]["direction"] == "improving"
        assert rising_row["monthly_performance"][3] == 90.0
        assert rising_row["monthly_performance"][5] is None

        insights = report["insights"]
        assert insights["best_performer"]["volunteer"]["id"] == flat["id"]
        assert insights["most_consistent"]["volunteer"]["id"] == flat["id"]
        assert insights["most_improved"]["volunteer"]["id"] == rising["id"]

    def test_volunteer_without_evaluations(self, session, make_volunteer):
        first, second = make_volunteer(), make_volunteer()
        report = comparison_report(session, [first["id"], second["id"]], 2024)
        for row in report["volunteers_data"]:
            assert row["statistics"]["total_evaluations"] == 0
            assert row["trend_analysis"]["direction"] == "insufficient_data"
        assert report["insights"]["most_improved"] is None

    def test_unknown_id(self, session, volunteer):
        with pytest.raises(VolunteerNotFoundError):
            comparison_report(session, [volunteer["id"], 999], 2024)

    @pytest.mark.parametrize("ids", [[1], [1, 1], list(range(1, 12))])
    def test_invalid_id_lists(self, session, ids):
        with pytest.raises(ValidationError):
            comparison_report(session, ids, 2024)
