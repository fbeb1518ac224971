"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(), nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        "volunteers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("join_date", sa.Date(), nullable=False),
        sa.Column("role_type", sa.String(length=32), nullable=False),
        sa.Column("personality_notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "role_type IN ('field', 'administrative', 'file_manager')", name="ck_volunteer_role"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("phone"),
    )
    op.create_index("ix_volunteers_role_type", "volunteers", ["role_type"], unique=False)

    op.create_table(
        "evaluation_criteria",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("name_en", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("data_type", sa.String(length=16), nullable=False),
        sa.Column("max_score", sa.Float(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("applies_to_role", sa.String(length=32), nullable=False),
        sa.Column("choices", sa.JSON(), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column("show_in_report", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("max_score > 0", name="ck_criterion_max_score"),
        sa.CheckConstraint("weight >= 0", name="ck_criterion_weight"),
        sa.CheckConstraint(
            "category IN ('basic', 'responsibility', 'bonus')", name="ck_criterion_category"
        ),
        sa.CheckConstraint(
            "data_type IN ('numeric', 'boolean', 'choice', 'text')", name="ck_criterion_data_type"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(
        "ix_evaluation_criteria_category", "evaluation_criteria", ["category"], unique=False
    )

    op.create_table(
        "evaluations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("volunteer_id", sa.Integer(), nullable=False),
        sa.Column("evaluator_id", sa.Integer(), nullable=False),
        sa.Column("evaluation_month", sa.Integer(), nullable=False),
        sa.Column("evaluation_year", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("total_score", sa.Float(), nullable=False),
        sa.Column("max_possible_score", sa.Float(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.Column("is_frozen", sa.Boolean(), nullable=False),
        sa.Column("freeze_reason", sa.Text(), nullable=True),
        sa.Column("freeze_start_date", sa.Date(), nullable=True),
        sa.Column("freeze_end_date", sa.Date(), nullable=True),
        sa.Column("human_note", sa.Text(), nullable=True),
        sa.Column("praise_note", sa.Text(), nullable=True),
        sa.Column("improvement_suggestions", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "evaluation_month >= 1 AND evaluation_month <= 12", name="ck_evaluation_month"
        ),
        sa.CheckConstraint("status IN ('draft', 'approved')", name="ck_evaluation_status"),
        sa.CheckConstraint(
            "percentage >= 0 AND percentage <= 100", name="ck_evaluation_percentage"
        ),
        sa.ForeignKeyConstraint(["volunteer_id"], ["volunteers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "volunteer_id", "evaluation_month", "evaluation_year", name="uq_evaluation_period"
        ),
    )
    op.create_index("ix_evaluations_volunteer_id", "evaluations", ["volunteer_id"], unique=False)
    op.create_index("ix_evaluations_evaluator_id", "evaluations", ["evaluator_id"], unique=False)

    op.create_table(
        "evaluation_details",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("evaluation_id", sa.Integer(), nullable=False),
        sa.Column("criteria_id", sa.Integer(), nullable=False),
        sa.Column("score_value", sa.Float(), nullable=False),
        sa.Column("raw_score", sa.Float(), nullable=True),
        sa.Column("text_value", sa.Text(), nullable=True),
        sa.Column("choice_value", sa.String(length=255), nullable=True),
        sa.Column("boolean_value", sa.Boolean(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("weight_used", sa.Float(), nullable=False),
        sa.CheckConstraint("score_value >= 0", name="ck_detail_score"),
        sa.ForeignKeyConstraint(["evaluation_id"], ["evaluations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["criteria_id"], ["evaluation_criteria.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("evaluation_id", "criteria_id", name="uq_detail_criterion"),
    )
    op.create_index(
        "ix_evaluation_details_evaluation_id", "evaluation_details", ["evaluation_id"], unique=False
    )
    op.create_index(
        "ix_evaluation_details_criteria_id", "evaluation_details", ["criteria_id"], unique=False
    )

    op.create_table(
        "freeze_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("volunteer_id", sa.Integer(), nullable=False),
        sa.Column("freeze_year", sa.Integer(), nullable=False),
        sa.Column("slot", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("evaluation_month", sa.Integer(), nullable=True),
        sa.Column("evaluation_year", sa.Integer(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint("end_date >= start_date", name="ck_freeze_dates"),
        sa.ForeignKeyConstraint(["volunteer_id"], ["volunteers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("volunteer_id", "freeze_year", "slot", name="uq_freeze_active_slot"),
    )
    op.create_index(
        "ix_freeze_records_volunteer_id", "freeze_records", ["volunteer_id"], unique=False
    )

    op.create_table(
        "alert_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("volunteer_id", sa.Integer(), nullable=False),
        sa.Column("alert_type", sa.String(length=32), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("criteria_id", sa.Integer(), nullable=True),
        sa.Column("trigger_condition", sa.JSON(), nullable=False),
        sa.Column("alert_message", sa.Text(), nullable=False),
        sa.Column("consecutive_months", sa.Integer(), nullable=False),
        sa.Column("is_resolved", sa.Boolean(), nullable=False),
        sa.Column("open_marker", sa.Integer(), nullable=True),
        sa.Column("resolved_by", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "alert_type IN ('weak_performance', 'no_interaction', 'improvement_needed', "
            "'achievement')",
            name="ck_alert_type",
        ),
        sa.CheckConstraint("severity IN ('low', 'medium', 'high')", name="ck_alert_severity"),
        sa.ForeignKeyConstraint(["volunteer_id"], ["volunteers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["criteria_id"], ["evaluation_criteria.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("volunteer_id", "alert_type", "open_marker", name="uq_alert_open"),
    )
    op.create_index("ix_alert_records_volunteer_id", "alert_records", ["volunteer_id"], unique=False)
    op.create_index("ix_alert_records_alert_type", "alert_records", ["alert_type"], unique=False)

    op.create_table(
        "cumulative_notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("volunteer_id", sa.Integer(), nullable=False),
        sa.Column("note_type", sa.String(length=32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_positive", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint(
            "note_type IN ('achievement', 'improvement', 'general')", name="ck_note_type"
        ),
        sa.ForeignKeyConstraint(["volunteer_id"], ["volunteers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_cumulative_notes_volunteer_id", "cumulative_notes", ["volunteer_id"], unique=False
    )

    op.create_table(
        "audit_trail",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action_type", sa.String(length=16), nullable=False),
        sa.Column("table_name", sa.String(length=64), nullable=False),
        sa.Column("record_id", sa.String(length=64), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint(
            "action_type IN ('CREATE', 'UPDATE', 'DELETE', 'VIEW')", name="ck_audit_action"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_trail_user_id", "audit_trail", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_trail_user_id", table_name="audit_trail")
    op.drop_table("audit_trail")
    op.drop_index("ix_cumulative_notes_volunteer_id", table_name="cumulative_notes")
    op.drop_table("cumulative_notes")
    op.drop_index("ix_alert_records_alert_type", table_name="alert_records")
    op.drop_index("ix_alert_records_volunteer_id", table_name="alert_records")
    op.drop_table("alert_records")
    op.drop_index("ix_freeze_records_volunteer_id", table_name="freeze_records")
    op.drop_table("freeze_records")
    op.drop_index("ix_evaluation_details_criteria_id", table_name="evaluation_details")
    op.drop_index("ix_evaluation_details_evaluation_id", table_name="evaluation_details")
    op.drop_table("evaluation_details")
    op.drop_index("ix_evaluations_evaluator_id", table_name="evaluations")
    op.drop_index("ix_evaluations_volunteer_id", table_name="evaluations")
    op.drop_table("evaluations")
    op.drop_index("ix_evaluation_criteria_category", table_name="evaluation_criteria")
    op.drop_table("evaluation_criteria")
    op.drop_index("ix_volunteers_role_type", table_name="volunteers")
    op.drop_table("volunteers")
