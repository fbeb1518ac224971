from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class VolunteerORM(Base):
    __tablename__ = "volunteers"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    join_date: Mapped[date] = mapped_column(Date, nullable=False)
    role_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    personality_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "role_type IN ('field', 'administrative', 'file_manager')", name="ck_volunteer_role"
        ),
    )

    evaluations: Mapped[list[EvaluationORM]] = relationship(
        back_populates="volunteer", cascade="all, delete"
    )
    freeze_records: Mapped[list[FreezeRecordORM]] = relationship(
        back_populates="volunteer", cascade="all, delete"
    )
    alerts: Mapped[list[AlertRecordORM]] = relationship(
        back_populates="volunteer", cascade="all, delete"
    )
    notes: Mapped[list[CumulativeNoteORM]] = relationship(
        back_populates="volunteer", cascade="all, delete"
    )


class CriterionORM(Base):
    __tablename__ = "evaluation_criteria"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    data_type: Mapped[str] = mapped_column(String(16), nullable=False)
    max_score: Mapped[float] = mapped_column(Float, default=10.0, nullable=False)
    weight: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    applies_to_role: Mapped[str] = mapped_column(String(32), default="all", nullable=False)
    choices: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    show_in_report: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("max_score > 0", name="ck_criterion_max_score"),
        CheckConstraint("weight >= 0", name="ck_criterion_weight"),
        CheckConstraint(
            "category IN ('basic', 'responsibility', 'bonus')", name="ck_criterion_category"
        ),
        CheckConstraint(
            "data_type IN ('numeric', 'boolean', 'choice', 'text')", name="ck_criterion_data_type"
        ),
    )


class EvaluationORM(Base):
    __tablename__ = "evaluations"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    volunteer_id: Mapped[int] = mapped_column(
        ForeignKey("volunteers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    evaluator_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    evaluation_month: Mapped[int] = mapped_column(Integer, nullable=False)
    evaluation_year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="draft", nullable=False)
    total_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    max_possible_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    is_frozen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    freeze_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    freeze_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    freeze_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    human_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    praise_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    improvement_suggestions: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "volunteer_id", "evaluation_month", "evaluation_year", name="uq_evaluation_period"
        ),
        CheckConstraint(
            "evaluation_month >= 1 AND evaluation_month <= 12", name="ck_evaluation_month"
        ),
        CheckConstraint("status IN ('draft', 'approved')", name="ck_evaluation_status"),
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_evaluation_percentage"),
    )

    volunteer: Mapped[VolunteerORM] = relationship(back_populates="evaluations")
    details: Mapped[list[EvaluationDetailORM]] = relationship(
        back_populates="evaluation", cascade="all, delete-orphan"
    )


class EvaluationDetailORM(Base):
    __tablename__ = "evaluation_details"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    evaluation_id: Mapped[int] = mapped_column(
        ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    criteria_id: Mapped[int] = mapped_column(
        ForeignKey("evaluation_criteria.id", ondelete="CASCADE"), nullable=False, index=True
    )
    score_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    raw_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    text_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    choice_value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    boolean_value: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    weight_used: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)

    __table_args__ = (
        UniqueConstraint("evaluation_id", "criteria_id", name="uq_detail_criterion"),
        CheckConstraint("score_value >= 0", name="ck_detail_score"),
    )

    evaluation: Mapped[EvaluationORM] = relationship(back_populates="details")
    criterion: Mapped[CriterionORM] = relationship()


class FreezeRecordORM(Base):
    """
    One approved freeze. ``slot`` numbers the active freezes of a volunteer in a
    year (1..cap) and is cleared when the record is deactivated, so the unique
    constraint only binds active records.
    """

    __tablename__ = "freeze_records"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    volunteer_id: Mapped[int] = mapped_column(
        ForeignKey("volunteers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    freeze_year: Mapped[int] = mapped_column(Integer, nullable=False)
    slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    evaluation_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    evaluation_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("volunteer_id", "freeze_year", "slot", name="uq_freeze_active_slot"),
        CheckConstraint("end_date >= start_date", name="ck_freeze_dates"),
    )

    volunteer: Mapped[VolunteerORM] = relationship(back_populates="freeze_records")


class AlertRecordORM(Base):
    """
    ``open_marker`` is 1 while the alert is unresolved and NULL afterwards; the
    unique constraint over it allows a single open alert per volunteer and type.
    """

    __tablename__ = "alert_records"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    volunteer_id: Mapped[int] = mapped_column(
        ForeignKey("volunteers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    alert_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    criteria_id: Mapped[int | None] = mapped_column(
        ForeignKey("evaluation_criteria.id", ondelete="SET NULL"), nullable=True
    )
    trigger_condition: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    alert_message: Mapped[str] = mapped_column(Text, nullable=False)
    consecutive_months: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    open_marker: Mapped[int | None] = mapped_column(Integer, default=1, nullable=True)
    resolved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("volunteer_id", "alert_type", "open_marker", name="uq_alert_open"),
        CheckConstraint(
            "alert_type IN ('weak_performance', 'no_interaction', 'improvement_needed', "
            "'achievement')",
            name="ck_alert_type",
        ),
        CheckConstraint("severity IN ('low', 'medium', 'high')", name="ck_alert_severity"),
    )

    volunteer: Mapped[VolunteerORM] = relationship(back_populates="alerts")
    criterion: Mapped[CriterionORM | None] = relationship()


class CumulativeNoteORM(Base):
    __tablename__ = "cumulative_notes"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    volunteer_id: Mapped[int] = mapped_column(
        ForeignKey("volunteers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note_type: Mapped[str] = mapped_column(String(32), default="general", nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_positive: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "note_type IN ('achievement', 'improvement', 'general')", name="ck_note_type"
        ),
    )

    volunteer: Mapped[VolunteerORM] = relationship(back_populates="notes")


class AuditEntryORM(Base):
    __tablename__ = "audit_trail"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    action_type: Mapped[str] = mapped_column(String(16), nullable=False)
    table_name: Mapped[str] = mapped_column(String(64), nullable=False)
    record_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "action_type IN ('CREATE', 'UPDATE', 'DELETE', 'VIEW')", name="ck_audit_action"
        ),
    )
