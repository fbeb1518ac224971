from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    current_page: int
    per_page: int
    total: int
    total_pages: int


# --------------------------------------------------------------------------- volunteers


class VolunteerCreateRequest(BaseModel):
    full_name: str
    phone: str
    join_date: Optional[date] = None
    role_type: Optional[str] = None
    personality_notes: Optional[str] = None


class VolunteerUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    join_date: Optional[date] = None
    role_type: Optional[str] = None
    personality_notes: Optional[str] = None


class VolunteerStatusRequest(BaseModel):
    is_active: Any = None
    reason: Optional[str] = None


class NoteCreateRequest(BaseModel):
    note_type: str = "general"
    content: str
    is_positive: bool = True


class Volunteer(BaseModel):
    id: int
    full_name: str
    phone: str
    join_date: date
    role_type: str
    personality_notes: Optional[str] = None
    is_active: bool
    current_freeze_count: Optional[int] = None
    is_currently_frozen: Optional[bool] = None
    created_at: Optional[datetime] = None


class VolunteerList(BaseModel):
    volunteers: list[Volunteer]
    pagination: Pagination


class Note(BaseModel):
    id: int
    volunteer_id: int
    note_type: str
    content: str
    is_positive: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


# --------------------------------------------------------------------------- criteria


class CriterionCreateRequest(BaseModel):
    name: str
    name_en: Optional[str] = None
    description: Optional[str] = None
    category: str
    data_type: str
    max_score: float = 10.0
    weight: float = 1.0
    applies_to_role: str = "all"
    choices: Optional[dict[str, float]] = None
    is_required: bool = True
    show_in_report: bool = True
    sort_order: int = 0


class CriterionUpdateRequest(BaseModel):
    name: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    data_type: Optional[str] = None
    max_score: Optional[float] = None
    weight: Optional[float] = None
    applies_to_role: Optional[str] = None
    choices: Optional[dict[str, float]] = None
    is_required: Optional[bool] = None
    show_in_report: Optional[bool] = None
    sort_order: Optional[int] = None


class CriterionStatusRequest(BaseModel):
    is_active: bool


class CriterionDuplicateRequest(BaseModel):
    new_name: str


class CriterionOrder(BaseModel):
    id: int
    sort_order: int


class CriterionReorderRequest(BaseModel):
    criteria_order: list[CriterionOrder] = Field(default_factory=list)


class Criterion(BaseModel):
    id: int
    name: str
    name_en: Optional[str] = None
    description: Optional[str] = None
    category: str
    data_type: str
    max_score: float
    weight: float
    applies_to_role: str
    choices: Optional[dict[str, float]] = None
    is_required: bool
    show_in_report: bool
    sort_order: int
    is_active: bool


class CriterionDetail(Criterion):
    usage_stats: dict[str, Any]


class CriterionList(BaseModel):
    criteria: list[Criterion]
    grouped: dict[str, list[Criterion]]
    total: int


# --------------------------------------------------------------------------- evaluations


class CriterionScore(BaseModel):
    criteria_id: int
    score_value: Optional[Union[float, str]] = None
    text_value: Optional[str] = None
    choice_value: Optional[str] = None
    boolean_value: Optional[bool] = None
    notes: Optional[str] = None


class EvaluationCreateRequest(BaseModel):
    volunteer_id: int
    evaluation_month: int
    evaluation_year: int
    criteria_scores: list[CriterionScore] = Field(default_factory=list)
    human_note: Optional[str] = None
    praise_note: Optional[str] = None
    improvement_suggestions: Optional[str] = None
    is_frozen: bool = False
    freeze_reason: Optional[str] = None
    freeze_start_date: Optional[date] = None
    freeze_end_date: Optional[date] = None


class EvaluationUpdateRequest(BaseModel):
    criteria_scores: Optional[list[CriterionScore]] = None
    human_note: Optional[str] = None
    praise_note: Optional[str] = None
    improvement_suggestions: Optional[str] = None
    is_frozen: Optional[bool] = None
    freeze_reason: Optional[str] = None
    freeze_start_date: Optional[date] = None
    freeze_end_date: Optional[date] = None


class EvaluationSummary(BaseModel):
    id: int
    volunteer_id: int
    volunteer_name: Optional[str] = None
    evaluator_id: int
    evaluation_month: int
    evaluation_year: int
    status: str
    total_score: float
    max_possible_score: float
    percentage: float
    performance_grade: str
    is_frozen: bool
    freeze_reason: Optional[str] = None
    freeze_start_date: Optional[date] = None
    freeze_end_date: Optional[date] = None
    human_note: Optional[str] = None
    praise_note: Optional[str] = None
    improvement_suggestions: Optional[str] = None


class EvaluationDetail(EvaluationSummary):
    details_by_category: dict[str, list[dict[str, Any]]]


class EvaluationList(BaseModel):
    evaluations: list[EvaluationSummary]
    pagination: Pagination


# --------------------------------------------------------------------------- alerts


class AlertCreateRequest(BaseModel):
    volunteer_id: int
    alert_type: str
    alert_message: str
    severity: str
    criteria_id: Optional[int] = None
    trigger_condition: Optional[dict[str, Any]] = None


class AlertResolveRequest(BaseModel):
    resolution_notes: Optional[str] = None


class Alert(BaseModel):
    id: int
    volunteer_id: int
    volunteer_name: Optional[str] = None
    alert_type: str
    severity: str
    criteria_id: Optional[int] = None
    criteria_name: Optional[str] = None
    trigger_condition: dict[str, Any]
    alert_message: str
    consecutive_months: int
    is_resolved: bool
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    created_at: Optional[datetime] = None


class AlertList(BaseModel):
    alerts: list[Alert]
    pagination: Pagination


class AlertDetail(BaseModel):
    alert: Alert
    related_evaluations: list[dict[str, Any]]
    recommendations: list[str]


class AlertCheckResponse(BaseModel):
    count: int
    alerts: list[Alert]


# --------------------------------------------------------------------------- misc


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
