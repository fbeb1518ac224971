"""
Pydantic schemas for input validation across the application.

These schemas validate every user input that reaches the application layer:
volunteer records, criteria definitions, evaluation submissions, freezes,
alerts, notes, list filters and report parameters.
"""

from __future__ import annotations

import re
from datetime import date
from html import unescape
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

VolunteerRoleLiteral = Literal["field", "administrative", "file_manager"]
AppliesToLiteral = Literal["all", "field", "administrative", "file_manager"]
CategoryLiteral = Literal["basic", "responsibility", "bonus"]
DataTypeLiteral = Literal["numeric", "boolean", "choice", "text"]
AlertTypeLiteral = Literal["weak_performance", "no_interaction", "improvement_needed", "achievement"]
SeverityLiteral = Literal["low", "medium", "high"]
NoteTypeLiteral = Literal["achievement", "improvement", "general"]
StatusLiteral = Literal["draft", "approved"]
SortOrderLiteral = Literal["asc", "desc"]

PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9\s\-]{5,30}$")


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
        "use_enum_values": True,
    }

    # free text kept exactly as submitted
    verbatim_fields: ClassVar[frozenset[str]] = frozenset()

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v, info: ValidationInfo):
        """Strip markup and control characters from string inputs."""
        if isinstance(v, str) and info.field_name not in cls.verbatim_fields:
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


def _blank_to_none(v: str | None) -> str | None:
    if v is not None and len(v.strip()) == 0:
        return None
    return v


def _require_some_field(model: BaseModel) -> None:
    if not model.model_fields_set:
        raise ValueError("No fields provided for update")


# --------------------------------------------------------------------------- triggers


class WeakPerformanceTrigger(BaseModel):
    type: Literal["consecutive_weak_performance"] = "consecutive_weak_performance"
    months: int = Field(..., ge=0)
    threshold: float = Field(..., ge=0, le=100)


class NoInteractionTrigger(BaseModel):
    type: Literal["no_group_interaction"] = "no_group_interaction"
    months: int = Field(..., ge=0)
    threshold: float = Field(..., ge=0)


class ManualTrigger(BaseModel):
    type: Literal["manual"] = "manual"
    note: str | None = Field(None, max_length=1000)


TriggerCondition = Annotated[
    WeakPerformanceTrigger | NoInteractionTrigger | ManualTrigger,
    Field(discriminator="type"),
]


# --------------------------------------------------------------------------- volunteers


class VolunteerInput(BaseValidationSchema):
    """Validation schema for registering a volunteer."""

    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=6, max_length=32)
    join_date: date = Field(default_factory=date.today)
    role_type: VolunteerRoleLiteral = "field"
    personality_notes: str | None = Field(None, max_length=2000)

    @field_validator("phone")
    def validate_phone(cls, v):
        if not PHONE_PATTERN.match(v):
            raise ValueError("Phone number may only contain digits, spaces, dashes and a leading +")
        return v

    @field_validator("personality_notes")
    def validate_optional_fields(cls, v):
        return _blank_to_none(v)


class VolunteerUpdateInput(BaseValidationSchema):
    full_name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, min_length=6, max_length=32)
    join_date: date | None = None
    role_type: VolunteerRoleLiteral | None = None
    personality_notes: str | None = Field(None, max_length=2000)

    @field_validator("phone")
    def validate_phone(cls, v):
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError("Phone number may only contain digits, spaces, dashes and a leading +")
        return v

    @model_validator(mode="after")
    def require_changes(self):
        _require_some_field(self)
        return self


class VolunteerStatusInput(BaseValidationSchema):
    is_active: bool
    reason: str | None = Field(None, max_length=1000)


class VolunteerFilterInput(BaseValidationSchema):
    search: str | None = Field(None, max_length=255)
    role_type: VolunteerRoleLiteral | None = None
    is_active: bool | None = None
    sort_by: Literal["full_name", "created_at", "join_date", "role_type"] = "created_at"
    sort_order: SortOrderLiteral = "desc"

    @field_validator("search")
    def validate_search(cls, v):
        v = _blank_to_none(v)
        if v is not None and re.search(r'[<>\'";\\]', v):
            raise ValueError("Search contains invalid characters")
        return v


class NoteInput(BaseValidationSchema):
    """Validation schema for cumulative notes."""

    note_type: NoteTypeLiteral = "general"
    content: str = Field(..., min_length=1, max_length=2000)
    is_positive: bool = True


# --------------------------------------------------------------------------- criteria


class CriterionInput(BaseValidationSchema):
    """Validation schema for criterion definitions."""

    name: str = Field(..., min_length=1, max_length=255)
    name_en: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)
    category: CategoryLiteral
    data_type: DataTypeLiteral
    max_score: float = Field(10.0, gt=0)
    weight: float = Field(1.0, ge=0)
    applies_to_role: AppliesToLiteral = "all"
    choices: dict[str, float] | None = None
    is_required: bool = True
    show_in_report: bool = True
    sort_order: int = Field(0, ge=0)

    @field_validator("name_en", "description")
    def validate_optional_fields(cls, v):
        return _blank_to_none(v)

    @field_validator("choices")
    def validate_choices(cls, v):
        if v is None:
            return None
        cleaned = {}
        for label, score in v.items():
            if not label or not label.strip():
                raise ValueError("Choice labels cannot be empty")
            if score < 0:
                raise ValueError(f"Choice '{label}' has a negative score")
            cleaned[label.strip()] = float(score)
        return cleaned or None


class CriterionUpdateInput(BaseValidationSchema):
    name: str | None = Field(None, min_length=1, max_length=255)
    name_en: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)
    category: CategoryLiteral | None = None
    data_type: DataTypeLiteral | None = None
    max_score: float | None = Field(None, gt=0)
    weight: float | None = Field(None, ge=0)
    applies_to_role: AppliesToLiteral | None = None
    choices: dict[str, float] | None = None
    is_required: bool | None = None
    show_in_report: bool | None = None
    sort_order: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def require_changes(self):
        _require_some_field(self)
        return self


class CriterionFilterInput(BaseValidationSchema):
    category: CategoryLiteral | None = None
    applies_to_role: AppliesToLiteral | None = None
    include_inactive: bool = False


class CriterionOrderItem(BaseModel):
    id: int = Field(..., gt=0)
    sort_order: int = Field(..., ge=0)


class CriterionReorderInput(BaseValidationSchema):
    criteria_order: list[CriterionOrderItem] = Field(..., min_length=1)

    @field_validator("criteria_order")
    def validate_unique_ids(cls, v):
        ids = [item.id for item in v]
        if len(set(ids)) != len(ids):
            raise ValueError("Each criterion may appear only once")
        return v


class CriterionDuplicateInput(BaseValidationSchema):
    new_name: str = Field(..., min_length=1, max_length=255)


# --------------------------------------------------------------------------- evaluations


class CriterionScoreInput(BaseValidationSchema):
    """One raw per-criterion input inside an evaluation submission."""

    model_config = {**BaseValidationSchema.model_config, "str_strip_whitespace": False}
    verbatim_fields = frozenset({"text_value", "notes"})

    criteria_id: int = Field(..., gt=0)
    score_value: float | str | None = None
    text_value: str | None = Field(None, max_length=2000)
    choice_value: str | None = Field(None, max_length=255)
    boolean_value: bool | None = None
    notes: str | None = Field(None, max_length=1000)


class EvaluationCreateInput(BaseValidationSchema):
    """Validation schema for a new monthly evaluation."""

    volunteer_id: int = Field(..., gt=0)
    evaluation_month: int = Field(..., ge=1, le=12)
    evaluation_year: int = Field(..., ge=2000, le=2100)
    criteria_scores: list[CriterionScoreInput] = Field(default_factory=list)
    human_note: str | None = Field(None, max_length=2000)
    praise_note: str | None = Field(None, max_length=2000)
    improvement_suggestions: str | None = Field(None, max_length=2000)
    is_frozen: bool = False
    freeze_reason: str | None = Field(None, max_length=1000)
    freeze_start_date: date | None = None
    freeze_end_date: date | None = None

    @field_validator("human_note", "praise_note", "improvement_suggestions", "freeze_reason")
    def validate_optional_fields(cls, v):
        return _blank_to_none(v)


class EvaluationUpdateInput(BaseValidationSchema):
    criteria_scores: list[CriterionScoreInput] | None = None
    human_note: str | None = Field(None, max_length=2000)
    praise_note: str | None = Field(None, max_length=2000)
    improvement_suggestions: str | None = Field(None, max_length=2000)
    is_frozen: bool | None = None
    freeze_reason: str | None = Field(None, max_length=1000)
    freeze_start_date: date | None = None
    freeze_end_date: date | None = None


class EvaluationFilterInput(BaseValidationSchema):
    volunteer_id: int | None = Field(None, gt=0)
    evaluator_id: int | None = Field(None, gt=0)
    year: int | None = Field(None, ge=2000, le=2100)
    month: int | None = Field(None, ge=1, le=12)
    status: StatusLiteral | None = None
    min_percentage: float | None = Field(None, ge=0, le=100)
    max_percentage: float | None = Field(None, ge=0, le=100)

    @model_validator(mode="after")
    def validate_range(self):
        if (
            self.min_percentage is not None
            and self.max_percentage is not None
            and self.min_percentage > self.max_percentage
        ):
            raise ValueError("min_percentage cannot exceed max_percentage")
        return self


# --------------------------------------------------------------------------- alerts


class ManualAlertInput(BaseValidationSchema):
    """Manual alerts are checked for required fields and enum membership only."""

    volunteer_id: int = Field(..., gt=0)
    alert_type: AlertTypeLiteral
    alert_message: str = Field(..., min_length=1, max_length=2000)
    severity: SeverityLiteral
    criteria_id: int | None = Field(None, gt=0)
    trigger_condition: TriggerCondition | None = None


class AlertResolutionInput(BaseValidationSchema):
    resolution_notes: str | None = Field(None, max_length=1000)

    @field_validator("resolution_notes")
    def validate_notes(cls, v):
        return _blank_to_none(v)


class AlertFilterInput(BaseValidationSchema):
    volunteer_id: int | None = Field(None, gt=0)
    alert_type: AlertTypeLiteral | None = None
    severity: SeverityLiteral | None = None
    is_resolved: bool | None = None
    sort_by: Literal["created_at", "severity", "alert_type"] = "created_at"
    sort_order: SortOrderLiteral = "desc"


# --------------------------------------------------------------------------- reports


class PaginationInput(BaseValidationSchema):
    """Validation schema for pagination parameters."""

    page: int = Field(1, ge=1, le=10000)
    per_page: int = Field(10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class VolunteerReportInput(BaseValidationSchema):
    year: int | None = Field(None, ge=2000, le=2100)
    months: list[int] | None = None

    @field_validator("months")
    def validate_months(cls, v):
        if v is None:
            return None
        if any(m < 1 or m > 12 for m in v):
            raise ValueError("Months must be between 1 and 12")
        return sorted(set(v)) or None


class OrganizationReportInput(BaseValidationSchema):
    year: int = Field(default_factory=lambda: date.today().year, ge=2000, le=2100)
    month: int | None = Field(None, ge=1, le=12)


class ComparisonInput(BaseValidationSchema):
    """Validation schema for comparing 2 to 10 volunteers over one year."""

    volunteer_ids: list[int] = Field(..., min_length=2, max_length=10)
    year: int = Field(default_factory=lambda: date.today().year, ge=2000, le=2100)

    @field_validator("volunteer_ids")
    def validate_volunteer_ids(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Duplicate volunteer IDs are not allowed")
        if any(vid <= 0 for vid in v):
            raise ValueError("All volunteer IDs must be positive integers")
        return v


# --------------------------------------------------------------------------- results


class ValidationErrorDetail(BaseModel):
    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Example:
        >>> result = validate_input(NoteInput, {"content": "Great month"})
        >>> result.success
        True
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]) or "general",
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
