from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

Role = Literal["admin", "evaluator"]
VolunteerRole = Literal["field", "administrative", "file_manager"]
CriterionCategory = Literal["basic", "responsibility", "bonus"]
CriterionDataType = Literal["numeric", "boolean", "choice", "text"]
AlertType = Literal["weak_performance", "no_interaction", "improvement_needed", "achievement"]
Severity = Literal["low", "medium", "high"]

VOLUNTEER_ROLES: tuple[str, ...] = ("field", "administrative", "file_manager")
CRITERION_CATEGORIES: tuple[str, ...] = ("basic", "responsibility", "bonus")
ALERT_TYPES: tuple[str, ...] = (
    "weak_performance",
    "no_interaction",
    "improvement_needed",
    "achievement",
)
SEVERITY_RANK = {"low": 1, "medium": 2, "high": 3}


@dataclass(slots=True, frozen=True)
class Actor:
    """The authenticated caller: stamps created_by/evaluator_id and gates edits."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can_edit(self, owner_id: int) -> bool:
        return self.is_admin or owner_id == self.user_id


@dataclass(slots=True, frozen=True)
class CriterionDefinition:
    id: int
    name: str
    category: str
    data_type: str
    max_score: float = 10.0
    weight: float = 1.0
    applies_to_role: str = "all"
    choices: dict[str, float] | None = None
    is_active: bool = True
    name_en: str | None = None

    @classmethod
    def from_orm(cls, row: Any) -> CriterionDefinition:
        return cls(
            id=row.id,
            name=row.name,
            category=row.category,
            data_type=row.data_type,
            max_score=float(row.max_score),
            weight=float(row.weight),
            applies_to_role=row.applies_to_role,
            choices=dict(row.choices) if row.choices else None,
            is_active=bool(row.is_active),
            name_en=row.name_en,
        )

    def applies_to(self, role: str) -> bool:
        return self.applies_to_role in ("all", role)


@dataclass(slots=True, frozen=True)
class ScoreSubmission:
    """One raw per-criterion input; which value is read depends on the criterion data type."""

    criteria_id: int
    score_value: Any = None
    text_value: str | None = None
    choice_value: str | None = None
    boolean_value: bool | None = None
    notes: str | None = None


@dataclass(slots=True)
class ResolvedDetail:
    criteria_id: int
    score_value: float
    weight_used: float
    weighted_score: float
    weighted_max: float
    raw_score: float | None = None
    text_value: str | None = None
    choice_value: str | None = None
    boolean_value: bool | None = None
    notes: str | None = None

    def as_row(self) -> dict[str, Any]:
        """Columns persisted on the evaluation detail row."""
        return {
            "criteria_id": self.criteria_id,
            "score_value": self.score_value,
            "raw_score": self.raw_score,
            "text_value": self.text_value,
            "choice_value": self.choice_value,
            "boolean_value": self.boolean_value,
            "notes": self.notes,
            "weight_used": self.weight_used,
        }


@dataclass(slots=True)
class AggregationResult:
    total_score: float
    max_possible_score: float
    percentage: float
    details: list[ResolvedDetail] = field(default_factory=list)
    skipped_criteria_ids: list[int] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class FreezeRequest:
    reason: str | None
    start_date: date | None
    end_date: date | None
    evaluation_month: int | None = None
    evaluation_year: int | None = None


@dataclass(slots=True, frozen=True)
class EvaluationSnapshot:
    """
    What the alert rules need to know about one evaluation.

    ``interaction_scores`` holds the resolved scores of the evaluation's
    interaction criteria; an empty tuple means none were recorded.
    """

    volunteer_id: int
    month: int
    year: int
    percentage: float
    status: str = "approved"
    is_frozen: bool = False
    interaction_scores: tuple[float | None, ...] = ()
    volunteer_name: str | None = None


@dataclass(slots=True, frozen=True)
class OpenAlertKey:
    volunteer_id: int
    alert_type: str


@dataclass(slots=True)
class AlertCandidate:
    volunteer_id: int
    alert_type: str
    severity: str
    trigger_condition: dict[str, Any]
    alert_message: str
    consecutive_months: int
    criteria_id: int | None = None
