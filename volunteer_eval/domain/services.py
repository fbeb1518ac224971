from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date

from sqlalchemy.orm import Session

from ..infrastructure.config import ScoringConfig, get_scoring_config
from ..infrastructure.exceptions import (
    FreezeLimitExceededError,
    IncompleteFreezeDataError,
    ValidationError,
)
from ..infrastructure.models import AlertRecordORM, EvaluationORM, FreezeRecordORM
from ..infrastructure.repositories import (
    AlertRepo,
    CriterionRepo,
    EvaluationRepo,
    FreezeRepo,
    VolunteerRepo,
)
from .models import AggregationResult, EvaluationSnapshot, FreezeRequest, ScoreSubmission
from .rules import derive_alerts
from .scoring import aggregate_scores


class EvaluationScoringService:
    """Scores submissions against the stored criteria and persists the result on an evaluation."""

    def __init__(
        self, s: Session, settings: ScoringConfig | None = None, logger: logging.Logger | None = None
    ):
        self.s = s
        self.settings = settings or get_scoring_config()
        self.logger = logger or logging.getLogger(__name__)
        self.criteria = CriterionRepo(s)
        self.evaluations = EvaluationRepo(s)

    def score(self, role: str, submissions: Sequence[ScoreSubmission]) -> AggregationResult:
        definitions = self.criteria.definitions({sub.criteria_id for sub in submissions})
        return aggregate_scores(role, definitions, submissions, self.settings.choice_fallback_ratio)

    def apply(
        self, evaluation: EvaluationORM, role: str, submissions: Sequence[ScoreSubmission]
    ) -> AggregationResult:
        """
        Re-aggregate ``submissions`` and replace every stored detail of ``evaluation``.

        Applying the same submissions twice leaves the same totals and detail rows.
        """
        result = self.score(role, submissions)
        evaluation.total_score = result.total_score
        evaluation.max_possible_score = result.max_possible_score
        evaluation.percentage = result.percentage
        self.evaluations.replace_details(evaluation, result.details)
        self.logger.info(
            f"Evaluation {evaluation.id} scored {result.percentage}% "
            f"({len(result.details)} criteria, {len(result.skipped_criteria_ids)} skipped)"
        )
        return result


class FreezePolicy:
    """
    Caps the active freezes a volunteer may hold per year.

    Each active freeze takes one numbered slot (1..cap). ``apply_freeze`` locks
    the volunteer row before choosing a slot; the unique slot constraint turns
    any remaining race into FreezeLimitExceededError.
    """

    def __init__(
        self, s: Session, settings: ScoringConfig | None = None, logger: logging.Logger | None = None
    ):
        self.s = s
        self.settings = settings or get_scoring_config()
        self.logger = logger or logging.getLogger(__name__)
        self.freezes = FreezeRepo(s)
        self.volunteers = VolunteerRepo(s)

    @property
    def limit(self) -> int:
        return self.settings.max_freezes_per_year

    def can_freeze(self, volunteer_id: int, year: int) -> bool:
        return self.freezes.count_active(volunteer_id, year) < self.limit

    @staticmethod
    def check_complete(request: FreezeRequest) -> None:
        missing = [
            name
            for name, value in (
                ("freeze_reason", request.reason),
                ("freeze_start_date", request.start_date),
                ("freeze_end_date", request.end_date),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise IncompleteFreezeDataError(missing)
        if request.end_date < request.start_date:
            raise ValidationError(
                "freeze_end_date", "End date cannot be before start date", str(request.end_date)
            )

    def apply_freeze(
        self, volunteer_id: int, request: FreezeRequest, approved_by: int | None = None
    ) -> FreezeRecordORM:
        self.check_complete(request)
        year = request.evaluation_year or request.start_date.year

        self.volunteers.lock_for_update(volunteer_id)
        taken = set(self.freezes.active_slots(volunteer_id, year))
        free = [slot for slot in range(1, self.limit + 1) if slot not in taken]
        if not free:
            self.logger.warning(f"Freeze refused for volunteer {volunteer_id}: limit reached for {year}")
            raise FreezeLimitExceededError(volunteer_id, year, self.limit)

        record = self.freezes.create_freeze(
            volunteer_id=volunteer_id,
            year=year,
            slot=free[0],
            limit=self.limit,
            start_date=request.start_date,
            end_date=request.end_date,
            reason=request.reason,
            evaluation_month=request.evaluation_month,
            evaluation_year=request.evaluation_year,
            approved_by=approved_by,
        )
        self.logger.info(f"Freeze slot {free[0]}/{self.limit} used by volunteer {volunteer_id} in {year}")
        return record


class AlertRuleService:
    """Loads approved history, runs the alert rules and persists the new alerts."""

    def __init__(
        self, s: Session, settings: ScoringConfig | None = None, logger: logging.Logger | None = None
    ):
        self.s = s
        self.settings = settings or get_scoring_config()
        self.logger = logger or logging.getLogger(__name__)
        self.alerts = AlertRepo(s)
        self.criteria = CriterionRepo(s)
        self.evaluations = EvaluationRepo(s)

    def history(self) -> list[EvaluationSnapshot]:
        interaction_ids = set(self.criteria.interaction_ids(self.settings.interaction_keywords))
        snapshots = []
        for evaluation in self.evaluations.approved_history():
            snapshots.append(
                EvaluationSnapshot(
                    volunteer_id=evaluation.volunteer_id,
                    month=evaluation.evaluation_month,
                    year=evaluation.evaluation_year,
                    percentage=float(evaluation.percentage),
                    status=evaluation.status,
                    is_frozen=bool(evaluation.is_frozen),
                    interaction_scores=tuple(
                        d.score_value for d in evaluation.details if d.criteria_id in interaction_ids
                    ),
                    volunteer_name=evaluation.volunteer.full_name,
                )
            )
        return snapshots

    def run_automatic_checks(self, today: date | None = None) -> list[AlertRecordORM]:
        today = today or date.today()
        candidates = derive_alerts(self.history(), self.alerts.open_keys(), today, self.settings)
        created = [
            self.alerts.create_alert(
                volunteer_id=c.volunteer_id,
                alert_type=c.alert_type,
                severity=c.severity,
                alert_message=c.alert_message,
                trigger_condition=c.trigger_condition,
                consecutive_months=c.consecutive_months,
                criteria_id=c.criteria_id,
            )
            for c in candidates
        ]
        self.logger.info(f"Automatic alert check created {len(created)} alerts")
        return created
