"""
Alert derivation rules.

``derive_alerts`` is pure: it receives the evaluation history and the set of
currently open alerts and returns the alerts that should be opened. Persisting
them is the job of ``AlertRuleService``.

Rule A (weak performance): approved evaluations inside the trailing window
whose percentage is below the threshold; enough of them opens a high severity
``weak_performance`` alert.

Rule B (no group interaction): approved, non-frozen evaluations inside a short
trailing window where an interaction criterion scored below the threshold;
enough distinct months opens a medium severity ``no_interaction`` alert.

A rule never fires for a volunteer that already has an open alert of its type.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date

from ..infrastructure.config import ScoringConfig
from ..infrastructure.logging import get_logger
from .models import AlertCandidate, EvaluationSnapshot, OpenAlertKey
from .schemas import NoInteractionTrigger, WeakPerformanceTrigger

logger = get_logger(__name__)


def months_before(today: date, year: int, month: int) -> int:
    """Whole calendar months between (year, month) and today's month; negative for future periods."""
    return (today.year - year) * 12 + (today.month - month)


def within_window(today: date, year: int, month: int, window_months: int) -> bool:
    """
    True when the period lies in the trailing window ending at today's month.

    The window spans the current month plus ``window_months`` earlier months.
    """
    offset = months_before(today, year, month)
    return 0 <= offset <= window_months


def is_interaction_criterion(
    name: str | None, name_en: str | None, keywords: Iterable[str]
) -> bool:
    haystack = f"{name or ''} {name_en or ''}".lower()
    return any(k.lower() in haystack for k in keywords)


def _group_by_volunteer(
    history: Iterable[EvaluationSnapshot],
) -> dict[int, list[EvaluationSnapshot]]:
    grouped: dict[int, list[EvaluationSnapshot]] = defaultdict(list)
    for snapshot in history:
        grouped[snapshot.volunteer_id].append(snapshot)
    return grouped


def _display_name(snapshots: Sequence[EvaluationSnapshot]) -> str:
    for s in snapshots:
        if s.volunteer_name:
            return s.volunteer_name
    return f"#{snapshots[0].volunteer_id}"


def weak_performance_candidate(
    volunteer_id: int,
    snapshots: Sequence[EvaluationSnapshot],
    today: date,
    settings: ScoringConfig,
) -> AlertCandidate | None:
    weak = [
        s
        for s in snapshots
        if s.status == "approved"
        and within_window(today, s.year, s.month, settings.weak_performance_window_months)
        and s.percentage < settings.weak_performance_threshold
    ]
    if len(weak) < settings.weak_performance_min_months:
        return None

    months = len(weak)
    trigger = WeakPerformanceTrigger(
        months=months, threshold=settings.weak_performance_threshold
    )
    return AlertCandidate(
        volunteer_id=volunteer_id,
        alert_type="weak_performance",
        severity="high",
        trigger_condition=trigger.model_dump(),
        alert_message=(
            f"Volunteer {_display_name(snapshots)} shows weak performance "
            f"in {months} months (below {trigger.threshold:g}%)"
        ),
        consecutive_months=months,
    )


def no_interaction_candidate(
    volunteer_id: int,
    snapshots: Sequence[EvaluationSnapshot],
    today: date,
    settings: ScoringConfig,
) -> AlertCandidate | None:
    threshold = settings.interaction_score_threshold
    periods = {
        (s.year, s.month)
        for s in snapshots
        if s.status == "approved"
        and not s.is_frozen
        and within_window(today, s.year, s.month, settings.no_interaction_window_months)
        and any(score is None or score < threshold for score in s.interaction_scores)
    }
    if len(periods) < settings.no_interaction_min_months:
        return None

    months = len(periods)
    trigger = NoInteractionTrigger(months=months, threshold=threshold)
    return AlertCandidate(
        volunteer_id=volunteer_id,
        alert_type="no_interaction",
        severity="medium",
        trigger_condition=trigger.model_dump(),
        alert_message=(
            f"Volunteer {_display_name(snapshots)} shows no group interaction for {months} months"
        ),
        consecutive_months=months,
    )


def derive_alerts(
    history: Iterable[EvaluationSnapshot],
    open_alerts: Iterable[OpenAlertKey],
    today: date,
    settings: ScoringConfig | None = None,
) -> list[AlertCandidate]:
    """
    Evaluate both rules for every volunteer in ``history``.

    Running it again on unchanged history, with the previously returned alerts
    now in ``open_alerts``, yields an empty list.

    Example:
        >>> history = [EvaluationSnapshot(7, m, 2024, p) for m, p in [(1, 50), (2, 55), (3, 58)]]
        >>> [a.alert_type for a in derive_alerts(history, [], date(2024, 3, 31))]
        ['weak_performance']
    """
    settings = settings or ScoringConfig()
    opened = {(k.volunteer_id, k.alert_type) for k in open_alerts}
    candidates: list[AlertCandidate] = []

    for volunteer_id, snapshots in sorted(_group_by_volunteer(history).items()):
        for rule in (weak_performance_candidate, no_interaction_candidate):
            candidate = rule(volunteer_id, snapshots, today, settings)
            if candidate is None:
                continue
            key = (volunteer_id, candidate.alert_type)
            if key in opened:
                logger.debug(
                    f"Volunteer {volunteer_id} already has an open {candidate.alert_type} alert"
                )
                continue
            opened.add(key)
            candidates.append(candidate)

    logger.info(f"Alert rules produced {len(candidates)} new alerts")
    return candidates
