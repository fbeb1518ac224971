"""
Statistical helpers used by reports: mean, consistency, trend direction and
performance grade bands.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .scoring import round2

DEFAULT_TREND_DELTA = 5.0

GRADE_BANDS: tuple[tuple[float, str], ...] = (
    (90.0, "excellent"),
    (80.0, "very_good"),
    (70.0, "good"),
    (60.0, "acceptable"),
)


@dataclass(slots=True, frozen=True)
class TrendResult:
    direction: str  # improving | declining | stable | insufficient_data
    first_half_mean: float | None = None
    second_half_mean: float | None = None
    difference: float | None = None


def mean(scores: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sequence."""
    if not scores:
        return 0.0
    return float(np.mean(np.asarray(scores, dtype=float)))


def consistency(scores: Sequence[float]) -> float:
    """
    ``max(0, 100 - population standard deviation)``; 0 when fewer than two scores.

    Example:
        >>> consistency([70, 70, 70])
        100.0
    """
    if len(scores) < 2:
        return 0.0
    stddev = float(np.std(np.asarray(scores, dtype=float)))
    return max(0.0, 100.0 - stddev)


def trend(scores: Sequence[float], delta: float = DEFAULT_TREND_DELTA) -> TrendResult:
    """
    Compare the mean of the second half of ``scores`` with the first half.

    Scores must be in chronological order. The split point is ``len // 2``, so
    for odd lengths the middle score belongs to the second half.

    Example:
        >>> trend([50, 60, 70, 80]).direction
        'improving'
    """
    if len(scores) < 3:
        return TrendResult("insufficient_data")

    split = len(scores) // 2
    first = mean(scores[:split])
    second = mean(scores[split:])
    difference = second - first
    if difference > delta:
        direction = "improving"
    elif difference < -delta:
        direction = "declining"
    else:
        direction = "stable"
    return TrendResult(direction, round2(first), round2(second), round2(difference))


def recent_change(
    latest: float | None, previous: float | None, delta: float = DEFAULT_TREND_DELTA
) -> str:
    """Direction between the two most recent evaluations; stable when either is missing."""
    if latest is None or previous is None:
        return "stable"
    if latest > previous + delta:
        return "improving"
    if latest < previous - delta:
        return "declining"
    return "stable"


def performance_grade(percentage: float | None) -> str:
    """
    Example:
        >>> performance_grade(84.5)
        'very_good'
    """
    value = percentage or 0.0
    for lower, label in GRADE_BANDS:
        if value >= lower:
            return label
    return "needs_improvement"


def grade_range(grade: str) -> tuple[float, float | None]:
    """Percentage range ``[lower, upper)`` of a grade band; ``upper`` is None for the top band."""
    upper: float | None = None
    for lower, label in GRADE_BANDS:
        if label == grade:
            return lower, upper
        upper = lower
    if grade == "needs_improvement":
        return 0.0, upper
    raise ValueError(f"Unknown performance grade '{grade}'")


def overall_health(average: float | None) -> str:
    """Organization-wide health label for an average percentage."""
    value = average or 0.0
    if value >= 75:
        return "excellent"
    if value >= 65:
        return "good"
    return "needs_development"
