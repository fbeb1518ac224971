"""
Score resolution and evaluation aggregation.

Pure functions: no session, no I/O beyond a warning log for skipped inputs.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..infrastructure.exceptions import DuplicateCriterionScoreError
from ..infrastructure.logging import get_logger
from .models import AggregationResult, CriterionDefinition, ResolvedDetail, ScoreSubmission

logger = get_logger(__name__)

DEFAULT_CHOICE_FALLBACK_RATIO = 0.8
CENT = Decimal("0.01")


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))


def round2(value: float) -> float:
    """Two decimals, halves rounded up: ``round2(3.125) == 3.13``."""
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def parse_number(raw: Any) -> float | None:
    """Parse a submitted numeric value; None for missing, non-numeric or non-finite input."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        number = float(str(raw).strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def resolve_score(
    criterion: CriterionDefinition,
    submission: ScoreSubmission,
    choice_fallback_ratio: float = DEFAULT_CHOICE_FALLBACK_RATIO,
) -> float:
    """
    Resolve one raw submission into a score within ``[0, criterion.max_score]``.

    - numeric: the parsed number clamped to the range; unparseable input scores 0
    - boolean: ``True`` scores max_score, anything else 0
    - choice: the table value for the label (clamped); an unlisted label scores
      ``max_score * choice_fallback_ratio``; no label scores 0
    - text: always 0, the text is kept for reporting

    Example:
        >>> c = CriterionDefinition(1, "Attendance", "basic", "numeric", max_score=10, weight=2)
        >>> resolve_score(c, ScoreSubmission(1, score_value=12))
        10.0
    """
    max_score = float(criterion.max_score)

    if criterion.data_type == "numeric":
        number = parse_number(submission.score_value)
        return clamp(number, 0.0, max_score) if number is not None else 0.0

    if criterion.data_type == "boolean":
        return max_score if submission.boolean_value is True else 0.0

    if criterion.data_type == "choice":
        label = submission.choice_value
        if label is None or (isinstance(label, str) and not label.strip()):
            return 0.0
        table = criterion.choices or {}
        if label in table:
            number = parse_number(table[label])
            return clamp(number, 0.0, max_score) if number is not None else 0.0
        return max_score * choice_fallback_ratio

    return 0.0


def applicable_criteria(
    criteria: Iterable[CriterionDefinition], role: str
) -> dict[int, CriterionDefinition]:
    """Active criteria that apply to ``role`` (or to all roles), keyed by id."""
    return {c.id: c for c in criteria if c.is_active and c.applies_to(role)}


def find_duplicate_ids(submissions: Sequence[ScoreSubmission]) -> list[int]:
    counts = Counter(s.criteria_id for s in submissions)
    return sorted(cid for cid, n in counts.items() if n > 1)


def aggregate_scores(
    role: str,
    criteria: Iterable[CriterionDefinition],
    submissions: Sequence[ScoreSubmission],
    choice_fallback_ratio: float = DEFAULT_CHOICE_FALLBACK_RATIO,
) -> AggregationResult:
    """
    Resolve every submission against the criteria applicable to ``role`` and
    accumulate weighted totals.

    Submissions for unknown, inactive or non-applicable criteria are skipped with
    a warning and contribute nothing to either total. Scoring the same criterion
    twice raises DuplicateCriterionScoreError.

    Example:
        >>> c = CriterionDefinition(1, "Attendance", "basic", "numeric", max_score=10, weight=2)
        >>> r = aggregate_scores("field", [c], [ScoreSubmission(1, score_value=12)])
        >>> (r.total_score, r.max_possible_score, r.percentage)
        (20.0, 20.0, 100.0)
    """
    duplicates = find_duplicate_ids(submissions)
    if duplicates:
        raise DuplicateCriterionScoreError(duplicates)

    available = applicable_criteria(criteria, role)
    total = 0.0
    maximum = 0.0
    details: list[ResolvedDetail] = []
    skipped: list[int] = []

    for submission in submissions:
        criterion = available.get(submission.criteria_id)
        if criterion is None:
            logger.warning(
                f"Skipping score for criterion {submission.criteria_id}: "
                f"unknown, inactive or not applicable to role '{role}'"
            )
            skipped.append(submission.criteria_id)
            continue

        final = resolve_score(criterion, submission, choice_fallback_ratio)
        weight = float(criterion.weight)
        weighted = final * weight
        weighted_max = float(criterion.max_score) * weight
        total += weighted
        maximum += weighted_max

        details.append(
            ResolvedDetail(
                criteria_id=criterion.id,
                score_value=final,
                weight_used=weight,
                weighted_score=weighted,
                weighted_max=weighted_max,
                raw_score=(
                    parse_number(submission.score_value)
                    if criterion.data_type == "numeric"
                    else None
                ),
                text_value=submission.text_value,
                choice_value=submission.choice_value,
                boolean_value=submission.boolean_value,
                notes=submission.notes,
            )
        )

    percentage = round2(total / maximum * 100) if maximum > 0 else 0.0
    logger.debug(
        f"Aggregated {len(details)} scores for role '{role}': "
        f"{total:.2f}/{maximum:.2f} ({percentage}%)"
    )
    return AggregationResult(
        total_score=total,
        max_possible_score=maximum,
        percentage=percentage,
        details=details,
        skipped_criteria_ids=skipped,
    )


def criterion_percentage(score: float | None, max_score: float) -> float:
    """Score as a percentage of the criterion maximum, rounded to 2 places."""
    if score is None or max_score <= 0:
        return 0.0
    return round2(score / max_score * 100)
