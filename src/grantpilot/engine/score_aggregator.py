"""
GrantPilot Score Aggregator

Pure functions converting per-criterion scores into category subtotals
and a grand total for one rubric.

Out-of-range input is never clamped: a negative score, a score above the
criterion's max, or a criterion the rubric does not know raises
ScoreOutOfBoundsError so caller bugs surface immediately.

The aggregator is track-aware through the RubricRegistry: the review
rubric is selected by the application's track and the DD rubric by
phase, and two rubrics are never mixed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from ..exceptions import ScoreOutOfBoundsError
from ..models import DDPhase, Rubric, Track
from ..packs import RubricRegistry

ZERO = Decimal("0")


# =============================================================================
# Aggregate Result
# =============================================================================

@dataclass(frozen=True)
class AggregateResult:
    """
    Totals for one set of criterion scores under one rubric.

    Attributes:
        rubric_id: Rubric the scores were aggregated under
        scores: Normalized criterion id -> score
        category_totals: Category id -> subtotal, in rubric order
        total: Grand total
        max_total: Maximum achievable total for the rubric
    """
    rubric_id: str
    scores: dict[str, Decimal] = field(default_factory=dict)
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    total: Decimal = ZERO
    max_total: Decimal = ZERO

    def passes(self, threshold: Decimal) -> bool:
        return passes(self.total, threshold)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rubric_id": self.rubric_id,
            "category_totals": {k: float(v) for k, v in self.category_totals.items()},
            "total": float(self.total),
            "max_total": float(self.max_total),
        }


# =============================================================================
# Pure Functions
# =============================================================================

def to_score(criterion_id: str, value: Any) -> Decimal:
    """
    Coerce a raw score to Decimal.

    Raises:
        ScoreOutOfBoundsError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ScoreOutOfBoundsError(
            message=f"Score for '{criterion_id}' must be a number",
            details={"field": criterion_id, "reason": "not_numeric"},
        )
    try:
        score = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ScoreOutOfBoundsError(
            message=f"Score for '{criterion_id}' must be a number",
            details={"field": criterion_id, "reason": "not_numeric"},
        )
    if not score.is_finite():
        raise ScoreOutOfBoundsError(
            message=f"Score for '{criterion_id}' must be finite",
            details={"field": criterion_id, "reason": "not_numeric"},
        )
    return score


def check_criterion_score(rubric: Rubric, criterion_id: str, value: Any) -> Decimal:
    """
    Validate one criterion score against its rubric.

    Raises:
        ScoreOutOfBoundsError: Unknown criterion, negative, or above max
    """
    criterion = rubric.get_criterion(criterion_id)
    if criterion is None:
        raise ScoreOutOfBoundsError(
            message=f"Criterion '{criterion_id}' is not part of rubric '{rubric.id}'",
            details={
                "field": criterion_id,
                "reason": "unknown_criterion",
                "rubric_id": rubric.id,
            },
        )
    score = to_score(criterion_id, value)
    if score < 0 or score > criterion.max_points:
        raise ScoreOutOfBoundsError(
            message=(
                f"Score {score} for '{criterion_id}' is outside "
                f"[0, {criterion.max_points}]"
            ),
            details={
                "field": criterion_id,
                "reason": "out_of_range",
                "score": str(score),
                "max_points": str(criterion.max_points),
            },
        )
    return score


def aggregate(rubric: Rubric, scores: Mapping[str, Any]) -> AggregateResult:
    """
    Sum criterion scores into category subtotals and a grand total.

    Criteria absent from ``scores`` contribute zero. Every category of the
    rubric appears in ``category_totals``.

    Raises:
        ScoreOutOfBoundsError: If any entry fails check_criterion_score
    """
    normalized = {
        criterion_id: check_criterion_score(rubric, criterion_id, value)
        for criterion_id, value in scores.items()
    }

    category_totals: dict[str, Decimal] = {}
    for category in rubric.categories:
        category_totals[category.id] = sum(
            (normalized.get(c.id, ZERO) for c in category.criteria),
            ZERO,
        )

    return AggregateResult(
        rubric_id=rubric.id,
        scores=normalized,
        category_totals=category_totals,
        total=sum(category_totals.values(), ZERO),
        max_total=rubric.max_total,
    )


def passes(total: Decimal, threshold: Decimal) -> bool:
    """Pass at or above the threshold (inclusive)."""
    return total >= threshold


# =============================================================================
# Track-Aware Aggregator
# =============================================================================

@dataclass
class ScoreAggregator:
    """
    Aggregates scores under the rubric registered for a track or phase.

    Usage:
        aggregator = ScoreAggregator(registry)
        result = aggregator.for_track(Track.FOUNDATION, {"fnd-proof-of-sales": 8})
    """
    registry: RubricRegistry

    def for_track(self, track: Track, scores: Mapping[str, Any]) -> AggregateResult:
        return aggregate(self.registry.for_track(track), scores)

    def for_phase(self, phase: DDPhase, scores: Mapping[str, Any]) -> AggregateResult:
        return aggregate(self.registry.for_phase(phase), scores)
