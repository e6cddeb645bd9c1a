"""
GrantPilot Application and Review Models

Models for the application under review and its two blind review slots.

Key components:
- Actor: Caller identity and role, passed explicitly into every operation
- Application: One submission, with its lifecycle status and lock state
- ReviewAssignment: A filled review slot (slot 1 primary, slot 2 secondary)
- FinalReviewOutcome: Averaged score and automatic decision
- CriterionScore: Draft per-criterion score saved while scoring
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from .enums import ApplicationStatus, ReviewDecision, ReviewSlot, Role, Track

ONE_DP = Decimal("0.1")


def round1dp(value: Decimal) -> Decimal:
    """Round half-up to one decimal place."""
    return Decimal(value).quantize(ONE_DP, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# Actor
# =============================================================================

@dataclass(frozen=True)
class Actor:
    """The caller of an operation, as resolved by the identity collaborator."""
    actor_id: str
    role: Role

    def to_dict(self) -> dict[str, Any]:
        return {"actor_id": self.actor_id, "role": self.role.value}


# =============================================================================
# Lock
# =============================================================================

@dataclass
class LockState:
    """Administrative freeze on an application."""
    is_locked: bool = False
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    lock_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_locked": self.is_locked,
            "locked_by": self.locked_by,
            "locked_at": _iso(self.locked_at),
            "lock_reason": self.lock_reason,
        }


# =============================================================================
# Application
# =============================================================================

@dataclass
class Application:
    """
    Identity for one grant submission.

    Owned by the applicant; once submitted it is mutated only through the
    review and DD workflows and administrative actions.
    """
    id: int
    track: Track
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    submitted_at: Optional[datetime] = field(default_factory=utcnow)
    applicant_id: Optional[str] = None
    business_name: Optional[str] = None
    lock: LockState = field(default_factory=LockState)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_locked(self) -> bool:
        return self.lock.is_locked

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "track": self.track.value,
            "status": self.status.value,
            "submitted_at": _iso(self.submitted_at),
            "lock": self.lock.to_dict(),
        }
        if self.applicant_id:
            result["applicant_id"] = self.applicant_id
        if self.business_name:
            result["business_name"] = self.business_name
        return result


# =============================================================================
# Review Assignment
# =============================================================================

@dataclass
class ReviewAssignment:
    """
    A filled review slot.

    Attributes:
        slot: Which slot this assignment occupies
        reviewer_id: Author of the review
        score: Aggregate score (0-100) from the detailed scores
        notes: General notes
        detailed_scores: criterion id -> score, as submitted
        category_totals: category id -> subtotal
        reviewed_at: When the review was (last) submitted
        overrode_reviewer1: Slot 2 only; set when this review flipped slot 1's decision
        rubric_hash: Fingerprint of the rubric the score was computed under
    """
    slot: ReviewSlot
    reviewer_id: str
    score: Decimal
    notes: str
    detailed_scores: dict[str, Decimal] = field(default_factory=dict)
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    reviewed_at: datetime = field(default_factory=utcnow)
    overrode_reviewer1: bool = False
    rubric_hash: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "slot": self.slot.value,
            "reviewer_id": self.reviewer_id,
            "score": float(self.score),
            "notes": self.notes,
            "reviewed_at": _iso(self.reviewed_at),
        }
        if self.slot == ReviewSlot.SLOT_2:
            result["overrode_reviewer1"] = self.overrode_reviewer1
        return result


# =============================================================================
# Final Review Outcome
# =============================================================================

@dataclass(frozen=True)
class FinalReviewOutcome:
    """
    Averaged review score and the decision it produces.

    Stored on the record as a cache written only by the transition that
    fills (or revises) slot 2; ``from_scores`` recomputes it.
    """
    reviewer1_score: Decimal
    reviewer2_score: Decimal
    final_score: Decimal
    decision: ReviewDecision
    threshold: Decimal

    @classmethod
    def from_scores(
        cls,
        reviewer1_score: Decimal,
        reviewer2_score: Decimal,
        threshold: Decimal,
    ) -> FinalReviewOutcome:
        final_score = round1dp((reviewer1_score + reviewer2_score) / 2)
        decision = decide(final_score, threshold)
        return cls(
            reviewer1_score=reviewer1_score,
            reviewer2_score=reviewer2_score,
            final_score=final_score,
            decision=decision,
            threshold=threshold,
        )

    @property
    def disparity(self) -> Decimal:
        return round1dp(abs(self.reviewer1_score - self.reviewer2_score))

    @property
    def overrode_reviewer1(self) -> bool:
        """True when slot 1's score alone would have produced the other decision."""
        return decide(self.reviewer1_score, self.threshold) != self.decision

    def to_dict(self) -> dict[str, Any]:
        return {
            "reviewer1_score": float(self.reviewer1_score),
            "reviewer2_score": float(self.reviewer2_score),
            "final_score": float(self.final_score),
            "decision": self.decision.value,
            "threshold": float(self.threshold),
        }


def decide(score: Decimal, threshold: Decimal) -> ReviewDecision:
    """Approve at or above the threshold (inclusive)."""
    return ReviewDecision.APPROVED if score >= threshold else ReviewDecision.REJECTED


# =============================================================================
# Criterion Score (scoring progress)
# =============================================================================

@dataclass
class CriterionScore:
    """
    Draft score for one criterion, saved while a reviewer works.

    Keyed by (application, criterion, scorer) so drafts never leak between
    the two blind reviewers. The workflow only consumes the aggregate.
    """
    application_id: int
    criterion_id: str
    scorer_id: str
    score: Decimal
    reviewer_comment: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str]:
        return (self.scorer_id, self.criterion_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "criterion_id": self.criterion_id,
            "score": float(self.score),
            "reviewer_comment": self.reviewer_comment,
            "updated_at": _iso(self.updated_at),
        }
