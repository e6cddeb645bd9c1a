"""
GrantPilot Oversight Escalation

Advisory signals that help oversight decide whether to send an
application to due diligence:

- score disparity between the two reviewers (warning above the threshold)
- DD qualification from the averaged review score

Neither signal gates any transition. Only a human calling
recommend_for_due_diligence changes state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from ..config import Settings
from ..models import Actor, ApplicationRecord, DDStatus, round1dp
from ..store import ApplicationStore
from .authorization import Operation, require_applicable, require_eligible


def score_disparity(reviewer1_score: Decimal, reviewer2_score: Decimal) -> Decimal:
    return round1dp(abs(reviewer1_score - reviewer2_score))


def qualifies_for_dd(aggregate_score: Decimal, threshold: Decimal) -> bool:
    return aggregate_score >= threshold


@dataclass(frozen=True)
class DisparityResult:
    application_id: int
    reviewer1_score: Decimal
    reviewer2_score: Decimal
    disparity: Decimal
    threshold: Decimal

    @property
    def has_warning(self) -> bool:
        return self.disparity > self.threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "reviewer1_score": float(self.reviewer1_score),
            "reviewer2_score": float(self.reviewer2_score),
            "disparity": float(self.disparity),
            "threshold": float(self.threshold),
            "has_warning": self.has_warning,
        }


@dataclass(frozen=True)
class QualificationResult:
    application_id: int
    aggregate_score: Decimal
    threshold: Decimal

    @property
    def qualifies(self) -> bool:
        return qualifies_for_dd(self.aggregate_score, self.threshold)

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "aggregate_score": float(self.aggregate_score),
            "threshold": float(self.threshold),
            "qualifies": self.qualifies,
        }


@dataclass
class EscalationAssessment:
    """Everything oversight needs to decide on a DD recommendation."""
    application_id: int
    reviews_complete: bool
    disparity: Optional[DisparityResult] = None
    qualification: Optional[QualificationResult] = None
    oversight_flagged: bool = False
    dd_status: Optional[DDStatus] = None
    reasons: list[str] = field(default_factory=list)

    @property
    def recommend_due_diligence(self) -> bool:
        """Advisory only: qualifies or has a disparity warning."""
        return bool(
            (self.qualification and self.qualification.qualifies)
            or (self.disparity and self.disparity.has_warning)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "reviews_complete": self.reviews_complete,
            "disparity": self.disparity.to_dict() if self.disparity else None,
            "qualification": self.qualification.to_dict() if self.qualification else None,
            "oversight_flagged": self.oversight_flagged,
            "dd_status": self.dd_status.value if self.dd_status else None,
            "recommend_due_diligence": self.recommend_due_diligence,
            "reasons": list(self.reasons),
        }


@dataclass
class OversightEscalation:
    """Computes disparity and qualification signals from review outcomes."""
    store: ApplicationStore
    settings: Settings = field(default_factory=Settings)

    def calculate_score_disparity(self, application_id: int, actor: Actor) -> DisparityResult:
        """
        |R1 - R2| for a fully reviewed application.

        Raises:
            InvalidStateError: Both reviews are not in yet
        """
        require_eligible(actor, Operation.CALCULATE_SCORE_DISPARITY, application_id)
        record = self.store.get(application_id)
        require_applicable(record.slot_state, Operation.CALCULATE_SCORE_DISPARITY, application_id)
        return self._disparity(record)

    def check_dd_qualification(self, application_id: int, actor: Actor) -> QualificationResult:
        """
        Whether the averaged review score reaches the DD threshold.

        Raises:
            InvalidStateError: Both reviews are not in yet
        """
        require_eligible(actor, Operation.CHECK_DD_QUALIFICATION, application_id)
        record = self.store.get(application_id)
        require_applicable(record.slot_state, Operation.CHECK_DD_QUALIFICATION, application_id)
        return self._qualification(record)

    def assess_escalation(self, application_id: int, actor: Actor) -> EscalationAssessment:
        """Summarize the signals; never transitions state."""
        require_eligible(actor, Operation.ASSESS_ESCALATION, application_id)
        record = self.store.get(application_id)
        dd = record.dd
        assessment = EscalationAssessment(
            application_id=application_id,
            reviews_complete=record.reviews_complete,
            oversight_flagged=bool(dd and dd.is_oversight_initiated),
            dd_status=dd.dd_status if dd else None,
        )

        if not record.reviews_complete:
            assessment.reasons.append("Both reviews are not yet complete")
            return assessment

        assessment.disparity = self._disparity(record)
        assessment.qualification = self._qualification(record)

        if assessment.disparity.has_warning:
            assessment.reasons.append(
                f"Reviewer scores differ by {assessment.disparity.disparity} points "
                f"(threshold {assessment.disparity.threshold})"
            )
        if assessment.qualification.qualifies:
            assessment.reasons.append(
                f"Aggregate score {assessment.qualification.aggregate_score} meets the "
                f"due-diligence threshold of {assessment.qualification.threshold}"
            )
        if assessment.oversight_flagged:
            assessment.reasons.append("Already flagged by oversight")
        return assessment

    def _disparity(self, record: ApplicationRecord) -> DisparityResult:
        r1 = record.slot1.score
        r2 = record.slot2.score
        return DisparityResult(
            application_id=record.application_id,
            reviewer1_score=r1,
            reviewer2_score=r2,
            disparity=score_disparity(r1, r2),
            threshold=self.settings.disparity_threshold,
        )

    def _qualification(self, record: ApplicationRecord) -> QualificationResult:
        aggregate_score = round1dp((record.slot1.score + record.slot2.score) / 2)
        return QualificationResult(
            application_id=record.application_id,
            aggregate_score=aggregate_score,
            threshold=self.settings.dd_qualification_threshold,
        )
