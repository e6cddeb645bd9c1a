"""
GrantPilot Review Workflow

Blind double review: two independent reviewers score an application,
their scores are averaged, and the average decides approve/reject.

State machine (ApplicationStatus):
    submitted / under_review  --slot 1 filled-->  pending_senior_review
    pending_senior_review     --slot 2 filled-->  approved | rejected

Which slot a submission fills is decided by slot occupancy alone; the
caller's role only decides whether they may submit at all. Filling a
slot is a conditional update keyed on "slot still empty", so two
concurrent submissions can never both fill slot 1.

Blind-review guarantee: until both slots are filled, a slot's reviewer
identity, score, notes and per-criterion detail are visible only to
that slot's author. Everyone else sees that the slot is filled and
nothing more. Redaction happens here, on every read path.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from ..canon import compute_rubric_pack_hash
from ..config import Settings
from ..exceptions import (
    DuplicateReviewerError,
    InvalidScoreError,
    InvalidStateError,
    NotOwnerError,
    SlotPreconditionError,
    SlotTakenError,
)
from ..logging_config import log_transition
from ..models import (
    REVIEWABLE_STATUSES,
    Actor,
    ApplicationRecord,
    ApplicationStatus,
    AuditEventType,
    FinalReviewOutcome,
    ReviewAssignment,
    ReviewDecision,
    ReviewSlot,
    Rubric,
    SlotState,
    WorkflowAuditEntry,
    utcnow,
)
from ..packs import RubricRegistry
from ..store import ApplicationStore
from .authorization import (
    Operation,
    is_applicable,
    is_eligible,
    require_applicable,
    require_eligible,
)
from .lock_manager import ensure_unlocked
from .score_aggregator import AggregateResult, aggregate

logger = logging.getLogger(__name__)


# =============================================================================
# Views
# =============================================================================

@dataclass
class SlotView:
    """One review slot as seen by a particular viewer."""
    slot: ReviewSlot
    filled: bool
    redacted: bool = False
    reviewer_id: Optional[str] = None
    score: Optional[Decimal] = None
    notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    overrode_reviewer1: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot": self.slot.value,
            "filled": self.filled,
            "redacted": self.redacted,
            "reviewer_id": self.reviewer_id,
            "score": float(self.score) if self.score is not None else None,
            "notes": self.notes,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "overrode_reviewer1": self.overrode_reviewer1,
        }


@dataclass
class ReviewStatusView:
    """
    Review progress for one application, redacted for the viewer.

    ``final_score``, ``decision`` and ``disparity`` are only populated
    once both slots are filled.
    """
    application_id: int
    status: ApplicationStatus
    slot_state: SlotState
    reviewer1: SlotView
    reviewer2: SlotView
    both_complete: bool
    can_submit_review: bool
    viewer_slot: Optional[ReviewSlot] = None
    final_score: Optional[Decimal] = None
    decision: Optional[ReviewDecision] = None
    disparity: Optional[Decimal] = None
    has_disparity_warning: bool = False
    is_locked: bool = False
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    lock_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "status": self.status.value,
            "slot_state": self.slot_state.value,
            "reviewer1": self.reviewer1.to_dict(),
            "reviewer2": self.reviewer2.to_dict(),
            "both_complete": self.both_complete,
            "can_submit_review": self.can_submit_review,
            "viewer_slot": self.viewer_slot.value if self.viewer_slot else None,
            "final_score": float(self.final_score) if self.final_score is not None else None,
            "decision": self.decision.value if self.decision else None,
            "disparity": float(self.disparity) if self.disparity is not None else None,
            "has_disparity_warning": self.has_disparity_warning,
            "is_locked": self.is_locked,
            "locked_by": self.locked_by,
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
            "lock_reason": self.lock_reason,
        }


@dataclass
class DetailedScoresView:
    """Per-criterion detail of one slot; empty when hidden or unfilled."""
    slot: ReviewSlot
    visible: bool
    scores: dict[str, Decimal] = field(default_factory=dict)
    category_totals: dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot": self.slot.value,
            "visible": self.visible,
            "scores": {k: float(v) for k, v in self.scores.items()},
            "category_totals": {k: float(v) for k, v in self.category_totals.items()},
        }


@dataclass
class ReviewSubmission:
    """What a submitting or revising reviewer gets back."""
    application_id: int
    slot: ReviewSlot
    score: Decimal
    status: ApplicationStatus
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    outcome: Optional[FinalReviewOutcome] = None
    overrode_reviewer1: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "application_id": self.application_id,
            "slot": self.slot.value,
            "score": float(self.score),
            "status": self.status.value,
            "category_totals": {k: float(v) for k, v in self.category_totals.items()},
        }
        if self.outcome is not None:
            result["final_score"] = float(self.outcome.final_score)
            result["decision"] = self.outcome.decision.value
            result["overrode_reviewer1"] = self.overrode_reviewer1
        return result


# =============================================================================
# Slot Transitions
# =============================================================================

def can_view_slot(record: ApplicationRecord, slot: ReviewSlot, viewer_id: str) -> bool:
    """Blind-review rule: full detail once both slots are filled, or to the author."""
    assignment = record.assignment(slot)
    if assignment is None:
        return False
    return record.reviews_complete or assignment.reviewer_id == viewer_id


BLIND_EVENTS = frozenset({
    AuditEventType.REVIEW_SUBMITTED,
    AuditEventType.REVIEW_REVISED,
    AuditEventType.SCORING_PROGRESS_SAVED,
})


def audit_entry_view(
    record: ApplicationRecord,
    entry: WorkflowAuditEntry,
    viewer_id: str,
) -> dict[str, Any]:
    """
    One audit entry as ``viewer_id`` may see it.

    Review events keep their type, time and hash but lose the author and
    payload until both slots are filled, unless the viewer wrote them.
    """
    data = entry.to_dict()
    hidden = (
        entry.event_type in BLIND_EVENTS
        and not record.reviews_complete
        and entry.actor_id != viewer_id
    )
    if hidden:
        data.update(actor_id=None, actor_role=None, before_value=None, after_value=None)
    data["redacted"] = hidden
    return data


def finalize_review(
    record: ApplicationRecord,
    threshold: Decimal,
    actor: Optional[Actor] = None,
    now: Optional[datetime] = None,
    event: AuditEventType = AuditEventType.REVIEW_FINALIZED,
) -> FinalReviewOutcome:
    """
    Compute and cache the final outcome; move the application to its decision.

    Only called by the transitions that fill or revise slot 2.
    """
    if record.slot1 is None or record.slot2 is None:
        raise SlotPreconditionError(
            message="Both review slots must be filled before finalizing",
            details={"field": "slot_state", "slot_state": record.slot_state.value},
            application_id=record.application_id,
        )

    outcome = FinalReviewOutcome.from_scores(
        record.slot1.score, record.slot2.score, threshold
    )
    before = {
        "status": record.application.status.value,
        "final_score": record.outcome.final_score if record.outcome else None,
    }
    record.outcome = outcome
    record.slot2.overrode_reviewer1 = outcome.overrode_reviewer1
    record.application.status = (
        ApplicationStatus.APPROVED
        if outcome.decision == ReviewDecision.APPROVED
        else ApplicationStatus.REJECTED
    )
    record.application.updated_at = now or utcnow()
    record.log_event(
        event,
        f"Final score {outcome.final_score}: {outcome.decision.value}",
        actor=actor,
        before=before,
        after={
            "status": record.application.status.value,
            "final_score": outcome.final_score,
            "overrode_reviewer1": outcome.overrode_reviewer1,
        },
        at=now,
    )
    return outcome


def fill_slot(
    record: ApplicationRecord,
    assignment: ReviewAssignment,
    threshold: Decimal,
    actor: Optional[Actor] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Place an assignment in its slot and apply the resulting transition.

    Raises:
        SlotTakenError: The slot is already filled
        SlotPreconditionError: Slot 2 requested while slot 1 is empty
        DuplicateReviewerError: Slot 2 author is the slot 1 author
    """
    slot = assignment.slot
    if record.assignment(slot) is not None:
        raise SlotTakenError(
            message=f"Review slot {slot.value} is already filled",
            details={"field": "slot", "slot": slot.value},
            application_id=record.application_id,
        )
    if slot == ReviewSlot.SLOT_2 and record.slot1 is None:
        raise SlotPreconditionError(
            message="Slot 2 cannot be filled before slot 1",
            details={"field": "slot", "slot": slot.value},
            application_id=record.application_id,
        )
    if record.slot_of(assignment.reviewer_id) is not None:
        raise DuplicateReviewerError(
            message="You have already reviewed this application",
            details={"field": "actor_id"},
            application_id=record.application_id,
        )

    if slot == ReviewSlot.SLOT_1:
        before_status = record.application.status
        record.slot1 = assignment
        record.application.status = ApplicationStatus.PENDING_SENIOR_REVIEW
        record.application.updated_at = now or utcnow()
        record.log_event(
            AuditEventType.REVIEW_SUBMITTED,
            "Reviewer 1 submitted",
            actor=actor,
            before={"status": before_status.value},
            after={"status": record.application.status.value, "slot": slot.value},
            at=now,
        )
    else:
        record.slot2 = assignment
        record.log_event(
            AuditEventType.REVIEW_SUBMITTED,
            "Reviewer 2 submitted",
            actor=actor,
            after={"slot": slot.value},
            at=now,
        )
        finalize_review(record, threshold, actor=actor, now=now)


def outcome_matches(record: ApplicationRecord, threshold: Decimal) -> bool:
    """Recompute the final outcome and compare it with the cached value."""
    if record.slot1 is None or record.slot2 is None:
        return record.outcome is None
    expected = FinalReviewOutcome.from_scores(
        record.slot1.score, record.slot2.score, threshold
    )
    return record.outcome == expected


# =============================================================================
# Review Workflow
# =============================================================================

@dataclass
class ReviewWorkflow:
    """
    Reviewer 1 -> Reviewer 2 blind scoring.

    Usage:
        workflow = ReviewWorkflow(store, registry, settings)
        workflow.submit_review(42, Actor("rev-a", Role.REVIEWER_1), scores, "Strong sales")
        workflow.submit_review(42, Actor("rev-b", Role.REVIEWER_2), scores, "Agree")
        workflow.get_review_status(42, viewer)
    """
    store: ApplicationStore
    rubrics: RubricRegistry
    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], datetime] = field(default=utcnow)

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit_review(
        self,
        application_id: int,
        actor: Actor,
        detailed_scores: Mapping[str, Any],
        general_notes: Optional[str],
        expected_slot: Optional[ReviewSlot] = None,
    ) -> ReviewSubmission:
        """
        Fill the next free review slot.

        ``expected_slot`` lets a caller assert which slot it believes it is
        filling; a mismatch fails instead of silently filling the other one.

        Raises:
            NotEligibleError: Role may not review
            NotFoundError: Unknown application
            ApplicationLockedError: Application is frozen
            DuplicateReviewerError: Actor already holds a slot
            InvalidStateError: Both slots filled, or status not reviewable
            SlotPreconditionError: Slot 2 expected while slot 1 is empty
            SlotTakenError: A concurrent submission filled the slot first
            InvalidScoreError / ScoreOutOfBoundsError: Bad notes or scores
        """
        require_eligible(actor, Operation.SUBMIT_REVIEW, application_id)
        snapshot = self.store.get(application_id)
        self._check_can_submit(snapshot, actor)

        slot = ReviewSlot.SLOT_1 if snapshot.slot1 is None else ReviewSlot.SLOT_2
        if expected_slot is not None and expected_slot != slot:
            if expected_slot == ReviewSlot.SLOT_2:
                raise SlotPreconditionError(
                    message="Slot 2 cannot be filled before slot 1",
                    details={"field": "slot", "slot": expected_slot.value},
                    application_id=application_id,
                )
            raise SlotTakenError(
                message="Review slot 1 is already filled",
                details={"field": "slot", "slot": expected_slot.value},
                application_id=application_id,
            )

        rubric = self.rubrics.for_track(snapshot.application.track)
        notes, result = self._validate_review(application_id, rubric, detailed_scores, general_notes)
        now = self.clock()
        assignment = ReviewAssignment(
            slot=slot,
            reviewer_id=actor.actor_id,
            score=result.total,
            notes=notes,
            detailed_scores=dict(result.scores),
            category_totals=dict(result.category_totals),
            reviewed_at=now,
            rubric_hash=compute_rubric_pack_hash(rubric),
        )

        def slot_still_free(row: ApplicationRecord) -> bool:
            return (
                row.assignment(slot) is None
                and (slot == ReviewSlot.SLOT_1 or row.slot1 is not None)
                and not row.application.is_locked
                and row.slot_of(actor.actor_id) is None
                and row.application.status in REVIEWABLE_STATUSES
            )

        def apply(row: ApplicationRecord) -> None:
            fill_slot(row, assignment, self.settings.pass_threshold, actor=actor, now=now)

        updated = self.store.conditional_update(application_id, slot_still_free, apply)
        if updated is None:
            # Lost a race: report the precise reason if the row now explains it
            self._check_can_submit(self.store.get(application_id), actor)
            raise SlotTakenError(
                message=f"Review slot {slot.value} was filled by another reviewer",
                details={"field": "slot", "slot": slot.value},
                application_id=application_id,
            )

        log_transition(
            logger, f"Review slot {slot.value} filled",
            application_id=application_id,
            transition="submit_review",
            actor=actor,
            from_status=snapshot.application.status,
            to_status=updated.application.status,
        )
        return self._submission(updated, slot)

    def revise_review(
        self,
        application_id: int,
        actor: Actor,
        detailed_scores: Mapping[str, Any],
        general_notes: Optional[str],
    ) -> ReviewSubmission:
        """
        Re-submit the actor's own review before the application is locked.

        Slot 1 may only be revised while slot 2 is empty. Revising slot 2
        recomputes the final outcome in the same transaction.

        Raises:
            NotOwnerError: Actor holds no slot on this application
            InvalidStateError: Slot 1 revision after slot 2 was filled
            ApplicationLockedError: Application is frozen
        """
        require_eligible(actor, Operation.REVISE_REVIEW, application_id)
        snapshot = self.store.get(application_id)
        rubric = self.rubrics.for_track(snapshot.application.track)

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            slot = record.slot_of(actor.actor_id)
            if slot is None:
                raise NotOwnerError(
                    message="Only the author of a review may revise it",
                    details={"field": "actor_id"},
                    application_id=application_id,
                )
            require_applicable(record.slot_state, Operation.REVISE_REVIEW, application_id)
            if slot == ReviewSlot.SLOT_1 and record.slot2 is not None:
                raise InvalidStateError(
                    message="Reviewer 1's review is frozen once reviewer 2 has submitted",
                    details={"field": "slot", "slot": slot.value},
                    application_id=application_id,
                )

            notes, result = self._validate_review(
                application_id, rubric, detailed_scores, general_notes
            )
            now = self.clock()
            assignment = record.assignment(slot)
            before = {"score": assignment.score}
            assignment.score = result.total
            assignment.notes = notes
            assignment.detailed_scores = dict(result.scores)
            assignment.category_totals = dict(result.category_totals)
            assignment.reviewed_at = now
            assignment.rubric_hash = compute_rubric_pack_hash(rubric)

            if slot == ReviewSlot.SLOT_2:
                finalize_review(
                    record,
                    self.settings.pass_threshold,
                    actor=actor,
                    now=now,
                    event=AuditEventType.REVIEW_REVISED,
                )
            else:
                record.application.updated_at = now
                record.log_event(
                    AuditEventType.REVIEW_REVISED,
                    "Reviewer 1 revised their review",
                    actor=actor,
                    before=before,
                    after={"score": assignment.score},
                    at=now,
                )
            status = record.application.status
            submission = self._submission(record, slot)

        log_transition(
            logger, f"Review slot {slot.value} revised",
            application_id=application_id,
            transition="revise_review",
            actor=actor,
            from_status=snapshot.application.status,
            to_status=status,
        )
        return submission

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_review_status(self, application_id: int, actor: Actor) -> ReviewStatusView:
        """Review progress for one application, redacted for ``actor``."""
        require_eligible(actor, Operation.GET_REVIEW_STATUS, application_id)
        record = self.store.get(application_id)
        application = record.application

        view = ReviewStatusView(
            application_id=application_id,
            status=application.status,
            slot_state=record.slot_state,
            reviewer1=self._slot_view(record, ReviewSlot.SLOT_1, actor.actor_id),
            reviewer2=self._slot_view(record, ReviewSlot.SLOT_2, actor.actor_id),
            both_complete=record.reviews_complete,
            can_submit_review=self.can_submit_review(record, actor),
            viewer_slot=record.slot_of(actor.actor_id),
            is_locked=application.is_locked,
            locked_by=application.lock.locked_by,
            locked_at=application.lock.locked_at,
            lock_reason=application.lock.lock_reason,
        )
        if record.reviews_complete and record.outcome is not None:
            view.final_score = record.outcome.final_score
            view.decision = record.outcome.decision
            view.disparity = record.outcome.disparity
            view.has_disparity_warning = view.disparity > self.settings.disparity_threshold
        return view

    def get_detailed_scores(
        self,
        application_id: int,
        actor: Actor,
        slot: ReviewSlot,
    ) -> DetailedScoresView:
        """Per-criterion detail of one slot; an empty mapping when hidden."""
        require_eligible(actor, Operation.GET_DETAILED_SCORES, application_id)
        record = self.store.get(application_id)
        if not can_view_slot(record, slot, actor.actor_id):
            return DetailedScoresView(slot=slot, visible=False)
        assignment = record.assignment(slot)
        return DetailedScoresView(
            slot=slot,
            visible=True,
            scores=dict(assignment.detailed_scores),
            category_totals=dict(assignment.category_totals),
        )

    def get_audit_trail(self, application_id: int, actor: Actor) -> list[dict[str, Any]]:
        """Committed transitions in order, with unfinished reviews redacted."""
        require_eligible(actor, Operation.GET_AUDIT_TRAIL, application_id)
        record = self.store.get(application_id)
        return [
            audit_entry_view(record, entry, actor.actor_id)
            for entry in record.audit_log
        ]

    def can_submit_review(self, record: ApplicationRecord, actor: Actor) -> bool:
        return (
            is_eligible(actor.role, Operation.SUBMIT_REVIEW)
            and is_applicable(record.slot_state, Operation.SUBMIT_REVIEW)
            and not record.application.is_locked
            and record.slot_of(actor.actor_id) is None
            and record.application.status in REVIEWABLE_STATUSES
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _check_can_submit(self, record: ApplicationRecord, actor: Actor) -> None:
        ensure_unlocked(record)
        if record.slot_of(actor.actor_id) is not None:
            raise DuplicateReviewerError(
                message="You have already reviewed this application",
                details={"field": "actor_id"},
                application_id=record.application_id,
            )
        require_applicable(record.slot_state, Operation.SUBMIT_REVIEW, record.application_id)
        if record.application.status not in REVIEWABLE_STATUSES:
            raise InvalidStateError(
                message=f"Application in status '{record.application.status.value}' cannot be reviewed",
                details={"field": "status", "status": record.application.status.value},
                application_id=record.application_id,
            )

    def _validate_review(
        self,
        application_id: int,
        rubric: Rubric,
        detailed_scores: Mapping[str, Any],
        general_notes: Optional[str],
    ) -> tuple[str, AggregateResult]:
        notes = (general_notes or "").strip()
        if not notes:
            raise InvalidScoreError(
                message="General notes are required",
                details={"field": "general_notes"},
                application_id=application_id,
            )
        if not detailed_scores:
            raise InvalidScoreError(
                message="Detailed scores are required",
                details={"field": "detailed_scores"},
                application_id=application_id,
            )
        result = aggregate(rubric, detailed_scores)
        upper = min(rubric.max_total, Decimal("100"))
        if result.total < 0 or result.total > upper:
            raise InvalidScoreError(
                message=f"Total score {result.total} is outside [0, {upper}]",
                details={"field": "detailed_scores", "total": str(result.total)},
                application_id=application_id,
            )
        return notes, result

    def _slot_view(self, record: ApplicationRecord, slot: ReviewSlot, viewer_id: str) -> SlotView:
        assignment = record.assignment(slot)
        if assignment is None:
            return SlotView(slot=slot, filled=False)
        if not can_view_slot(record, slot, viewer_id):
            return SlotView(slot=slot, filled=True, redacted=True)
        return SlotView(
            slot=slot,
            filled=True,
            reviewer_id=assignment.reviewer_id,
            score=assignment.score,
            notes=assignment.notes,
            reviewed_at=assignment.reviewed_at,
            overrode_reviewer1=(
                assignment.overrode_reviewer1 if slot == ReviewSlot.SLOT_2 else None
            ),
        )

    def _submission(self, record: ApplicationRecord, slot: ReviewSlot) -> ReviewSubmission:
        assignment = record.assignment(slot)
        outcome = record.outcome if slot == ReviewSlot.SLOT_2 else None
        return ReviewSubmission(
            application_id=record.application_id,
            slot=slot,
            score=assignment.score,
            status=record.application.status,
            category_totals=dict(assignment.category_totals),
            outcome=outcome,
            overrode_reviewer1=outcome.overrode_reviewer1 if outcome else None,
        )
