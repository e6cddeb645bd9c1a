"""
GrantPilot Due-Diligence Workflow

A second, independent verification workflow with a primary reviewer /
validator hand-off.

State machine (DDStatus):
    pending          --claim-->             in_progress
    in_progress      --submit primary-->    awaiting_approval
    awaiting_approval --validator approves--> approved (terminal)
    awaiting_approval --validator queries-->  queried (back in the pool)
    awaiting_approval --deadline expires-->   auto_reassigned
    auto_reassigned  --new validator-->     awaiting_approval
    any non-terminal --release-->           pending

Concurrency contract:
- claim is a compare-and-set against the stored row
  (``primary IS NULL AND status IN (pending, queried, auto_reassigned)``),
  so of two simultaneous claims exactly one wins
- a validator query clears status, primary and validator together
- the deadline sweep is idempotent: once a record is reassigned its
  guard no longer matches

Admin overrides and final decisions are audit overlays; they never
change ``dd_status``.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from ..config import Settings
from ..exceptions import (
    AlreadyClaimedError,
    InvalidStateError,
    NotFoundError,
    NotOwnerError,
    SelfValidationForbiddenError,
    ValidationError,
)
from ..logging_config import log_transition
from ..models import (
    CLAIMABLE_DD_STATUSES,
    DD_TRANSITIONS,
    Actor,
    ApplicationRecord,
    AuditEventType,
    DDItem,
    DDPhase,
    DDPriority,
    DDRecord,
    DDStatus,
    DDVerdict,
    Track,
    ValidatorAction,
    utcnow,
)
from ..packs import RubricRegistry
from ..store import ApplicationStore
from .authorization import Operation, require_eligible
from .guards import require_choice, require_percentage, require_text
from .lock_manager import ensure_unlocked
from .score_aggregator import aggregate, check_criterion_score

logger = logging.getLogger(__name__)

AUTO_REASSIGN_COMMENT = "Auto-reassigned: approval deadline expired"


# =============================================================================
# Helpers
# =============================================================================

def require_dd(record: ApplicationRecord) -> DDRecord:
    if record.dd is None:
        raise NotFoundError(
            message="No due-diligence record for this application",
            details={"field": "application_id"},
            application_id=record.application_id,
        )
    return record.dd


def transition(dd: DDRecord, target: DDStatus) -> DDStatus:
    """Move ``dd`` to ``target``; returns the previous status."""
    current = dd.dd_status
    if target not in DD_TRANSITIONS[current]:
        raise InvalidStateError(
            message=f"Cannot move due diligence from '{current.value}' to '{target.value}'",
            details={"field": "dd_status", "dd_status": current.value, "target": target.value},
            application_id=dd.application_id,
        )
    dd.dd_status = target
    return current


def require_primary(dd: DDRecord, actor: Actor) -> None:
    if dd.primary_reviewer_id != actor.actor_id:
        raise NotOwnerError(
            message="Only the primary reviewer may perform this action",
            details={"field": "actor_id", "primary_reviewer_id": dd.primary_reviewer_id},
            application_id=dd.application_id,
        )


def accepts_primary_work(dd: DDRecord) -> bool:
    """Primary scores and items are editable until a validator takes the record."""
    if dd.dd_status in {DDStatus.IN_PROGRESS, DDStatus.AUTO_REASSIGNED}:
        return True
    return dd.dd_status == DDStatus.AWAITING_APPROVAL and dd.validator_reviewer_id is None


def is_claimable(record: ApplicationRecord) -> bool:
    """The compare-and-set guard for claims."""
    if record.application.is_locked:
        return False
    dd = record.dd
    if dd is None:
        return True
    return dd.primary_reviewer_id is None and dd.dd_status in CLAIMABLE_DD_STATUSES


def is_overdue(record: ApplicationRecord, now: datetime) -> bool:
    """The deadline-sweep guard."""
    dd = record.dd
    return (
        dd is not None
        and not record.application.is_locked
        and dd.dd_status == DDStatus.AWAITING_APPROVAL
        and dd.approval_deadline is not None
        and dd.approval_deadline < now
    )


# =============================================================================
# Queue
# =============================================================================

@dataclass
class DDQueueEntry:
    """One application surfaced to DD claimants."""
    application_id: int
    track: Track
    aggregate_score: Optional[Decimal]
    disparity: Optional[Decimal]
    dd_status: DDStatus
    priority: DDPriority
    is_oversight_initiated: bool = False
    primary_reviewer_id: Optional[str] = None
    validator_reviewer_id: Optional[str] = None
    approval_deadline: Optional[datetime] = None

    def sort_key(self) -> tuple:
        aggregate_key = -self.aggregate_score if self.aggregate_score is not None else Decimal("1")
        return (
            0 if self.priority == DDPriority.ELEVATED else 1,
            aggregate_key,
            self.application_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "track": self.track.value,
            "aggregate_score": float(self.aggregate_score) if self.aggregate_score is not None else None,
            "disparity": float(self.disparity) if self.disparity is not None else None,
            "dd_status": self.dd_status.value,
            "priority": self.priority.value,
            "is_oversight_initiated": self.is_oversight_initiated,
            "primary_reviewer_id": self.primary_reviewer_id,
            "validator_reviewer_id": self.validator_reviewer_id,
            "approval_deadline": self.approval_deadline.isoformat() if self.approval_deadline else None,
        }


# =============================================================================
# Due-Diligence Workflow
# =============================================================================

@dataclass
class DueDiligenceWorkflow:
    """
    Claim -> primary assessment -> validator -> approve / query.

    Usage:
        dd = DueDiligenceWorkflow(store, registry, settings)
        dd.claim(42, primary)
        dd.submit_primary_review(42, primary, Decimal("72"), "Site visit confirmed operations")
        dd.select_validator(42, primary, "val-1", eligible_pool=["val-1", "val-2"])
        dd.submit_validator_action(42, validator, ValidatorAction.APPROVED, "Agreed")
    """
    store: ApplicationStore
    rubrics: RubricRegistry
    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], datetime] = field(default=utcnow)

    # -------------------------------------------------------------------------
    # Claiming
    # -------------------------------------------------------------------------

    def claim(self, application_id: int, actor: Actor) -> DDRecord:
        """
        Become the primary reviewer. Creates the DD record on first claim.

        Raises:
            AlreadyClaimedError: Someone else holds it, or it is not claimable
            ApplicationLockedError: Application is frozen
        """
        require_eligible(actor, Operation.CLAIM_DD, application_id)
        now = self.clock()
        previous: dict[str, Optional[DDStatus]] = {}

        def apply(record: ApplicationRecord) -> None:
            if record.dd is None:
                record.dd = DDRecord(application_id=application_id, created_at=now)
            dd = record.dd
            previous["status"] = transition(dd, DDStatus.IN_PROGRESS)
            dd.primary_reviewer_id = actor.actor_id
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_CLAIMED,
                "Due diligence claimed",
                actor=actor,
                before={"dd_status": previous["status"].value},
                after={"dd_status": dd.dd_status.value, "primary_reviewer_id": actor.actor_id},
                at=now,
            )

        updated = self.store.conditional_update(application_id, is_claimable, apply)
        if updated is None:
            current = self.store.get(application_id)
            ensure_unlocked(current)
            holder = current.dd.primary_reviewer_id if current.dd else None
            raise AlreadyClaimedError(
                message="Application has already been claimed or is not available",
                details={
                    "field": "application_id",
                    "primary_reviewer_id": holder,
                    "dd_status": current.dd.dd_status.value if current.dd else None,
                },
                application_id=application_id,
            )

        log_transition(
            logger, "Due diligence claimed",
            application_id=application_id, transition="dd_claim", actor=actor,
            from_status=previous["status"], to_status=DDStatus.IN_PROGRESS,
        )
        return updated.dd

    def release(self, application_id: int, actor: Actor) -> DDRecord:
        """
        Give up the primary assignment; the record returns to pending.

        Phase scores are kept; primary, validator and deadline are cleared.

        Raises:
            NotOwnerError: Actor is not the primary reviewer
            InvalidStateError: Record is already approved
        """
        require_eligible(actor, Operation.RELEASE_DD, application_id)
        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            dd = require_dd(record)
            require_primary(dd, actor)
            now = self.clock()
            before = transition(dd, DDStatus.PENDING)
            dd.primary_reviewer_id = None
            dd.validator_reviewer_id = None
            dd.approval_deadline = None
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_RELEASED,
                "Due diligence released",
                actor=actor,
                before={"dd_status": before.value, "primary_reviewer_id": actor.actor_id},
                after={"dd_status": dd.dd_status.value},
                at=now,
            )
            result = deepcopy(dd)

        log_transition(
            logger, "Due diligence released",
            application_id=application_id, transition="dd_release", actor=actor,
            from_status=before, to_status=DDStatus.PENDING,
        )
        return result

    # -------------------------------------------------------------------------
    # Primary assessment
    # -------------------------------------------------------------------------

    def submit_primary_review(
        self,
        application_id: int,
        actor: Actor,
        score: Any,
        notes: Optional[str],
    ) -> DDRecord:
        """
        Record the primary assessment and hand off for validation.

        Allowed from in_progress, from auto_reassigned, and from
        awaiting_approval while no validator has been selected.

        Raises:
            InvalidScoreError: Score outside [0, 100]
            ValidationError: Notes shorter than the configured minimum
            NotOwnerError: Actor is not the primary reviewer
            InvalidStateError: Not in a state that accepts a primary score
        """
        require_eligible(actor, Operation.SUBMIT_PRIMARY_DD_REVIEW, application_id)
        score = require_percentage(score, "score", application_id)
        notes = require_text(notes, "notes", self.settings.min_primary_notes, application_id)

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            dd = require_dd(record)
            require_primary(dd, actor)
            if not accepts_primary_work(dd):
                raise InvalidStateError(
                    message=f"Primary review cannot be submitted while '{dd.dd_status.value}'",
                    details={"field": "dd_status", "dd_status": dd.dd_status.value},
                    application_id=application_id,
                )
            now = self.clock()
            before_score = dd.phase1_score
            before = transition(dd, DDStatus.AWAITING_APPROVAL)
            dd.phase1_score = score
            dd.phase1_notes = notes
            dd.primary_reviewed_at = now
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_PRIMARY_SUBMITTED,
                f"Primary assessment submitted: {score}",
                actor=actor,
                before={"dd_status": before.value, "phase1_score": before_score},
                after={"dd_status": dd.dd_status.value, "phase1_score": score},
                at=now,
            )
            result = deepcopy(dd)

        log_transition(
            logger, "Primary due-diligence review submitted",
            application_id=application_id, transition="dd_submit_primary", actor=actor,
            from_status=before, to_status=DDStatus.AWAITING_APPROVAL,
        )
        return result

    def save_item(
        self,
        application_id: int,
        actor: Actor,
        phase: DDPhase,
        criterion_id: str,
        score: Any,
        category: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> DDRecord:
        """
        Upsert one rubric line item and recompute that phase's running score.

        Raises:
            ScoreOutOfBoundsError: Unknown criterion or score out of range
            ValidationError: ``category`` does not own the criterion
            NotOwnerError: Actor is not the primary reviewer
            InvalidStateError: Record is approved or a validator is reviewing it
        """
        require_eligible(actor, Operation.SAVE_DD_ITEM, application_id)
        rubric = self.rubrics.for_phase(phase)
        value = check_criterion_score(rubric, criterion_id, score)
        owner = rubric.category_of(criterion_id)
        if category and category not in {owner.id, owner.name}:
            raise ValidationError(
                message=f"Criterion '{criterion_id}' belongs to '{owner.name}', not '{category}'",
                details={"field": "category", "expected": owner.id},
                application_id=application_id,
            )

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            dd = require_dd(record)
            require_primary(dd, actor)
            if not accepts_primary_work(dd):
                raise InvalidStateError(
                    message=f"Due-diligence items cannot be edited while '{dd.dd_status.value}'",
                    details={"field": "dd_status", "dd_status": dd.dd_status.value},
                    application_id=application_id,
                )
            now = self.clock()
            item = dd.find_item(phase, criterion_id)
            if item is None:
                item = DDItem.create(phase, owner.id, criterion_id, value, comments)
                item.updated_at = now
                dd.items.append(item)
            else:
                item.score = value
                item.comments = comments
                item.updated_at = now

            totals = aggregate(rubric, {i.criterion: i.score for i in dd.items_for(phase)})
            if phase == DDPhase.PHASE_1:
                dd.phase1_score = totals.total
            else:
                dd.phase2_score = totals.total
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_ITEM_SAVED,
                f"{phase.value} item {criterion_id} scored {value}",
                actor=actor,
                after={"phase": phase.value, "criterion": criterion_id, "score": value,
                       "phase_score": totals.total},
                at=now,
            )
            result = deepcopy(dd)

        logger.info(
            "Due-diligence item saved",
            extra={"application_id": application_id, "actor_id": actor.actor_id,
                   "transition": "dd_save_item"},
        )
        return result

    # -------------------------------------------------------------------------
    # Validation hand-off
    # -------------------------------------------------------------------------

    def select_validator(
        self,
        application_id: int,
        actor: Actor,
        validator_id: str,
        eligible_pool: Iterable[str],
    ) -> DDRecord:
        """
        Choose the validator and start the approval clock.

        Raises:
            NotOwnerError: Actor is not the primary reviewer
            SelfValidationForbiddenError: Validator is the primary reviewer
            ValidationError: Validator not in the eligible pool
            InvalidStateError: Not awaiting a validator
        """
        require_eligible(actor, Operation.SELECT_VALIDATOR, application_id)
        validator_id = require_text(validator_id, "validator_id", 1, application_id)
        pool = set(eligible_pool)

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            dd = require_dd(record)
            require_primary(dd, actor)
            if validator_id == dd.primary_reviewer_id:
                raise SelfValidationForbiddenError(
                    message="The validator must be a different reviewer",
                    details={"field": "validator_id"},
                    application_id=application_id,
                )
            if validator_id not in pool:
                raise ValidationError(
                    message=f"'{validator_id}' is not an eligible validator",
                    details={"field": "validator_id"},
                    application_id=application_id,
                )
            awaiting = (
                dd.dd_status == DDStatus.AWAITING_APPROVAL and dd.validator_reviewer_id is None
            )
            reassigned = (
                dd.dd_status == DDStatus.AUTO_REASSIGNED and dd.phase1_score is not None
            )
            if not (awaiting or reassigned):
                raise InvalidStateError(
                    message=f"A validator cannot be selected while '{dd.dd_status.value}'",
                    details={"field": "dd_status", "dd_status": dd.dd_status.value},
                    application_id=application_id,
                )

            now = self.clock()
            before = transition(dd, DDStatus.AWAITING_APPROVAL)
            dd.validator_reviewer_id = validator_id
            dd.validator_action = None
            dd.validator_action_at = None
            dd.approval_deadline = now + self.settings.approval_window
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_VALIDATOR_SELECTED,
                f"Validator {validator_id} selected",
                actor=actor,
                before={"dd_status": before.value},
                after={
                    "dd_status": dd.dd_status.value,
                    "validator_reviewer_id": validator_id,
                    "approval_deadline": dd.approval_deadline,
                },
                at=now,
            )
            result = deepcopy(dd)

        log_transition(
            logger, "Validator selected",
            application_id=application_id, transition="dd_select_validator", actor=actor,
            from_status=before, to_status=DDStatus.AWAITING_APPROVAL,
        )
        return result

    def submit_validator_action(
        self,
        application_id: int,
        actor: Actor,
        action: ValidatorAction,
        comments: Optional[str],
    ) -> DDRecord:
        """
        Approve or query the primary assessment.

        A query clears status, primary and validator together, returning the
        application to the pool; the comments stay for the next reviewer.

        Raises:
            ValidationError: Comments shorter than the configured minimum
            NotOwnerError: Actor is not the selected validator
            InvalidStateError: Not awaiting approval
        """
        require_eligible(actor, Operation.SUBMIT_VALIDATOR_ACTION, application_id)
        action = require_choice(ValidatorAction, action, "action", application_id)
        comments = require_text(
            comments, "comments", self.settings.min_validator_comments, application_id
        )

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            dd = require_dd(record)
            if dd.validator_reviewer_id is None or dd.validator_reviewer_id != actor.actor_id:
                raise NotOwnerError(
                    message="Only the selected validator may act on this assessment",
                    details={"field": "actor_id", "validator_reviewer_id": dd.validator_reviewer_id},
                    application_id=application_id,
                )
            if dd.dd_status != DDStatus.AWAITING_APPROVAL:
                raise InvalidStateError(
                    message=f"Validator action not accepted while '{dd.dd_status.value}'",
                    details={"field": "dd_status", "dd_status": dd.dd_status.value},
                    application_id=application_id,
                )

            now = self.clock()
            before = {
                "dd_status": dd.dd_status.value,
                "primary_reviewer_id": dd.primary_reviewer_id,
                "validator_reviewer_id": dd.validator_reviewer_id,
            }
            dd.validator_action = action
            dd.validator_comments = comments
            dd.validator_action_at = now
            dd.approval_deadline = None
            if action == ValidatorAction.APPROVED:
                transition(dd, DDStatus.APPROVED)
                dd.final_verdict = DDVerdict.APPROVED
                event = AuditEventType.DD_VALIDATOR_APPROVED
            else:
                transition(dd, DDStatus.QUERIED)
                dd.primary_reviewer_id = None
                dd.validator_reviewer_id = None
                event = AuditEventType.DD_VALIDATOR_QUERIED
            dd.updated_at = now
            record.log_event(
                event,
                f"Validator {action.value}: {comments}",
                actor=actor,
                before=before,
                after={
                    "dd_status": dd.dd_status.value,
                    "primary_reviewer_id": dd.primary_reviewer_id,
                    "validator_reviewer_id": dd.validator_reviewer_id,
                },
                at=now,
            )
            result = deepcopy(dd)

        log_transition(
            logger, f"Validator {action.value}",
            application_id=application_id, transition="dd_validator_action", actor=actor,
            from_status=DDStatus.AWAITING_APPROVAL, to_status=result.dd_status,
        )
        return result

    def run_deadline_sweep(self, now: Optional[datetime] = None) -> list[int]:
        """
        Reassign every overdue awaiting_approval record.

        Clears the validator only; the primary reviewer and phase 1 score are
        kept. Locked applications are skipped. Safe to run repeatedly.

        Returns:
            Ids of the applications that were reassigned
        """
        now = now or self.clock()

        def apply(record: ApplicationRecord) -> None:
            dd = record.dd
            validator = dd.validator_reviewer_id
            transition(dd, DDStatus.AUTO_REASSIGNED)
            dd.validator_reviewer_id = None
            dd.validator_action = None
            dd.approval_deadline = None
            dd.validator_comments = AUTO_REASSIGN_COMMENT
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_AUTO_REASSIGNED,
                AUTO_REASSIGN_COMMENT,
                before={"dd_status": DDStatus.AWAITING_APPROVAL.value,
                        "validator_reviewer_id": validator},
                after={"dd_status": dd.dd_status.value},
                at=now,
            )

        updated = self.store.update_where(lambda record: is_overdue(record, now), apply)
        reassigned = [record.application_id for record in updated]
        logger.info(
            "Deadline sweep reassigned %d application(s)",
            len(reassigned),
            extra={"transition": "dd_deadline_sweep", "reassigned": reassigned},
        )
        return reassigned

    # -------------------------------------------------------------------------
    # Administrative overlays
    # -------------------------------------------------------------------------

    def admin_override_score(
        self,
        application_id: int,
        actor: Actor,
        new_score: Any,
        reason: Optional[str],
    ) -> DDRecord:
        """
        Override the DD score. The first override captures ``original_score``.

        Raises:
            InvalidScoreError: Score outside [0, 100]
            ValidationError: Reason shorter than the configured minimum
            InvalidStateError: No primary score to override yet
        """
        require_eligible(actor, Operation.ADMIN_OVERRIDE_DD_SCORE, application_id)
        new_score = require_percentage(new_score, "new_score", application_id)
        reason = require_text(reason, "reason", self.settings.min_override_reason, application_id)

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            dd = require_dd(record)
            if dd.phase1_score is None:
                raise InvalidStateError(
                    message="There is no due-diligence score to override yet",
                    details={"field": "phase1_score"},
                    application_id=application_id,
                )
            now = self.clock()
            before = dd.effective_score
            if dd.original_score is None:
                dd.original_score = dd.phase1_score
            dd.admin_override_score = new_score
            dd.admin_override_reason = reason
            dd.admin_override_by_id = actor.actor_id
            dd.admin_override_at = now
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_SCORE_OVERRIDDEN,
                f"Score overridden: {reason}",
                actor=actor,
                before={"effective_score": before},
                after={"effective_score": new_score, "original_score": dd.original_score},
                at=now,
            )
            result = deepcopy(dd)

        logger.info(
            "Due-diligence score overridden",
            extra={"application_id": application_id, "actor_id": actor.actor_id,
                   "transition": "dd_admin_override"},
        )
        return result

    def record_final_decision(
        self,
        application_id: int,
        actor: Actor,
        verdict: DDVerdict,
        reason: Optional[str],
    ) -> DDRecord:
        """Record an admin pass/fail verdict. Does not change ``dd_status``."""
        require_eligible(actor, Operation.RECORD_DD_FINAL_DECISION, application_id)
        verdict = require_choice(DDVerdict, verdict, "verdict", application_id)
        if verdict not in {DDVerdict.PASS, DDVerdict.FAIL}:
            raise ValidationError(
                message="Final decision must be 'pass' or 'fail'",
                details={"field": "verdict"},
                application_id=application_id,
            )
        reason = require_text(reason, "reason", self.settings.min_override_reason, application_id)

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            dd = require_dd(record)
            now = self.clock()
            before = dd.final_verdict.value if dd.final_verdict else None
            dd.final_verdict = verdict
            dd.final_reason = reason
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_FINAL_DECISION,
                f"Final due-diligence decision: {verdict.value}",
                actor=actor,
                before={"final_verdict": before},
                after={"final_verdict": verdict.value, "final_reason": reason},
                at=now,
            )
            result = deepcopy(dd)

        logger.info(
            "Due-diligence final decision recorded",
            extra={"application_id": application_id, "actor_id": actor.actor_id,
                   "transition": "dd_final_decision"},
        )
        return result

    def recommend(
        self,
        application_id: int,
        actor: Actor,
        justification: Optional[str],
    ) -> DDRecord:
        """
        Oversight flag: raise the application into the DD queue with elevated priority.

        Creates a pending DD record if none exists.
        """
        require_eligible(actor, Operation.RECOMMEND_FOR_DUE_DILIGENCE, application_id)
        justification = require_text(
            justification,
            "justification",
            self.settings.min_oversight_justification,
            application_id,
        )

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            now = self.clock()
            created = record.dd is None
            if created:
                record.dd = DDRecord(application_id=application_id, created_at=now)
            dd = record.dd
            dd.is_oversight_initiated = True
            dd.oversight_justification = justification
            dd.oversight_admin_id = actor.actor_id
            dd.oversight_flagged_at = now
            dd.priority = DDPriority.ELEVATED
            dd.updated_at = now
            record.log_event(
                AuditEventType.DD_RECOMMENDED,
                "Recommended for due diligence by oversight",
                actor=actor,
                after={"created": created, "dd_status": dd.dd_status.value,
                       "justification": justification},
                at=now,
            )
            result = deepcopy(dd)

        logger.info(
            "Application recommended for due diligence",
            extra={"application_id": application_id, "actor_id": actor.actor_id,
                   "transition": "dd_recommend"},
        )
        return result

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_record(self, application_id: int, actor: Actor) -> DDRecord:
        require_eligible(actor, Operation.GET_DD_RECORD, application_id)
        return require_dd(self.store.get(application_id))

    def list_available_validators(
        self,
        application_id: int,
        actor: Actor,
        pool: Iterable[str],
    ) -> list[str]:
        """The caller-supplied pool minus the primary reviewer, order kept."""
        require_eligible(actor, Operation.LIST_AVAILABLE_VALIDATORS, application_id)
        record = self.store.get(application_id)
        primary = record.dd.primary_reviewer_id if record.dd else None
        available: list[str] = []
        for reviewer_id in pool:
            if reviewer_id != primary and reviewer_id not in available:
                available.append(reviewer_id)
        return available

    def get_queue(self, actor: Actor) -> list[DDQueueEntry]:
        """
        Applications awaiting or undergoing due diligence.

        An application is listed when both reviews are complete and its
        aggregate reaches the qualification threshold, or when oversight
        flagged it. Elevated priority first, then aggregate score
        (highest first), then application id.
        """
        require_eligible(actor, Operation.GET_DD_QUEUE)
        threshold = self.settings.dd_qualification_threshold
        entries = []
        for record in self.store.records():
            dd = record.dd
            aggregate_score = record.aggregate_score()
            qualifies = aggregate_score is not None and aggregate_score >= threshold
            flagged = dd is not None and dd.is_oversight_initiated
            if not (qualifies or flagged):
                continue
            entries.append(DDQueueEntry(
                application_id=record.application_id,
                track=record.application.track,
                aggregate_score=aggregate_score,
                disparity=record.outcome.disparity if record.outcome else None,
                dd_status=dd.dd_status if dd else DDStatus.PENDING,
                priority=dd.priority if dd else DDPriority.NORMAL,
                is_oversight_initiated=flagged,
                primary_reviewer_id=dd.primary_reviewer_id if dd else None,
                validator_reviewer_id=dd.validator_reviewer_id if dd else None,
                approval_deadline=dd.approval_deadline if dd else None,
            ))
        return sorted(entries, key=DDQueueEntry.sort_key)
