"""
GrantPilot Evaluation Service

Facade over the review, assignment, lock, due-diligence, oversight and
scoring progress components. Every operation returns an OperationResult:
``{success: True, data}`` or ``{success: False, error}``. Workflow
errors are GrantPilotError subclasses; they are logged with their code
and converted here, never retried.

Usage:
    service = EvaluationService.from_settings(Settings.from_env())
    service.register_application(42, Track.FOUNDATION, actor=admin)
    result = service.submit_review(42, reviewer, scores, "Clear evidence of sales")
    if not result.success:
        print(result.error["code"])
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from ..config import Settings
from ..exceptions import GrantPilotError, ValidationError
from ..logging_config import log_transition
from ..models import (
    Actor,
    Application,
    ApplicationStatus,
    AuditEventType,
    DDPhase,
    DDVerdict,
    OperationResult,
    ReviewSlot,
    Role,
    Track,
    ValidatorAction,
    utcnow,
)
from ..packs import RubricRegistry
from ..store import ApplicationStore, InMemoryStore
from .assignment import ReviewerAllocator, ReviewerQueue
from .authorization import Operation, require_eligible
from .guards import require_choice
from .due_diligence import DueDiligenceWorkflow
from .lock_manager import LockManager
from .oversight import OversightEscalation
from .review_workflow import ReviewWorkflow
from .scoring_progress import ScoreEntry, ScoringProgress

logger = logging.getLogger(__name__)

REGISTRABLE_STATUSES = frozenset({ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED})


def _data(value: Any) -> Any:
    """Serialize a workflow return value for the result envelope."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_data(v) for v in value]
    return value


class EvaluationService:
    """Typed-result entry point for every engine operation."""

    def __init__(
        self,
        rubrics: RubricRegistry,
        store: Optional[ApplicationStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        reviewer_queue: Optional[ReviewerQueue] = None,
    ):
        self.settings = settings if settings is not None else Settings()
        self.store = store if store is not None else InMemoryStore()
        self.rubrics = rubrics
        self.clock = clock

        self.reviews = ReviewWorkflow(self.store, rubrics, self.settings, clock)
        self.locks = LockManager(self.store, clock)
        self.due_diligence = DueDiligenceWorkflow(self.store, rubrics, self.settings, clock)
        self.oversight = OversightEscalation(self.store, self.settings)
        self.progress = ScoringProgress(self.store, rubrics, clock)
        self.assignments = ReviewerAllocator(
            self.store,
            reviewer_queue if reviewer_queue is not None else ReviewerQueue(),
            clock,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[ApplicationStore] = None,
        reviewer_queue: Optional[ReviewerQueue] = None,
    ) -> EvaluationService:
        """Build a service with rubric packs loaded from ``settings.packs_dir``."""
        rubrics = RubricRegistry.from_directory(settings.packs_dir)
        return cls(
            rubrics=rubrics, store=store, settings=settings, reviewer_queue=reviewer_queue
        )

    # -------------------------------------------------------------------------
    # Envelope
    # -------------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor: Optional[Actor],
        fn: Callable[[], Any],
        application_id: Optional[int] = None,
    ) -> OperationResult:
        try:
            return OperationResult.ok(_data(fn()))
        except GrantPilotError as e:
            extra: dict[str, Any] = {"error_code": e.code, "transition": operation}
            if application_id is not None:
                extra["application_id"] = application_id
            if actor is not None:
                extra["actor_id"] = actor.actor_id
                extra["actor_role"] = actor.role.value
            logger.info("%s rejected: %s", operation, e.message, extra=extra)
            return OperationResult.fail(e)

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def register_application(
        self,
        application_id: int,
        track: Track,
        actor: Actor,
        status: ApplicationStatus = ApplicationStatus.SUBMITTED,
        applicant_id: Optional[str] = None,
        business_name: Optional[str] = None,
    ) -> OperationResult:
        """Hand a submitted application from the intake collaborator to the engine."""
        def run():
            require_eligible(actor, Operation.REGISTER_APPLICATION, application_id)
            chosen_track = require_choice(Track, track, "track", application_id)
            initial = require_choice(ApplicationStatus, status, "status", application_id)
            if initial not in REGISTRABLE_STATUSES:
                raise ValidationError(
                    message="Applications enter the engine as draft or submitted",
                    details={"field": "status", "status": initial.value},
                    application_id=application_id,
                )
            now = self.clock()
            self.store.add_application(Application(
                id=application_id,
                track=chosen_track,
                status=initial,
                submitted_at=now if initial == ApplicationStatus.SUBMITTED else None,
                applicant_id=applicant_id or (
                    actor.actor_id if actor.role == Role.APPLICANT else None
                ),
                business_name=business_name,
                updated_at=now,
            ))
            with self.store.transaction(application_id) as record:
                record.log_event(
                    AuditEventType.APPLICATION_REGISTERED,
                    f"Application registered on the {chosen_track.value} track",
                    actor=actor,
                    after={"status": initial.value},
                    at=now,
                )
                application = record.application.to_dict()
            log_transition(
                logger, "Application registered",
                application_id=application_id, transition="register", actor=actor,
                to_status=initial,
            )
            if initial == ApplicationStatus.SUBMITTED:
                self.assignments.auto_assign(application_id, ReviewSlot.SLOT_1)
            return application
        return self._run("register_application", actor, run, application_id)

    # -------------------------------------------------------------------------
    # Review workflow
    # -------------------------------------------------------------------------

    def submit_review(
        self,
        application_id: int,
        actor: Actor,
        detailed_scores: Mapping[str, Any],
        general_notes: Optional[str],
        expected_slot: Optional[ReviewSlot] = None,
    ) -> OperationResult:
        """Fill the next free slot; filling slot 1 allocates a second reviewer."""
        def run():
            slot = None
            if expected_slot is not None:
                slot = require_choice(ReviewSlot, expected_slot, "slot", application_id)
            submission = self.reviews.submit_review(
                application_id, actor, detailed_scores, general_notes, slot
            )
            if submission.slot == ReviewSlot.SLOT_1:
                self.assignments.auto_assign(application_id, ReviewSlot.SLOT_2)
            return submission
        return self._run("submit_review", actor, run, application_id)

    def revise_review(
        self,
        application_id: int,
        actor: Actor,
        detailed_scores: Mapping[str, Any],
        general_notes: Optional[str],
    ) -> OperationResult:
        return self._run(
            "revise_review", actor,
            lambda: self.reviews.revise_review(
                application_id, actor, detailed_scores, general_notes
            ),
            application_id,
        )

    def get_review_status(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "get_review_status", actor,
            lambda: self.reviews.get_review_status(application_id, actor),
            application_id,
        )

    def get_detailed_scores(
        self,
        application_id: int,
        actor: Actor,
        slot: ReviewSlot,
    ) -> OperationResult:
        return self._run(
            "get_detailed_scores", actor,
            lambda: self.reviews.get_detailed_scores(
                application_id, actor, require_choice(ReviewSlot, slot, "slot", application_id)
            ),
            application_id,
        )

    def save_scoring_progress(
        self,
        application_id: int,
        actor: Actor,
        entries: Iterable[ScoreEntry],
    ) -> OperationResult:
        return self._run(
            "save_scoring_progress", actor,
            lambda: self.progress.save(application_id, actor, entries),
            application_id,
        )

    def get_scoring_progress(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "get_scoring_progress", actor,
            lambda: self.progress.get(application_id, actor),
            application_id,
        )

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def lock_application(
        self,
        application_id: int,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            "lock_application", actor,
            lambda: self.locks.lock_application(application_id, actor, reason),
            application_id,
        )

    def unlock_application(
        self,
        application_id: int,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            "unlock_application", actor,
            lambda: self.locks.unlock_application(application_id, actor, reason),
            application_id,
        )

    # -------------------------------------------------------------------------
    # Due diligence
    # -------------------------------------------------------------------------

    def claim_dd_application(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "claim_dd_application", actor,
            lambda: self.due_diligence.claim(application_id, actor),
            application_id,
        )

    def release_dd_application(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "release_dd_application", actor,
            lambda: self.due_diligence.release(application_id, actor),
            application_id,
        )

    def submit_primary_dd_review(
        self,
        application_id: int,
        actor: Actor,
        score: Any,
        notes: Optional[str],
    ) -> OperationResult:
        return self._run(
            "submit_primary_dd_review", actor,
            lambda: self.due_diligence.submit_primary_review(application_id, actor, score, notes),
            application_id,
        )

    def select_validator_reviewer(
        self,
        application_id: int,
        actor: Actor,
        validator_id: str,
        eligible_pool: Iterable[str],
    ) -> OperationResult:
        return self._run(
            "select_validator_reviewer", actor,
            lambda: self.due_diligence.select_validator(
                application_id, actor, validator_id, eligible_pool
            ),
            application_id,
        )

    def submit_validator_action(
        self,
        application_id: int,
        actor: Actor,
        action: ValidatorAction,
        comments: Optional[str],
    ) -> OperationResult:
        return self._run(
            "submit_validator_action", actor,
            lambda: self.due_diligence.submit_validator_action(
                application_id, actor, action, comments
            ),
            application_id,
        )

    def save_dd_item(
        self,
        application_id: int,
        actor: Actor,
        phase: DDPhase,
        criterion_id: str,
        score: Any,
        category: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            "save_dd_item", actor,
            lambda: self.due_diligence.save_item(
                application_id, actor,
                require_choice(DDPhase, phase, "phase", application_id),
                criterion_id, score, category, comments,
            ),
            application_id,
        )

    def admin_override_dd_score(
        self,
        application_id: int,
        actor: Actor,
        new_score: Any,
        reason: Optional[str],
    ) -> OperationResult:
        return self._run(
            "admin_override_dd_score", actor,
            lambda: self.due_diligence.admin_override_score(
                application_id, actor, new_score, reason
            ),
            application_id,
        )

    def record_dd_final_decision(
        self,
        application_id: int,
        actor: Actor,
        verdict: DDVerdict,
        reason: Optional[str],
    ) -> OperationResult:
        return self._run(
            "record_dd_final_decision", actor,
            lambda: self.due_diligence.record_final_decision(
                application_id, actor, verdict, reason
            ),
            application_id,
        )

    def recommend_for_due_diligence(
        self,
        application_id: int,
        actor: Actor,
        justification: Optional[str],
    ) -> OperationResult:
        return self._run(
            "recommend_for_due_diligence", actor,
            lambda: self.due_diligence.recommend(application_id, actor, justification),
            application_id,
        )

    def run_deadline_sweep(
        self,
        actor: Optional[Actor] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Reassign overdue validations.

        ``actor`` is None when a scheduler drives the sweep; an interactive
        caller must be an admin.
        """
        def run():
            if actor is not None:
                require_eligible(actor, Operation.RUN_DEADLINE_SWEEP)
            reassigned = self.due_diligence.run_deadline_sweep(now)
            return {"reassigned": reassigned, "count": len(reassigned)}
        return self._run("run_deadline_sweep", actor, run)

    def get_dd_record(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "get_dd_record", actor,
            lambda: self.due_diligence.get_record(application_id, actor),
            application_id,
        )

    def get_dd_queue(self, actor: Actor) -> OperationResult:
        return self._run("get_dd_queue", actor, lambda: self.due_diligence.get_queue(actor))

    def list_available_validators(
        self,
        application_id: int,
        actor: Actor,
        pool: Iterable[str],
    ) -> OperationResult:
        return self._run(
            "list_available_validators", actor,
            lambda: self.due_diligence.list_available_validators(application_id, actor, pool),
            application_id,
        )

    # -------------------------------------------------------------------------
    # Oversight
    # -------------------------------------------------------------------------

    def calculate_score_disparity(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "calculate_score_disparity", actor,
            lambda: self.oversight.calculate_score_disparity(application_id, actor),
            application_id,
        )

    def check_dd_qualification(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "check_dd_qualification", actor,
            lambda: self.oversight.check_dd_qualification(application_id, actor),
            application_id,
        )

    def assess_escalation(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "assess_escalation", actor,
            lambda: self.oversight.assess_escalation(application_id, actor),
            application_id,
        )

    # -------------------------------------------------------------------------
    # Reviewer assignment
    # -------------------------------------------------------------------------

    def register_reviewer(self, actor: Actor, reviewer_id: str, role: Role) -> OperationResult:
        return self._run(
            "register_reviewer", actor,
            lambda: self.assignments.register_reviewer(actor, reviewer_id, role),
        )

    def set_reviewer_active(
        self,
        actor: Actor,
        reviewer_id: str,
        is_active: bool,
    ) -> OperationResult:
        return self._run(
            "set_reviewer_active", actor,
            lambda: self.assignments.set_reviewer_active(actor, reviewer_id, is_active),
        )

    def assign_reviewer(
        self,
        application_id: int,
        actor: Actor,
        slot: ReviewSlot,
    ) -> OperationResult:
        return self._run(
            "assign_reviewer", actor,
            lambda: self.assignments.assign(
                application_id,
                require_choice(ReviewSlot, slot, "slot", application_id),
                actor,
            ),
            application_id,
        )

    def bulk_assign_reviewers(self, actor: Actor, slot: ReviewSlot) -> OperationResult:
        def run():
            assigned = self.assignments.bulk_assign(actor, slot)
            return {"assigned": assigned, "count": len(assigned)}
        return self._run("bulk_assign_reviewers", actor, run)

    def redistribute_assignments(self, actor: Actor, slot: ReviewSlot) -> OperationResult:
        def run():
            assigned = self.assignments.redistribute(actor, slot)
            return {"assigned": assigned, "count": len(assigned)}
        return self._run("redistribute_assignments", actor, run)

    def list_assigned_applications(
        self,
        actor: Actor,
        track: Optional[Track] = None,
        page: int = 1,
        limit: int = 20,
    ) -> OperationResult:
        return self._run(
            "list_assigned_applications", actor,
            lambda: self.assignments.list_assigned(actor, track, page, limit),
        )

    def get_assignment_stats(self, actor: Actor) -> OperationResult:
        return self._run(
            "get_assignment_stats", actor, lambda: self.assignments.get_stats(actor)
        )

    # -------------------------------------------------------------------------
    # Audit and configuration
    # -------------------------------------------------------------------------

    def get_audit_trail(self, application_id: int, actor: Actor) -> OperationResult:
        return self._run(
            "get_audit_trail", actor,
            lambda: self.reviews.get_audit_trail(application_id, actor),
            application_id,
        )

    def list_rubrics(self) -> OperationResult:
        return self._run("list_rubrics", None, self.rubrics.all)
