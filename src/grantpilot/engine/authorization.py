"""
GrantPilot Authorization

Two independent predicates, always composed:

- is_eligible(role, operation): may this role call the operation at all?
- is_applicable(slot_state, operation): does the operation make sense
  for the application's current review-slot occupancy?

Role never selects which branch of an operation runs; slot occupancy does.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from ..exceptions import InvalidStateError, NotEligibleError
from ..models import Actor, Role, SlotState


class Operation(str, Enum):
    """Every operation the engine exposes."""
    REGISTER_APPLICATION = "register_application"
    SUBMIT_REVIEW = "submit_review"
    REVISE_REVIEW = "revise_review"
    SAVE_SCORING_PROGRESS = "save_scoring_progress"
    GET_REVIEW_STATUS = "get_review_status"
    GET_DETAILED_SCORES = "get_detailed_scores"
    GET_SCORING_PROGRESS = "get_scoring_progress"
    GET_AUDIT_TRAIL = "get_audit_trail"
    LOCK_APPLICATION = "lock_application"
    UNLOCK_APPLICATION = "unlock_application"
    ADMIN_OVERRIDE_DD_SCORE = "admin_override_dd_score"
    RECORD_DD_FINAL_DECISION = "record_dd_final_decision"
    RUN_DEADLINE_SWEEP = "run_deadline_sweep"
    CLAIM_DD = "claim_dd_application"
    RELEASE_DD = "release_dd_application"
    SUBMIT_PRIMARY_DD_REVIEW = "submit_primary_dd_review"
    SELECT_VALIDATOR = "select_validator_reviewer"
    SUBMIT_VALIDATOR_ACTION = "submit_validator_action"
    SAVE_DD_ITEM = "save_dd_item"
    GET_DD_RECORD = "get_dd_record"
    GET_DD_QUEUE = "get_dd_queue"
    LIST_AVAILABLE_VALIDATORS = "list_available_validators"
    RECOMMEND_FOR_DUE_DILIGENCE = "recommend_for_due_diligence"
    CALCULATE_SCORE_DISPARITY = "calculate_score_disparity"
    CHECK_DD_QUALIFICATION = "check_dd_qualification"
    ASSESS_ESCALATION = "assess_escalation"
    REGISTER_REVIEWER = "register_reviewer"
    SET_REVIEWER_ACTIVE = "set_reviewer_active"
    ASSIGN_REVIEWERS = "assign_reviewers"
    REDISTRIBUTE_ASSIGNMENTS = "redistribute_assignments"
    GET_ASSIGNMENT_STATS = "get_assignment_stats"
    LIST_ASSIGNED_APPLICATIONS = "list_assigned_applications"


_REVIEWERS = frozenset({
    Role.REVIEWER_1,
    Role.REVIEWER_2,
    Role.TECHNICAL_REVIEWER,
    Role.ADMIN,
})
_REVIEW_VIEWERS = _REVIEWERS | {Role.OVERSIGHT}
_ADMIN = frozenset({Role.ADMIN})
_DD_REVIEWERS = frozenset({Role.REVIEWER_1, Role.OVERSIGHT, Role.ADMIN})
_OVERSIGHT = frozenset({Role.OVERSIGHT, Role.ADMIN})

ELIGIBILITY: dict[Operation, frozenset[Role]] = {
    Operation.REGISTER_APPLICATION: frozenset({Role.APPLICANT, Role.ADMIN}),
    Operation.SUBMIT_REVIEW: _REVIEWERS,
    Operation.REVISE_REVIEW: _REVIEWERS,
    Operation.SAVE_SCORING_PROGRESS: _REVIEWERS,
    Operation.GET_REVIEW_STATUS: _REVIEW_VIEWERS,
    Operation.GET_DETAILED_SCORES: _REVIEW_VIEWERS,
    Operation.GET_SCORING_PROGRESS: _REVIEW_VIEWERS,
    Operation.GET_AUDIT_TRAIL: _OVERSIGHT,
    Operation.LOCK_APPLICATION: _ADMIN,
    Operation.UNLOCK_APPLICATION: _ADMIN,
    Operation.ADMIN_OVERRIDE_DD_SCORE: _ADMIN,
    Operation.RECORD_DD_FINAL_DECISION: _ADMIN,
    Operation.RUN_DEADLINE_SWEEP: _ADMIN,
    Operation.CLAIM_DD: _DD_REVIEWERS,
    Operation.RELEASE_DD: _DD_REVIEWERS,
    Operation.SUBMIT_PRIMARY_DD_REVIEW: _DD_REVIEWERS,
    Operation.SELECT_VALIDATOR: _DD_REVIEWERS,
    Operation.SUBMIT_VALIDATOR_ACTION: _DD_REVIEWERS,
    Operation.SAVE_DD_ITEM: _DD_REVIEWERS,
    Operation.GET_DD_RECORD: _DD_REVIEWERS,
    Operation.GET_DD_QUEUE: _DD_REVIEWERS,
    Operation.LIST_AVAILABLE_VALIDATORS: _DD_REVIEWERS,
    Operation.RECOMMEND_FOR_DUE_DILIGENCE: _OVERSIGHT,
    Operation.CALCULATE_SCORE_DISPARITY: _DD_REVIEWERS,
    Operation.CHECK_DD_QUALIFICATION: _DD_REVIEWERS,
    Operation.ASSESS_ESCALATION: _DD_REVIEWERS,
    Operation.REGISTER_REVIEWER: _ADMIN,
    Operation.SET_REVIEWER_ACTIVE: _ADMIN,
    Operation.ASSIGN_REVIEWERS: _ADMIN,
    Operation.REDISTRIBUTE_ASSIGNMENTS: _ADMIN,
    Operation.GET_ASSIGNMENT_STATS: _ADMIN,
    Operation.LIST_ASSIGNED_APPLICATIONS: frozenset({Role.REVIEWER_1, Role.REVIEWER_2}),
}

# Slot states in which an operation can run; operations not listed run in any state
APPLICABILITY: dict[Operation, frozenset[SlotState]] = {
    Operation.SUBMIT_REVIEW: frozenset({SlotState.EMPTY, SlotState.SLOT_1_FILLED}),
    Operation.REVISE_REVIEW: frozenset({SlotState.SLOT_1_FILLED, SlotState.COMPLETE}),
    Operation.CALCULATE_SCORE_DISPARITY: frozenset({SlotState.COMPLETE}),
    Operation.CHECK_DD_QUALIFICATION: frozenset({SlotState.COMPLETE}),
}


def is_eligible(role: Role, operation: Operation) -> bool:
    return role in ELIGIBILITY.get(operation, frozenset())


def is_applicable(slot_state: SlotState, operation: Operation) -> bool:
    allowed = APPLICABILITY.get(operation)
    return allowed is None or slot_state in allowed


def require_eligible(
    actor: Actor,
    operation: Operation,
    application_id: Optional[int] = None,
) -> None:
    """Raise NotEligibleError unless the actor's role may call the operation."""
    if not is_eligible(actor.role, operation):
        raise NotEligibleError(
            message=f"Role '{actor.role.value}' may not call {operation.value}",
            details={"field": "role", "role": actor.role.value, "operation": operation.value},
            application_id=application_id,
        )


def require_applicable(
    slot_state: SlotState,
    operation: Operation,
    application_id: Optional[int] = None,
) -> None:
    """Raise InvalidStateError unless the operation fits the slot occupancy."""
    if not is_applicable(slot_state, operation):
        raise InvalidStateError(
            message=f"{operation.value} is not applicable while review slots are {slot_state.value}",
            details={"field": "slot_state", "slot_state": slot_state.value},
            application_id=application_id,
        )
