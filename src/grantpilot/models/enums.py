"""
GrantPilot Enumerations

All enumeration types used throughout the GrantPilot system.
Organized by domain area for clarity.

All enums inherit from (str, Enum) for JSON serialization compatibility.
"""
from __future__ import annotations

from enum import Enum


# =============================================================================
# Actors
# =============================================================================

class Role(str, Enum):
    """
    Role resolved by the external identity collaborator.

    Role governs eligibility to call an operation. Which branch of the
    operation runs is decided by slot occupancy, never by role.
    """
    APPLICANT = "applicant"
    REVIEWER_1 = "reviewer_1"
    REVIEWER_2 = "reviewer_2"
    TECHNICAL_REVIEWER = "technical_reviewer"
    OVERSIGHT = "oversight"
    ADMIN = "admin"


# =============================================================================
# Application / Review Workflow
# =============================================================================

class Track(str, Enum):
    """Programme track; each has its own disjoint rubric."""
    FOUNDATION = "foundation"
    ACCELERATION = "acceleration"


class ApplicationStatus(str, Enum):
    """Lifecycle of an application through the review workflow."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    PENDING_SENIOR_REVIEW = "pending_senior_review"  # slot 1 filled, awaiting slot 2
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}


# Statuses in which a review may still be submitted
REVIEWABLE_STATUSES = frozenset({
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.PENDING_SENIOR_REVIEW,
})


class ReviewSlot(int, Enum):
    """The two blind review slots."""
    SLOT_1 = 1
    SLOT_2 = 2


class SlotState(str, Enum):
    """Occupancy of the review slots for one application."""
    EMPTY = "empty"                    # no reviews yet
    SLOT_1_FILLED = "slot_1_filled"    # awaiting second reviewer
    COMPLETE = "complete"              # both slots filled


class ReviewDecision(str, Enum):
    """Automatic decision derived from the final review score."""
    APPROVED = "approved"
    REJECTED = "rejected"


# =============================================================================
# Due Diligence Workflow
# =============================================================================

class DDStatus(str, Enum):
    """State of the due-diligence verification workflow."""
    PENDING = "pending"                      # unclaimed
    IN_PROGRESS = "in_progress"              # claimed by a primary reviewer
    AWAITING_APPROVAL = "awaiting_approval"  # primary score submitted
    APPROVED = "approved"                    # validator approved (terminal)
    QUERIED = "queried"                      # validator rejected the assessment
    AUTO_REASSIGNED = "auto_reassigned"      # validator deadline expired

    @property
    def is_terminal(self) -> bool:
        return self == DDStatus.APPROVED


# Statuses from which a fresh primary reviewer may claim the record
CLAIMABLE_DD_STATUSES = frozenset({
    DDStatus.PENDING,
    DDStatus.QUERIED,
    DDStatus.AUTO_REASSIGNED,
})

# Every legal DD transition; anything else is an InvalidState error
DD_TRANSITIONS: dict[DDStatus, frozenset[DDStatus]] = {
    DDStatus.PENDING: frozenset({DDStatus.IN_PROGRESS}),
    DDStatus.IN_PROGRESS: frozenset({DDStatus.AWAITING_APPROVAL, DDStatus.PENDING}),
    DDStatus.AWAITING_APPROVAL: frozenset({
        DDStatus.AWAITING_APPROVAL,
        DDStatus.APPROVED,
        DDStatus.QUERIED,
        DDStatus.AUTO_REASSIGNED,
        DDStatus.PENDING,
    }),
    DDStatus.QUERIED: frozenset({DDStatus.IN_PROGRESS}),
    DDStatus.AUTO_REASSIGNED: frozenset({
        DDStatus.IN_PROGRESS,
        DDStatus.AWAITING_APPROVAL,
        DDStatus.PENDING,
    }),
    DDStatus.APPROVED: frozenset(),
}


class ValidatorAction(str, Enum):
    """Validator's response to a primary DD assessment."""
    APPROVED = "approved"
    QUERIED = "queried"


class DDVerdict(str, Enum):
    """Recorded DD verdict (validator approval or admin final decision)."""
    APPROVED = "approved"
    PASS = "pass"
    FAIL = "fail"


class DDPhase(str, Enum):
    """DD rubric phases: desk verification and on-site verification."""
    PHASE_1 = "phase1"
    PHASE_2 = "phase2"


class DDPriority(str, Enum):
    """Queue priority surfaced to claimants."""
    NORMAL = "normal"
    ELEVATED = "elevated"  # oversight-initiated


# =============================================================================
# Rubrics
# =============================================================================

class RubricKind(str, Enum):
    """What a rubric pack scores."""
    REVIEW = "review"
    DUE_DILIGENCE = "due_diligence"


# =============================================================================
# Audit
# =============================================================================

class AuditEventType(str, Enum):
    """Committed transitions recorded on the audit trail."""
    APPLICATION_REGISTERED = "application_registered"
    REVIEW_SUBMITTED = "review_submitted"
    REVIEW_REVISED = "review_revised"
    REVIEW_FINALIZED = "review_finalized"
    SCORING_PROGRESS_SAVED = "scoring_progress_saved"
    APPLICATION_LOCKED = "application_locked"
    APPLICATION_UNLOCKED = "application_unlocked"
    DD_CLAIMED = "dd_claimed"
    DD_RELEASED = "dd_released"
    DD_ITEM_SAVED = "dd_item_saved"
    DD_PRIMARY_SUBMITTED = "dd_primary_submitted"
    DD_VALIDATOR_SELECTED = "dd_validator_selected"
    DD_VALIDATOR_APPROVED = "dd_validator_approved"
    DD_VALIDATOR_QUERIED = "dd_validator_queried"
    DD_AUTO_REASSIGNED = "dd_auto_reassigned"
    DD_SCORE_OVERRIDDEN = "dd_score_overridden"
    DD_FINAL_DECISION = "dd_final_decision"
    DD_RECOMMENDED = "dd_recommended"
    REVIEWER_ALLOCATED = "reviewer_allocated"
    REVIEWER_UNALLOCATED = "reviewer_unallocated"
