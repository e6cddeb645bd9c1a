"""
GrantPilot Models

All domain models for the GrantPilot review and due-diligence engine.

    from grantpilot.models import (
        # Enums
        Role, Track, ApplicationStatus, DDStatus,
        # Review
        Actor, Application, ReviewAssignment, FinalReviewOutcome,
        # Due diligence
        DDRecord, DDItem,
        # Rubrics
        Rubric, RubricCategory, RubricCriterion,
        # Storage row and results
        ApplicationRecord, OperationResult,
    )
"""
from __future__ import annotations

# =============================================================================
# Enums
# =============================================================================
from .enums import (
    CLAIMABLE_DD_STATUSES,
    DD_TRANSITIONS,
    REVIEWABLE_STATUSES,
    ApplicationStatus,
    AuditEventType,
    DDPhase,
    DDPriority,
    DDStatus,
    DDVerdict,
    ReviewDecision,
    ReviewSlot,
    Role,
    RubricKind,
    SlotState,
    Track,
    ValidatorAction,
)

# =============================================================================
# Application / Review
# =============================================================================
from .application import (
    Actor,
    Application,
    CriterionScore,
    FinalReviewOutcome,
    LockState,
    ReviewAssignment,
    decide,
    round1dp,
    utcnow,
)

# =============================================================================
# Due Diligence
# =============================================================================
from .due_diligence import DDItem, DDRecord

# =============================================================================
# Rubrics
# =============================================================================
from .rubric import Rubric, RubricCategory, RubricCriterion

# =============================================================================
# Reviewer Assignment
# =============================================================================
from .assignment import ReviewerQueueEntry, SlotAllocation

# =============================================================================
# Audit / Storage / Results
# =============================================================================
from .audit import WorkflowAuditEntry
from .record import ApplicationRecord
from .results import OperationResult

__all__ = [
    # Enums
    "Role",
    "Track",
    "ApplicationStatus",
    "REVIEWABLE_STATUSES",
    "ReviewSlot",
    "SlotState",
    "ReviewDecision",
    "DDStatus",
    "CLAIMABLE_DD_STATUSES",
    "DD_TRANSITIONS",
    "ValidatorAction",
    "DDVerdict",
    "DDPhase",
    "DDPriority",
    "RubricKind",
    "AuditEventType",
    # Application / Review
    "Actor",
    "Application",
    "LockState",
    "ReviewAssignment",
    "FinalReviewOutcome",
    "CriterionScore",
    "decide",
    "round1dp",
    "utcnow",
    # Due diligence
    "DDRecord",
    "DDItem",
    # Rubrics
    "Rubric",
    "RubricCategory",
    "RubricCriterion",
    # Reviewer assignment
    "ReviewerQueueEntry",
    "SlotAllocation",
    # Audit / Storage / Results
    "WorkflowAuditEntry",
    "ApplicationRecord",
    "OperationResult",
]
