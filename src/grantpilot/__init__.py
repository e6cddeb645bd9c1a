"""
GrantPilot - Grant Review and Due-Diligence Orchestration

GrantPilot runs the evaluation side of a grant programme: two blind
reviewers score each application against its track rubric, the averaged
score decides approval, and qualifying or oversight-flagged applications
go through a primary/validator due-diligence check.

Core Principle: "Reviewers decide. GrantPilot enforces the workflow and records it."

Key Features:
- Two-slot blind review with automatic decision at the pass threshold
- Track-specific rubric packs loaded from YAML
- Load-balanced reviewer allocation with a never-the-same second reviewer
- Administrative locking of decided applications
- Due-diligence claim, validation hand-off and approval deadline sweep
- Advisory disparity and qualification signals for oversight
- Hash-sealed audit trail of every committed transition

Quick Start:
    from grantpilot import Actor, EvaluationService, Role, Settings, Track

    service = EvaluationService.from_settings(Settings.from_env())
    admin = Actor("admin-1", Role.ADMIN)
    service.register_application(42, Track.FOUNDATION, admin)

    reviewer = Actor("rev-a", Role.REVIEWER_1)
    result = service.submit_review(42, reviewer, {"fnd-proof-of-sales": 8}, "Strong sales")

Version: 0.1.0
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "GrantPilot Team"

# =============================================================================
# Core Models (Re-exported for convenience)
# =============================================================================
from .models import (
    # Enums
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
    # Review
    Actor,
    Application,
    CriterionScore,
    FinalReviewOutcome,
    LockState,
    ReviewAssignment,
    # Due diligence
    DDItem,
    DDRecord,
    # Rubrics
    Rubric,
    RubricCategory,
    RubricCriterion,
    # Audit / storage / results
    # Reviewer assignment
    ReviewerQueueEntry,
    SlotAllocation,
    ApplicationRecord,
    OperationResult,
    WorkflowAuditEntry,
)

# =============================================================================
# Engine, Configuration and Storage
# =============================================================================
from .config import Settings
from .engine import EvaluationService
from .packs import RubricRegistry, load_rubric_pack
from .store import ApplicationStore, InMemoryStore

# =============================================================================
# Utilities
# =============================================================================
from .canon import (
    canonical_json,
    compute_rubric_pack_hash,
    content_hash,
)

# =============================================================================
# Exceptions
# =============================================================================
from .exceptions import (
    AlreadyClaimedError,
    AlreadyLockedError,
    ApplicationLockedError,
    DuplicateReviewerError,
    GrantPilotError,
    InvalidScoreError,
    InvalidStateError,
    NotEligibleError,
    NoReviewerAvailableError,
    NotFoundError,
    NotLockedError,
    NotOwnerError,
    RubricLoadError,
    RubricNotFoundError,
    RubricValidationError,
    RubricVersionMismatch,
    ScoreOutOfBoundsError,
    SelfValidationForbiddenError,
    SlotPreconditionError,
    SlotTakenError,
    ValidationError,
)

__all__ = [
    # Version
    "__version__",
    # Enums
    "Role",
    "Track",
    "ApplicationStatus",
    "ReviewSlot",
    "SlotState",
    "ReviewDecision",
    "DDStatus",
    "DDPhase",
    "DDPriority",
    "DDVerdict",
    "ValidatorAction",
    "RubricKind",
    "AuditEventType",
    # Review
    "Actor",
    "Application",
    "LockState",
    "ReviewAssignment",
    "FinalReviewOutcome",
    "CriterionScore",
    # Due diligence
    "DDRecord",
    "DDItem",
    # Rubrics
    "Rubric",
    "RubricCategory",
    "RubricCriterion",
    "RubricRegistry",
    "load_rubric_pack",
    # Reviewer assignment
    "ReviewerQueueEntry",
    "SlotAllocation",
    # Audit / storage / results
    "WorkflowAuditEntry",
    "ApplicationRecord",
    "OperationResult",
    "ApplicationStore",
    "InMemoryStore",
    # Engine
    "Settings",
    "EvaluationService",
    # Utilities
    "canonical_json",
    "content_hash",
    "compute_rubric_pack_hash",
    # Exceptions
    "GrantPilotError",
    "ValidationError",
    "InvalidScoreError",
    "ScoreOutOfBoundsError",
    "InvalidStateError",
    "SlotPreconditionError",
    "DuplicateReviewerError",
    "SelfValidationForbiddenError",
    "NotEligibleError",
    "ApplicationLockedError",
    "AlreadyLockedError",
    "NotLockedError",
    "AlreadyClaimedError",
    "SlotTakenError",
    "NotOwnerError",
    "NotFoundError",
    "NoReviewerAvailableError",
    "RubricLoadError",
    "RubricValidationError",
    "RubricVersionMismatch",
    "RubricNotFoundError",
]
