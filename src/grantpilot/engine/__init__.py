"""
GrantPilot Engine

Workflow components for blind review and due diligence.

Services:
- ScoreAggregator: Criterion scores -> category subtotals -> total
- ReviewWorkflow: Two-slot blind review and automatic decision
- LockManager: Administrative freeze on decided applications
- DueDiligenceWorkflow: Claim, primary assessment, validation, deadline sweep
- OversightEscalation: Disparity and qualification signals
- ScoringProgress: Per-reviewer draft criterion scores
- ReviewerAllocator: Load-balanced reviewer allocation to review slots
- EvaluationService: Facade returning typed OperationResults

Usage:
    from grantpilot.engine import EvaluationService
"""
from __future__ import annotations

from .assignment import (
    AssignedApplication,
    AssignedApplicationsPage,
    AssignmentStats,
    ReviewerAllocator,
    ReviewerQueue,
    needs_allocation,
)
from .authorization import (
    APPLICABILITY,
    ELIGIBILITY,
    Operation,
    is_applicable,
    is_eligible,
    require_applicable,
    require_eligible,
)
from .due_diligence import (
    AUTO_REASSIGN_COMMENT,
    DDQueueEntry,
    DueDiligenceWorkflow,
    is_claimable,
    is_overdue,
)
from .lock_manager import LockManager, ensure_unlocked
from .oversight import (
    DisparityResult,
    EscalationAssessment,
    OversightEscalation,
    QualificationResult,
    qualifies_for_dd,
    score_disparity,
)
from .review_workflow import (
    DetailedScoresView,
    ReviewStatusView,
    ReviewSubmission,
    ReviewWorkflow,
    SlotView,
    audit_entry_view,
    can_view_slot,
    finalize_review,
    outcome_matches,
)
from .score_aggregator import (
    AggregateResult,
    ScoreAggregator,
    aggregate,
    check_criterion_score,
    passes,
)
from .scoring_progress import ScoreEntry, ScoringProgress, ScoringProgressView
from .service import EvaluationService

__all__ = [
    # Authorization
    "Operation",
    "ELIGIBILITY",
    "APPLICABILITY",
    "is_eligible",
    "is_applicable",
    "require_eligible",
    "require_applicable",
    # Score aggregation
    "AggregateResult",
    "ScoreAggregator",
    "aggregate",
    "check_criterion_score",
    "passes",
    # Review
    "ReviewWorkflow",
    "ReviewStatusView",
    "ReviewSubmission",
    "DetailedScoresView",
    "SlotView",
    "audit_entry_view",
    "can_view_slot",
    "finalize_review",
    "outcome_matches",
    # Locks
    "LockManager",
    "ensure_unlocked",
    # Due diligence
    "DueDiligenceWorkflow",
    "DDQueueEntry",
    "AUTO_REASSIGN_COMMENT",
    "is_claimable",
    "is_overdue",
    # Oversight
    "OversightEscalation",
    "DisparityResult",
    "QualificationResult",
    "EscalationAssessment",
    "score_disparity",
    "qualifies_for_dd",
    # Scoring progress
    "ScoringProgress",
    "ScoringProgressView",
    "ScoreEntry",
    # Reviewer assignment
    "ReviewerAllocator",
    "ReviewerQueue",
    "AssignedApplication",
    "AssignedApplicationsPage",
    "AssignmentStats",
    "needs_allocation",
    # Facade
    "EvaluationService",
]
