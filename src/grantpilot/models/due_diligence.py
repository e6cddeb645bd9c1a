"""
GrantPilot Due-Diligence Models

One DDRecord per application, created lazily on first claim or on an
oversight recommendation. It carries the primary assessment, the
validator hand-off, the SLA deadline, and the admin override overlay.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from .application import utcnow
from .enums import DDPhase, DDPriority, DDStatus, DDVerdict, ValidatorAction


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


# =============================================================================
# DD Item
# =============================================================================

@dataclass
class DDItem:
    """A rubric line item scored during due diligence."""
    id: str
    phase: DDPhase
    category: str
    criterion: str
    score: Decimal
    comments: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        phase: DDPhase,
        category: str,
        criterion: str,
        score: Decimal,
        comments: Optional[str] = None,
    ) -> DDItem:
        """Factory method to create a new DDItem."""
        return cls(
            id=str(uuid4()),
            phase=phase,
            category=category,
            criterion=criterion,
            score=score,
            comments=comments,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "phase": self.phase.value,
            "category": self.category,
            "criterion": self.criterion,
            "score": float(self.score),
            "comments": self.comments,
        }


# =============================================================================
# DD Record
# =============================================================================

@dataclass
class DDRecord:
    """
    Due-diligence state for one application.

    ``original_score`` is written exactly once, by the first admin
    override, and never again.
    """
    application_id: int
    dd_status: DDStatus = DDStatus.PENDING
    priority: DDPriority = DDPriority.NORMAL

    # Primary assessment
    phase1_score: Optional[Decimal] = None
    phase1_notes: Optional[str] = None
    phase2_score: Optional[Decimal] = None
    phase2_notes: Optional[str] = None
    primary_reviewer_id: Optional[str] = None
    primary_reviewed_at: Optional[datetime] = None

    # Validator hand-off
    validator_reviewer_id: Optional[str] = None
    validator_action: Optional[ValidatorAction] = None
    validator_comments: Optional[str] = None
    validator_action_at: Optional[datetime] = None
    approval_deadline: Optional[datetime] = None

    # Oversight
    is_oversight_initiated: bool = False
    oversight_justification: Optional[str] = None
    oversight_admin_id: Optional[str] = None
    oversight_flagged_at: Optional[datetime] = None

    # Verdict
    final_verdict: Optional[DDVerdict] = None
    final_reason: Optional[str] = None

    # Admin override overlay
    admin_override_score: Optional[Decimal] = None
    original_score: Optional[Decimal] = None
    admin_override_reason: Optional[str] = None
    admin_override_by_id: Optional[str] = None
    admin_override_at: Optional[datetime] = None

    items: list[DDItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_claimed(self) -> bool:
        return self.primary_reviewer_id is not None

    @property
    def is_overridden(self) -> bool:
        return self.admin_override_score is not None

    @property
    def effective_score(self) -> Optional[Decimal]:
        """Score in force: the admin override if present, else phase 1."""
        if self.admin_override_score is not None:
            return self.admin_override_score
        return self.phase1_score

    def score_for(self, phase: DDPhase) -> Optional[Decimal]:
        return self.phase1_score if phase == DDPhase.PHASE_1 else self.phase2_score

    def items_for(self, phase: DDPhase) -> list[DDItem]:
        return [item for item in self.items if item.phase == phase]

    def find_item(self, phase: DDPhase, criterion: str) -> Optional[DDItem]:
        for item in self.items:
            if item.phase == phase and item.criterion == criterion:
                return item
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "application_id": self.application_id,
            "dd_status": self.dd_status.value,
            "priority": self.priority.value,
            "phase1_score": _num(self.phase1_score),
            "phase1_notes": self.phase1_notes,
            "phase2_score": _num(self.phase2_score),
            "phase2_notes": self.phase2_notes,
            "primary_reviewer_id": self.primary_reviewer_id,
            "primary_reviewed_at": _iso(self.primary_reviewed_at),
            "validator_reviewer_id": self.validator_reviewer_id,
            "validator_action": self.validator_action.value if self.validator_action else None,
            "validator_comments": self.validator_comments,
            "validator_action_at": _iso(self.validator_action_at),
            "approval_deadline": _iso(self.approval_deadline),
            "is_oversight_initiated": self.is_oversight_initiated,
            "oversight_justification": self.oversight_justification,
            "oversight_admin_id": self.oversight_admin_id,
            "oversight_flagged_at": _iso(self.oversight_flagged_at),
            "final_verdict": self.final_verdict.value if self.final_verdict else None,
            "final_reason": self.final_reason,
            "admin_override_score": _num(self.admin_override_score),
            "original_score": _num(self.original_score),
            "admin_override_reason": self.admin_override_reason,
            "admin_override_by_id": self.admin_override_by_id,
            "admin_override_at": _iso(self.admin_override_at),
            "effective_score": _num(self.effective_score),
            "items": [item.to_dict() for item in self.items],
        }
