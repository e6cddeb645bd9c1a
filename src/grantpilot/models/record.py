"""
GrantPilot Application Record

The unit of persistence and of atomicity: one application together with
everything a single transaction may touch (its review slots, cached
outcome, scoring drafts, reviewer allocations, DD record and audit
trail).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from .application import (
    Actor,
    Application,
    CriterionScore,
    FinalReviewOutcome,
    ReviewAssignment,
)
from .assignment import SlotAllocation
from .audit import WorkflowAuditEntry
from .due_diligence import DDRecord
from .enums import AuditEventType, ReviewSlot, SlotState


@dataclass
class ApplicationRecord:
    """
    One stored row.

    ``outcome`` is a cache of FinalReviewOutcome written only by the
    transition that fills or revises slot 2.
    """
    application: Application
    slot1: Optional[ReviewAssignment] = None
    slot2: Optional[ReviewAssignment] = None
    outcome: Optional[FinalReviewOutcome] = None
    criterion_scores: dict[tuple[str, str], CriterionScore] = field(default_factory=dict)
    dd: Optional[DDRecord] = None
    allocations: dict[ReviewSlot, SlotAllocation] = field(default_factory=dict)
    audit_log: list[WorkflowAuditEntry] = field(default_factory=list)

    @property
    def application_id(self) -> int:
        return self.application.id

    @property
    def slot_state(self) -> SlotState:
        if self.slot1 is None:
            return SlotState.EMPTY
        if self.slot2 is None:
            return SlotState.SLOT_1_FILLED
        return SlotState.COMPLETE

    @property
    def reviews_complete(self) -> bool:
        return self.slot_state == SlotState.COMPLETE

    def assignment(self, slot: ReviewSlot) -> Optional[ReviewAssignment]:
        return self.slot1 if slot == ReviewSlot.SLOT_1 else self.slot2

    def allocated_reviewer(self, slot: ReviewSlot) -> Optional[str]:
        allocation = self.allocations.get(slot)
        return allocation.reviewer_id if allocation else None

    def slot_of(self, reviewer_id: str) -> Optional[ReviewSlot]:
        """The slot this reviewer occupies, if any."""
        if self.slot1 is not None and self.slot1.reviewer_id == reviewer_id:
            return ReviewSlot.SLOT_1
        if self.slot2 is not None and self.slot2.reviewer_id == reviewer_id:
            return ReviewSlot.SLOT_2
        return None

    def aggregate_score(self) -> Optional[Decimal]:
        """Averaged review score, or None until both slots are filled."""
        return self.outcome.final_score if self.outcome else None

    def log_event(
        self,
        event_type: AuditEventType,
        description: str,
        actor: Optional[Actor] = None,
        before: Optional[dict[str, Any]] = None,
        after: Optional[dict[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> WorkflowAuditEntry:
        """Append a sealed audit entry to this row."""
        entry = WorkflowAuditEntry.create(
            application_id=self.application_id,
            event_type=event_type,
            description=description,
            actor=actor,
            before_value=before,
            after_value=after,
            occurred_at=at,
        )
        self.audit_log.append(entry)
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "application": self.application.to_dict(),
            "slot_state": self.slot_state.value,
            "outcome": self.outcome.to_dict() if self.outcome else None,
            "dd": self.dd.to_dict() if self.dd else None,
        }
