"""
GrantPilot Reviewer Assignment Models

- ReviewerQueueEntry: One reviewer's place in the load-balancing queue
- SlotAllocation: Which reviewer is expected to fill a review slot
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .application import _iso, utcnow
from .enums import ReviewSlot, Role

_NEVER = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class ReviewerQueueEntry:
    """
    A reviewer available for allocation.

    Attributes:
        reviewer_id: Reviewer identity
        role: reviewer_1 (first reviews) or reviewer_2 (second reviews)
        assignment_count: Allocations since the last reset
        last_assigned_at: Time of the most recent allocation
        is_active: Inactive reviewers receive no new allocations
    """
    reviewer_id: str
    role: Role
    assignment_count: int = 0
    last_assigned_at: Optional[datetime] = None
    is_active: bool = True

    def sort_key(self) -> tuple:
        """Lowest count first, then least recently assigned, then id."""
        return (self.assignment_count, self.last_assigned_at or _NEVER, self.reviewer_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reviewer_id": self.reviewer_id,
            "role": self.role.value,
            "assignment_count": self.assignment_count,
            "last_assigned_at": _iso(self.last_assigned_at),
            "is_active": self.is_active,
        }


@dataclass
class SlotAllocation:
    """The reviewer expected to fill one review slot."""
    application_id: int
    slot: ReviewSlot
    reviewer_id: str
    assigned_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "slot": self.slot.value,
            "reviewer_id": self.reviewer_id,
            "assigned_at": _iso(self.assigned_at),
        }
