"""
GrantPilot Reviewer Assignment

Load-balanced allocation of reviewers to review slots. Active reviewer_1
and reviewer_2 users sit in a queue with an assignment count; each
allocation goes to the lowest count, least recently assigned first. The
second reviewer is never the first reviewer.

An allocation records who is expected to review. It does not gate
submit_review, where slot occupancy alone decides the slot.

Lock order is queue, then store row.

Usage:
    allocator = ReviewerAllocator(store, ReviewerQueue())
    allocator.register_reviewer(admin, "rev-a", Role.REVIEWER_1)
    allocator.assign(42, ReviewSlot.SLOT_1)
"""
from __future__ import annotations

import copy
import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Optional

from ..exceptions import (
    ApplicationLockedError,
    InvalidStateError,
    NoReviewerAvailableError,
    NotFoundError,
    SlotPreconditionError,
    ValidationError,
)
from ..models import (
    REVIEWABLE_STATUSES,
    Actor,
    ApplicationRecord,
    ApplicationStatus,
    AuditEventType,
    ReviewerQueueEntry,
    ReviewSlot,
    Role,
    SlotAllocation,
    Track,
    utcnow,
)
from ..store import ApplicationStore
from .authorization import Operation, require_eligible
from .guards import require_choice
from .lock_manager import ensure_unlocked

logger = logging.getLogger(__name__)

QUEUE_ROLE_BY_SLOT = {
    ReviewSlot.SLOT_1: Role.REVIEWER_1,
    ReviewSlot.SLOT_2: Role.REVIEWER_2,
}
SLOT_BY_QUEUE_ROLE = {role: slot for slot, role in QUEUE_ROLE_BY_SLOT.items()}


# =============================================================================
# Queue
# =============================================================================

class ReviewerQueue:
    """Thread-safe in-process reviewer queue."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, ReviewerQueueEntry] = {}

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the queue across a pick and the row update it feeds."""
        with self._lock:
            yield

    def add(self, entry: ReviewerQueueEntry) -> tuple[ReviewerQueueEntry, bool]:
        """Insert ``entry`` unless the reviewer is already queued."""
        with self._lock:
            existing = self._entries.get(entry.reviewer_id)
            if existing is not None:
                return copy.deepcopy(existing), False
            self._entries[entry.reviewer_id] = copy.deepcopy(entry)
            return copy.deepcopy(entry), True

    def get(self, reviewer_id: str) -> ReviewerQueueEntry:
        with self._lock:
            return copy.deepcopy(self._entry(reviewer_id))

    def entries(self) -> list[ReviewerQueueEntry]:
        """Snapshots ordered by role, then by allocation order."""
        with self._lock:
            return sorted(
                (copy.deepcopy(e) for e in self._entries.values()),
                key=lambda e: (e.role.value, e.sort_key()),
            )

    def next_for(
        self,
        role: Role,
        exclude: Iterable[str] = (),
    ) -> Optional[ReviewerQueueEntry]:
        excluded = set(exclude)
        with self._lock:
            candidates = [
                e for e in self._entries.values()
                if e.role == role and e.is_active and e.reviewer_id not in excluded
            ]
            if not candidates:
                return None
            return copy.deepcopy(min(candidates, key=ReviewerQueueEntry.sort_key))

    def record_assignment(self, reviewer_id: str, at: datetime) -> None:
        with self._lock:
            entry = self._entry(reviewer_id)
            entry.assignment_count += 1
            entry.last_assigned_at = at

    def set_active(self, reviewer_id: str, is_active: bool) -> ReviewerQueueEntry:
        with self._lock:
            entry = self._entry(reviewer_id)
            entry.is_active = is_active
            return copy.deepcopy(entry)

    def reset(self, role: Role) -> None:
        """Zero the counts of every reviewer holding ``role``."""
        with self._lock:
            for entry in self._entries.values():
                if entry.role == role:
                    entry.assignment_count = 0
                    entry.last_assigned_at = None

    def _entry(self, reviewer_id: str) -> ReviewerQueueEntry:
        entry = self._entries.get(reviewer_id)
        if entry is None:
            raise NotFoundError(
                message=f"Reviewer '{reviewer_id}' is not in the assignment queue",
                details={"field": "reviewer_id"},
            )
        return entry


# =============================================================================
# Views
# =============================================================================

@dataclass
class AssignedApplication:
    """One application allocated to the viewing reviewer."""
    application_id: int
    track: Track
    status: ApplicationStatus
    slot: ReviewSlot
    assigned_at: datetime
    reviewed: bool
    business_name: Optional[str] = None
    submitted_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "track": self.track.value,
            "status": self.status.value,
            "slot": self.slot.value,
            "is_first_review": self.slot == ReviewSlot.SLOT_1,
            "assigned_at": self.assigned_at.isoformat(),
            "reviewed": self.reviewed,
            "business_name": self.business_name,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }


@dataclass
class AssignedApplicationsPage:
    applications: list[AssignedApplication]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def to_dict(self) -> dict[str, Any]:
        return {
            "applications": [a.to_dict() for a in self.applications],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


@dataclass
class AssignmentStats:
    """Allocation coverage and per-reviewer load."""
    total_applications: int
    assigned_to_reviewer1: int
    assigned_to_reviewer2: int
    unassigned: int
    reviewers: list[ReviewerQueueEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_applications": self.total_applications,
            "assigned_to_reviewer1": self.assigned_to_reviewer1,
            "assigned_to_reviewer2": self.assigned_to_reviewer2,
            "unassigned": self.unassigned,
            "reviewers": [r.to_dict() for r in self.reviewers],
        }


def needs_allocation(record: ApplicationRecord, slot: ReviewSlot) -> bool:
    """An unlocked application under review whose ``slot`` is open and unallocated."""
    return (
        not record.application.is_locked
        and record.application.status in REVIEWABLE_STATUSES
        and record.assignment(slot) is None
        and slot not in record.allocations
        and (slot == ReviewSlot.SLOT_1 or record.slot1 is not None)
    )


# =============================================================================
# Allocator
# =============================================================================

@dataclass
class ReviewerAllocator:
    store: ApplicationStore
    queue: ReviewerQueue = field(default_factory=ReviewerQueue)
    clock: Callable[[], datetime] = field(default=utcnow)

    # -------------------------------------------------------------------------
    # Queue management
    # -------------------------------------------------------------------------

    def register_reviewer(self, actor: Actor, reviewer_id: str, role: Role) -> ReviewerQueueEntry:
        """Add a reviewer to the queue; an already queued reviewer is returned unchanged."""
        require_eligible(actor, Operation.REGISTER_REVIEWER)
        role = require_choice(Role, role, "role")
        if role not in SLOT_BY_QUEUE_ROLE:
            raise ValidationError(
                message="Only reviewer_1 and reviewer_2 users join the assignment queue",
                details={"field": "role", "role": role.value},
            )
        if not reviewer_id or not reviewer_id.strip():
            raise ValidationError(
                message="reviewer_id is required",
                details={"field": "reviewer_id"},
            )
        entry, added = self.queue.add(ReviewerQueueEntry(reviewer_id.strip(), role))
        if added:
            logger.info(
                "Reviewer %s queued as %s", entry.reviewer_id, role.value,
                extra={"actor_id": actor.actor_id, "transition": "register_reviewer"},
            )
        return entry

    def set_reviewer_active(
        self,
        actor: Actor,
        reviewer_id: str,
        is_active: bool,
    ) -> ReviewerQueueEntry:
        require_eligible(actor, Operation.SET_REVIEWER_ACTIVE)
        entry = self.queue.set_active(reviewer_id, bool(is_active))
        logger.info(
            "Reviewer %s %s", reviewer_id, "activated" if entry.is_active else "deactivated",
            extra={"actor_id": actor.actor_id, "transition": "set_reviewer_active"},
        )
        return entry

    # -------------------------------------------------------------------------
    # Allocation
    # -------------------------------------------------------------------------

    def assign(
        self,
        application_id: int,
        slot: ReviewSlot,
        actor: Optional[Actor] = None,
    ) -> SlotAllocation:
        """
        Allocate the next queued reviewer to ``slot``.

        ``actor`` is None when intake or a review submission triggers the
        allocation; an interactive caller must be an admin.

        Raises:
            ApplicationLockedError: Application is frozen
            InvalidStateError: Not under review, or the slot is filled or allocated
            SlotPreconditionError: Slot 2 requested before slot 1 is filled
            NoReviewerAvailableError: No active reviewer of the slot's role is left
        """
        if actor is not None:
            require_eligible(actor, Operation.ASSIGN_REVIEWERS, application_id)
        role = QUEUE_ROLE_BY_SLOT[slot]

        with self.queue.locked():
            with self.store.transaction(application_id) as record:
                ensure_unlocked(record)
                self._check_open(record, slot)
                exclude = set()
                if slot == ReviewSlot.SLOT_2:
                    exclude.add(record.slot1.reviewer_id)
                    first = record.allocated_reviewer(ReviewSlot.SLOT_1)
                    if first:
                        exclude.add(first)
                entry = self.queue.next_for(role, exclude)
                if entry is None:
                    raise NoReviewerAvailableError(
                        message=f"No active {role.value} available",
                        details={"field": "role", "role": role.value},
                        application_id=application_id,
                    )
                now = self.clock()
                allocation = SlotAllocation(application_id, slot, entry.reviewer_id, now)
                record.allocations[slot] = allocation
                record.log_event(
                    AuditEventType.REVIEWER_ALLOCATED,
                    f"Reviewer allocated to slot {slot.value}",
                    actor=actor,
                    after={"slot": slot.value},
                    at=now,
                )
            self.queue.record_assignment(entry.reviewer_id, now)

        logger.info(
            "Review slot %s allocated", slot.value,
            extra={"application_id": application_id, "transition": "assign_reviewer"},
        )
        return copy.deepcopy(allocation)

    def auto_assign(self, application_id: int, slot: ReviewSlot) -> Optional[SlotAllocation]:
        """Allocate on intake or submission; an empty queue leaves the slot open."""
        try:
            return self.assign(application_id, slot)
        except NoReviewerAvailableError as e:
            logger.warning(
                "%s; slot %s left unallocated", e.message, slot.value,
                extra={"application_id": application_id, "transition": "assign_reviewer"},
            )
        except InvalidStateError as e:
            logger.debug(
                "Slot %s not allocated: %s", slot.value, e.message,
                extra={"application_id": application_id, "transition": "assign_reviewer"},
            )
        return None

    def bulk_assign(self, actor: Actor, slot: ReviewSlot) -> list[int]:
        """Allocate every open slot in application order until the queue runs dry."""
        require_eligible(actor, Operation.ASSIGN_REVIEWERS)
        slot = require_choice(ReviewSlot, slot, "slot")
        assigned: list[int] = []
        with self.queue.locked():
            for record in self.store.records():
                if not needs_allocation(record, slot):
                    continue
                try:
                    self.assign(record.application_id, slot, actor)
                except NoReviewerAvailableError:
                    logger.warning(
                        "Reviewer queue exhausted after %d allocations", len(assigned),
                        extra={"actor_id": actor.actor_id, "transition": "bulk_assign"},
                    )
                    break
                except (InvalidStateError, ApplicationLockedError) as e:
                    # Row changed since the snapshot
                    logger.debug(
                        "Skipped: %s", e.message,
                        extra={"application_id": record.application_id},
                    )
                    continue
                assigned.append(record.application_id)
        return assigned

    def redistribute(self, actor: Actor, slot: ReviewSlot) -> list[int]:
        """
        Clear open allocations for ``slot``, zero that role's counts, and
        allocate again across the currently active reviewers.

        Allocations whose review is already submitted are kept.
        """
        require_eligible(actor, Operation.REDISTRIBUTE_ASSIGNMENTS)
        slot = require_choice(ReviewSlot, slot, "slot")
        now = self.clock()

        def releasable(record: ApplicationRecord) -> bool:
            return (
                slot in record.allocations
                and record.assignment(slot) is None
                and not record.application.is_locked
            )

        def release(record: ApplicationRecord) -> None:
            record.allocations.pop(slot)
            record.log_event(
                AuditEventType.REVIEWER_UNALLOCATED,
                f"Slot {slot.value} allocation cleared for redistribution",
                actor=actor,
                before={"slot": slot.value},
                at=now,
            )

        with self.queue.locked():
            cleared = self.store.update_where(releasable, release)
            self.queue.reset(QUEUE_ROLE_BY_SLOT[slot])
            logger.info(
                "Cleared %d slot %s allocations", len(cleared), slot.value,
                extra={"actor_id": actor.actor_id, "transition": "redistribute"},
            )
            return self.bulk_assign(actor, slot)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_assigned(
        self,
        actor: Actor,
        track: Optional[Track] = None,
        page: int = 1,
        limit: int = 20,
    ) -> AssignedApplicationsPage:
        """The caller's allocations for the slot their role reviews, oldest first."""
        require_eligible(actor, Operation.LIST_ASSIGNED_APPLICATIONS)
        slot = SLOT_BY_QUEUE_ROLE[actor.role]
        chosen = None if track is None else require_choice(Track, track, "track")
        if page < 1 or limit < 1:
            raise ValidationError(
                message="page and limit must be positive",
                details={"field": "page" if page < 1 else "limit"},
            )

        rows = []
        for record in self.store.records():
            if record.allocated_reviewer(slot) != actor.actor_id:
                continue
            application = record.application
            if chosen is not None and application.track != chosen:
                continue
            review = record.assignment(slot)
            rows.append(AssignedApplication(
                application_id=application.id,
                track=application.track,
                status=application.status,
                slot=slot,
                assigned_at=record.allocations[slot].assigned_at,
                reviewed=review is not None and review.reviewer_id == actor.actor_id,
                business_name=application.business_name,
                submitted_at=application.submitted_at,
            ))
        rows.sort(key=lambda row: (row.assigned_at, row.application_id))
        start = (page - 1) * limit
        return AssignedApplicationsPage(rows[start:start + limit], len(rows), page, limit)

    def get_stats(self, actor: Actor) -> AssignmentStats:
        require_eligible(actor, Operation.GET_ASSIGNMENT_STATS)
        records = [
            r for r in self.store.records()
            if r.application.status != ApplicationStatus.DRAFT
        ]
        first = sum(1 for r in records if ReviewSlot.SLOT_1 in r.allocations)
        second = sum(1 for r in records if ReviewSlot.SLOT_2 in r.allocations)
        return AssignmentStats(
            total_applications=len(records),
            assigned_to_reviewer1=first,
            assigned_to_reviewer2=second,
            unassigned=len(records) - first,
            reviewers=self.queue.entries(),
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_open(self, record: ApplicationRecord, slot: ReviewSlot) -> None:
        application_id = record.application_id
        if record.application.status not in REVIEWABLE_STATUSES:
            raise InvalidStateError(
                message=f"Reviewers are not allocated while '{record.application.status.value}'",
                details={"field": "status", "status": record.application.status.value},
                application_id=application_id,
            )
        if slot == ReviewSlot.SLOT_2 and record.slot1 is None:
            raise SlotPreconditionError(
                message="A second reviewer is allocated only after the first review",
                details={"field": "slot", "slot": slot.value},
                application_id=application_id,
            )
        if record.assignment(slot) is not None or slot in record.allocations:
            raise InvalidStateError(
                message=f"Review slot {slot.value} is already filled or allocated",
                details={"field": "slot", "slot": slot.value},
                application_id=application_id,
            )
