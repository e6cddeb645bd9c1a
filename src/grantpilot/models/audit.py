"""
GrantPilot Audit Trail

Every committed transition appends one WorkflowAuditEntry to the row in
the same transaction as the change it records. Entries are sealed with a
SHA-256 hash over their canonical JSON so later tampering is detectable.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from .application import Actor, utcnow
from .enums import AuditEventType


@dataclass
class WorkflowAuditEntry:
    """
    One committed workflow transition.

    Attributes:
        id: Unique entry identifier
        application_id: Application the transition applied to
        event_type: What happened
        description: Human-readable summary
        actor_id: Who did it ("system" for the deadline sweep)
        actor_role: Role the actor held at the time
        occurred_at: Commit time
        before_value: Relevant state before the change
        after_value: Relevant state after the change
        content_hash: SHA-256 of the canonical entry body
    """
    id: str
    application_id: int
    event_type: AuditEventType
    description: str
    actor_id: str
    actor_role: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)
    before_value: Optional[dict[str, Any]] = None
    after_value: Optional[dict[str, Any]] = None
    content_hash: str = ""

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = self.compute_hash()

    @classmethod
    def create(
        cls,
        application_id: int,
        event_type: AuditEventType,
        description: str,
        actor: Optional[Actor] = None,
        before_value: Optional[dict[str, Any]] = None,
        after_value: Optional[dict[str, Any]] = None,
        occurred_at: Optional[datetime] = None,
    ) -> WorkflowAuditEntry:
        """Factory method to create a sealed audit entry."""
        return cls(
            id=str(uuid4()),
            application_id=application_id,
            event_type=event_type,
            description=description,
            actor_id=actor.actor_id if actor else "system",
            actor_role=actor.role.value if actor else None,
            occurred_at=occurred_at or utcnow(),
            before_value=before_value,
            after_value=after_value,
        )

    def _hash_body(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "event_type": self.event_type.value,
            "description": self.description,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "occurred_at": self.occurred_at,
            "before_value": self.before_value,
            "after_value": self.after_value,
        }

    def compute_hash(self) -> str:
        from ..canon import content_hash

        return content_hash(self._hash_body())

    def verify(self) -> bool:
        """True if the entry has not been altered since it was sealed."""
        return self.compute_hash() == self.content_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "event_type": self.event_type.value,
            "description": self.description,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "occurred_at": self.occurred_at.isoformat(),
            "before_value": self.before_value,
            "after_value": self.after_value,
            "content_hash": self.content_hash,
        }
