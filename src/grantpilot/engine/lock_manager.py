"""
GrantPilot Lock Manager

Administrative freeze on a decided application. Locking is monotonic:
once an application is locked every review and DD mutation is rejected
before it touches the row, and only an explicit admin unlock clears it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from ..exceptions import (
    AlreadyLockedError,
    ApplicationLockedError,
    InvalidStateError,
    NotLockedError,
)
from ..logging_config import log_transition
from ..models import (
    Actor,
    ApplicationRecord,
    AuditEventType,
    LockState,
    utcnow,
)
from ..store import ApplicationStore
from .authorization import Operation, require_eligible

logger = logging.getLogger(__name__)

DEFAULT_LOCK_REASON = "Locked by admin"
DEFAULT_UNLOCK_REASON = "No reason provided"


def ensure_unlocked(record: ApplicationRecord) -> None:
    """Raise ApplicationLockedError if the record is frozen."""
    if record.application.is_locked:
        lock = record.application.lock
        raise ApplicationLockedError(
            message="Application is locked and cannot be modified",
            details={
                "field": "application_id",
                "locked_by": lock.locked_by,
                "lock_reason": lock.lock_reason,
            },
            application_id=record.application_id,
        )


@dataclass
class LockManager:
    """
    Locks and unlocks applications.

    Usage:
        locks = LockManager(store)
        locks.lock_application(42, admin, "Decision communicated")
    """
    store: ApplicationStore
    clock: Callable[[], datetime] = field(default=utcnow)

    def lock_application(
        self,
        application_id: int,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> LockState:
        """
        Freeze a decided application.

        Raises:
            NotEligibleError: Caller is not an admin
            AlreadyLockedError: Application is already locked
            InvalidStateError: Application is not approved or rejected yet
        """
        require_eligible(actor, Operation.LOCK_APPLICATION, application_id)
        reason = (reason or "").strip() or DEFAULT_LOCK_REASON

        with self.store.transaction(application_id) as record:
            application = record.application
            if application.is_locked:
                raise AlreadyLockedError(
                    message="Application is already locked",
                    details={"field": "application_id"},
                    application_id=application_id,
                )
            if not application.status.is_terminal:
                raise InvalidStateError(
                    message="Only approved or rejected applications can be locked",
                    details={"field": "status", "status": application.status.value},
                    application_id=application_id,
                )

            now = self.clock()
            application.lock = LockState(
                is_locked=True,
                locked_by=actor.actor_id,
                locked_at=now,
                lock_reason=reason,
            )
            application.updated_at = now
            record.log_event(
                AuditEventType.APPLICATION_LOCKED,
                f"Application locked: {reason}",
                actor=actor,
                before={"is_locked": False},
                after={"is_locked": True, "lock_reason": reason},
                at=now,
            )
            lock = replace(application.lock)

        log_transition(
            logger, "Application locked",
            application_id=application_id, transition="lock", actor=actor,
        )
        return lock

    def unlock_application(
        self,
        application_id: int,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> LockState:
        """
        Administrative escape hatch: clear the lock.

        Raises:
            NotEligibleError: Caller is not an admin
            NotLockedError: Application is not locked
        """
        require_eligible(actor, Operation.UNLOCK_APPLICATION, application_id)
        reason = (reason or "").strip() or DEFAULT_UNLOCK_REASON

        with self.store.transaction(application_id) as record:
            application = record.application
            if not application.is_locked:
                raise NotLockedError(
                    message="Application is not locked",
                    details={"field": "application_id"},
                    application_id=application_id,
                )

            now = self.clock()
            previous_reason = application.lock.lock_reason
            application.lock = LockState(
                is_locked=False,
                locked_by=None,
                locked_at=None,
                lock_reason=f"Unlocked by admin: {reason}",
            )
            application.updated_at = now
            record.log_event(
                AuditEventType.APPLICATION_UNLOCKED,
                f"Application unlocked: {reason}",
                actor=actor,
                before={"is_locked": True, "lock_reason": previous_reason},
                after={"is_locked": False},
                at=now,
            )
            lock = replace(application.lock)

        log_transition(
            logger, "Application unlocked",
            application_id=application_id, transition="unlock", actor=actor,
        )
        return lock
