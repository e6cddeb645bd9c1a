"""
GrantPilot Exception Hierarchy

Domain-specific exceptions for grant review and due-diligence workflows.
All exceptions include error codes for tracking and logging.

Exception codes follow the pattern: GP_<CATEGORY>_<SPECIFIC>

Workflow functions raise these; the EvaluationService facade turns them
into OperationResult envelopes so callers always get a typed result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class GrantPilotError(Exception):
    """
    Base exception for all GrantPilot errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (GP_*)
        details: Additional context (offending field, current state, ...)
        application_id: Associated application if applicable
    """
    message: str
    code: str = "GP_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    application_id: Optional[int] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.application_id is not None:
            parts.append(f"(application: {self.application_id})")
        return " ".join(parts)

    @property
    def field(self) -> Optional[str]:
        """The offending input field, when the error is about one."""
        return self.details.get("field")

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/API responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.application_id is not None:
            result["application_id"] = self.application_id
        return result


# =============================================================================
# Input Validation Errors
# =============================================================================

@dataclass
class ValidationError(GrantPilotError):
    """Malformed input: missing field, text too short, bad value."""
    code: str = "GP_VALIDATION_ERROR"


@dataclass
class InvalidScoreError(ValidationError):
    """A submitted score (or score total) is outside the configured bounds."""
    code: str = "GP_INVALID_SCORE"


@dataclass
class ScoreOutOfBoundsError(InvalidScoreError):
    """A single criterion score is negative, above its max, or unknown to the rubric."""
    code: str = "GP_SCORE_OUT_OF_BOUNDS"


@dataclass
class InvalidStateError(ValidationError):
    """Operation is not applicable in the record's current state."""
    code: str = "GP_INVALID_STATE"


@dataclass
class SlotPreconditionError(InvalidStateError):
    """Review slot 2 cannot be filled before slot 1."""
    code: str = "GP_SLOT_PRECONDITION"


# =============================================================================
# Identity Conflicts
# =============================================================================

@dataclass
class DuplicateReviewerError(GrantPilotError):
    """Actor already holds a review slot on this application."""
    code: str = "GP_DUPLICATE_REVIEWER"


@dataclass
class SelfValidationForbiddenError(GrantPilotError):
    """Validator must differ from the primary DD reviewer."""
    code: str = "GP_SELF_VALIDATION_FORBIDDEN"


@dataclass
class NotEligibleError(GrantPilotError):
    """Actor's role is not eligible to call this operation."""
    code: str = "GP_NOT_ELIGIBLE"


# =============================================================================
# Lock Errors
# =============================================================================

@dataclass
class ApplicationLockedError(GrantPilotError):
    """Application is frozen; no review or DD mutation is accepted."""
    code: str = "GP_APPLICATION_LOCKED"


@dataclass
class AlreadyLockedError(GrantPilotError):
    """Application is already locked."""
    code: str = "GP_ALREADY_LOCKED"


@dataclass
class NotLockedError(GrantPilotError):
    """Unlock requested on an application that is not locked."""
    code: str = "GP_NOT_LOCKED"


# =============================================================================
# Concurrency-Loss Signals
# =============================================================================

@dataclass
class AlreadyClaimedError(GrantPilotError):
    """DD application was claimed by someone else (or is not claimable)."""
    code: str = "GP_ALREADY_CLAIMED"


@dataclass
class SlotTakenError(GrantPilotError):
    """A concurrent submission filled the review slot first."""
    code: str = "GP_SLOT_TAKEN"


@dataclass
class NotOwnerError(GrantPilotError):
    """Actor does not own the assignment they are acting on."""
    code: str = "GP_NOT_OWNER"


# =============================================================================
# Reviewer Assignment Errors
# =============================================================================

@dataclass
class NoReviewerAvailableError(GrantPilotError):
    """No active reviewer of the required role can take the allocation."""
    code: str = "GP_NO_REVIEWER_AVAILABLE"


# =============================================================================
# Lookup Errors
# =============================================================================

@dataclass
class NotFoundError(GrantPilotError):
    """Application or DD record absent."""
    code: str = "GP_NOT_FOUND"


# =============================================================================
# Rubric Pack Errors
# =============================================================================

@dataclass
class RubricLoadError(GrantPilotError):
    """Failed to load rubric pack from file."""
    code: str = "GP_RUBRIC_LOAD_ERROR"


@dataclass
class RubricValidationError(GrantPilotError):
    """Rubric pack schema or integrity validation failed."""
    code: str = "GP_RUBRIC_VALIDATION_ERROR"


@dataclass
class RubricVersionMismatch(GrantPilotError):
    """Rubric pack schema version doesn't match expected version."""
    code: str = "GP_RUBRIC_VERSION_MISMATCH"


@dataclass
class RubricNotFoundError(GrantPilotError):
    """No rubric registered for the requested track or phase."""
    code: str = "GP_RUBRIC_NOT_FOUND"
