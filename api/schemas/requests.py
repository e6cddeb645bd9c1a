"""Request schemas for the API."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class RegisterApplicationRequest(BaseModel):
    """Hand a submitted application to the evaluation engine."""
    application_id: int = Field(..., description="Application id assigned by intake")
    track: Literal["foundation", "acceleration"] = Field(..., description="Programme track")
    status: Literal["draft", "submitted"] = Field(default="submitted")
    applicant_id: Optional[str] = None
    business_name: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"application_id": 42, "track": "foundation", "business_name": "Mama Njeri Foods"},
            ]
        }
    }


class SubmitReviewRequest(BaseModel):
    """A reviewer's per-criterion scores and general notes."""
    detailed_scores: dict[str, Any] = Field(..., description="criterion id -> score")
    general_notes: Optional[str] = Field(default=None, description="Required, non-empty")
    expected_slot: Optional[Literal[1, 2]] = Field(
        default=None,
        description="Slot the reviewer believes they are filling; a mismatch is rejected",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "detailed_scores": {
                        "fnd-proof-of-sales": 8,
                        "fnd-number-of-customers": 7,
                        "fnd-business-compliance": 9,
                    },
                    "general_notes": "Receipts and M-Pesa statements confirm steady sales",
                }
            ]
        }
    }


class ReviseReviewRequest(BaseModel):
    """Replacement scores for the caller's own review."""
    detailed_scores: dict[str, Any]
    general_notes: Optional[str] = None


class ScoreEntryInput(BaseModel):
    """One draft criterion score."""
    criterion_id: str
    score: Any
    reviewer_comment: Optional[str] = None


class SaveScoringProgressRequest(BaseModel):
    """Draft scores to upsert for the caller."""
    entries: list[ScoreEntryInput] = Field(default_factory=list)


class LockRequest(BaseModel):
    """Reason recorded with a lock or unlock."""
    reason: Optional[str] = None


class PrimaryReviewRequest(BaseModel):
    """Primary DD assessment."""
    score: Any = Field(..., description="0-100")
    notes: Optional[str] = Field(default=None, description="At least 10 characters")


class SelectValidatorRequest(BaseModel):
    """Validator choice from the eligible pool supplied by the identity collaborator."""
    validator_id: str
    eligible_pool: list[str] = Field(default_factory=list)


class ValidatorActionRequest(BaseModel):
    """Validator's approve/query response."""
    action: str = Field(..., description="approved|queried")
    comments: Optional[str] = Field(default=None, description="At least 5 characters")


class DDItemRequest(BaseModel):
    """One DD rubric line item."""
    phase: str = Field(..., description="phase1|phase2")
    criterion_id: str
    score: Any
    category: Optional[str] = None
    comments: Optional[str] = None


class OverrideScoreRequest(BaseModel):
    """Administrative DD score override."""
    new_score: Any = Field(..., description="0-100")
    reason: Optional[str] = Field(default=None, description="At least 10 characters")


class FinalDecisionRequest(BaseModel):
    """Administrative DD verdict."""
    verdict: str = Field(..., description="pass|fail")
    reason: Optional[str] = Field(default=None, description="At least 10 characters")


class RecommendRequest(BaseModel):
    """Oversight recommendation for due diligence."""
    justification: Optional[str] = Field(default=None, description="At least 20 characters")


class DeadlineSweepRequest(BaseModel):
    """Optional evaluation time for the sweep; defaults to now."""
    now: Optional[datetime] = None


class RegisterReviewerRequest(BaseModel):
    """Add a reviewer to the assignment queue."""
    reviewer_id: str = Field(..., description="Reviewer identity")
    role: Literal["reviewer_1", "reviewer_2"] = Field(..., description="Queue the reviewer joins")


class ReviewerActiveRequest(BaseModel):
    is_active: bool


class AssignSlotRequest(BaseModel):
    """Review slot to allocate reviewers for."""
    slot: Literal[1, 2] = Field(default=1)
