"""Response schemas for the API."""

from typing import Any, Optional

from pydantic import BaseModel


class ErrorBody(BaseModel):
    """Typed failure: error kind, message and offending field."""
    code: str
    message: str
    details: dict[str, Any] = {}
    application_id: Optional[int] = None


class OperationResponse(BaseModel):
    """Envelope returned by every workflow endpoint."""
    success: bool
    data: Any = None
    error: Optional[ErrorBody] = None


class CriterionSummary(BaseModel):
    """A scorable rubric criterion."""
    id: str
    name: str
    max_points: float


class CategorySummary(BaseModel):
    """A rubric category and its criteria."""
    id: str
    name: str
    max_points: float
    criteria: list[CriterionSummary]


class RubricSummary(BaseModel):
    """A loaded rubric pack."""
    id: str
    name: str
    version: str
    kind: str
    track: Optional[str] = None
    phase: Optional[str] = None
    max_total: float
    rubric_hash: str
    categories: list[CategorySummary]


class HealthResponse(BaseModel):
    """Health check."""
    healthy: bool
    version: str
    rubrics_loaded: int
    applications: int
