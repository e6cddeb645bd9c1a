"""
GrantPilot Rubric Pack Schemas

Pydantic models for validating rubric pack YAML/JSON files.

These schemas define the structure of rubric packs that can be loaded
at runtime. They map to the domain models in grantpilot.models.rubric.

Schema versioning:
- schema_version field tracks breaking changes
- Loaders should check version compatibility
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# Schema Version
# =============================================================================

SCHEMA_VERSION = "1.0.0"


# =============================================================================
# Enums as Literals (for YAML validation)
# =============================================================================

RubricKindValue = Literal["review", "due_diligence"]

TrackValue = Literal["foundation", "acceleration"]

PhaseValue = Literal["phase1", "phase2"]


# =============================================================================
# Rubric Schemas
# =============================================================================

class CriterionSchema(BaseModel):
    """Schema for a single scorable criterion."""
    id: str = Field(..., min_length=1, description="Globally unique criterion ID")
    name: str = Field(..., min_length=1, description="Display name")
    max_points: Decimal = Field(..., gt=0, description="Maximum points for this criterion")
    description: Optional[str] = Field(None, description="Scoring guidance")

    model_config = {"extra": "forbid"}


class CategorySchema(BaseModel):
    """Schema for an ordered category of criteria."""
    id: str = Field(..., min_length=1, description="Category ID")
    name: str = Field(..., min_length=1, description="Display name")
    max_points: Optional[Decimal] = Field(
        None, description="Declared total; must equal the sum of criteria when given"
    )
    criteria: list[CriterionSchema] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_declared_total(self) -> "CategorySchema":
        """Declared category total must match its criteria."""
        if self.max_points is not None:
            total = sum((c.max_points for c in self.criteria), Decimal("0"))
            if total != self.max_points:
                raise ValueError(
                    f"Category '{self.id}' declares {self.max_points} points "
                    f"but its criteria sum to {total}"
                )
        return self

    model_config = {"extra": "forbid"}


class RubricPackSchema(BaseModel):
    """
    Schema for a complete rubric pack.

    A review pack names its track; a due-diligence pack names its phase.
    """
    schema_version: str = Field(default=SCHEMA_VERSION)

    id: str = Field(..., min_length=1, description="Pack ID (e.g., 'foundation-review')")
    name: str = Field(..., description="Display name")
    version: str = Field(..., description="Pack version")
    kind: RubricKindValue = Field(..., description="What the pack scores")
    track: Optional[TrackValue] = Field(None, description="Track for review packs")
    phase: Optional[PhaseValue] = Field(None, description="Phase for DD packs")
    pass_threshold: Optional[Decimal] = Field(None, ge=0, le=100)
    description: Optional[str] = None

    categories: list[CategorySchema] = Field(..., min_length=1)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def validate_scope(self) -> "RubricPackSchema":
        """Review packs need a track, DD packs a phase, never both."""
        if self.kind == "review":
            if self.track is None:
                raise ValueError("Review packs require 'track'")
            if self.phase is not None:
                raise ValueError("Review packs must not declare 'phase'")
            total = sum(
                (c.max_points for cat in self.categories for c in cat.criteria),
                Decimal("0"),
            )
            if total > 100:
                raise ValueError(f"Review pack totals {total} points, above 100")
        else:
            if self.phase is None:
                raise ValueError("Due-diligence packs require 'phase'")
            if self.track is not None:
                raise ValueError("Due-diligence packs must not declare 'track'")
        return self

    model_config = {
        "extra": "forbid",  # Reject unknown fields
    }


# =============================================================================
# Validation Helpers
# =============================================================================

def validate_rubric_pack(data: dict[str, Any]) -> RubricPackSchema:
    """
    Validate a rubric pack dictionary against the schema.

    Raises:
        pydantic.ValidationError: If validation fails
    """
    return RubricPackSchema.model_validate(data)


def check_schema_version(data: dict[str, Any]) -> bool:
    """
    Check if a rubric pack's schema version is compatible.

    Only the major version has to match.
    """
    pack_version = str(data.get("schema_version", SCHEMA_VERSION))
    pack_major = pack_version.split(".")[0]
    current_major = SCHEMA_VERSION.split(".")[0]
    return pack_major == current_major
