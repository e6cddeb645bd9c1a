"""
GrantPilot Rubric Packs

Schema validation and loading for rubric packs.

Rubric packs are YAML or JSON files that define the categories and
criteria (with maximum points) used to score an application. Review
packs are selected by track; due-diligence packs by phase.

Usage:
    from grantpilot.packs import RubricRegistry, load_rubric_pack

    rubric = load_rubric_pack("packs/review/foundation.yaml")

    registry = RubricRegistry.from_directory("packs")
    registry.for_track(Track.ACCELERATION)
"""
from __future__ import annotations

from .loader import (
    RubricPackLoader,
    RubricRegistry,
    load_rubric_pack,
    load_rubric_pack_from_string,
)
from .schema import (
    SCHEMA_VERSION,
    CategorySchema,
    CriterionSchema,
    RubricPackSchema,
    check_schema_version,
    validate_rubric_pack,
)

__all__ = [
    # Version
    "SCHEMA_VERSION",
    # Loader
    "RubricPackLoader",
    "RubricRegistry",
    "load_rubric_pack",
    "load_rubric_pack_from_string",
    # Validation
    "validate_rubric_pack",
    "check_schema_version",
    # Schemas
    "RubricPackSchema",
    "CategorySchema",
    "CriterionSchema",
]
