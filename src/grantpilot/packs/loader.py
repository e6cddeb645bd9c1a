"""
GrantPilot Rubric Pack Loader

Loads and validates rubric packs from YAML or JSON files.

Converts Pydantic schema models to GrantPilot domain models and keeps a
registry that resolves the rubric for a track (review) or phase (DD).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from ..exceptions import (
    RubricLoadError,
    RubricNotFoundError,
    RubricValidationError,
    RubricVersionMismatch,
)
from ..models import (
    DDPhase,
    Rubric,
    RubricCategory,
    RubricCriterion,
    RubricKind,
    Track,
)
from .schema import (
    SCHEMA_VERSION,
    CategorySchema,
    RubricPackSchema,
    check_schema_version,
    validate_rubric_pack,
)

logger = logging.getLogger(__name__)

PACK_SUFFIXES = {".yaml", ".yml", ".json"}


# =============================================================================
# Reference Integrity Validation
# =============================================================================

def validate_reference_integrity(rubric: Rubric, path: str = "") -> None:
    """
    Validate a rubric's ids are consistent.

    Catches:
    - Duplicate category IDs
    - Duplicate criterion IDs within the pack

    Raises:
        ValueError: If reference integrity errors are found
    """
    errors = []

    seen_categories: set[str] = set()
    for category in rubric.categories:
        if category.id in seen_categories:
            errors.append(f"Duplicate category ID: '{category.id}'")
        seen_categories.add(category.id)

    seen_criteria: set[str] = set()
    for criterion in rubric.iter_criteria():
        if criterion.id in seen_criteria:
            errors.append(f"Duplicate criterion ID: '{criterion.id}'")
        seen_criteria.add(criterion.id)

    if errors:
        path_str = f" in {path}" if path else ""
        raise ValueError(
            f"Reference integrity errors{path_str}:\n" +
            "\n".join(f"  - {e}" for e in errors)
        )


# =============================================================================
# Schema to Model Converters
# =============================================================================

def _convert_category(schema: CategorySchema) -> RubricCategory:
    """Convert CategorySchema to RubricCategory model."""
    return RubricCategory(
        id=schema.id,
        name=schema.name,
        criteria=tuple(
            RubricCriterion(
                id=c.id,
                name=c.name,
                max_points=c.max_points,
                description=c.description,
            )
            for c in schema.criteria
        ),
    )


def _convert_rubric_pack(schema: RubricPackSchema) -> Rubric:
    """Convert RubricPackSchema to Rubric model."""
    return Rubric(
        id=schema.id,
        name=schema.name,
        version=schema.version,
        kind=RubricKind(schema.kind),
        categories=tuple(_convert_category(c) for c in schema.categories),
        track=Track(schema.track) if schema.track else None,
        phase=DDPhase(schema.phase) if schema.phase else None,
        pass_threshold=schema.pass_threshold,
        description=schema.description,
    )


# =============================================================================
# Rubric Pack Loader
# =============================================================================

class RubricPackLoader:
    """
    Loads rubric packs from YAML or JSON files.

    Usage:
        loader = RubricPackLoader()
        rubric = loader.load("packs/review/foundation.yaml")
    """

    def __init__(self, strict_version: bool = True):
        """
        Initialize the loader.

        Args:
            strict_version: If True, reject packs with incompatible schema versions
        """
        self.strict_version = strict_version
        self._rubrics: dict[str, Rubric] = {}

    def load(self, path: Union[str, Path]) -> Rubric:
        """
        Load a rubric pack from a file.

        Raises:
            RubricLoadError: If file cannot be read
            RubricValidationError: If validation fails
            RubricVersionMismatch: If schema version incompatible
        """
        path = Path(path)

        try:
            data = self._load_file(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise RubricLoadError(
                message=f"Failed to load rubric pack: {e}",
                details={"path": str(path), "error": str(e)},
            )

        rubric = self.load_data(data, source=str(path))
        self._rubrics[rubric.id] = rubric
        logger.info("Loaded rubric pack %s v%s from %s", rubric.id, rubric.version, path)
        return rubric

    def load_data(self, data: Any, source: str = "<memory>") -> Rubric:
        """Validate and convert an already-parsed pack."""
        if not isinstance(data, dict):
            raise RubricLoadError(
                message="Rubric pack must be a mapping",
                details={"path": source},
            )

        if self.strict_version and not check_schema_version(data):
            pack_version = data.get("schema_version", "unknown")
            raise RubricVersionMismatch(
                message=f"Schema version mismatch: pack has {pack_version}, expected {SCHEMA_VERSION}",
                details={
                    "pack_version": pack_version,
                    "expected_version": SCHEMA_VERSION,
                },
            )

        try:
            schema = validate_rubric_pack(data)
        except ValidationError as e:
            raise RubricValidationError(
                message=f"Rubric pack validation failed: {e.error_count()} errors",
                details={"errors": e.errors(include_url=False), "path": source},
            )

        rubric = _convert_rubric_pack(schema)

        try:
            validate_reference_integrity(rubric, source)
        except ValueError as e:
            raise RubricValidationError(
                message="Reference integrity validation failed",
                details={"errors": str(e), "path": source},
            )

        return rubric

    def load_directory(self, directory: Union[str, Path]) -> list[Rubric]:
        """Load every pack under a directory (recursively), in path order."""
        directory = Path(directory)
        if not directory.is_dir():
            raise RubricLoadError(
                message=f"Rubric pack directory not found: {directory}",
                details={"path": str(directory)},
            )
        paths = sorted(
            p for p in directory.rglob("*") if p.suffix.lower() in PACK_SUFFIXES
        )
        return [self.load(p) for p in paths]

    def _load_file(self, path: Path) -> Any:
        """Load data from YAML or JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in {".yaml", ".yml"}:
                return yaml.safe_load(f)
            elif path.suffix.lower() == ".json":
                return json.load(f)
            else:
                content = f.read()
                try:
                    return yaml.safe_load(content)
                except yaml.YAMLError:
                    return json.loads(content)

    def get_rubric(self, rubric_id: str) -> Optional[Rubric]:
        """Get a cached rubric by ID."""
        return self._rubrics.get(rubric_id)

    def list_rubrics(self) -> list[str]:
        """List IDs of all loaded rubrics."""
        return list(self._rubrics.keys())


# =============================================================================
# Rubric Registry
# =============================================================================

class RubricRegistry:
    """
    Resolves the rubric in force for a track or a DD phase.

    One rubric per scope; registering a second rubric for the same scope
    replaces the first. Criterion ids must be unique across all registered
    rubrics so a criterion can only ever be scored under its own rubric.
    """

    def __init__(self, rubrics: Optional[list[Rubric]] = None):
        self._review: dict[Track, Rubric] = {}
        self._due_diligence: dict[DDPhase, Rubric] = {}
        for rubric in rubrics or []:
            self.register(rubric)

    @classmethod
    def from_directory(cls, directory: Union[str, Path]) -> RubricRegistry:
        loader = RubricPackLoader()
        return cls(loader.load_directory(directory))

    def register(self, rubric: Rubric) -> None:
        """
        Add a rubric to the registry.

        Raises:
            RubricValidationError: If a criterion id is already used by another scope
        """
        previous = self._current_for_scope(rubric)
        owned = {c.id for c in rubric.iter_criteria()}
        for other in self.all():
            if other is previous:
                continue
            clash = owned & {c.id for c in other.iter_criteria()}
            if clash:
                raise RubricValidationError(
                    message=f"Rubric '{rubric.id}' reuses criterion ids of '{other.id}'",
                    details={"criteria": sorted(clash)},
                )

        if rubric.kind == RubricKind.REVIEW and rubric.track is not None:
            self._review[rubric.track] = rubric
        elif rubric.phase is not None:
            self._due_diligence[rubric.phase] = rubric

    def _current_for_scope(self, rubric: Rubric) -> Optional[Rubric]:
        if rubric.kind == RubricKind.REVIEW and rubric.track is not None:
            return self._review.get(rubric.track)
        if rubric.phase is not None:
            return self._due_diligence.get(rubric.phase)
        return None

    def for_track(self, track: Track) -> Rubric:
        rubric = self._review.get(track)
        if rubric is None:
            raise RubricNotFoundError(
                message=f"No review rubric registered for track '{track.value}'",
                details={"field": "track", "track": track.value},
            )
        return rubric

    def for_phase(self, phase: DDPhase) -> Rubric:
        rubric = self._due_diligence.get(phase)
        if rubric is None:
            raise RubricNotFoundError(
                message=f"No due-diligence rubric registered for phase '{phase.value}'",
                details={"field": "phase", "phase": phase.value},
            )
        return rubric

    def all(self) -> list[Rubric]:
        return list(self._review.values()) + list(self._due_diligence.values())


# =============================================================================
# Convenience Functions
# =============================================================================

def load_rubric_pack(path: Union[str, Path]) -> Rubric:
    """Load a single rubric pack with a temporary loader."""
    return RubricPackLoader().load(path)


def load_rubric_pack_from_string(content: str, format: str = "yaml") -> Rubric:
    """
    Load a rubric pack from a string.

    Args:
        content: YAML or JSON string
        format: "yaml" or "json"
    """
    if format.lower() == "json":
        data = json.loads(content)
    else:
        data = yaml.safe_load(content)
    return RubricPackLoader().load_data(data)
