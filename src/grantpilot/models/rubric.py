"""
GrantPilot Rubric Models

Injected scoring configuration: rubric → ordered categories → criteria
with a maximum number of points each.

Review rubrics are selected by the application's track; DD rubrics by
phase. Two rubrics are never merged.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator, Optional

from .enums import DDPhase, RubricKind, Track


@dataclass(frozen=True)
class RubricCriterion:
    """A single scorable line item."""
    id: str
    name: str
    max_points: Decimal
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "max_points": float(self.max_points),
        }
        if self.description:
            result["description"] = self.description
        return result


@dataclass(frozen=True)
class RubricCategory:
    """An ordered group of criteria (e.g. "Commercial Viability")."""
    id: str
    name: str
    criteria: tuple[RubricCriterion, ...] = ()

    @property
    def max_points(self) -> Decimal:
        return sum((c.max_points for c in self.criteria), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "max_points": float(self.max_points),
            "criteria": [c.to_dict() for c in self.criteria],
        }


@dataclass(frozen=True)
class Rubric:
    """
    A complete scoring rubric for one track (review) or phase (DD).

    Attributes:
        id: Pack identifier
        name: Display name
        version: Pack version
        kind: review or due_diligence
        track: Track for review rubrics
        phase: Phase for DD rubrics
        pass_threshold: Advisory pass mark declared by the pack
        categories: Ordered categories
    """
    id: str
    name: str
    version: str
    kind: RubricKind
    categories: tuple[RubricCategory, ...] = ()
    track: Optional[Track] = None
    phase: Optional[DDPhase] = None
    pass_threshold: Optional[Decimal] = None
    description: Optional[str] = None

    # criterion id -> (category, criterion), built once
    _index: dict[str, tuple[RubricCategory, RubricCriterion]] = field(
        default_factory=dict, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        index = {
            criterion.id: (category, criterion)
            for category in self.categories
            for criterion in category.criteria
        }
        object.__setattr__(self, "_index", index)

    @property
    def scope(self) -> str:
        """Track or phase value this rubric applies to."""
        if self.kind == RubricKind.REVIEW and self.track is not None:
            return self.track.value
        if self.phase is not None:
            return self.phase.value
        return ""

    @property
    def max_total(self) -> Decimal:
        return sum((c.max_points for c in self.categories), Decimal("0"))

    def iter_criteria(self) -> Iterator[RubricCriterion]:
        for category in self.categories:
            yield from category.criteria

    def get_criterion(self, criterion_id: str) -> Optional[RubricCriterion]:
        entry = self._index.get(criterion_id)
        return entry[1] if entry else None

    def category_of(self, criterion_id: str) -> Optional[RubricCategory]:
        entry = self._index.get(criterion_id)
        return entry[0] if entry else None

    def has_criterion(self, criterion_id: str) -> bool:
        return criterion_id in self._index

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "kind": self.kind.value,
            "scope": self.scope,
            "max_total": float(self.max_total),
            "categories": [c.to_dict() for c in self.categories],
        }
        if self.pass_threshold is not None:
            result["pass_threshold"] = float(self.pass_threshold)
        return result
