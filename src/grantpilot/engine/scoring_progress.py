"""
GrantPilot Scoring Progress

Draft per-criterion scores a reviewer saves while working through the
rubric. Drafts are keyed by (application, criterion, scorer), so one
reviewer never sees another's work in progress. The review workflow
itself only consumes the submitted aggregate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from ..exceptions import ValidationError
from ..models import (
    Actor,
    ApplicationRecord,
    AuditEventType,
    CriterionScore,
    utcnow,
)
from ..packs import RubricRegistry
from ..store import ApplicationStore
from .authorization import Operation, require_eligible
from .lock_manager import ensure_unlocked
from .score_aggregator import AggregateResult, aggregate, check_criterion_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreEntry:
    """One draft score as submitted by the caller."""
    criterion_id: str
    score: Any
    reviewer_comment: Optional[str] = None


@dataclass
class ScoringProgressView:
    """The requesting reviewer's own drafts and their running totals."""
    application_id: int
    scorer_id: str
    entries: list[CriterionScore] = field(default_factory=list)
    totals: Optional[AggregateResult] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "scorer_id": self.scorer_id,
            "entries": [e.to_dict() for e in self.entries],
            "totals": self.totals.to_dict() if self.totals else None,
        }


@dataclass
class ScoringProgress:
    """Saves and reads draft criterion scores."""
    store: ApplicationStore
    rubrics: RubricRegistry
    clock: Callable[[], datetime] = field(default=utcnow)

    def save(
        self,
        application_id: int,
        actor: Actor,
        entries: Iterable[ScoreEntry],
    ) -> ScoringProgressView:
        """
        Upsert draft scores for the actor.

        Every entry is validated against the application's track rubric
        before anything is written.

        Raises:
            ValidationError: No entries given
            ScoreOutOfBoundsError: Unknown criterion or score out of range
            ApplicationLockedError: Application is frozen
        """
        require_eligible(actor, Operation.SAVE_SCORING_PROGRESS, application_id)
        entries = list(entries)
        if not entries:
            raise ValidationError(
                message="At least one score entry is required",
                details={"field": "entries"},
                application_id=application_id,
            )

        with self.store.transaction(application_id) as record:
            ensure_unlocked(record)
            rubric = self.rubrics.for_track(record.application.track)
            now = self.clock()
            for entry in entries:
                value = check_criterion_score(rubric, entry.criterion_id, entry.score)
                draft = CriterionScore(
                    application_id=application_id,
                    criterion_id=entry.criterion_id,
                    scorer_id=actor.actor_id,
                    score=value,
                    reviewer_comment=entry.reviewer_comment,
                    updated_at=now,
                )
                record.criterion_scores[draft.key] = draft
            record.log_event(
                AuditEventType.SCORING_PROGRESS_SAVED,
                f"{len(entries)} draft score(s) saved",
                actor=actor,
                after={"criteria": [e.criterion_id for e in entries]},
                at=now,
            )
            view = self._view(record, actor)

        logger.info(
            "Scoring progress saved",
            extra={"application_id": application_id, "actor_id": actor.actor_id,
                   "transition": "save_scoring_progress"},
        )
        return view

    def get(self, application_id: int, actor: Actor) -> ScoringProgressView:
        require_eligible(actor, Operation.GET_SCORING_PROGRESS, application_id)
        return self._view(self.store.get(application_id), actor)

    def _view(self, record: ApplicationRecord, actor: Actor) -> ScoringProgressView:
        own = sorted(
            (s for s in record.criterion_scores.values() if s.scorer_id == actor.actor_id),
            key=lambda s: s.criterion_id,
        )
        totals = None
        if own:
            rubric = self.rubrics.for_track(record.application.track)
            totals = aggregate(rubric, {s.criterion_id: s.score for s in own})
        return ScoringProgressView(
            application_id=record.application_id,
            scorer_id=actor.actor_id,
            entries=[replace(s) for s in own],
            totals=totals,
        )
