"""
Tests for draft criterion scores.
"""
from decimal import Decimal

import pytest

from grantpilot.engine import ScoreEntry
from grantpilot.exceptions import (
    ApplicationLockedError,
    NotEligibleError,
    ScoreOutOfBoundsError,
    ValidationError,
)
from grantpilot.models import AuditEventType

from tests.conftest import ADMIN, APPLICANT, REVIEWER_A, REVIEWER_B, review_both


class TestSaveProgress:

    def test_save_and_read_back(self, progress) -> None:
        view = progress.save(1, REVIEWER_A, [
            ScoreEntry("fnd-proof-of-sales", 8, "Receipts seen"),
            ScoreEntry("fnd-digitization", "3.5"),
        ])

        assert [e.criterion_id for e in view.entries] == ["fnd-digitization", "fnd-proof-of-sales"]
        assert view.totals.total == Decimal("11.5")
        assert view.totals.category_totals["fnd-commercial-viability"] == Decimal("11.5")

        again = progress.get(1, REVIEWER_A)
        assert again.to_dict() == view.to_dict()

    def test_upsert(self, progress) -> None:
        progress.save(1, REVIEWER_A, [ScoreEntry("fnd-proof-of-sales", 8)])
        view = progress.save(1, REVIEWER_A, [ScoreEntry("fnd-proof-of-sales", 6)])

        assert len(view.entries) == 1
        assert view.entries[0].score == Decimal("6")

    def test_drafts_are_private(self, progress) -> None:
        progress.save(1, REVIEWER_A, [ScoreEntry("fnd-proof-of-sales", 8)])
        progress.save(1, REVIEWER_B, [ScoreEntry("fnd-proof-of-sales", 2)])

        own = progress.get(1, REVIEWER_B)
        assert [e.score for e in own.entries] == [Decimal("2")]

        view = progress.get(1, ADMIN)
        assert view.entries == []
        assert view.totals is None

    def test_invalid_entry_saves_nothing(self, progress, store) -> None:
        with pytest.raises(ScoreOutOfBoundsError):
            progress.save(1, REVIEWER_A, [
                ScoreEntry("fnd-proof-of-sales", 8),
                ScoreEntry("fnd-digitization", 9),
            ])
        assert store.get(1).criterion_scores == {}

    def test_empty_entries(self, progress) -> None:
        with pytest.raises(ValidationError):
            progress.save(1, REVIEWER_A, [])

    def test_applicant_not_eligible(self, progress) -> None:
        with pytest.raises(NotEligibleError):
            progress.save(1, APPLICANT, [ScoreEntry("fnd-proof-of-sales", 8)])

    def test_locked(self, progress, reviews, locks) -> None:
        review_both(reviews, 1, 80, 60)
        locks.lock_application(1, ADMIN)
        with pytest.raises(ApplicationLockedError):
            progress.save(1, REVIEWER_A, [ScoreEntry("fnd-proof-of-sales", 8)])

    def test_audited(self, progress, store) -> None:
        progress.save(1, REVIEWER_A, [ScoreEntry("fnd-proof-of-sales", 8)])
        entry = store.get(1).audit_log[-1]
        assert entry.event_type == AuditEventType.SCORING_PROGRESS_SAVED
        assert entry.after_value == {"criteria": ["fnd-proof-of-sales"]}
