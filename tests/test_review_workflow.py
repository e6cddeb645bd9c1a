"""
Tests for the blind double-review workflow.

Tests cover:
- Slot filling driven by occupancy, not role
- Decision boundary (70.0 approved, 69.5 rejected) and overrode_reviewer1
- Blind-review redaction on every read path
- Duplicate, precondition, status and lock rejections
- Revision of a reviewer's own slot
- Concurrent submissions never both fill slot 1
"""
import threading
from decimal import Decimal

import pytest

from grantpilot.engine import can_view_slot, outcome_matches
from grantpilot.exceptions import (
    ApplicationLockedError,
    DuplicateReviewerError,
    GrantPilotError,
    InvalidScoreError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
    NotOwnerError,
    ScoreOutOfBoundsError,
    SlotPreconditionError,
    SlotTakenError,
)
from grantpilot.models import (
    Actor,
    ApplicationStatus,
    AuditEventType,
    ReviewDecision,
    ReviewSlot,
    Role,
    SlotState,
    Track,
)

from tests.conftest import (
    ADMIN,
    NOTES,
    OVERSIGHT,
    REVIEWER_A,
    REVIEWER_B,
    REVIEWER_C,
    make_application,
    make_scores,
    review_both,
)


# =============================================================================
# Submission
# =============================================================================

class TestSubmitReview:
    """Filling slots 1 and 2."""

    def test_first_review_fills_slot_1(self, reviews, store, foundation_rubric) -> None:
        submission = reviews.submit_review(
            1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES
        )

        assert submission.slot == ReviewSlot.SLOT_1
        assert submission.score == Decimal("80")
        assert submission.status == ApplicationStatus.PENDING_SENIOR_REVIEW
        assert submission.outcome is None

        record = store.get(1)
        assert record.slot_state == SlotState.SLOT_1_FILLED
        assert record.slot1.reviewer_id == "rev-a"
        assert record.slot1.rubric_hash
        assert record.outcome is None

    def test_role_does_not_pick_the_slot(self, reviews, store, foundation_rubric) -> None:
        """A reviewer_2 arriving first still fills slot 1."""
        submission = reviews.submit_review(
            1, REVIEWER_B, make_scores(foundation_rubric, 75), NOTES
        )
        assert submission.slot == ReviewSlot.SLOT_1
        assert store.get(1).slot1.reviewer_id == "rev-b"

    def test_exactly_70_is_approved(self, reviews, store) -> None:
        submission = review_both(reviews, 1, 80, 60)

        assert submission.slot == ReviewSlot.SLOT_2
        assert submission.outcome.final_score == Decimal("70.0")
        assert submission.outcome.decision == ReviewDecision.APPROVED
        assert submission.status == ApplicationStatus.APPROVED
        assert submission.overrode_reviewer1 is False
        assert store.get(1).application.status == ApplicationStatus.APPROVED

    def test_69_5_is_rejected(self, reviews, store) -> None:
        submission = review_both(reviews, 1, 80, 59)

        assert submission.outcome.final_score == Decimal("69.5")
        assert submission.outcome.decision == ReviewDecision.REJECTED
        assert submission.status == ApplicationStatus.REJECTED
        assert submission.overrode_reviewer1 is True

    def test_average_rounds_half_up(self, reviews) -> None:
        submission = review_both(reviews, 1, "70.5", "69.6")
        assert submission.outcome.final_score == Decimal("70.1")

    def test_final_outcome_matches_recomputation(self, reviews, store, settings) -> None:
        review_both(reviews, 1, 55, 90)
        assert outcome_matches(store.get(1), settings.pass_threshold)

    def test_reviewer_2_can_flip_to_approved(self, reviews) -> None:
        submission = review_both(reviews, 1, 60, 85)
        assert submission.outcome.decision == ReviewDecision.APPROVED
        assert submission.overrode_reviewer1 is True

    def test_acceleration_track_uses_its_rubric(self, reviews, store, registry) -> None:
        store.add_application(make_application(2, track=Track.ACCELERATION))
        submission = review_both(reviews, 2, 90, 70, track=Track.ACCELERATION)
        assert submission.outcome.final_score == Decimal("80.0")

    def test_foundation_criteria_rejected_on_acceleration(
        self, reviews, store, foundation_rubric
    ) -> None:
        store.add_application(make_application(2, track=Track.ACCELERATION))
        with pytest.raises(ScoreOutOfBoundsError):
            reviews.submit_review(2, REVIEWER_A, make_scores(foundation_rubric, 50), NOTES)
        assert store.get(2).slot1 is None

    def test_audit_entries_written(self, reviews, store) -> None:
        review_both(reviews, 1, 80, 60)
        events = [e.event_type for e in store.get(1).audit_log]
        assert events == [
            AuditEventType.REVIEW_SUBMITTED,
            AuditEventType.REVIEW_SUBMITTED,
            AuditEventType.REVIEW_FINALIZED,
        ]
        assert all(e.verify() for e in store.get(1).audit_log)


class TestSubmitReviewRejections:
    """Every rejection leaves the record unchanged."""

    def test_same_reviewer_cannot_fill_slot_2(self, reviews, store, foundation_rubric) -> None:
        scores = make_scores(foundation_rubric, 80)
        reviews.submit_review(1, REVIEWER_A, scores, NOTES)

        with pytest.raises(DuplicateReviewerError):
            reviews.submit_review(1, REVIEWER_A, scores, NOTES)
        assert store.get(1).slot2 is None

    def test_third_review_rejected(self, reviews, foundation_rubric) -> None:
        review_both(reviews, 1, 80, 60)
        with pytest.raises(InvalidStateError):
            reviews.submit_review(1, REVIEWER_C, make_scores(foundation_rubric, 50), NOTES)

    def test_slot_2_before_slot_1(self, reviews, store, foundation_rubric) -> None:
        with pytest.raises(SlotPreconditionError):
            reviews.submit_review(
                1, REVIEWER_B, make_scores(foundation_rubric, 60), NOTES,
                expected_slot=ReviewSlot.SLOT_2,
            )
        assert store.get(1).slot_state == SlotState.EMPTY

    def test_expected_slot_1_already_taken(self, reviews, foundation_rubric) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 60), NOTES)
        with pytest.raises(SlotTakenError):
            reviews.submit_review(
                1, REVIEWER_B, make_scores(foundation_rubric, 60), NOTES,
                expected_slot=ReviewSlot.SLOT_1,
            )

    @pytest.mark.parametrize("notes", [None, "", "   "])
    def test_notes_required(self, reviews, store, foundation_rubric, notes) -> None:
        with pytest.raises(InvalidScoreError) as exc_info:
            reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 60), notes)
        assert exc_info.value.field == "general_notes"
        assert store.get(1).slot1 is None

    def test_scores_required(self, reviews) -> None:
        with pytest.raises(InvalidScoreError) as exc_info:
            reviews.submit_review(1, REVIEWER_A, {}, NOTES)
        assert exc_info.value.field == "detailed_scores"

    def test_criterion_above_max(self, reviews) -> None:
        with pytest.raises(ScoreOutOfBoundsError):
            reviews.submit_review(1, REVIEWER_A, {"fnd-digitization": 6}, NOTES)

    def test_role_not_eligible(self, reviews, foundation_rubric) -> None:
        with pytest.raises(NotEligibleError):
            reviews.submit_review(1, OVERSIGHT, make_scores(foundation_rubric, 60), NOTES)

    def test_draft_application_not_reviewable(self, reviews, store, foundation_rubric) -> None:
        store.add_application(make_application(2, status=ApplicationStatus.DRAFT))
        with pytest.raises(InvalidStateError):
            reviews.submit_review(2, REVIEWER_A, make_scores(foundation_rubric, 60), NOTES)

    def test_unknown_application(self, reviews, foundation_rubric) -> None:
        with pytest.raises(NotFoundError):
            reviews.submit_review(99, REVIEWER_A, make_scores(foundation_rubric, 60), NOTES)

    def test_locked_application(self, reviews, locks, foundation_rubric) -> None:
        review_both(reviews, 1, 80, 60)
        locks.lock_application(1, ADMIN, "Decision communicated")
        with pytest.raises(ApplicationLockedError):
            reviews.submit_review(1, REVIEWER_C, make_scores(foundation_rubric, 50), NOTES)


class TestConcurrentSubmission:
    """The slot update is conditional on the slot still being empty."""

    def test_two_reviewers_racing(self, reviews, store, foundation_rubric) -> None:
        scores = make_scores(foundation_rubric, 75)
        actors = [REVIEWER_A, REVIEWER_B]
        barrier = threading.Barrier(len(actors))
        outcomes: dict[str, object] = {}

        def submit(actor: Actor) -> None:
            barrier.wait()
            try:
                outcomes[actor.actor_id] = reviews.submit_review(1, actor, scores, NOTES).slot
            except GrantPilotError as e:
                outcomes[actor.actor_id] = e

        threads = [threading.Thread(target=submit, args=(a,)) for a in actors]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        filled = [v for v in outcomes.values() if isinstance(v, ReviewSlot)]
        failed = [v for v in outcomes.values() if not isinstance(v, ReviewSlot)]

        assert filled.count(ReviewSlot.SLOT_1) == 1
        assert all(isinstance(e, SlotTakenError) for e in failed)
        record = store.get(1)
        assert record.slot1.reviewer_id in {"rev-a", "rev-b"}
        if len(filled) == 2:
            assert record.slot2.reviewer_id != record.slot1.reviewer_id


# =============================================================================
# Blind Review
# =============================================================================

class TestBlindReview:
    """Slot detail is visible only to its author until both slots are filled."""

    def test_other_reviewer_sees_only_that_slot_1_is_filled(
        self, reviews, foundation_rubric
    ) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES)

        view = reviews.get_review_status(1, REVIEWER_B)
        assert view.reviewer1.filled is True
        assert view.reviewer1.redacted is True
        assert view.reviewer1.reviewer_id is None
        assert view.reviewer1.score is None
        assert view.reviewer1.notes is None
        assert view.can_submit_review is True
        assert view.final_score is None

    def test_author_sees_own_slot(self, reviews, foundation_rubric) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES)

        view = reviews.get_review_status(1, REVIEWER_A)
        assert view.reviewer1.redacted is False
        assert view.reviewer1.score == Decimal("80")
        assert view.viewer_slot == ReviewSlot.SLOT_1
        assert view.can_submit_review is False

    def test_oversight_is_also_blind(self, reviews, foundation_rubric) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES)
        assert reviews.get_review_status(1, OVERSIGHT).reviewer1.redacted is True

    def test_detailed_scores_hidden(self, reviews, foundation_rubric) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES)

        hidden = reviews.get_detailed_scores(1, REVIEWER_B, ReviewSlot.SLOT_1)
        assert hidden.visible is False
        assert hidden.scores == {}

        own = reviews.get_detailed_scores(1, REVIEWER_A, ReviewSlot.SLOT_1)
        assert own.visible is True
        assert sum(own.scores.values()) == Decimal("80")

    def test_everything_visible_once_complete(self, reviews, store) -> None:
        review_both(reviews, 1, 80, 50)

        view = reviews.get_review_status(1, OVERSIGHT)
        assert view.both_complete is True
        assert view.reviewer1.score == Decimal("80")
        assert view.reviewer2.score == Decimal("50")
        assert view.reviewer2.overrode_reviewer1 is True
        assert view.final_score == Decimal("65.0")
        assert view.decision == ReviewDecision.REJECTED
        assert view.disparity == Decimal("30.0")
        assert view.has_disparity_warning is True
        assert can_view_slot(store.get(1), ReviewSlot.SLOT_2, "anyone")

    def test_status_view_serializes(self, reviews, foundation_rubric) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES)
        data = reviews.get_review_status(1, REVIEWER_B).to_dict()
        assert data["slot_state"] == "slot_1_filled"
        assert data["reviewer1"] == {
            "slot": 1,
            "filled": True,
            "redacted": True,
            "reviewer_id": None,
            "score": None,
            "notes": None,
            "reviewed_at": None,
            "overrode_reviewer1": None,
        }


# =============================================================================
# Revision
# =============================================================================

class TestReviseReview:
    """Authors may re-submit their own slot until locked."""

    def test_revise_slot_1_while_slot_2_empty(self, reviews, store, foundation_rubric) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES)
        submission = reviews.revise_review(
            1, REVIEWER_A, make_scores(foundation_rubric, 65), "Revised after re-reading"
        )

        assert submission.slot == ReviewSlot.SLOT_1
        assert store.get(1).slot1.score == Decimal("65")
        assert store.get(1).application.status == ApplicationStatus.PENDING_SENIOR_REVIEW

    def test_slot_1_frozen_after_slot_2(self, reviews, foundation_rubric) -> None:
        review_both(reviews, 1, 80, 60)
        with pytest.raises(InvalidStateError):
            reviews.revise_review(1, REVIEWER_A, make_scores(foundation_rubric, 50), NOTES)

    def test_revise_slot_2_recomputes_outcome(
        self, reviews, store, settings, foundation_rubric
    ) -> None:
        review_both(reviews, 1, 80, 60)
        submission = reviews.revise_review(
            1, REVIEWER_B, make_scores(foundation_rubric, 50), NOTES
        )

        assert submission.outcome.final_score == Decimal("65.0")
        assert submission.overrode_reviewer1 is True
        record = store.get(1)
        assert record.application.status == ApplicationStatus.REJECTED
        assert record.slot2.overrode_reviewer1 is True
        assert outcome_matches(record, settings.pass_threshold)
        assert record.audit_log[-1].event_type == AuditEventType.REVIEW_REVISED

    def test_non_author_cannot_revise(self, reviews, foundation_rubric) -> None:
        reviews.submit_review(1, REVIEWER_A, make_scores(foundation_rubric, 80), NOTES)
        with pytest.raises(NotOwnerError):
            reviews.revise_review(1, REVIEWER_C, make_scores(foundation_rubric, 50), NOTES)

    def test_locked_revision_rejected(self, reviews, locks, store, foundation_rubric) -> None:
        review_both(reviews, 1, 80, 60)
        locks.lock_application(1, ADMIN)
        with pytest.raises(ApplicationLockedError):
            reviews.revise_review(1, REVIEWER_B, make_scores(foundation_rubric, 10), NOTES)
        assert store.get(1).slot2.score == Decimal("60")

    def test_admin_may_review(self, reviews, foundation_rubric) -> None:
        admin_reviewer = Actor("admin-2", Role.ADMIN)
        submission = reviews.submit_review(
            1, admin_reviewer, make_scores(foundation_rubric, 70), NOTES
        )
        assert submission.slot == ReviewSlot.SLOT_1
