"""
Tests for the EvaluationService facade: result envelopes, error codes
and end-to-end flows through the composed workflows.
"""
import logging
from datetime import timedelta

import pytest

from grantpilot.config import Settings
from grantpilot.engine import EvaluationService, ScoreEntry
from grantpilot.models import ApplicationStatus, Track
from grantpilot.store import InMemoryStore

from tests.conftest import (
    ADMIN,
    APPLICANT,
    DD_OTHER,
    DD_PRIMARY,
    DD_VALIDATOR,
    JUSTIFICATION,
    NOTES,
    OVERRIDE_REASON,
    OVERSIGHT,
    PACKS_DIR,
    PRIMARY_NOTES,
    REVIEWER_A,
    REVIEWER_B,
    START,
    VALIDATOR_COMMENTS,
    VALIDATOR_POOL,
    make_scores,
)


@pytest.fixture
def registered(service):
    assert service.register_application(1, Track.FOUNDATION, ADMIN).success
    return service


def review(service, registry, r1, r2, application_id=1):
    rubric = registry.for_track(Track.FOUNDATION)
    service.submit_review(application_id, REVIEWER_A, make_scores(rubric, r1), NOTES)
    return service.submit_review(application_id, REVIEWER_B, make_scores(rubric, r2), NOTES)


class TestRegister:

    def test_register(self, service) -> None:
        result = service.register_application(
            1, "acceleration", APPLICANT, business_name="Mama Mboga Supplies"
        )

        assert result.success
        assert result.data["track"] == "acceleration"
        assert result.data["status"] == "submitted"
        assert result.data["applicant_id"] == "applicant-1"
        assert result.data["business_name"] == "Mama Mboga Supplies"

    def test_register_draft(self, service) -> None:
        result = service.register_application(1, Track.FOUNDATION, ADMIN, status="draft")
        assert result.data["status"] == "draft"
        assert result.data["submitted_at"] is None

    def test_register_decided_status_rejected(self, service) -> None:
        result = service.register_application(
            1, Track.FOUNDATION, ADMIN, status=ApplicationStatus.APPROVED
        )
        assert result.error_code == "GP_VALIDATION_ERROR"
        assert result.error["details"]["field"] == "status"

    def test_unknown_track(self, service) -> None:
        result = service.register_application(1, "growth", ADMIN)
        assert result.error_code == "GP_VALIDATION_ERROR"
        assert result.error["details"]["field"] == "track"

    def test_duplicate(self, registered) -> None:
        result = registered.register_application(1, Track.FOUNDATION, ADMIN)
        assert result.error_code == "GP_VALIDATION_ERROR"

    def test_reviewer_cannot_register(self, service) -> None:
        assert service.register_application(1, Track.FOUNDATION, REVIEWER_A).error_code == (
            "GP_NOT_ELIGIBLE"
        )


class TestEnvelope:

    def test_success_envelope(self, registered, registry) -> None:
        result = review(registered, registry, 80, 60)

        assert result.to_dict() == {"success": True, "data": result.data}
        assert result.data["slot"] == 2
        assert result.data["final_score"] == 70.0
        assert result.data["decision"] == "approved"
        assert result.data["overrode_reviewer1"] is False

    def test_failure_envelope(self, registered, registry) -> None:
        rubric = registry.for_track(Track.FOUNDATION)
        result = registered.submit_review(1, REVIEWER_A, make_scores(rubric, 80), "")

        assert result.success is False
        assert result.data is None
        assert result.error == {
            "code": "GP_INVALID_SCORE",
            "message": "General notes are required",
            "details": {"field": "general_notes"},
            "application_id": 1,
        }

    @pytest.mark.parametrize("call, code", [
        (lambda s: s.get_review_status(99, REVIEWER_A), "GP_NOT_FOUND"),
        (lambda s: s.get_review_status(1, APPLICANT), "GP_NOT_ELIGIBLE"),
        (lambda s: s.lock_application(1, ADMIN), "GP_INVALID_STATE"),
        (lambda s: s.unlock_application(1, ADMIN), "GP_NOT_LOCKED"),
        (lambda s: s.release_dd_application(1, DD_PRIMARY), "GP_NOT_FOUND"),
        (lambda s: s.calculate_score_disparity(1, OVERSIGHT), "GP_INVALID_STATE"),
        (lambda s: s.get_detailed_scores(1, REVIEWER_A, 3), "GP_VALIDATION_ERROR"),
        (lambda s: s.save_dd_item(1, DD_PRIMARY, "phase3", "dd1-bank-statements", 3),
         "GP_VALIDATION_ERROR"),
        (lambda s: s.run_deadline_sweep(REVIEWER_A), "GP_NOT_ELIGIBLE"),
    ])
    def test_error_codes(self, registered, call, code) -> None:
        assert call(registered).error_code == code

    def test_rejections_logged_with_code(self, registered, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="grantpilot"):
            registered.unlock_application(1, ADMIN)

        rejected = [r for r in caplog.records if getattr(r, "error_code", None)]
        assert rejected[-1].error_code == "GP_NOT_LOCKED"
        assert rejected[-1].application_id == 1
        assert rejected[-1].actor_id == "admin-1"


class TestReviewFlow:

    def test_blind_status_then_reveal(self, registered, registry) -> None:
        rubric = registry.for_track(Track.FOUNDATION)
        registered.submit_review(1, REVIEWER_A, make_scores(rubric, 80), NOTES)

        hidden = registered.get_review_status(1, REVIEWER_B).data
        assert hidden["reviewer1"]["redacted"] is True
        assert hidden["reviewer1"]["score"] is None

        registered.submit_review(1, REVIEWER_B, make_scores(rubric, 50), NOTES)
        shown = registered.get_review_status(1, REVIEWER_B).data
        assert shown["reviewer1"]["score"] == 80.0
        assert shown["final_score"] == 65.0
        assert shown["has_disparity_warning"] is True

    def test_slot_given_as_int(self, registered, registry) -> None:
        review(registered, registry, 80, 60)
        assert registered.get_detailed_scores(1, OVERSIGHT, 2).data["visible"] is True

    def test_expected_slot_precondition(self, registered, registry) -> None:
        rubric = registry.for_track(Track.FOUNDATION)
        result = registered.submit_review(
            1, REVIEWER_B, make_scores(rubric, 60), NOTES, expected_slot=2
        )
        assert result.error_code == "GP_SLOT_PRECONDITION"

    def test_unknown_expected_slot(self, registered, registry) -> None:
        rubric = registry.for_track(Track.FOUNDATION)
        result = registered.submit_review(
            1, REVIEWER_A, make_scores(rubric, 60), NOTES, expected_slot=3
        )
        assert result.error_code == "GP_VALIDATION_ERROR"
        assert result.error["details"]["field"] == "slot"

    def test_scoring_progress(self, registered) -> None:
        result = registered.save_scoring_progress(
            1, REVIEWER_A, [ScoreEntry("fnd-proof-of-sales", 7)]
        )
        assert result.data["totals"]["total"] == 7.0
        assert registered.get_scoring_progress(1, REVIEWER_B).data["entries"] == []

    def test_lock_blocks_revision(self, registered, registry) -> None:
        review(registered, registry, 80, 60)
        assert registered.lock_application(1, ADMIN, "Decision communicated").success

        rubric = registry.for_track(Track.FOUNDATION)
        result = registered.revise_review(1, REVIEWER_B, make_scores(rubric, 40), NOTES)
        assert result.error_code == "GP_APPLICATION_LOCKED"

        unlocked = registered.unlock_application(1, ADMIN, "Appeal upheld")
        assert unlocked.data["lock_reason"] == "Unlocked by admin: Appeal upheld"
        assert registered.revise_review(1, REVIEWER_B, make_scores(rubric, 40), NOTES).success


class TestDueDiligenceFlow:

    def test_full_cycle(self, registered, registry, clock) -> None:
        review(registered, registry, 80, 70)

        queue = registered.get_dd_queue(DD_PRIMARY).data
        assert [entry["application_id"] for entry in queue] == [1]

        assert registered.claim_dd_application(1, DD_PRIMARY).success
        assert registered.claim_dd_application(1, DD_OTHER).error_code == "GP_ALREADY_CLAIMED"

        item = registered.save_dd_item(1, DD_PRIMARY, "phase1", "dd1-bank-statements", 4)
        assert item.data["phase1_score"] == 4.0

        assert registered.submit_primary_dd_review(1, DD_PRIMARY, 72, PRIMARY_NOTES).success
        validators = registered.list_available_validators(1, DD_PRIMARY, VALIDATOR_POOL).data
        assert validators == ["dd-b", "dd-c"]

        self_pick = registered.select_validator_reviewer(1, DD_PRIMARY, "dd-a", VALIDATOR_POOL)
        assert self_pick.error_code == "GP_SELF_VALIDATION_FORBIDDEN"

        selected = registered.select_validator_reviewer(1, DD_PRIMARY, "dd-b", VALIDATOR_POOL)
        assert selected.data["approval_deadline"] == (START + timedelta(hours=12)).isoformat()

        clock.advance(hours=13)
        sweep = registered.run_deadline_sweep()
        assert sweep.data == {"reassigned": [1], "count": 1}
        assert registered.run_deadline_sweep(ADMIN).data == {"reassigned": [], "count": 0}

        late = registered.submit_validator_action(1, DD_VALIDATOR, "approved", VALIDATOR_COMMENTS)
        assert late.error_code == "GP_NOT_OWNER"

        registered.select_validator_reviewer(1, DD_PRIMARY, "dd-c", VALIDATOR_POOL)
        approved = registered.submit_validator_action(1, DD_OTHER, "approved", VALIDATOR_COMMENTS)
        assert approved.data["dd_status"] == "approved"
        assert approved.data["final_verdict"] == "approved"

        overridden = registered.admin_override_dd_score(1, ADMIN, 58, OVERRIDE_REASON)
        assert overridden.data["original_score"] == 72.0
        assert overridden.data["effective_score"] == 58.0
        assert overridden.data["dd_status"] == "approved"

        final = registered.record_dd_final_decision(1, ADMIN, "fail", OVERRIDE_REASON)
        assert final.data["final_verdict"] == "fail"
        assert registered.get_dd_record(1, DD_PRIMARY).data["dd_status"] == "approved"

    def test_oversight_recommendation(self, registered, registry) -> None:
        review(registered, registry, 30, 45)
        assessment = registered.assess_escalation(1, OVERSIGHT).data
        assert assessment["recommend_due_diligence"] is True

        result = registered.recommend_for_due_diligence(1, OVERSIGHT, JUSTIFICATION)
        assert result.data["priority"] == "elevated"
        assert registered.check_dd_qualification(1, OVERSIGHT).data["qualifies"] is False
        assert registered.get_dd_queue(DD_PRIMARY).data[0]["is_oversight_initiated"] is True


class TestAuditTrail:

    def test_trail_records_every_transition(self, registered, registry) -> None:
        review(registered, registry, 80, 60)
        registered.lock_application(1, ADMIN)

        trail = registered.get_audit_trail(1, OVERSIGHT).data
        assert [e["event_type"] for e in trail] == [
            "application_registered",
            "review_submitted",
            "review_submitted",
            "review_finalized",
            "application_locked",
        ]
        assert trail[0]["actor_id"] == "admin-1"
        assert all(len(e["content_hash"]) == 64 for e in trail)

    def test_entries_verify(self, registered, registry) -> None:
        review(registered, registry, 80, 60)
        entries = registered.store.get(1).audit_log
        assert all(entry.verify() for entry in entries)

        entries[1].description = "tampered"
        assert entries[1].verify() is False

    def test_pending_review_hidden_from_trail(self, registered, registry) -> None:
        rubric = registry.for_track(Track.FOUNDATION)
        registered.submit_review(1, REVIEWER_A, make_scores(rubric, 40), NOTES)
        registered.revise_review(1, REVIEWER_A, make_scores(rubric, 45), NOTES)

        trail = registered.get_audit_trail(1, ADMIN).data
        hidden = [e for e in trail if e["event_type"] in {"review_submitted", "review_revised"}]
        assert len(hidden) == 2
        for entry in hidden:
            assert entry["redacted"] is True
            assert entry["actor_id"] is None
            assert entry["before_value"] is None
            assert entry["after_value"] is None
            assert len(entry["content_hash"]) == 64
        assert trail[0]["redacted"] is False
        assert registered.get_review_status(1, ADMIN).data["can_submit_review"] is True

    def test_author_sees_own_pending_entries(self, registered, registry) -> None:
        rubric = registry.for_track(Track.FOUNDATION)
        registered.submit_review(1, ADMIN, make_scores(rubric, 40), NOTES)
        registered.revise_review(1, ADMIN, make_scores(rubric, 45), NOTES)

        revised = registered.get_audit_trail(1, ADMIN).data[-1]
        assert revised["redacted"] is False
        assert revised["actor_id"] == "admin-1"
        assert revised["after_value"]["score"] == 45

        other = registered.get_audit_trail(1, OVERSIGHT).data[-1]
        assert other["redacted"] is True

    def test_trail_unredacted_once_reviews_complete(self, registered, registry) -> None:
        review(registered, registry, 40, 45)
        trail = registered.get_audit_trail(1, OVERSIGHT).data
        assert not any(entry["redacted"] for entry in trail)
        assert trail[1]["actor_id"] == "rev-a"

    def test_reviewers_cannot_read_trail(self, registered) -> None:
        assert registered.get_audit_trail(1, REVIEWER_A).error_code == "GP_NOT_ELIGIBLE"


class TestConstruction:

    def test_from_settings_loads_packs(self) -> None:
        service = EvaluationService.from_settings(Settings(packs_dir=PACKS_DIR))
        ids = sorted(rubric["id"] for rubric in service.list_rubrics().data)
        assert ids == ["acceleration-review", "dd-phase1", "dd-phase2", "foundation-review"]

    def test_from_settings_keeps_empty_store(self) -> None:
        store = InMemoryStore()
        service = EvaluationService.from_settings(Settings(packs_dir=PACKS_DIR), store=store)
        assert service.store is store

        service.register_application(7, Track.FOUNDATION, ADMIN)
        assert len(store) == 1

    def test_shared_store(self, registry) -> None:
        store = InMemoryStore()
        first = EvaluationService(registry, store=store)
        second = EvaluationService(registry, store=store)
        first.register_application(5, Track.FOUNDATION, ADMIN)
        assert second.get_review_status(5, REVIEWER_A).success
