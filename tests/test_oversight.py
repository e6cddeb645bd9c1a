"""
Tests for the advisory oversight signals.
"""
from decimal import Decimal

import pytest

from grantpilot.engine import qualifies_for_dd, score_disparity
from grantpilot.exceptions import InvalidStateError, NotEligibleError
from grantpilot.models import DDStatus

from tests.conftest import (
    JUSTIFICATION,
    OVERSIGHT,
    REVIEWER_B,
    review_both,
)


class TestPureSignals:

    def test_disparity_is_absolute(self) -> None:
        assert score_disparity(Decimal("60"), Decimal("80")) == Decimal("20.0")
        assert score_disparity(Decimal("80"), Decimal("60")) == Decimal("20.0")

    def test_qualification_is_inclusive(self) -> None:
        assert qualifies_for_dd(Decimal("60"), Decimal("60"))
        assert not qualifies_for_dd(Decimal("59.9"), Decimal("60"))


class TestDisparity:

    def test_warning_above_threshold(self, oversight, reviews) -> None:
        review_both(reviews, 1, 80, 60)
        result = oversight.calculate_score_disparity(1, OVERSIGHT)

        assert result.disparity == Decimal("20.0")
        assert result.has_warning is True

    def test_threshold_itself_is_not_a_warning(self, oversight, reviews) -> None:
        review_both(reviews, 1, 80, 70)
        result = oversight.calculate_score_disparity(1, OVERSIGHT)

        assert result.disparity == Decimal("10.0")
        assert result.has_warning is False

    def test_requires_both_reviews(self, oversight) -> None:
        with pytest.raises(InvalidStateError):
            oversight.calculate_score_disparity(1, OVERSIGHT)

    def test_reviewer_2_not_eligible(self, oversight, reviews) -> None:
        review_both(reviews, 1, 80, 60)
        with pytest.raises(NotEligibleError):
            oversight.calculate_score_disparity(1, REVIEWER_B)


class TestQualification:

    def test_exactly_60_qualifies(self, oversight, reviews) -> None:
        review_both(reviews, 1, 60, 60)
        result = oversight.check_dd_qualification(1, OVERSIGHT)

        assert result.aggregate_score == Decimal("60.0")
        assert result.qualifies is True

    def test_59_5_does_not_qualify(self, oversight, reviews) -> None:
        review_both(reviews, 1, 59, 60)
        assert oversight.check_dd_qualification(1, OVERSIGHT).qualifies is False

    def test_requires_both_reviews(self, oversight) -> None:
        with pytest.raises(InvalidStateError):
            oversight.check_dd_qualification(1, OVERSIGHT)


class TestAssessment:

    def test_incomplete_reviews(self, oversight) -> None:
        assessment = oversight.assess_escalation(1, OVERSIGHT)

        assert assessment.reviews_complete is False
        assert assessment.disparity is None
        assert assessment.recommend_due_diligence is False
        assert assessment.reasons == ["Both reviews are not yet complete"]

    def test_disparity_and_qualification_reasons(self, oversight, reviews) -> None:
        review_both(reviews, 1, 80, 50)
        assessment = oversight.assess_escalation(1, OVERSIGHT)

        assert assessment.recommend_due_diligence is True
        assert len(assessment.reasons) == 2
        assert assessment.reasons[0].startswith("Reviewer scores differ by 30.0 points")
        assert "65.0" in assessment.reasons[1]

    def test_quiet_application(self, oversight, reviews) -> None:
        review_both(reviews, 1, 50, 45)
        assessment = oversight.assess_escalation(1, OVERSIGHT)

        assert assessment.recommend_due_diligence is False
        assert assessment.reasons == []

    def test_flag_reported(self, oversight, reviews, dd) -> None:
        review_both(reviews, 1, 50, 45)
        dd.recommend(1, OVERSIGHT, JUSTIFICATION)
        assessment = oversight.assess_escalation(1, OVERSIGHT)

        assert assessment.oversight_flagged is True
        assert assessment.dd_status == DDStatus.PENDING
        assert assessment.reasons == ["Already flagged by oversight"]
        assert assessment.to_dict()["dd_status"] == "pending"

    def test_assessment_never_transitions(self, oversight, reviews, store) -> None:
        review_both(reviews, 1, 80, 50)
        before = store.get(1)
        oversight.assess_escalation(1, OVERSIGHT)
        after = store.get(1)

        assert after.dd is None
        assert len(after.audit_log) == len(before.audit_log)
