"""
Tests for the in-memory application store.
"""
import pytest

from grantpilot.exceptions import NotFoundError, ValidationError
from grantpilot.models import ApplicationStatus
from grantpilot.store import InMemoryStore

from tests.conftest import make_application


class TestInMemoryStore:

    def test_add_and_get(self) -> None:
        store = InMemoryStore()
        store.add_application(make_application(7))

        assert len(store) == 1
        assert store.get(7).application.business_name == "Enterprise 7"

    def test_duplicate_id(self, store) -> None:
        with pytest.raises(ValidationError):
            store.add_application(make_application(1))

    def test_missing_row(self, store) -> None:
        with pytest.raises(NotFoundError):
            store.get(42)

    def test_snapshots_are_copies(self, store) -> None:
        snapshot = store.get(1)
        snapshot.application.status = ApplicationStatus.APPROVED
        assert store.get(1).application.status == ApplicationStatus.SUBMITTED

    def test_records_ordered_by_id(self, store) -> None:
        store.add_application(make_application(5))
        store.add_application(make_application(3))
        assert [r.application_id for r in store.records()] == [1, 3, 5]


class TestTransaction:

    def test_commit_on_clean_exit(self, store) -> None:
        with store.transaction(1) as record:
            record.application.status = ApplicationStatus.UNDER_REVIEW
        assert store.get(1).application.status == ApplicationStatus.UNDER_REVIEW

    def test_rollback_on_error(self, store) -> None:
        with pytest.raises(ValidationError):
            with store.transaction(1) as record:
                record.application.status = ApplicationStatus.APPROVED
                raise ValidationError(message="boom")
        assert store.get(1).application.status == ApplicationStatus.SUBMITTED


class TestConditionalUpdate:

    def test_applies_when_predicate_holds(self, store) -> None:
        def apply(record):
            record.application.status = ApplicationStatus.UNDER_REVIEW

        updated = store.conditional_update(1, lambda r: r.slot1 is None, apply)
        assert updated.application.status == ApplicationStatus.UNDER_REVIEW

    def test_returns_none_when_predicate_fails(self, store) -> None:
        def apply(record):
            record.application.status = ApplicationStatus.APPROVED

        assert store.conditional_update(1, lambda r: False, apply) is None
        assert store.get(1).application.status == ApplicationStatus.SUBMITTED

    def test_update_where(self, store) -> None:
        store.add_application(make_application(2, status=ApplicationStatus.DRAFT))

        def apply(record):
            record.application.status = ApplicationStatus.SUBMITTED

        updated = store.update_where(
            lambda r: r.application.status == ApplicationStatus.DRAFT, apply
        )
        assert [r.application_id for r in updated] == [2]
