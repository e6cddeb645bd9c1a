"""
Tests for canonical JSON, content hashing and sealed audit entries.
"""
from datetime import datetime, timezone
from decimal import Decimal

from grantpilot.canon import (
    canonical_json,
    compute_rubric_pack_hash,
    content_hash,
)
from grantpilot.models import AuditEventType, DDStatus, WorkflowAuditEntry

from tests.conftest import ADMIN


class TestCanonicalJson:

    def test_sorted_compact(self) -> None:
        assert canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_special_types(self) -> None:
        value = {
            "score": Decimal("69.5"),
            "status": DDStatus.QUERIED,
            "at": datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc),
        }
        assert canonical_json(value) == (
            '{"at":"2025-03-03T09:00:00.000Z","score":"69.5","status":"queried"}'
        )

    def test_hash_is_stable(self) -> None:
        assert content_hash({"a": 1, "b": 2}) == content_hash({"b": 2, "a": 1})
        assert len(content_hash({})) == 64


class TestRubricHash:

    def test_distinct_per_rubric(self, registry) -> None:
        hashes = {compute_rubric_pack_hash(r) for r in registry.all()}
        assert len(hashes) == 4


class TestAuditEntry:

    def test_sealed_on_create(self) -> None:
        entry = WorkflowAuditEntry.create(
            application_id=1,
            event_type=AuditEventType.APPLICATION_LOCKED,
            description="Application locked: Locked by admin",
            actor=ADMIN,
            after_value={"is_locked": True},
        )

        assert entry.actor_id == "admin-1"
        assert entry.actor_role == "admin"
        assert entry.verify()

    def test_tampering_detected(self) -> None:
        entry = WorkflowAuditEntry.create(
            application_id=1,
            event_type=AuditEventType.DD_SCORE_OVERRIDDEN,
            description="Score overridden",
            after_value={"effective_score": Decimal("55")},
        )
        assert entry.actor_id == "system"

        entry.after_value = {"effective_score": Decimal("95")}
        assert not entry.verify()
