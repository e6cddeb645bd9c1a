"""
Tests for settings, exceptions and structured logging.
"""
import json
import logging
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from grantpilot.config import DEFAULT_PACKS_DIR, Settings
from grantpilot.exceptions import (
    GrantPilotError,
    InvalidScoreError,
    InvalidStateError,
    ScoreOutOfBoundsError,
    SlotPreconditionError,
    ValidationError,
)
from grantpilot.logging_config import JSONFormatter, configure_logging, log_transition

from tests.conftest import REVIEWER_A


class TestSettings:

    def test_defaults(self) -> None:
        settings = Settings.from_env({})

        assert settings.pass_threshold == Decimal("70")
        assert settings.dd_qualification_threshold == Decimal("60")
        assert settings.disparity_threshold == Decimal("10")
        assert settings.approval_window == timedelta(hours=12)
        assert settings.packs_dir == DEFAULT_PACKS_DIR
        assert settings == Settings()

    def test_overrides(self) -> None:
        settings = Settings.from_env({
            "GP_PASS_THRESHOLD": "65.5",
            "GP_APPROVAL_WINDOW_HOURS": "24",
            "GP_MIN_PRIMARY_NOTES": "20",
            "GP_PACKS_DIR": "/srv/packs",
            "GP_LOG_LEVEL": "debug",
        })

        assert settings.pass_threshold == Decimal("65.5")
        assert settings.approval_window == timedelta(hours=24)
        assert settings.min_primary_notes == 20
        assert settings.packs_dir == Path("/srv/packs")
        assert settings.log_level == "DEBUG"

    def test_window_has_a_floor(self) -> None:
        assert Settings.from_env({"GP_APPROVAL_WINDOW_HOURS": "0"}).approval_window_hours == 1

    def test_blank_values_fall_back(self) -> None:
        settings = Settings.from_env({"GP_PASS_THRESHOLD": " ", "GP_MIN_VALIDATOR_COMMENTS": ""})
        assert settings.pass_threshold == Decimal("70")
        assert settings.min_validator_comments == 5


class TestExceptions:

    def test_hierarchy(self) -> None:
        assert issubclass(ScoreOutOfBoundsError, InvalidScoreError)
        assert issubclass(InvalidScoreError, ValidationError)
        assert issubclass(SlotPreconditionError, InvalidStateError)
        assert issubclass(ValidationError, GrantPilotError)

    def test_to_dict_and_str(self) -> None:
        error = InvalidStateError(
            message="Nope", details={"field": "slot_state"}, application_id=4
        )

        assert error.code == "GP_INVALID_STATE"
        assert error.field == "slot_state"
        assert str(error) == "[GP_INVALID_STATE] Nope (application: 4)"
        assert error.to_dict() == {
            "code": "GP_INVALID_STATE",
            "message": "Nope",
            "details": {"field": "slot_state"},
            "application_id": 4,
        }

    def test_minimal_to_dict(self) -> None:
        assert GrantPilotError(message="Boom").to_dict() == {
            "code": "GP_INTERNAL_ERROR",
            "message": "Boom",
        }


class TestLogging:

    def test_json_formatter_includes_structured_fields(self) -> None:
        record = logging.LogRecord(
            "grantpilot.engine", logging.INFO, __file__, 1, "Review slot 1 filled", None, None
        )
        record.application_id = 3
        record.transition = "submit_review"

        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["message"] == "Review slot 1 filled"
        assert entry["application_id"] == 3
        assert entry["transition"] == "submit_review"
        assert "actor_id" not in entry

    def test_configure_is_idempotent(self) -> None:
        logger = configure_logging("DEBUG")
        configure_logging("DEBUG")
        handlers = [h for h in logger.handlers if isinstance(h.formatter, JSONFormatter)]
        assert len(handlers) == 1
        assert logger.level == logging.DEBUG

    def test_log_transition_extras(self, caplog) -> None:
        logger = logging.getLogger("grantpilot.test")
        with caplog.at_level(logging.INFO, logger="grantpilot"):
            log_transition(
                logger, "Moved",
                application_id=9, transition="submit_review", actor=REVIEWER_A,
                from_status="submitted", to_status="pending_senior_review",
            )
        record = caplog.records[-1]
        assert record.actor_role == "reviewer_1"
        assert record.to_status == "pending_senior_review"
