"""
GrantPilot Configuration

All tunables are read from GP_* environment variables. The approval window
is an operational SLA and is never hardcoded in the workflows; they always
receive it through Settings.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_PACKS_DIR = Path(__file__).resolve().parent.parent.parent / "packs"


def _env_decimal(env: Mapping[str, str], name: str, default: str) -> Decimal:
    return Decimal(env.get(name, default).strip() or default)


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name, "").strip()
    value = int(raw) if raw else default
    return max(value, minimum)


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for the review and due-diligence engine.

    Attributes:
        pass_threshold: Final review score at or above which an application is approved
        dd_qualification_threshold: Aggregate review score that queues an application for DD
        disparity_threshold: R1/R2 difference above which the advisory warning is raised
        approval_window_hours: Validator SLA measured from validator selection
        min_primary_notes: Minimum length of the DD primary reviewer's notes
        min_validator_comments: Minimum length of a validator's comments
        min_override_reason: Minimum length of admin override / final decision reasons
        min_oversight_justification: Minimum length of an oversight DD recommendation
        packs_dir: Directory holding rubric packs
        log_level: Logging level name
    """
    pass_threshold: Decimal = Decimal("70")
    dd_qualification_threshold: Decimal = Decimal("60")
    disparity_threshold: Decimal = Decimal("10")
    approval_window_hours: int = 12
    min_primary_notes: int = 10
    min_validator_comments: int = 5
    min_override_reason: int = 10
    min_oversight_justification: int = 20
    packs_dir: Path = DEFAULT_PACKS_DIR
    log_level: str = "INFO"

    @property
    def approval_window(self) -> timedelta:
        return timedelta(hours=self.approval_window_hours)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> Settings:
        """Build settings from GP_* environment variables."""
        env = os.environ if env is None else env
        return cls(
            pass_threshold=_env_decimal(env, "GP_PASS_THRESHOLD", "70"),
            dd_qualification_threshold=_env_decimal(env, "GP_DD_QUALIFICATION_THRESHOLD", "60"),
            disparity_threshold=_env_decimal(env, "GP_DISPARITY_THRESHOLD", "10"),
            approval_window_hours=_env_int(env, "GP_APPROVAL_WINDOW_HOURS", 12, minimum=1),
            min_primary_notes=_env_int(env, "GP_MIN_PRIMARY_NOTES", 10),
            min_validator_comments=_env_int(env, "GP_MIN_VALIDATOR_COMMENTS", 5),
            min_override_reason=_env_int(env, "GP_MIN_OVERRIDE_REASON", 10),
            min_oversight_justification=_env_int(env, "GP_MIN_OVERSIGHT_JUSTIFICATION", 20),
            packs_dir=Path(env.get("GP_PACKS_DIR", "") or DEFAULT_PACKS_DIR),
            log_level=(env.get("GP_LOG_LEVEL", "INFO") or "INFO").upper(),
        )
