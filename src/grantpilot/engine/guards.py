"""Input guards shared by the workflows."""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Optional, TypeVar

from ..exceptions import InvalidScoreError, ValidationError
from .score_aggregator import to_score

HUNDRED = Decimal("100")

E = TypeVar("E", bound=Enum)


def require_text(
    value: Optional[str],
    field: str,
    min_length: int = 1,
    application_id: Optional[int] = None,
) -> str:
    """Return the stripped text, or raise ValidationError if too short."""
    text = (value or "").strip()
    if len(text) < max(min_length, 1):
        raise ValidationError(
            message=(
                f"'{field}' is required" if min_length <= 1
                else f"'{field}' must be at least {min_length} characters"
            ),
            details={"field": field, "min_length": min_length},
            application_id=application_id,
        )
    return text


def require_percentage(
    value: Any,
    field: str = "score",
    application_id: Optional[int] = None,
) -> Decimal:
    """Return the value as a Decimal in [0, 100], or raise InvalidScoreError."""
    try:
        score = to_score(field, value)
    except ValidationError as e:
        raise InvalidScoreError(
            message=e.message,
            details={"field": field},
            application_id=application_id,
        )
    if score < 0 or score > HUNDRED:
        raise InvalidScoreError(
            message=f"'{field}' must be between 0 and 100",
            details={"field": field, "score": str(score)},
            application_id=application_id,
        )
    return score


def require_choice(
    enum_cls: type[E],
    value: Any,
    field: str,
    application_id: Optional[int] = None,
) -> E:
    """Coerce ``value`` to a member of ``enum_cls``, or raise ValidationError."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise ValidationError(
            message=f"'{field}' must be one of {allowed}",
            details={"field": field, "allowed": allowed},
            application_id=application_id,
        )
