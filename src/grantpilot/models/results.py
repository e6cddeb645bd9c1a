"""
Typed operation results.

Every EvaluationService operation returns an OperationResult; failures
carry the error kind, message and offending field instead of raising.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..exceptions import GrantPilotError


@dataclass(frozen=True)
class OperationResult:
    """``{success, data}`` or ``{success: false, error}``."""
    success: bool
    data: Any = None
    error: Optional[dict[str, Any]] = None

    @classmethod
    def ok(cls, data: Any = None) -> OperationResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: GrantPilotError) -> OperationResult:
        return cls(success=False, error=exc.to_dict())

    @property
    def error_code(self) -> Optional[str]:
        return self.error["code"] if self.error else None

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}
