"""
Shared request dependencies.

The actor comes from headers set by the external auth gateway; the
service is the one EvaluationService attached to the app at startup.
"""

from typing import Optional

from fastapi import Header, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from grantpilot.engine import EvaluationService
from grantpilot.models import Actor, OperationResult, Role

# GP error code -> HTTP status; anything unlisted is a 400
STATUS_BY_CODE = {
    "GP_NOT_FOUND": 404,
    "GP_RUBRIC_NOT_FOUND": 404,
    "GP_NOT_ELIGIBLE": 403,
    "GP_NOT_OWNER": 403,
    "GP_DUPLICATE_REVIEWER": 409,
    "GP_SELF_VALIDATION_FORBIDDEN": 409,
    "GP_ALREADY_LOCKED": 409,
    "GP_NOT_LOCKED": 409,
    "GP_ALREADY_CLAIMED": 409,
    "GP_SLOT_TAKEN": 409,
    "GP_INVALID_STATE": 409,
    "GP_SLOT_PRECONDITION": 409,
    "GP_NO_REVIEWER_AVAILABLE": 409,
    "GP_APPLICATION_LOCKED": 423,
    "GP_VALIDATION_ERROR": 422,
    "GP_INVALID_SCORE": 422,
    "GP_SCORE_OUT_OF_BOUNDS": 422,
}


def get_service(request: Request) -> EvaluationService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    return service


def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_role: Optional[str] = Header(default=None),
) -> Actor:
    """Resolve the caller from X-Actor-Id / X-Actor-Role."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=401, detail="X-Actor-Id and X-Actor-Role headers are required")
    try:
        role = Role(x_actor_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role '{x_actor_role}'")
    return Actor(actor_id=x_actor_id.strip(), role=role)


def respond(result: OperationResult, success_status: int = 200) -> JSONResponse:
    """Render an OperationResult with the status code its error maps to."""
    status_code = success_status
    if not result.success:
        status_code = STATUS_BY_CODE.get(result.error_code, 400)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.to_dict()))
