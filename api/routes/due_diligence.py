"""Due-diligence endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_actor, get_service, respond
from api.schemas.requests import (
    DDItemRequest,
    DeadlineSweepRequest,
    FinalDecisionRequest,
    OverrideScoreRequest,
    PrimaryReviewRequest,
    SelectValidatorRequest,
    ValidatorActionRequest,
)
from api.schemas.responses import OperationResponse
from grantpilot.engine import EvaluationService
from grantpilot.models import Actor

router = APIRouter(prefix="/due-diligence", tags=["Due Diligence"])


@router.get("/queue", response_model=OperationResponse)
async def get_queue(
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Qualifying and oversight-flagged applications, elevated priority first."""
    return respond(service.get_dd_queue(actor))


@router.post("/sweep", response_model=OperationResponse)
async def run_deadline_sweep(
    request: Optional[DeadlineSweepRequest] = None,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Reassign validations whose approval deadline has passed."""
    now = request.now if request else None
    return respond(service.run_deadline_sweep(actor, now))


@router.get("/{application_id}", response_model=OperationResponse)
async def get_record(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.get_dd_record(application_id, actor))


@router.post("/{application_id}/claim", response_model=OperationResponse)
async def claim(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Become the primary reviewer; exactly one concurrent claim wins."""
    return respond(service.claim_dd_application(application_id, actor))


@router.post("/{application_id}/release", response_model=OperationResponse)
async def release(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.release_dd_application(application_id, actor))


@router.post("/{application_id}/primary", response_model=OperationResponse)
async def submit_primary_review(
    application_id: int,
    request: PrimaryReviewRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.submit_primary_dd_review(
        application_id, actor, request.score, request.notes
    ))


@router.put("/{application_id}/items", response_model=OperationResponse)
async def save_item(
    application_id: int,
    request: DDItemRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Upsert one rubric line item; the phase score is recomputed."""
    return respond(service.save_dd_item(
        application_id,
        actor,
        request.phase,
        request.criterion_id,
        request.score,
        category=request.category,
        comments=request.comments,
    ))


@router.get("/{application_id}/validators", response_model=OperationResponse)
async def list_available_validators(
    application_id: int,
    pool: list[str] = Query(default=[]),
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """The supplied pool minus the primary reviewer."""
    return respond(service.list_available_validators(application_id, actor, pool))


@router.post("/{application_id}/validator", response_model=OperationResponse)
async def select_validator(
    application_id: int,
    request: SelectValidatorRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Choose the validator and start the approval window."""
    return respond(service.select_validator_reviewer(
        application_id, actor, request.validator_id, request.eligible_pool
    ))


@router.post("/{application_id}/validator-action", response_model=OperationResponse)
async def submit_validator_action(
    application_id: int,
    request: ValidatorActionRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.submit_validator_action(
        application_id, actor, request.action, request.comments
    ))


@router.post("/{application_id}/override", response_model=OperationResponse)
async def admin_override_score(
    application_id: int,
    request: OverrideScoreRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.admin_override_dd_score(
        application_id, actor, request.new_score, request.reason
    ))


@router.post("/{application_id}/final-decision", response_model=OperationResponse)
async def record_final_decision(
    application_id: int,
    request: FinalDecisionRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.record_dd_final_decision(
        application_id, actor, request.verdict, request.reason
    ))
