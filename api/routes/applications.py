"""Application, review and lock endpoints."""

from fastapi import APIRouter, Depends

from api.dependencies import get_actor, get_service, respond
from api.schemas.requests import (
    LockRequest,
    RegisterApplicationRequest,
    ReviseReviewRequest,
    SaveScoringProgressRequest,
    SubmitReviewRequest,
)
from api.schemas.responses import OperationResponse
from grantpilot.engine import EvaluationService, ScoreEntry
from grantpilot.models import Actor, ApplicationStatus, Track

router = APIRouter(prefix="/applications", tags=["Applications"])


@router.post("", response_model=OperationResponse, status_code=201)
async def register_application(
    request: RegisterApplicationRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Register an application handed over by the intake system."""
    result = service.register_application(
        request.application_id,
        Track(request.track),
        actor,
        status=ApplicationStatus(request.status),
        applicant_id=request.applicant_id,
        business_name=request.business_name,
    )
    return respond(result, success_status=201)


@router.get("/{application_id}/review-status", response_model=OperationResponse)
async def get_review_status(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Review progress, redacted for the caller until both reviews are in."""
    return respond(service.get_review_status(application_id, actor))


@router.post("/{application_id}/reviews", response_model=OperationResponse)
async def submit_review(
    application_id: int,
    request: SubmitReviewRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Fill the next free review slot."""
    return respond(service.submit_review(
        application_id, actor, request.detailed_scores, request.general_notes,
        request.expected_slot,
    ))


@router.put("/{application_id}/reviews/mine", response_model=OperationResponse)
async def revise_review(
    application_id: int,
    request: ReviseReviewRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Re-submit the caller's own review."""
    return respond(service.revise_review(
        application_id, actor, request.detailed_scores, request.general_notes
    ))


@router.get("/{application_id}/reviews/{slot}", response_model=OperationResponse)
async def get_detailed_scores(
    application_id: int,
    slot: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Per-criterion detail of one slot; empty while hidden from the caller."""
    return respond(service.get_detailed_scores(application_id, actor, slot))


@router.put("/{application_id}/scoring-progress", response_model=OperationResponse)
async def save_scoring_progress(
    application_id: int,
    request: SaveScoringProgressRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    entries = [
        ScoreEntry(e.criterion_id, e.score, e.reviewer_comment) for e in request.entries
    ]
    return respond(service.save_scoring_progress(application_id, actor, entries))


@router.get("/{application_id}/scoring-progress", response_model=OperationResponse)
async def get_scoring_progress(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.get_scoring_progress(application_id, actor))


@router.post("/{application_id}/lock", response_model=OperationResponse)
async def lock_application(
    application_id: int,
    request: LockRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.lock_application(application_id, actor, request.reason))


@router.post("/{application_id}/unlock", response_model=OperationResponse)
async def unlock_application(
    application_id: int,
    request: LockRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.unlock_application(application_id, actor, request.reason))


@router.get("/{application_id}/audit", response_model=OperationResponse)
async def get_audit_trail(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Committed transitions for the application, oldest first."""
    return respond(service.get_audit_trail(application_id, actor))
