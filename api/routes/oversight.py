"""Oversight escalation endpoints."""

from fastapi import APIRouter, Depends

from api.dependencies import get_actor, get_service, respond
from api.schemas.requests import RecommendRequest
from api.schemas.responses import OperationResponse
from grantpilot.engine import EvaluationService
from grantpilot.models import Actor

router = APIRouter(prefix="/oversight", tags=["Oversight"])


@router.get("/{application_id}/disparity", response_model=OperationResponse)
async def calculate_score_disparity(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """|R1 - R2| and the advisory warning flag."""
    return respond(service.calculate_score_disparity(application_id, actor))


@router.get("/{application_id}/qualification", response_model=OperationResponse)
async def check_dd_qualification(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.check_dd_qualification(application_id, actor))


@router.get("/{application_id}/assessment", response_model=OperationResponse)
async def assess_escalation(
    application_id: int,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Disparity and qualification signals with reasons; never changes state."""
    return respond(service.assess_escalation(application_id, actor))


@router.post("/{application_id}/recommend", response_model=OperationResponse)
async def recommend_for_due_diligence(
    application_id: int,
    request: RecommendRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Flag the application for due diligence with elevated priority."""
    return respond(service.recommend_for_due_diligence(
        application_id, actor, request.justification
    ))
