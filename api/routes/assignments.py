"""Reviewer assignment endpoints."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_actor, get_service, respond
from api.schemas.requests import AssignSlotRequest, RegisterReviewerRequest, ReviewerActiveRequest
from api.schemas.responses import OperationResponse
from grantpilot.engine import EvaluationService
from grantpilot.models import Actor

router = APIRouter(prefix="/assignments", tags=["Assignments"])


@router.post("/reviewers", response_model=OperationResponse, status_code=201)
async def register_reviewer(
    request: RegisterReviewerRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Add a reviewer to the load-balancing queue."""
    return respond(
        service.register_reviewer(actor, request.reviewer_id, request.role),
        success_status=201,
    )


@router.put("/reviewers/{reviewer_id}/active", response_model=OperationResponse)
async def set_reviewer_active(
    reviewer_id: str,
    request: ReviewerActiveRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.set_reviewer_active(actor, reviewer_id, request.is_active))


@router.post("/applications/{application_id}", response_model=OperationResponse)
async def assign_reviewer(
    application_id: int,
    request: AssignSlotRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Allocate the next queued reviewer to one slot."""
    return respond(service.assign_reviewer(application_id, actor, request.slot))


@router.post("/bulk", response_model=OperationResponse)
async def bulk_assign_reviewers(
    request: AssignSlotRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.bulk_assign_reviewers(actor, request.slot))


@router.post("/redistribute", response_model=OperationResponse)
async def redistribute_assignments(
    request: AssignSlotRequest,
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    """Clear open allocations for the slot and spread them across active reviewers."""
    return respond(service.redistribute_assignments(actor, request.slot))


@router.get("/mine", response_model=OperationResponse)
async def list_assigned_applications(
    track: Optional[Literal["foundation", "acceleration"]] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.list_assigned_applications(actor, track, page, limit))


@router.get("/stats", response_model=OperationResponse)
async def get_assignment_stats(
    actor: Actor = Depends(get_actor),
    service: EvaluationService = Depends(get_service),
):
    return respond(service.get_assignment_stats(actor))
