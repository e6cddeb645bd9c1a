"""Health endpoint."""

from fastapi import APIRouter, Depends

from api.dependencies import get_service
from api.schemas.responses import HealthResponse
from grantpilot import __version__
from grantpilot.engine import EvaluationService

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health(service: EvaluationService = Depends(get_service)):
    """Health check endpoint."""
    return HealthResponse(
        healthy=True,
        version=__version__,
        rubrics_loaded=len(service.rubrics.all()),
        applications=len(service.store.records()),
    )
