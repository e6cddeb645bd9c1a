"""Rubric pack endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_service
from api.schemas.responses import CategorySummary, CriterionSummary, RubricSummary
from grantpilot.canon import compute_rubric_pack_hash
from grantpilot.engine import EvaluationService
from grantpilot.models import Rubric

router = APIRouter(prefix="/rubrics", tags=["Rubrics"])


def _summary(rubric: Rubric) -> RubricSummary:
    return RubricSummary(
        id=rubric.id,
        name=rubric.name,
        version=rubric.version,
        kind=rubric.kind.value,
        track=rubric.track.value if rubric.track else None,
        phase=rubric.phase.value if rubric.phase else None,
        max_total=float(rubric.max_total),
        rubric_hash=compute_rubric_pack_hash(rubric),
        categories=[
            CategorySummary(
                id=category.id,
                name=category.name,
                max_points=float(category.max_points),
                criteria=[
                    CriterionSummary(id=c.id, name=c.name, max_points=float(c.max_points))
                    for c in category.criteria
                ],
            )
            for category in rubric.categories
        ],
    )


@router.get("", response_model=list[RubricSummary])
async def list_rubrics(
    kind: Optional[str] = None,
    service: EvaluationService = Depends(get_service),
):
    """
    List loaded rubric packs.

    Optionally filter by kind: review, due_diligence
    """
    rubrics = service.rubrics.all()
    if kind:
        rubrics = [r for r in rubrics if r.kind.value == kind]
    return [_summary(r) for r in rubrics]


@router.get("/{rubric_id}", response_model=RubricSummary)
async def get_rubric(rubric_id: str, service: EvaluationService = Depends(get_service)):
    """Full detail of one rubric pack."""
    for rubric in service.rubrics.all():
        if rubric.id == rubric_id:
            return _summary(rubric)
    raise HTTPException(status_code=404, detail=f"Rubric '{rubric_id}' not found")
