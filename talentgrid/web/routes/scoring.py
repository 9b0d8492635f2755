from __future__ import annotations

from fastapi import APIRouter, HTTPException

from talentgrid.application import api as app_api
from talentgrid.infrastructure.exceptions import TalentGridError
from talentgrid.web.schemas import ScoringPreviewRequest, ScoringPreviewResponse

router = APIRouter(prefix="/api/scoring", tags=["scoring"])


@router.post("/preview", response_model=ScoringPreviewResponse)
def preview(payload: ScoringPreviewRequest) -> ScoringPreviewResponse:
    """Score a payload without saving it."""
    try:
        result = app_api.preview_scores(
            competencies=payload.competencies,
            grouped=payload.grouped,
            potential_score=payload.potential_score,
            potential_indicators=payload.potential_indicators,
        )
    except TalentGridError as exc:
        raise HTTPException(status_code=exc.http_status, detail=exc.response_detail()) from exc
    return ScoringPreviewResponse(**result)
