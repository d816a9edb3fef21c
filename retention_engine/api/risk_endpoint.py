"""
POST /v1/risk/assess

Synchronous request → assessment → response.
Persists a Prediction for every assessment and raises an academic
alert for high scores. Storage failures degrade the response, they
never replace it.
"""
from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from retention_engine.api.dependencies import get_assessment_service
from retention_engine.core.config import Settings, get_settings
from retention_engine.schemas.assessment_request import StudentSignalSnapshot
from retention_engine.schemas.assessment_response import RiskAssessmentResponse
from retention_engine.services.assessment_service import RiskAssessmentService

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/risk", tags=["risk"])

ASSESSMENT_UNAVAILABLE = "Risk assessment is temporarily unavailable. Please try again later."


@router.post(
    "/assess",
    response_model=RiskAssessmentResponse,
    summary="Assess dropout risk for a student",
    description="Model-assisted assessment with a rule-based fallback. Returns score, level, factors and recommendations.",
)
async def assess_risk(
    snapshot: StudentSignalSnapshot,
    service: RiskAssessmentService = Depends(get_assessment_service),
):
    logger.info("risk_assessment_started", student_id=snapshot.student_id, semester=snapshot.semester)

    try:
        return await service.assess(snapshot)
    except Exception as e:
        logger.exception("risk_assessment_failed", student_id=snapshot.student_id, error=str(e))
        return JSONResponse(status_code=500, content={"error": ASSESSMENT_UNAVAILABLE})


@router.get("/health", tags=["health"])
async def health(settings: Settings = Depends(get_settings)):
    return {
        "status": "ok",
        "service": settings.app_name,
        "model_version": settings.model_version_tag,
        "fallback_model_version": settings.fallback_model_version_tag,
    }
