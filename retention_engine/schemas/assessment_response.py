"""
Risk assessment payloads.

`RiskAssessment` is what either scoring path produces;
`RiskAssessmentResponse` is what the API returns after persistence.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AssessmentSource(str, Enum):
    MODEL = "model"
    FALLBACK = "fallback"


class RiskAssessment(BaseModel):
    """Result of one assessment call. Never mutated after creation."""
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    confidence: float = Field(ge=0, le=1)
    primary_factors: list[str] = []
    protective_factors: list[str] = []
    recommendations: list[str] = []
    intervention_priority: int = Field(ge=1, le=5)
    explanation: str = ""

    # ── Provenance ──
    model_version: str
    source: AssessmentSource


class RiskAssessmentResponse(RiskAssessment):
    """
    Returned to the caller.

    `degraded` is set when the assessment was computed but the
    prediction or alert could not be stored.
    """
    student_id: str
    prediction_id: Optional[str] = None
    alert_id: Optional[str] = None
    degraded: bool = False
    warnings: list[str] = []
