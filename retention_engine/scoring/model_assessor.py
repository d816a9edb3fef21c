"""
Model-assisted dropout risk assessment

  1. Build a prompt embedding every snapshot field + the JSON schema
  2. One call to the text-generation capability (no retries)
  3. Extract the first balanced JSON object from the reply
  4. Validate it as a risk assessment
  5. On any failure → deterministic scorer result

Strictly model-wins or model-discarded: a partially valid reply is
discarded as a whole.
"""
from __future__ import annotations

import json
import math
import unicodedata
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from retention_engine.core.metrics import ASSESSMENTS_TOTAL, TEXT_GENERATION_FAILURES_TOTAL
from retention_engine.schemas.assessment_request import StudentSignalSnapshot
from retention_engine.schemas.assessment_response import (
    AssessmentSource,
    RiskAssessment,
    RiskLevel,
)
from retention_engine.scoring.engine import DeterministicRiskScorer
from retention_engine.services.json_extraction import extract_json_object
from retention_engine.services.text_generation import TextGenerator

logger = structlog.get_logger()

FALLBACK_EXPLANATION = (
    "Rule-based fallback assessment: the model-assisted analysis was unavailable or returned an invalid result."
)

# Models sometimes answer with localized level labels
_LEVEL_ALIASES = {
    "low": RiskLevel.LOW,
    "bajo": RiskLevel.LOW,
    "medium": RiskLevel.MEDIUM,
    "moderate": RiskLevel.MEDIUM,
    "medio": RiskLevel.MEDIUM,
    "high": RiskLevel.HIGH,
    "alto": RiskLevel.HIGH,
    "critical": RiskLevel.CRITICAL,
    "critico": RiskLevel.CRITICAL,
}


def _fold(value: str) -> str:
    stripped = unicodedata.normalize("NFKD", value.strip().lower())
    return "".join(c for c in stripped if not unicodedata.combining(c))


class ModelRiskPayload(BaseModel):
    """Shape the model is asked to return. Everything but `explanation` is required."""
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    confidence: float = Field(ge=0, le=1, allow_inf_nan=False)
    primary_factors: list[str]
    protective_factors: list[str]
    recommendations: list[str]
    intervention_priority: int = Field(ge=1, le=5)
    explanation: str = ""

    @field_validator("risk_score", mode="before")
    @classmethod
    def round_score(cls, v: Any) -> Any:
        if isinstance(v, float) and math.isfinite(v):
            return round(v)
        return v

    @field_validator("risk_level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _LEVEL_ALIASES.get(_fold(v), v)
        return v


def build_risk_prompt(snapshot: StudentSignalSnapshot) -> str:
    return f"""
Analyse the following data for a university student and predict their risk of dropping out.

Student data:
- Current GPA (0-4): {snapshot.gpa}
- Attendance rate: {snapshot.attendance_rate}%
- Credits completed: {snapshot.credits_completed}
- Credits enrolled: {snapshot.credits_enrolled}
- Current semester: {snapshot.semester}
- Recent grades: {json.dumps(list(snapshot.recent_grades))}
- Behavioral indicators: {json.dumps(snapshot.behavioral_indicators, default=str)}

Respond with a JSON object with exactly this structure:
{{
  "risk_score": <integer 0-100, where 100 is highest risk>,
  "risk_level": "low" | "medium" | "high" | "critical",
  "confidence": <number 0-1, confidence in the prediction>,
  "primary_factors": [<main risk factors>],
  "protective_factors": [<protective factors>],
  "recommendations": [<specific recommendations>],
  "intervention_priority": <integer 1-5, where 5 is urgent>,
  "explanation": "<short explanation of the analysis>"
}}

Consider these criteria:
- GPA < 2.0 = high risk
- Attendance < 70% = significant risk factor
- Declining trend in grades = concerning
- Low completed/enrolled credit ratio = possible overload
- Late semesters with little progress = risk of dropping out
""".strip()


def parse_model_assessment(text: Optional[str], model_version: str) -> Optional[RiskAssessment]:
    """
    Turn raw model output into a RiskAssessment, or None if unusable.
    """
    payload = extract_json_object(text)
    if payload is None:
        return None

    try:
        parsed = ModelRiskPayload.model_validate(payload)
    except ValidationError as e:
        logger.warning("model_assessment_invalid", errors=e.error_count())
        return None

    return RiskAssessment(
        **parsed.model_dump(),
        model_version=model_version,
        source=AssessmentSource.MODEL,
    )


class ModelAssistedRiskAssessor:
    """
    Never raises to its caller for a valid snapshot.
    """

    def __init__(self, generator: TextGenerator, fallback: DeterministicRiskScorer, model_version: str):
        self.generator = generator
        self.fallback = fallback
        self.model_version = model_version

    async def assess(self, snapshot: StudentSignalSnapshot) -> RiskAssessment:
        prompt = build_risk_prompt(snapshot)

        try:
            text = await self.generator.generate(prompt)
        except Exception as e:
            # Any call error degrades to the rule-based path
            logger.warning("model_assessment_call_failed", student_id=snapshot.student_id, error=str(e))
            return self._degrade(snapshot, reason="call_failed")

        result = parse_model_assessment(text, self.model_version)
        if result is None:
            return self._degrade(snapshot, reason="unparsable")

        ASSESSMENTS_TOTAL.labels(source=AssessmentSource.MODEL.value).inc()
        logger.info(
            "model_assessment_accepted",
            student_id=snapshot.student_id,
            score=result.risk_score,
            level=result.risk_level.value,
        )
        return result

    def _degrade(self, snapshot: StudentSignalSnapshot, reason: str) -> RiskAssessment:
        TEXT_GENERATION_FAILURES_TOTAL.labels(component="risk_assessment").inc()
        ASSESSMENTS_TOTAL.labels(source=AssessmentSource.FALLBACK.value).inc()
        logger.info("model_fallback", student_id=snapshot.student_id, reason=reason)
        return self.fallback.score(snapshot, explanation=FALLBACK_EXPLANATION)
