"""
Risk assessment flow

  snapshot → model-assisted assessment (rule-based fallback inside)
           → persist Prediction
           → alert if score >= threshold (references the prediction)

Persistence is best-effort: the computed assessment is always returned,
with `degraded=True` and a warning for every write that failed.
"""
from __future__ import annotations

import time

import structlog

from retention_engine.core.metrics import PERSISTENCE_FAILURES_TOTAL
from retention_engine.schemas.assessment_request import StudentSignalSnapshot
from retention_engine.schemas.assessment_response import RiskAssessmentResponse
from retention_engine.scoring.model_assessor import ModelAssistedRiskAssessor
from retention_engine.services.alert_dispatcher import AlertDispatcher

logger = structlog.get_logger()


class RiskAssessmentService:

    def __init__(self, assessor: ModelAssistedRiskAssessor, dispatcher: AlertDispatcher, store):
        self.assessor = assessor
        self.dispatcher = dispatcher
        self.store = store

    async def assess(self, snapshot: StudentSignalSnapshot) -> RiskAssessmentResponse:
        t0 = time.perf_counter_ns()
        warnings: list[str] = []

        assessment = await self.assessor.assess(snapshot)

        # ── Persist prediction ──
        prediction_id = None
        try:
            prediction_id = await self.store.save_prediction(snapshot.student_id, assessment)
        except Exception as e:
            PERSISTENCE_FAILURES_TOTAL.labels(record="prediction").inc()
            logger.error("prediction_persist_failed", student_id=snapshot.student_id, error=str(e))
            warnings.append("Prediction could not be saved")

        # ── Alert (fire-and-forget) ──
        outcome = await self.dispatcher.maybe_create_alert(snapshot.student_id, assessment, prediction_id)
        if outcome.degraded:
            warnings.append("Alert could not be saved")

        elapsed_ms = int((time.perf_counter_ns() - t0) / 1_000_000)
        logger.info(
            "risk_assessment_complete",
            student_id=snapshot.student_id,
            score=assessment.risk_score,
            level=assessment.risk_level.value,
            source=assessment.source.value,
            prediction_id=prediction_id,
            alert_id=outcome.alert_id,
            elapsed_ms=elapsed_ms,
        )

        return RiskAssessmentResponse(
            **assessment.model_dump(),
            student_id=snapshot.student_id,
            prediction_id=prediction_id,
            alert_id=outcome.alert_id,
            degraded=bool(warnings),
            warnings=warnings,
        )
