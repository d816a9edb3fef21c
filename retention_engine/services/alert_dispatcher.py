"""
Alert dispatcher — shared by the assessment and chat paths.

Decides whether a result warrants a human-visible alert, builds the
alert, and tries once to persist it. Persistence is fire-and-forget
relative to the primary response: a failed write is logged and reported
back so the caller can flag its response as degraded, never raised.

  RiskAssessment     → alert iff risk_score >= threshold (70)
                       academic / critical if level is critical else high
  SentimentAnalysis  → alert iff needs_escalation
                       behavioral / always critical
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

import structlog

from retention_engine.core.metrics import ALERTS_TOTAL, PERSISTENCE_FAILURES_TOTAL
from retention_engine.schemas.alert import AlertDraft, AlertSeverity, AlertType
from retention_engine.schemas.assessment_response import RiskAssessment, RiskLevel
from retention_engine.schemas.chat import SentimentAnalysis

logger = structlog.get_logger()

DEFAULT_RISK_THRESHOLD = 70


@dataclass(frozen=True)
class DispatchOutcome:
    draft: Optional[AlertDraft]
    alert_id: Optional[str] = None

    @property
    def triggered(self) -> bool:
        return self.draft is not None

    @property
    def persisted(self) -> bool:
        return self.alert_id is not None

    @property
    def degraded(self) -> bool:
        return self.triggered and not self.persisted


class AlertDispatcher:

    def __init__(self, store, risk_threshold: int = DEFAULT_RISK_THRESHOLD, created_by: Optional[str] = None):
        self.store = store
        self.risk_threshold = risk_threshold
        self.created_by = created_by

    # ── Decisions ──

    def build_risk_alert(
        self,
        student_id: str,
        assessment: RiskAssessment,
        prediction_id: Optional[str] = None,
    ) -> Optional[AlertDraft]:
        if assessment.risk_score < self.risk_threshold:
            return None

        severity = AlertSeverity.CRITICAL if assessment.risk_level == RiskLevel.CRITICAL else AlertSeverity.HIGH
        factors = ", ".join(assessment.primary_factors) or "none reported"
        return AlertDraft(
            student_id=student_id,
            alert_type=AlertType.ACADEMIC,
            severity=severity,
            title=f"Student at {assessment.risk_level.value} dropout risk",
            message=(
                f"Predictive analysis indicates a {assessment.risk_level.value} risk of dropping out "
                f"({assessment.risk_score}%). Primary factors: {factors}"
            ),
            metadata={
                "risk_score": assessment.risk_score,
                "risk_level": assessment.risk_level.value,
                "prediction_id": prediction_id,
                "model_version": assessment.model_version,
                "recommendations": assessment.recommendations,
                "analysis_date": datetime.now(timezone.utc).isoformat(),
            },
            created_by=self.created_by,
        )

    def build_escalation_alert(self, student_id: str, sentiment: SentimentAnalysis) -> Optional[AlertDraft]:
        # Escalation alone decides; sentiment magnitude is irrelevant
        if not sentiment.needs_escalation:
            return None

        return AlertDraft(
            student_id=student_id,
            alert_type=AlertType.BEHAVIORAL,
            severity=AlertSeverity.CRITICAL,
            title="Escalation required - support chat",
            message=(
                "The student requires immediate attention from a professional. "
                f"Reason: {sentiment.escalation_reason or 'not specified'}. "
                f"Emotional state: {sentiment.emotional_state.value}"
            ),
            metadata={
                "source": "ai_chat",
                "sentiment_score": sentiment.sentiment_score,
                "emotional_state": sentiment.emotional_state.value,
                "risk_indicators": sentiment.risk_indicators,
                "escalation_timestamp": datetime.now(timezone.utc).isoformat(),
            },
            created_by=self.created_by,
        )

    # ── Dispatch ──

    async def maybe_create_alert(
        self,
        student_id: str,
        trigger: Union[RiskAssessment, SentimentAnalysis],
        prediction_id: Optional[str] = None,
    ) -> DispatchOutcome:
        if isinstance(trigger, RiskAssessment):
            draft = self.build_risk_alert(student_id, trigger, prediction_id)
        elif isinstance(trigger, SentimentAnalysis):
            draft = self.build_escalation_alert(student_id, trigger)
        else:
            raise TypeError(f"Unsupported alert trigger: {type(trigger).__name__}")

        if draft is None:
            return DispatchOutcome(draft=None)
        return await self.dispatch(draft)

    async def dispatch(self, draft: AlertDraft) -> DispatchOutcome:
        try:
            alert_id = await self.store.save_alert(draft)
        except Exception as e:
            # Fire-and-forget: log but don't fail the request
            PERSISTENCE_FAILURES_TOTAL.labels(record="alert").inc()
            ALERTS_TOTAL.labels(alert_type=draft.alert_type.value, severity=draft.severity.value, persisted="false").inc()
            logger.error(
                "alert_persist_failed",
                student_id=draft.student_id,
                alert_type=draft.alert_type.value,
                error=str(e),
            )
            return DispatchOutcome(draft=draft)

        ALERTS_TOTAL.labels(alert_type=draft.alert_type.value, severity=draft.severity.value, persisted="true").inc()
        logger.info(
            "alert_created",
            alert_id=alert_id,
            student_id=draft.student_id,
            alert_type=draft.alert_type.value,
            severity=draft.severity.value,
        )
        return DispatchOutcome(draft=draft, alert_id=alert_id)
