"""
Shared fixtures: snapshot builder, scripted text generator, in-memory store.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

import pytest

from retention_engine.models.records import Prediction, new_id
from retention_engine.models.store import StoredConversation, StudentContext
from retention_engine.schemas.alert import AlertDraft
from retention_engine.schemas.assessment_request import StudentSignalSnapshot
from retention_engine.schemas.assessment_response import RiskAssessment

RISK_MARKER = "predict their risk of dropping out"
SENTIMENT_MARKER = "ESCALATION INDICATORS"

Scripted = Union[str, Exception, None]


def make_snapshot(**overrides) -> StudentSignalSnapshot:
    """Build a baseline 'healthy' student, then override specific fields."""
    kwargs = {
        "student_id": "STU-001",
        "gpa": 3.5,
        "attendance_rate": 90.0,
        "credits_completed": 95,
        "credits_enrolled": 18,
        "semester": 6,
        "recent_grades": [3.2, 3.8, 3.5],
        "behavioral_indicators": {"library_visits": 12},
    }
    kwargs.update(overrides)
    return StudentSignalSnapshot(**kwargs)


class FakeGenerator:
    """
    Answers by prompt kind. Each answer is a string, or an exception to raise.
    """

    def __init__(self, reply: Scripted = "Thanks for sharing, I'm here to help.", sentiment: Scripted = None,
                 risk: Scripted = None):
        self.reply = reply
        self.sentiment = sentiment
        self.risk = risk
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if RISK_MARKER in prompt:
            answer = self.risk
        elif SENTIMENT_MARKER in prompt:
            answer = self.sentiment
        else:
            answer = self.reply

        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            raise ConnectionError("no scripted answer")
        return answer


class MemoryStore:
    """Dict-backed stand-in for SqlStore. `failing` names methods that raise."""

    def __init__(self, failing: tuple[str, ...] = ()):
        self.failing = set(failing)
        self.predictions: list[Prediction] = []
        self.alerts: list[tuple[str, AlertDraft]] = []
        self.conversations: dict[str, StoredConversation] = {}
        self.upsert_calls = 0
        self.students: dict[str, str] = {}
        self.context = StudentContext(full_name="Ana Torres", career="Computer Science", semester=6, gpa=2.1)

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    async def save_prediction(self, student_id: str, assessment: RiskAssessment) -> str:
        self._check("save_prediction")
        prediction = Prediction(
            id=new_id(),
            student_id=student_id,
            risk_score=assessment.risk_score,
            risk_factors={
                "primary_factors": assessment.primary_factors,
                "protective_factors": assessment.protective_factors,
                "risk_level": assessment.risk_level.value,
            },
            recommendations=assessment.recommendations,
            confidence_level=assessment.confidence,
            model_version=assessment.model_version,
            prediction_date=datetime.now(timezone.utc),
        )
        self.predictions.append(prediction)
        return prediction.id

    async def list_predictions(self, student_id: str, limit: int = 20) -> list[Prediction]:
        rows = [p for p in self.predictions if p.student_id == student_id]
        return list(reversed(rows))[:limit]

    async def save_alert(self, draft: AlertDraft) -> str:
        self._check("save_alert")
        alert_id = new_id()
        self.alerts.append((alert_id, draft))
        return alert_id

    async def get_conversation(self, student_id: str) -> Optional[StoredConversation]:
        self._check("get_conversation")
        return self.conversations.get(student_id)

    async def upsert_conversation(self, student_id, messages, sentiment_score, needs_escalation, last_activity) -> str:
        self._check("upsert_conversation")
        self.upsert_calls += 1
        existing = self.conversations.get(student_id)
        self.conversations[student_id] = StoredConversation(
            id=existing.id if existing else new_id(),
            student_id=student_id,
            messages=list(messages),
            sentiment_score=sentiment_score,
            is_escalated=(existing.is_escalated if existing else False) or needs_escalation,
            last_activity=last_activity,
        )
        return self.conversations[student_id].id

    async def get_student_context(self, student_id: str) -> StudentContext:
        self._check("get_student_context")
        return self.context

    async def upsert_student(self, student_code: str, **fields) -> str:
        self._check("upsert_student")
        return self.students.setdefault(student_code, new_id())


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
