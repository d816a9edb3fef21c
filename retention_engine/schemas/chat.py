"""
Support chat payloads: messages, sentiment results, turn request/response.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class EmotionalState(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    CONCERNING = "concerning"
    CRISIS = "crisis"


class ChatMessage(BaseModel):
    """One transcript entry. Immutable once appended."""
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str
    timestamp: datetime


class SentimentAnalysis(BaseModel):
    sentiment_score: float = Field(0.0, ge=-1, le=1)
    emotional_state: EmotionalState = EmotionalState.NEUTRAL
    risk_indicators: list[str] = []
    needs_escalation: bool = False
    escalation_reason: str = ""

    @classmethod
    def neutral(cls) -> "SentimentAnalysis":
        """Absence of signal is treated as absence of risk."""
        return cls(
            sentiment_score=0.0,
            emotional_state=EmotionalState.NEUTRAL,
            risk_indicators=[],
            needs_escalation=False,
            escalation_reason="",
        )


class ChatTurnRequest(BaseModel):
    """
    POST /v1/chat/turn

    `conversation_history` is the caller's view of prior messages. The
    stored transcript is canonical; the caller's copy is only used when
    nothing is stored yet.
    """
    student_id: str = Field(min_length=1)
    message: str = Field(min_length=1)
    conversation_history: list[ChatMessage] = []


class ChatTurnResponse(BaseModel):
    response: str
    sentiment_analysis: SentimentAnalysis
    conversation_id: Optional[str] = None
    alert_id: Optional[str] = None
    degraded: bool = False
    error: bool = False
