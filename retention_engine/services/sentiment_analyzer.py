"""
Sentiment + escalation classification of a single chat message.

The external model decides whether a message needs a human professional
(self-harm ideation, severe crisis, substance abuse, serious emergencies,
severe depressive states). This module only enforces the output shape:
anything that cannot be read as a complete result becomes the neutral,
non-escalating fallback. Escalation is never inferred by default.
"""
from __future__ import annotations

import math
import unicodedata
from typing import Any, Optional, Sequence

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from retention_engine.core.metrics import TEXT_GENERATION_FAILURES_TOTAL
from retention_engine.schemas.chat import ChatMessage, EmotionalState, SentimentAnalysis
from retention_engine.services.conversation_manager import format_context
from retention_engine.services.json_extraction import extract_json_object
from retention_engine.services.text_generation import TextGenerator

logger = structlog.get_logger()

_STATE_ALIASES = {
    "positive": EmotionalState.POSITIVE,
    "positivo": EmotionalState.POSITIVE,
    "neutral": EmotionalState.NEUTRAL,
    "concerning": EmotionalState.CONCERNING,
    "preocupante": EmotionalState.CONCERNING,
    "crisis": EmotionalState.CRISIS,
}


class _SentimentPayload(BaseModel):
    sentiment_score: float
    emotional_state: EmotionalState
    risk_indicators: list[str] = Field(default_factory=list)
    needs_escalation: bool
    escalation_reason: str = ""

    @field_validator("sentiment_score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("sentiment_score must be a finite number")
        return max(-1.0, min(1.0, v))

    @field_validator("emotional_state", mode="before")
    @classmethod
    def normalize_state(cls, v: Any) -> Any:
        if isinstance(v, str):
            folded = unicodedata.normalize("NFKD", v.strip().lower())
            folded = "".join(c for c in folded if not unicodedata.combining(c))
            return _STATE_ALIASES.get(folded, v)
        return v

    @field_validator("escalation_reason", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


def build_sentiment_prompt(message: str, context: str) -> str:
    return f"""
Analyse the following message from a university student to detect:
1. Emotional state / sentiment
2. Level of risk or crisis
3. Whether a professional must be alerted

MESSAGE: {message}
CONTEXT: {context}

Respond ONLY with a JSON object:
{{
  "sentiment_score": <number -1 to 1, where -1 is very negative and 1 very positive>,
  "emotional_state": "positive" | "neutral" | "concerning" | "crisis",
  "risk_indicators": [<risk indicators detected>],
  "needs_escalation": <true/false - whether immediate attention from a professional is required>,
  "escalation_reason": "<specific reason if needs_escalation is true>"
}}

ESCALATION INDICATORS:
- Suicidal thoughts or self-harm
- Severe emotional crisis
- Mentions of substance abuse
- Serious family or personal emergencies
- Severe depressive states
""".strip()


def read_sentiment(text: Optional[str]) -> Optional[SentimentAnalysis]:
    """Validated result, or None when the reply is not a complete result."""
    payload = extract_json_object(text)
    if payload is None:
        return None
    try:
        parsed = _SentimentPayload.model_validate(payload)
    except ValidationError as e:
        logger.warning("sentiment_payload_invalid", errors=e.error_count())
        return None
    return SentimentAnalysis(**parsed.model_dump())


def parse_sentiment(text: Optional[str]) -> SentimentAnalysis:
    return read_sentiment(text) or SentimentAnalysis.neutral()


class SentimentEscalationAnalyzer:

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def analyze(self, message: str, context_window: Sequence[ChatMessage]) -> SentimentAnalysis:
        prompt = build_sentiment_prompt(message, format_context(context_window))
        try:
            text = await self.generator.generate(prompt)
        except Exception as e:
            TEXT_GENERATION_FAILURES_TOTAL.labels(component="sentiment").inc()
            logger.warning("sentiment_call_failed", error=str(e))
            return SentimentAnalysis.neutral()

        result = read_sentiment(text)
        if result is None:
            TEXT_GENERATION_FAILURES_TOTAL.labels(component="sentiment").inc()
            logger.warning("sentiment_unparsable")
            return SentimentAnalysis.neutral()

        logger.info(
            "sentiment_analyzed",
            sentiment_score=result.sentiment_score,
            emotional_state=result.emotional_state.value,
            needs_escalation=result.needs_escalation,
        )
        return result
