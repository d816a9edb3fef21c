"""
FastAPI dependency wiring.

Every request gets its own store (one DB session) and services built
from configuration; nothing is shared between requests except the
settings and the engine's connection pool.
"""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from retention_engine.core.config import Settings, get_settings
from retention_engine.models.database import get_db
from retention_engine.models.store import SqlStore
from retention_engine.scoring.engine import DeterministicRiskScorer
from retention_engine.scoring.model_assessor import ModelAssistedRiskAssessor
from retention_engine.services.alert_dispatcher import AlertDispatcher
from retention_engine.services.assessment_service import RiskAssessmentService
from retention_engine.services.chat_service import SupportChatService
from retention_engine.services.conversation_manager import ConversationStateManager
from retention_engine.services.sentiment_analyzer import SentimentEscalationAnalyzer
from retention_engine.services.support_responder import SupportResponder
from retention_engine.services.text_generation import GeminiTextGenerator, TextGenerator


def get_store(db: AsyncSession = Depends(get_db)) -> SqlStore:
    return SqlStore(db)


def get_text_generator(settings: Settings = Depends(get_settings)) -> TextGenerator:
    return GeminiTextGenerator.from_settings(settings)


def get_alert_dispatcher(
    store: SqlStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AlertDispatcher:
    return AlertDispatcher(
        store,
        risk_threshold=settings.alert_risk_threshold,
        created_by=settings.system_actor_id,
    )


def get_assessment_service(
    store: SqlStore = Depends(get_store),
    generator: TextGenerator = Depends(get_text_generator),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
    settings: Settings = Depends(get_settings),
) -> RiskAssessmentService:
    scorer = DeterministicRiskScorer(
        model_version=settings.fallback_model_version_tag,
        credits_per_semester=settings.expected_credits_per_semester,
    )
    assessor = ModelAssistedRiskAssessor(generator, scorer, model_version=settings.model_version_tag)
    return RiskAssessmentService(assessor, dispatcher, store)


def get_chat_service(
    store: SqlStore = Depends(get_store),
    generator: TextGenerator = Depends(get_text_generator),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
    settings: Settings = Depends(get_settings),
) -> SupportChatService:
    return SupportChatService(
        conversations=ConversationStateManager(store, window_size=settings.context_window_size),
        responder=SupportResponder(generator),
        analyzer=SentimentEscalationAnalyzer(generator),
        dispatcher=dispatcher,
        store=store,
    )
