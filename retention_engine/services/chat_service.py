"""
Support chat turn

  message → load conversation + trailing window
          → assistant reply (student context + window)
          → sentiment / escalation analysis of the message
          → upsert full transcript
          → behavioral alert if escalation is needed

Every external failure has a local answer, so the student always gets
a reply: fallback text for the reply, neutral sentiment for the
analysis, a logged warning for failed writes.
"""
from __future__ import annotations

import structlog

from retention_engine.core.metrics import PERSISTENCE_FAILURES_TOTAL
from retention_engine.models.store import StudentContext
from retention_engine.schemas.chat import ChatTurnRequest, ChatTurnResponse
from retention_engine.services.alert_dispatcher import AlertDispatcher
from retention_engine.services.conversation_manager import ConversationStateManager
from retention_engine.services.sentiment_analyzer import SentimentEscalationAnalyzer
from retention_engine.services.support_responder import SupportResponder

logger = structlog.get_logger()


class SupportChatService:

    def __init__(
        self,
        conversations: ConversationStateManager,
        responder: SupportResponder,
        analyzer: SentimentEscalationAnalyzer,
        dispatcher: AlertDispatcher,
        store,
    ):
        self.conversations = conversations
        self.responder = responder
        self.analyzer = analyzer
        self.dispatcher = dispatcher
        self.store = store

    async def handle_turn(self, request: ChatTurnRequest) -> ChatTurnResponse:
        student_id = request.student_id
        degraded = False

        turn = await self.conversations.open_turn(student_id, request.conversation_history)
        if not turn.loaded:
            degraded = True

        try:
            ctx = await self.store.get_student_context(student_id)
        except Exception as e:
            logger.warning("student_context_unavailable", student_id=student_id, error=str(e))
            ctx = StudentContext()

        reply = await self.responder.reply(request.message, turn.window, ctx)
        sentiment = await self.analyzer.analyze(request.message, turn.window)

        conversation_id = turn.conversation_id
        try:
            # The canned fallback is not part of the dialogue the model sees later
            assistant_text = None if reply.degraded else reply.text
            turn = await self.conversations.append_turn(turn, request.message, assistant_text, sentiment)
            conversation_id = turn.conversation_id
        except Exception as e:
            PERSISTENCE_FAILURES_TOTAL.labels(record="conversation").inc()
            logger.error("conversation_persist_failed", student_id=student_id, error=str(e))
            degraded = True

        outcome = await self.dispatcher.maybe_create_alert(student_id, sentiment)
        if outcome.degraded:
            degraded = True

        logger.info(
            "chat_turn_complete",
            student_id=student_id,
            conversation_id=conversation_id,
            sentiment_score=sentiment.sentiment_score,
            needs_escalation=sentiment.needs_escalation,
            alert_id=outcome.alert_id,
            degraded=degraded,
        )

        return ChatTurnResponse(
            response=reply.text,
            sentiment_analysis=sentiment,
            conversation_id=conversation_id,
            alert_id=outcome.alert_id,
            degraded=degraded or reply.degraded,
            error=reply.degraded,
        )
