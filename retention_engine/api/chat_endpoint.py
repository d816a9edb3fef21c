"""
POST /v1/chat/turn

One support-chat turn. The student always receives a readable reply:
unexpected failures answer with the counselor-referral message and
`error: true` instead of a technical error.
"""
from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from retention_engine.api.dependencies import get_chat_service
from retention_engine.schemas.chat import ChatTurnRequest, ChatTurnResponse, SentimentAnalysis
from retention_engine.services.chat_service import SupportChatService
from retention_engine.services.support_responder import FALLBACK_REPLY

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/chat", tags=["chat"])


def fallback_chat_body() -> dict:
    return ChatTurnResponse(
        response=FALLBACK_REPLY,
        sentiment_analysis=SentimentAnalysis.neutral(),
        degraded=True,
        error=True,
    ).model_dump(mode="json")


@router.post(
    "/turn",
    response_model=ChatTurnResponse,
    summary="Send a message to the student-support assistant",
)
async def chat_turn(
    request: ChatTurnRequest,
    service: SupportChatService = Depends(get_chat_service),
):
    logger.info("chat_turn_started", student_id=request.student_id, history=len(request.conversation_history))

    try:
        return await service.handle_turn(request)
    except Exception as e:
        logger.exception("chat_turn_failed", student_id=request.student_id, error=str(e))
        return JSONResponse(status_code=500, content=fallback_chat_body())
