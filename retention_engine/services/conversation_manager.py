"""
Conversation state for the support chat.

One conversation per student. Each turn:
  1. open_turn   → load the stored transcript (or start empty) and cut
                   the trailing window used as model context
  2. (reply + sentiment are produced elsewhere)
  3. append_turn → append user + assistant messages and upsert the
                   FULL transcript, not just the window

Older history stays in storage but never reaches a prompt.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import structlog

from retention_engine.schemas.chat import ChatMessage, ChatRole, SentimentAnalysis

logger = structlog.get_logger()

DEFAULT_WINDOW_SIZE = 10

_ROLE_LABELS = {
    ChatRole.USER: "Student",
    ChatRole.ASSISTANT: "Assistant",
}


class ConversationStateError(Exception):
    """The stored transcript could not be loaded, so it must not be overwritten."""


@dataclass(frozen=True)
class ConversationTurn:
    student_id: str
    conversation_id: Optional[str]
    transcript: list[ChatMessage]
    window: list[ChatMessage]
    loaded: bool = True


def trailing_window(messages: Sequence[ChatMessage], size: int = DEFAULT_WINDOW_SIZE) -> list[ChatMessage]:
    if size <= 0:
        return []
    return list(messages[-size:])


def format_context(messages: Sequence[ChatMessage]) -> str:
    return "\n".join(f"{_ROLE_LABELS[m.role]}: {m.content}" for m in messages)


def _next_timestamp(previous: Optional[datetime]) -> datetime:
    # Transcript order is chronological order: never reuse or go back in time
    now = datetime.now(timezone.utc)
    if previous is not None:
        if previous.tzinfo is None:
            previous = previous.replace(tzinfo=timezone.utc)
        if now <= previous:
            return previous + timedelta(microseconds=1)
    return now


def extend_transcript(
    transcript: Sequence[ChatMessage],
    user_message: str,
    assistant_message: Optional[str],
) -> list[ChatMessage]:
    last = transcript[-1].timestamp if transcript else None
    user_ts = _next_timestamp(last)
    user = ChatMessage(role=ChatRole.USER, content=user_message, timestamp=user_ts)
    if assistant_message is None:
        return [*transcript, user]
    assistant = ChatMessage(role=ChatRole.ASSISTANT, content=assistant_message, timestamp=_next_timestamp(user_ts))
    return [*transcript, user, assistant]


class ConversationStateManager:

    def __init__(self, store, window_size: int = DEFAULT_WINDOW_SIZE):
        self.store = store
        self.window_size = window_size

    async def open_turn(
        self,
        student_id: str,
        caller_history: Sequence[ChatMessage] = (),
    ) -> ConversationTurn:
        """
        Load the student's conversation.

        The stored transcript is canonical. The caller's history only
        seeds a conversation that does not exist yet.
        """
        try:
            stored = await self.store.get_conversation(student_id)
        except Exception as e:
            logger.error("conversation_load_failed", student_id=student_id, error=str(e))
            history = list(caller_history)
            return ConversationTurn(
                student_id=student_id,
                conversation_id=None,
                transcript=history,
                window=trailing_window(history, self.window_size),
                loaded=False,
            )

        if stored is None:
            transcript = list(caller_history)
            conversation_id = None
        else:
            transcript = list(stored.messages)
            conversation_id = stored.id

        return ConversationTurn(
            student_id=student_id,
            conversation_id=conversation_id,
            transcript=transcript,
            window=trailing_window(transcript, self.window_size),
        )

    async def append_turn(
        self,
        turn: ConversationTurn,
        user_message: str,
        assistant_message: Optional[str],
        sentiment: SentimentAnalysis,
    ) -> ConversationTurn:
        """
        Append both messages and persist the full transcript.

        `assistant_message=None` records only the student message, for
        turns answered with the canned fallback instead of a model reply.

        Raises whatever the store raises; the caller decides whether a
        failed write is fatal.
        """
        if not turn.loaded:
            raise ConversationStateError(f"Conversation for {turn.student_id} was not loaded")

        transcript = extend_transcript(turn.transcript, user_message, assistant_message)
        conversation_id = await self.store.upsert_conversation(
            student_id=turn.student_id,
            messages=transcript,
            sentiment_score=sentiment.sentiment_score,
            needs_escalation=sentiment.needs_escalation,
            last_activity=transcript[-1].timestamp,
        )

        logger.info(
            "conversation_persisted",
            student_id=turn.student_id,
            conversation_id=conversation_id,
            messages=len(transcript),
        )
        return replace(
            turn,
            conversation_id=conversation_id,
            transcript=transcript,
            window=trailing_window(transcript, self.window_size),
        )
