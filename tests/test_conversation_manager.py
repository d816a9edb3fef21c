"""
Tests for conversation loading, trailing windows and transcript persistence.
"""
from datetime import datetime, timedelta, timezone

import pytest

from conftest import MemoryStore
from retention_engine.models.store import StoredConversation
from retention_engine.schemas.chat import ChatMessage, ChatRole, SentimentAnalysis
from retention_engine.services.conversation_manager import (
    ConversationStateError,
    ConversationStateManager,
    format_context,
    trailing_window,
)


def _messages(n: int) -> list[ChatMessage]:
    start = datetime(2026, 9, 1, tzinfo=timezone.utc)
    return [
        ChatMessage(
            role=ChatRole.USER if i % 2 == 0 else ChatRole.ASSISTANT,
            content=f"message {i}",
            timestamp=start + timedelta(minutes=i),
        )
        for i in range(n)
    ]


def _escalating() -> SentimentAnalysis:
    return SentimentAnalysis(
        sentiment_score=-0.9, emotional_state="crisis", needs_escalation=True, escalation_reason="crisis",
    )


class TestTrailingWindow:
    def test_fifty_messages_keep_last_ten(self):
        msgs = _messages(50)
        window = trailing_window(msgs)
        assert len(window) == 10
        assert window == msgs[-10:]

    def test_short_transcript_kept_whole(self):
        msgs = _messages(3)
        assert trailing_window(msgs) == msgs

    def test_zero_size(self):
        assert trailing_window(_messages(5), size=0) == []

    def test_format_context_labels_roles(self):
        assert format_context(_messages(2)) == "Student: message 0\nAssistant: message 1"


class TestOpenTurn:

    async def test_new_student_starts_empty(self, store):
        turn = await ConversationStateManager(store).open_turn("STU-001")
        assert turn.conversation_id is None
        assert turn.transcript == []
        assert turn.window == []

    async def test_stored_transcript_is_canonical(self, store):
        stored = _messages(50)
        store.conversations["STU-001"] = StoredConversation(
            id="conv-1", student_id="STU-001", messages=stored, sentiment_score=0.1,
            is_escalated=False, last_activity=stored[-1].timestamp,
        )
        turn = await ConversationStateManager(store).open_turn("STU-001", caller_history=_messages(2))

        assert turn.conversation_id == "conv-1"
        assert len(turn.transcript) == 50
        assert turn.window == stored[-10:]

    async def test_caller_history_seeds_new_conversation(self, store):
        history = _messages(4)
        turn = await ConversationStateManager(store).open_turn("STU-001", caller_history=history)
        assert turn.transcript == history

    async def test_load_failure_marks_turn_unloaded(self):
        manager = ConversationStateManager(MemoryStore(failing=("get_conversation",)))
        turn = await manager.open_turn("STU-001")
        assert turn.loaded is False

        with pytest.raises(ConversationStateError):
            await manager.append_turn(turn, "hi", "hello", SentimentAnalysis.neutral())


class TestAppendTurn:

    async def test_two_turns_add_four_messages_in_one_row(self, store):
        manager = ConversationStateManager(store)

        turn = await manager.open_turn("STU-001")
        first = await manager.append_turn(turn, "I'm stressed", "Let's talk about it", SentimentAnalysis.neutral())
        assert len(first.transcript) == 2

        turn = await manager.open_turn("STU-001")
        second = await manager.append_turn(turn, "Exams are soon", "Let's plan", SentimentAnalysis.neutral())

        assert len(second.transcript) == len(first.transcript) + 2
        assert second.conversation_id == first.conversation_id
        assert list(store.conversations) == ["STU-001"]

        stamps = [m.timestamp for m in store.conversations["STU-001"].messages]
        assert all(a < b for a, b in zip(stamps, stamps[1:]))
        assert [m.role for m in store.conversations["STU-001"].messages] == [
            ChatRole.USER, ChatRole.ASSISTANT, ChatRole.USER, ChatRole.ASSISTANT,
        ]

    async def test_full_transcript_persisted_not_window(self, store):
        manager = ConversationStateManager(store, window_size=10)
        stored = _messages(30)
        store.conversations["STU-001"] = StoredConversation(
            id="conv-1", student_id="STU-001", messages=stored, sentiment_score=None,
            is_escalated=False, last_activity=stored[-1].timestamp,
        )
        turn = await manager.open_turn("STU-001")
        updated = await manager.append_turn(turn, "hi", "hello", SentimentAnalysis.neutral())

        assert len(store.conversations["STU-001"].messages) == 32
        assert len(updated.window) == 10
        assert updated.window[-1].content == "hello"

    async def test_timestamps_never_go_backwards(self, store):
        """Stored messages dated in the future still get later timestamps appended."""
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        msg = ChatMessage(role=ChatRole.ASSISTANT, content="from the future", timestamp=future)
        store.conversations["STU-001"] = StoredConversation(
            id="conv-1", student_id="STU-001", messages=[msg], sentiment_score=None,
            is_escalated=False, last_activity=future,
        )
        manager = ConversationStateManager(store)
        updated = await manager.append_turn(await manager.open_turn("STU-001"), "a", "b", SentimentAnalysis.neutral())

        stamps = [m.timestamp for m in updated.transcript]
        assert stamps[0] < stamps[1] < stamps[2]

    async def test_escalation_flag_is_sticky(self, store):
        manager = ConversationStateManager(store)
        await manager.append_turn(await manager.open_turn("STU-001"), "I can't go on", "Please call", _escalating())
        await manager.append_turn(await manager.open_turn("STU-001"), "Feeling better", "Great", SentimentAnalysis.neutral())

        conversation = store.conversations["STU-001"]
        assert conversation.is_escalated is True
        assert conversation.sentiment_score == 0.0

    async def test_turn_without_assistant_reply_stores_student_message_only(self, store):
        manager = ConversationStateManager(store)
        updated = await manager.append_turn(await manager.open_turn("STU-001"), "Is anyone there?", None,
                                            SentimentAnalysis.neutral())

        assert [m.role for m in updated.transcript] == [ChatRole.USER]
        assert store.conversations["STU-001"].messages[0].content == "Is anyone there?"
