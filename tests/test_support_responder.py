"""
Tests for assistant reply prompts and the counselor-referral fallback.
"""
from datetime import datetime, timezone

from conftest import FakeGenerator
from retention_engine.models.store import StudentContext
from retention_engine.schemas.chat import ChatMessage, ChatRole
from retention_engine.services.support_responder import (
    FALLBACK_REPLY,
    SupportResponder,
    build_reply_prompt,
    format_student_context,
)


class TestPrompt:

    def test_unknown_fields_marked_not_available(self):
        text = format_student_context(StudentContext())
        assert "- Name: not available" in text
        assert "- Current risk score: not assessed" in text
        assert "- Open alerts: 0" in text

    def test_prompt_sections_in_order(self):
        window = [ChatMessage(role=ChatRole.USER, content="earlier", timestamp=datetime.now(timezone.utc))]
        ctx = StudentContext(full_name="Ana Torres", career="Law", semester=2, gpa=2.4, latest_risk_score=65)
        prompt = build_reply_prompt("I can't keep up", window, ctx)

        positions = [prompt.index(s) for s in (
            "STUDENT CONTEXT", "CONVERSATION HISTORY", "CURRENT STUDENT MESSAGE",
        )]
        assert positions == sorted(positions)
        assert "- Name: Ana Torres" in prompt
        assert "- Current risk score: 65" in prompt
        assert "Student: earlier" in prompt
        assert prompt.rstrip().endswith("Please reply in a helpful and empathetic way:")


class TestReply:

    async def test_model_text_is_stripped(self):
        reply = await SupportResponder(FakeGenerator(reply="  Let's work on it together.\n")).reply(
            "help", [], StudentContext(),
        )
        assert reply.text == "Let's work on it together."
        assert reply.degraded is False

    async def test_failure_gives_fallback(self):
        reply = await SupportResponder(FakeGenerator(reply=TimeoutError())).reply("help", [], StudentContext())
        assert reply.text == FALLBACK_REPLY
        assert reply.degraded is True
