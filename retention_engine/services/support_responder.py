"""
Assistant replies for the support chat.

The prompt is: a fixed system brief, what the store knows about the
student, the trailing window of the conversation and the new message.
If the model cannot be reached the student still gets an answer: a
fixed message pointing them to a counselor.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import structlog

from retention_engine.core.metrics import TEXT_GENERATION_FAILURES_TOTAL
from retention_engine.models.store import StudentContext
from retention_engine.schemas.chat import ChatMessage
from retention_engine.services.conversation_manager import format_context
from retention_engine.services.text_generation import TextGenerator

logger = structlog.get_logger()

FALLBACK_REPLY = (
    "I'm sorry, I'm having technical trouble right now. "
    "Please reach out directly to a student counselor, they are there to help you."
)

SYSTEM_BRIEF = """
You are an intelligent student-support assistant for the university's retention programme. Your role is to:

1. PROVIDE EMOTIONAL AND ACADEMIC SUPPORT:
- Listen with empathy
- Point to support resources
- Motivate and guide the student

2. DETECT RISK SITUATIONS:
- Notice signs of stress, anxiety or depression
- Recognise serious academic or personal problems
- Recommend escalation when needed

3. OFFER CONCRETE RESOURCES:
- University services
- Study and time-management techniques
- Wellbeing strategies

4. KEEP APPROPRIATE BOUNDARIES:
- You are not a professional therapist
- Refer to specialists when necessary
- Keep appropriate confidentiality

GUIDELINES:
- Be empathetic but professional
- Use a warm, respectful tone
- Give useful, specific answers
- If you detect a crisis or high risk, recommend contacting a counselor immediately
""".strip()

NOT_AVAILABLE = "not available"


@dataclass(frozen=True)
class SupportReply:
    text: str
    degraded: bool = False


def _or_na(value) -> str:
    return NOT_AVAILABLE if value is None or value == "" else str(value)


def format_student_context(ctx: StudentContext) -> str:
    return "\n".join([
        "Student information:",
        f"- Name: {_or_na(ctx.full_name)}",
        f"- Programme: {_or_na(ctx.career)}",
        f"- Semester: {_or_na(ctx.semester)}",
        f"- GPA: {_or_na(ctx.gpa)}",
        f"- Status: {ctx.status or 'active'}",
        f"- Current risk score: {ctx.latest_risk_score if ctx.latest_risk_score is not None else 'not assessed'}",
        f"- Open alerts: {ctx.open_alerts}",
    ])


def build_reply_prompt(message: str, window: Sequence[ChatMessage], ctx: StudentContext) -> str:
    return "\n\n".join([
        SYSTEM_BRIEF,
        "STUDENT CONTEXT:\n" + format_student_context(ctx),
        "CONVERSATION HISTORY:\n" + format_context(window),
        "CURRENT STUDENT MESSAGE:\n" + message,
        "Please reply in a helpful and empathetic way:",
    ])


class SupportResponder:

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def reply(self, message: str, window: Sequence[ChatMessage], ctx: StudentContext) -> SupportReply:
        prompt = build_reply_prompt(message, window, ctx)
        try:
            text = await self.generator.generate(prompt)
        except Exception as e:
            TEXT_GENERATION_FAILURES_TOTAL.labels(component="support_reply").inc()
            logger.warning("support_reply_failed", error=str(e))
            return SupportReply(text=FALLBACK_REPLY, degraded=True)
        return SupportReply(text=text.strip())
