"""
Persistent store used by the engine.

All reads and writes go through `SqlStore`, one instance per request
session. The one-conversation-per-student rule is enforced twice: by the
unique constraint on chat_conversations.student_id and by writing the
transcript with a single INSERT ... ON CONFLICT (student_id) DO UPDATE,
so concurrent turns for the same student never create a second row.
The last writer's full transcript wins.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from retention_engine.models.records import Alert, ChatConversation, Prediction, Student, new_id
from retention_engine.schemas.alert import AlertDraft
from retention_engine.schemas.assessment_response import RiskAssessment
from retention_engine.schemas.chat import ChatMessage


@dataclass(frozen=True)
class StoredConversation:
    id: str
    student_id: str
    messages: list[ChatMessage]
    sentiment_score: Optional[float]
    is_escalated: bool
    last_activity: Optional[datetime]


@dataclass(frozen=True)
class StudentContext:
    """What the support assistant is told about the student."""
    full_name: Optional[str] = None
    career: Optional[str] = None
    semester: Optional[int] = None
    gpa: Optional[float] = None
    status: str = "active"
    latest_risk_score: Optional[int] = None
    open_alerts: int = 0


class SqlStore:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    # ── Predictions ──

    async def save_prediction(self, student_id: str, assessment: RiskAssessment) -> str:
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
        self.session.add(prediction)
        await self._commit()
        return prediction.id

    async def list_predictions(self, student_id: str, limit: int = 20) -> list[Prediction]:
        stmt = (
            select(Prediction)
            .where(Prediction.student_id == student_id)
            .order_by(Prediction.prediction_date.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    # ── Alerts ──

    async def save_alert(self, draft: AlertDraft) -> str:
        alert = Alert(
            id=new_id(),
            student_id=draft.student_id,
            created_by=draft.created_by,
            alert_type=draft.alert_type.value,
            severity=draft.severity.value,
            title=draft.title,
            message=draft.message,
            alert_metadata=draft.metadata,
            is_resolved=False,
            due_date=draft.due_date,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(alert)
        await self._commit()
        return alert.id

    async def count_open_alerts(self, student_id: str) -> int:
        stmt = select(func.count()).select_from(Alert).where(
            Alert.student_id == student_id, Alert.is_resolved.is_(False),
        )
        return (await self.session.execute(stmt)).scalar_one()

    # ── Conversations ──

    async def get_conversation(self, student_id: str) -> Optional[StoredConversation]:
        stmt = select(ChatConversation).where(ChatConversation.student_id == student_id)
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return StoredConversation(
            id=row.id,
            student_id=row.student_id,
            messages=[ChatMessage.model_validate(m) for m in (row.messages or [])],
            sentiment_score=row.sentiment_score,
            is_escalated=bool(row.is_escalated),
            last_activity=row.last_activity,
        )

    async def upsert_conversation(
        self,
        student_id: str,
        messages: Sequence[ChatMessage],
        sentiment_score: float,
        needs_escalation: bool,
        last_activity: datetime,
    ) -> str:
        """
        Write the full transcript for `student_id` and return the row id.

        The escalation flag is OR-ed with the stored value: it can be
        raised here but is never cleared by the engine.
        """
        table = ChatConversation.__table__
        insert = _dialect_insert(self.session)

        stmt = insert(table).values(
            id=new_id(),
            student_id=student_id,
            messages=[m.model_dump(mode="json") for m in messages],
            sentiment_score=sentiment_score,
            is_escalated=needs_escalation,
            last_activity=last_activity,
            created_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["student_id"],
            set_={
                "messages": stmt.excluded.messages,
                "sentiment_score": stmt.excluded.sentiment_score,
                "is_escalated": or_(table.c.is_escalated, stmt.excluded.is_escalated),
                "last_activity": stmt.excluded.last_activity,
            },
        ).returning(table.c.id)

        try:
            conversation_id = (await self.session.execute(stmt)).scalar_one()
        except Exception:
            await self.session.rollback()
            raise
        await self._commit()
        return conversation_id

    # ── Students ──

    async def get_student_context(self, student_id: str) -> StudentContext:
        student = await self.session.get(Student, student_id)
        latest = await self.list_predictions(student_id, limit=1)
        open_alerts = await self.count_open_alerts(student_id)

        if student is None:
            return StudentContext(
                latest_risk_score=latest[0].risk_score if latest else None,
                open_alerts=open_alerts,
            )
        return StudentContext(
            full_name=student.full_name,
            career=student.career,
            semester=student.semester,
            gpa=student.gpa,
            status=student.status,
            latest_risk_score=latest[0].risk_score if latest else None,
            open_alerts=open_alerts,
        )

    async def upsert_student(self, student_code: str, **fields: Any) -> str:
        """Create or update the student identified by `student_code`."""
        stmt = select(Student).where(Student.student_code == student_code)
        student = (await self.session.execute(stmt)).scalar_one_or_none()

        if student is None:
            student = Student(id=new_id(), student_code=student_code, **fields)
            self.session.add(student)
        else:
            for key, value in fields.items():
                setattr(student, key, value)

        await self._commit()
        return student.id


def _dialect_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Conversation upsert not supported on {dialect}")
    return insert
