"""
Persistent tables read and written by the engine.

  students            — upsert by student_code, read for chat context
  predictions         — append-only assessment log per student
  alerts              — raised by the engine, resolved by humans elsewhere
  chat_conversations  — exactly one row per student (unique student_id)
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, Integer, String, Text

from retention_engine.models.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Student(Base):
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=new_id)
    student_code = Column(String(50), nullable=False, unique=True, index=True)
    full_name = Column(String(200), nullable=True)
    career = Column(String(200), nullable=False)
    semester = Column(Integer, nullable=True)
    gpa = Column(Float, nullable=True)
    credits_completed = Column(Integer, nullable=True)
    credits_enrolled = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<Student {self.student_code} status={self.status}>"


class Prediction(Base):
    __tablename__ = "predictions"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), nullable=False, index=True)
    risk_score = Column(Integer, nullable=False)

    # ── {primary_factors, protective_factors, risk_level} ──
    risk_factors = Column(JSON, nullable=False)
    recommendations = Column(JSON, nullable=False)
    confidence_level = Column(Float, nullable=False)
    model_version = Column(String(50), nullable=False)

    prediction_date = Column(DateTime(timezone=True), default=_now, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Prediction {self.id} student={self.student_id} score={self.risk_score}>"


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), nullable=False, index=True)
    created_by = Column(String(100), nullable=True)
    alert_type = Column(String(20), nullable=False)
    severity = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    alert_metadata = Column("metadata", JSON, nullable=True)
    is_resolved = Column(Boolean, nullable=False, default=False)
    resolved_by = Column(String(100), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    def __repr__(self):
        return f"<Alert {self.id} {self.alert_type}/{self.severity} resolved={self.is_resolved}>"


class ChatConversation(Base):
    __tablename__ = "chat_conversations"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), nullable=False, unique=True, index=True)

    # Full transcript, oldest first: [{role, content, timestamp}]
    messages = Column(JSON, nullable=False, default=list)
    sentiment_score = Column(Float, nullable=True)
    is_escalated = Column(Boolean, nullable=False, default=False)
    last_activity = Column(DateTime(timezone=True), default=_now, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    def __repr__(self):
        return f"<ChatConversation {self.id} student={self.student_id} messages={len(self.messages or [])}>"
