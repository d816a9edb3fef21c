"""
Student records API — roster sync + read access to engine outputs.

Endpoints:
  PUT /v1/students/{student_code}
    → Create or update a student record (upsert by student_code)

  GET /v1/students/{student_id}/predictions
    → Prediction log, newest first

  GET /v1/students/{student_id}/conversation
    → Canonical support-chat transcript
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from retention_engine.api.dependencies import get_store
from retention_engine.models.store import SqlStore
from retention_engine.schemas.chat import ChatMessage

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/students", tags=["students"])


# ── Pydantic Schemas ──

class StudentUpsert(BaseModel):
    career: str
    full_name: Optional[str] = None
    semester: Optional[int] = Field(None, ge=1)
    gpa: Optional[float] = Field(None, ge=0, le=4)
    credits_completed: Optional[int] = Field(None, ge=0)
    credits_enrolled: Optional[int] = Field(None, ge=0)
    status: str = Field("active", pattern="^(active|inactive|graduated|dropped)$")


class StudentUpsertResponse(BaseModel):
    id: str
    student_code: str


class PredictionResponse(BaseModel):
    id: str
    student_id: str
    risk_score: int
    risk_factors: dict
    recommendations: list[str]
    confidence_level: float
    model_version: str
    prediction_date: datetime


class ConversationResponse(BaseModel):
    id: str
    student_id: str
    messages: list[ChatMessage]
    sentiment_score: Optional[float]
    is_escalated: bool
    last_activity: Optional[datetime]


# ── Endpoints ──

@router.put("/{student_code}", response_model=StudentUpsertResponse)
async def upsert_student(student_code: str, body: StudentUpsert, store: SqlStore = Depends(get_store)):
    student_id = await store.upsert_student(student_code, **body.model_dump())
    logger.info("student_upserted", student_code=student_code, student_id=student_id)
    return StudentUpsertResponse(id=student_id, student_code=student_code)


@router.get("/{student_id}/predictions", response_model=list[PredictionResponse])
async def list_predictions(
    student_id: str,
    limit: int = Query(20, ge=1, le=200),
    store: SqlStore = Depends(get_store),
):
    rows = await store.list_predictions(student_id, limit=limit)
    return [
        PredictionResponse(
            id=r.id,
            student_id=r.student_id,
            risk_score=r.risk_score,
            risk_factors=r.risk_factors,
            recommendations=r.recommendations,
            confidence_level=r.confidence_level,
            model_version=r.model_version,
            prediction_date=r.prediction_date,
        )
        for r in rows
    ]


@router.get("/{student_id}/conversation", response_model=ConversationResponse)
async def get_conversation(student_id: str, store: SqlStore = Depends(get_store)):
    conversation = await store.get_conversation(student_id)
    if conversation is None:
        raise HTTPException(404, f"No conversation found for student {student_id}")
    return ConversationResponse(
        id=conversation.id,
        student_id=conversation.student_id,
        messages=conversation.messages,
        sentiment_score=conversation.sentiment_score,
        is_escalated=conversation.is_escalated,
        last_activity=conversation.last_activity,
    )
