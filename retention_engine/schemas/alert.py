"""
Alert drafts built by the dispatcher before they are persisted.
"""
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AlertType(str, Enum):
    ACADEMIC = "academic"
    ATTENDANCE = "attendance"
    BEHAVIORAL = "behavioral"
    FINANCIAL = "financial"
    TECHNICAL = "technical"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertDraft(BaseModel):
    """An alert the engine has decided to raise. Resolution happens elsewhere."""
    model_config = ConfigDict(frozen=True)

    student_id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    metadata: dict[str, Any]
    created_by: Optional[str] = None
    due_date: Optional[date] = None
