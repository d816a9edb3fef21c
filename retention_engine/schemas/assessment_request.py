"""
Inbound payload for a risk assessment.

The caller sends the student's current academic and behavioral signals
in a single POST; the engine does not fetch grades or attendance itself.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StudentSignalSnapshot(BaseModel):
    """
    Normalized signals for one student at one point in time.

    Built fresh for every assessment and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    student_id: str = Field(min_length=1)
    gpa: float = Field(ge=0, le=4, description="Cumulative GPA on a 0-4 scale")
    attendance_rate: float = Field(ge=0, le=100, description="Attendance in percent")
    credits_completed: int = Field(ge=0)
    credits_enrolled: int = Field(ge=0)
    semester: int = Field(ge=1, description="Current semester, 1-based")
    recent_grades: tuple[float, ...] = Field(default=(), description="Most recent grades, oldest first")
    behavioral_indicators: dict[str, Any] = Field(default_factory=dict)

    def expected_credits(self, per_semester: int = 15) -> int:
        return self.semester * per_semester

    def completion_ratio(self, per_semester: int = 15) -> float:
        return self.credits_completed / self.expected_credits(per_semester)
