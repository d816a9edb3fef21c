"""
Deterministic dropout risk scorer

Orchestrates:
  1. GPA, attendance and progress band scores
  2. Additive composite score, capped at 100
  3. Risk level + intervention priority
  4. Primary / protective factors
  5. Threshold-triggered recommendations

Pure function of the snapshot: no I/O, never raises for a valid snapshot.
Used directly as the fallback of the model-assisted path.
"""
from __future__ import annotations

from typing import Optional

import structlog

from retention_engine.schemas.assessment_request import StudentSignalSnapshot
from retention_engine.schemas.assessment_response import (
    AssessmentSource,
    RiskAssessment,
    RiskLevel,
)
from retention_engine.scoring import factors

logger = structlog.get_logger()

MAX_SCORE = 100

# Rule-based result, not a probability estimate
FALLBACK_CONFIDENCE = 0.7


# ═══════════════════════════════════════════════════════════════
# Level thresholds
#   score >= 80  → critical
#   score >= 60  → high
#   score >= 30  → medium
#   score <  30  → low
# ═══════════════════════════════════════════════════════════════
LEVEL_THRESHOLDS = [
    (80, RiskLevel.CRITICAL),
    (60, RiskLevel.HIGH),
    (30, RiskLevel.MEDIUM),
]

PRIORITY_THRESHOLDS = [
    (80, 5),
    (60, 4),
    (40, 3),
    (20, 2),
]

# ── Factor labels ──
LOW_GPA = "low GPA"
IRREGULAR_ATTENDANCE = "irregular attendance"
SLOW_PROGRESS = "slow academic progress"
LOW_RECENT_GRADES = "low recent grades"

SATISFACTORY_GPA = "satisfactory GPA"
REGULAR_ATTENDANCE = "regular attendance"
ADEQUATE_PROGRESS = "adequate academic progress"


def risk_level_for(score: int) -> RiskLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return RiskLevel.LOW


def intervention_priority_for(score: int) -> int:
    for threshold, priority in PRIORITY_THRESHOLDS:
        if score >= threshold:
            return priority
    return 1


class DeterministicRiskScorer:
    """
    Additive band scorer.

    `model_version` is the tag written to predictions produced by this
    path; it must differ from the model-assisted tag.
    """

    def __init__(self, model_version: str, credits_per_semester: int = 15):
        self.model_version = model_version
        self.credits_per_semester = credits_per_semester

    def score(self, snapshot: StudentSignalSnapshot, explanation: Optional[str] = None) -> RiskAssessment:
        bands = [
            factors.score_gpa(snapshot.gpa),
            factors.score_attendance(snapshot.attendance_rate),
            factors.score_progress(snapshot.credits_completed, snapshot.semester, self.credits_per_semester),
        ]
        total = min(sum(b.points for b in bands), MAX_SCORE)
        level = risk_level_for(total)
        priority = intervention_priority_for(total)

        logger.info(
            "rule_based_score_computed",
            student_id=snapshot.student_id,
            score=total,
            level=level.value,
            bands={b.factor_name: b.bin_label for b in bands},
        )

        return RiskAssessment(
            risk_score=total,
            risk_level=level,
            confidence=FALLBACK_CONFIDENCE,
            primary_factors=self.primary_factors(snapshot),
            protective_factors=self.protective_factors(snapshot),
            recommendations=self.recommendations(snapshot),
            intervention_priority=priority,
            explanation=explanation or (
                f"Rule-based assessment: {', '.join(f'{b.factor_name} {b.bin_label} (+{b.points})' for b in bands)}."
            ),
            model_version=self.model_version,
            source=AssessmentSource.FALLBACK,
        )

    def primary_factors(self, snapshot: StudentSignalSnapshot) -> list[str]:
        found: list[str] = []
        if snapshot.gpa < 2.5:
            found.append(LOW_GPA)
        if snapshot.attendance_rate < 70:
            found.append(IRREGULAR_ATTENDANCE)
        if snapshot.credits_completed < snapshot.semester * 12:
            found.append(SLOW_PROGRESS)
        if any(g < 2.0 for g in snapshot.recent_grades):
            found.append(LOW_RECENT_GRADES)
        return found

    def protective_factors(self, snapshot: StudentSignalSnapshot) -> list[str]:
        # Inverse thresholds of the risk bands, checked independently
        found: list[str] = []
        if snapshot.gpa >= 3.0:
            found.append(SATISFACTORY_GPA)
        if snapshot.attendance_rate >= 85:
            found.append(REGULAR_ATTENDANCE)
        if snapshot.credits_completed >= snapshot.semester * self.credits_per_semester:
            found.append(ADEQUATE_PROGRESS)
        return found

    def recommendations(self, snapshot: StudentSignalSnapshot) -> list[str]:
        recs: list[str] = []
        if snapshot.gpa < 2.5:
            recs.append("Enrol in the academic tutoring programme")
            recs.append("Review study techniques with an academic advisor")
        if snapshot.attendance_rate < 80:
            recs.append("Start attendance follow-up")
            recs.append("Identify barriers to class attendance")
        if snapshot.credits_enrolled > snapshot.credits_completed * 1.3:
            recs.append("Review current course load")
            recs.append("Build a personalised academic plan")
        return recs
