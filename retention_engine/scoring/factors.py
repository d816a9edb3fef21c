"""
Rule-based dropout risk factors

Each factor:
  1. Takes raw input from the student snapshot
  2. Maps it to a band
  3. Returns the points that band adds to the risk score

Convention: HIGHER score = HIGHER dropout risk.
Band points sum to at most 100 (GPA 40, attendance 30, progress 30).
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FactorResult:
    factor_name: str
    raw_value: str
    bin_label: str
    points: int


# ═══════════════════════════════════════════════════════════════
# 1. GPA  (max 40 points)
# ═══════════════════════════════════════════════════════════════
def score_gpa(gpa: float) -> FactorResult:
    if gpa < 2.0:
        return FactorResult("GPA", f"{gpa:.2f}", "<2.0", 40)
    elif gpa < 2.5:
        return FactorResult("GPA", f"{gpa:.2f}", "2.0-2.5", 30)
    elif gpa < 3.0:
        return FactorResult("GPA", f"{gpa:.2f}", "2.5-3.0", 15)
    else:
        return FactorResult("GPA", f"{gpa:.2f}", "≥3.0", 0)


# ═══════════════════════════════════════════════════════════════
# 2. ATTENDANCE  (max 30 points)
# ═══════════════════════════════════════════════════════════════
def score_attendance(attendance_rate: float) -> FactorResult:
    if attendance_rate < 60:
        return FactorResult("Attendance", f"{attendance_rate:.1f}%", "<60%", 30)
    elif attendance_rate < 70:
        return FactorResult("Attendance", f"{attendance_rate:.1f}%", "60-70%", 20)
    elif attendance_rate < 80:
        return FactorResult("Attendance", f"{attendance_rate:.1f}%", "70-80%", 10)
    else:
        return FactorResult("Attendance", f"{attendance_rate:.1f}%", "≥80%", 0)


# ═══════════════════════════════════════════════════════════════
# 3. ACADEMIC PROGRESS  (max 30 points)
#    ratio = credits_completed / (semester × expected credits per semester)
# ═══════════════════════════════════════════════════════════════
def score_progress(credits_completed: int, semester: int, credits_per_semester: int = 15) -> FactorResult:
    expected = semester * credits_per_semester
    ratio = credits_completed / expected

    if ratio < 0.6:
        return FactorResult("Progress", f"{ratio:.2f}", "<0.6", 30)
    elif ratio < 0.8:
        return FactorResult("Progress", f"{ratio:.2f}", "0.6-0.8", 15)
    else:
        return FactorResult("Progress", f"{ratio:.2f}", "≥0.8", 0)
