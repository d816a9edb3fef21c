"""
Tests for the deterministic (rule-based) scorer.
"""
import itertools

from conftest import make_snapshot
from retention_engine.schemas.assessment_response import AssessmentSource, RiskLevel
from retention_engine.scoring.engine import (
    DeterministicRiskScorer,
    intervention_priority_for,
    risk_level_for,
)

FALLBACK_TAG = "rule-based-1.0"


def _scorer() -> DeterministicRiskScorer:
    return DeterministicRiskScorer(model_version=FALLBACK_TAG)


class TestScoringScenarios:

    def test_struggling_student_critical(self):
        """GPA 1.8, 55% attendance, 40/90 credits → 40+30+30 = 100."""
        snap = make_snapshot(gpa=1.8, attendance_rate=55, credits_completed=40, semester=6, recent_grades=[1.5, 2.4])
        result = _scorer().score(snap)

        assert result.risk_score == 100
        assert result.risk_level == RiskLevel.CRITICAL
        assert result.intervention_priority == 5
        assert result.primary_factors == [
            "low GPA", "irregular attendance", "slow academic progress", "low recent grades",
        ]
        assert result.protective_factors == []

    def test_healthy_student_low(self):
        """GPA 3.5, 90% attendance, 95/90 credits → 0."""
        result = _scorer().score(make_snapshot())

        assert result.risk_score == 0
        assert result.risk_level == RiskLevel.LOW
        assert result.intervention_priority == 1
        assert "satisfactory GPA" in result.protective_factors
        assert "regular attendance" in result.protective_factors
        assert "adequate academic progress" in result.protective_factors
        assert result.primary_factors == []
        assert result.recommendations == []

    def test_medium_band(self):
        # GPA 2.7 (+15) + attendance 75 (+10) + 60/90 credits (+15) = 40
        snap = make_snapshot(gpa=2.7, attendance_rate=75, credits_completed=60)
        result = _scorer().score(snap)

        assert result.risk_score == 40
        assert result.risk_level == RiskLevel.MEDIUM
        assert result.intervention_priority == 3

    def test_protective_factors_are_not_negation_of_risk(self):
        """Attendance 80 is neither a risk factor nor a protective one."""
        result = _scorer().score(make_snapshot(attendance_rate=80))
        assert "irregular attendance" not in result.primary_factors
        assert "regular attendance" not in result.protective_factors

    def test_fixed_confidence_and_provenance(self):
        result = _scorer().score(make_snapshot(gpa=2.2))
        assert result.confidence == 0.7
        assert result.model_version == FALLBACK_TAG
        assert result.source == AssessmentSource.FALLBACK

    def test_explanation_override(self):
        result = _scorer().score(make_snapshot(), explanation="degraded")
        assert result.explanation == "degraded"


class TestRecommendations:

    def test_low_gpa_triggers_tutoring(self):
        recs = _scorer().score(make_snapshot(gpa=2.3)).recommendations
        assert "Enrol in the academic tutoring programme" in recs
        assert "Review study techniques with an academic advisor" in recs

    def test_attendance_below_80_triggers_follow_up(self):
        recs = _scorer().score(make_snapshot(attendance_rate=78)).recommendations
        assert recs == ["Start attendance follow-up", "Identify barriers to class attendance"]

    def test_overload_triggers_course_load_review(self):
        recs = _scorer().score(make_snapshot(credits_completed=20, credits_enrolled=30)).recommendations
        assert "Review current course load" in recs
        assert "Build a personalised academic plan" in recs


class TestBands:

    def test_score_always_within_bounds(self):
        scorer = _scorer()
        for gpa, att, credits, sem in itertools.product(
            [0.0, 1.9, 2.4, 2.9, 4.0], [0, 59, 65, 75, 100], [0, 30, 60, 200], [1, 4, 10],
        ):
            result = scorer.score(make_snapshot(gpa=gpa, attendance_rate=att, credits_completed=credits, semester=sem))
            assert 0 <= result.risk_score <= 100
            assert result.risk_level == risk_level_for(result.risk_score)
            assert result.intervention_priority == intervention_priority_for(result.risk_score)

    def test_level_is_monotonic(self):
        order = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]
        ranks = [order.index(risk_level_for(s)) for s in range(101)]
        assert ranks == sorted(ranks)

    def test_level_thresholds(self):
        assert risk_level_for(29) == RiskLevel.LOW
        assert risk_level_for(30) == RiskLevel.MEDIUM
        assert risk_level_for(60) == RiskLevel.HIGH
        assert risk_level_for(80) == RiskLevel.CRITICAL

    def test_priority_thresholds(self):
        assert [intervention_priority_for(s) for s in (0, 19, 20, 40, 60, 80, 100)] == [1, 1, 2, 3, 4, 5, 5]
