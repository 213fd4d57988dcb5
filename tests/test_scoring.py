"""
Tests for provider result quality scoring.
"""

from gradeai.ai.scoring import calculate_quality_score, score_analysis
from gradeai.config.settings import ScoringWeights
from gradeai.core.models import (
    LongTermDevelopment,
    NormalizedAnalysis,
    PerformanceBlock,
    ProviderResult,
    SectionPerformance,
    SummaryBlock,
)

from conftest import make_analysis, make_result


def test_score_is_idempotent():
    """Repeated scoring of the same result gives the same value."""
    result = make_result("claude", make_analysis(strengths=["a", "b", "c"], actions=["Practice fractions daily"]))

    scores = {calculate_quality_score(result) for _ in range(5)}

    assert len(scores) == 1


def test_empty_analysis_scores_confidence_only():
    analysis = NormalizedAnalysis(summary=SummaryBlock(overall_grade="", subject="Unknown"))

    assert score_analysis(analysis, 0.5) == 50.0


def test_completeness_bonuses():
    """Grade, subject, sections, recommendations and lists each add points."""
    analysis = NormalizedAnalysis(
        summary=SummaryBlock(overall_grade="2", overall_score=18, subject="Mathematik"),
        performance=PerformanceBlock(by_section=[SectionPerformance(name=f"A{i}") for i in range(3)]),
        strengths=["a", "b", "c"],
        weaknesses=["x", "y", "z"],
        long_term_development=LongTermDevelopment(semester_prediction="2", goal_setting="1"),
    )

    # 80 + grade 10 + score 5 + subject 5 + sections 10 + 3*2 + strengths 10 + weaknesses 10 + 5 + 5
    assert score_analysis(analysis, 0.8) == 146.0


def test_section_bonus_is_capped():
    weights = ScoringWeights()
    many = NormalizedAnalysis(performance=PerformanceBlock(by_section=[SectionPerformance() for _ in range(20)]))

    assert score_analysis(many, 0.0, weights) == weights.sections_present_bonus + weights.sections_cap


def test_longer_recommendations_score_higher():
    short = make_analysis(actions=["Read"])
    specific = make_analysis(actions=["Read one German short story aloud every evening and summarize it"])

    assert score_analysis(specific, 0.8) > score_analysis(short, 0.8)


def test_recommendation_length_bonus_is_capped():
    weights = ScoringWeights()
    analysis = make_analysis(grade="", subject="", actions=["x" * 1000])

    assert score_analysis(analysis, 0.0, weights) == weights.recommendations_present_bonus + weights.recommendation_length_cap


def test_two_strengths_earn_no_list_bonus():
    two = make_analysis(grade="", subject="", strengths=["a", "b"])
    three = make_analysis(grade="", subject="", strengths=["a", "b", "c"])

    assert score_analysis(three, 0.8) - score_analysis(two, 0.8) == ScoringWeights().strengths_bonus


def test_missing_grade_markers_earn_no_grade_bonus():
    with_grade = make_analysis(grade="3", subject="")
    unknown = make_analysis(grade="Unknown", subject="")

    assert score_analysis(with_grade, 0.8) - score_analysis(unknown, 0.8) == ScoringWeights().grade_bonus


def test_custom_weights_are_used():
    weights = ScoringWeights(grade_bonus=100)
    analysis = make_analysis(grade="2", subject="")

    assert score_analysis(analysis, 0.0, weights) == 100


def test_failed_result_scores_zero():
    assert calculate_quality_score(ProviderResult.failure("mistral", "timeout")) == 0.0
