"""
Quality scoring for provider results.

A pure heuristic over one result: completeness plus self-reported
confidence. No cross-result comparison is involved.
"""

from typing import Optional

from gradeai.config.settings import ScoringWeights
from gradeai.core.models import NormalizedAnalysis, ProviderResult

DEFAULT_WEIGHTS = ScoringWeights()


def score_analysis(analysis: NormalizedAnalysis, confidence: float, weights: Optional[ScoringWeights] = None) -> float:
    """
    Score one analysis, higher is better.

    Args:
        analysis: Normalized analysis to score
        confidence: Provider confidence on a 0-1 scale
        weights: Bonuses and caps (defaults from settings)

    Returns:
        Score starting at confidence * 100 plus completeness bonuses
    """
    w = weights or DEFAULT_WEIGHTS
    score = confidence * 100

    summary = analysis.summary
    if summary.has_grade:
        score += w.grade_bonus
    if summary.overall_score:
        score += w.score_bonus
    if summary.subject and summary.subject.lower() != "unknown":
        score += w.subject_bonus

    sections = analysis.performance.by_section
    if sections:
        score += w.sections_present_bonus
        score += min(len(sections) * w.per_section_bonus, w.sections_cap)

    recommendations = analysis.recommendations
    if recommendations:
        score += w.recommendations_present_bonus
        avg_length = sum(len(r.action) for r in recommendations) / len(recommendations)
        score += min(avg_length / w.recommendation_length_divisor, w.recommendation_length_cap)

    if len(analysis.strengths) > w.list_bonus_min_items:
        score += w.strengths_bonus
    if len(analysis.weaknesses) > w.list_bonus_min_items:
        score += w.weaknesses_bonus

    long_term = analysis.long_term_development
    if long_term.semester_prediction:
        score += w.semester_prediction_bonus
    if long_term.goal_setting:
        score += w.goal_setting_bonus

    return round(score, 4)


def calculate_quality_score(result: ProviderResult, weights: Optional[ScoringWeights] = None) -> float:
    """Score a provider result; failed results score zero."""
    if not result.success or result.analysis is None:
        return 0.0
    return score_analysis(result.analysis, result.confidence, weights)
