"""
Tests for merging vision reports.
"""

import pytest

from gradeai.ai.response_shapes import adapt_vision_payload
from gradeai.ai.vision_consensus import merge_vision_results
from gradeai.core.exceptions import AllProvidersFailedError
from gradeai.core.models import GradeAgreement, GradeConfidence, VisionReport

from conftest import vision_reply


def report(provider, grade="2", confidence="high", subject="Mathematik"):
    return adapt_vision_payload(vision_reply(grade, confidence, subject), provider, pages_analyzed=2, duration_ms=500)


def test_full_agreement_bonus():
    result = merge_vision_results([report("claude", "2"), report("gemini", "2-")])

    assert result.grade_agreement == GradeAgreement.FULL
    assert result.final_result.grade.value == "2"
    # avg 80 + 15 full agreement + 10 * 1.0 success ratio, clamped to 100
    assert result.overall_confidence == 100.0
    assert result.warnings == []


def test_base_report_follows_priority():
    result = merge_vision_results(
        [report("mistral", subject="Deutsch"), report("claude", subject="Englisch")],
        priority=["claude", "gemini", "mistral"],
    )

    assert result.final_result.provider == "claude"
    assert result.final_result.test.subject == "Englisch"
    assert result.providers_succeeded == ["claude", "mistral"]


def test_arrival_order_does_not_matter():
    a, b, c = report("claude", "2"), report("gemini", "3", "medium"), report("mistral", "3", "low")

    first = merge_vision_results([a, b, c])
    second = merge_vision_results([c, a, b])

    assert first.model_dump() == second.model_dump()


def test_disagreement_warns_and_lowers_confidence():
    result = merge_vision_results([report("claude", "2"), report("gemini", "4", "medium")])

    assert result.grade_agreement == GradeAgreement.PARTIAL
    assert result.final_result.grade.value == "2"
    assert result.final_result.grade.confidence == GradeConfidence.MEDIUM
    assert "AI providers disagreed on the grade. Result may need verification." in result.warnings
    # 80 + 5 + 10
    assert result.overall_confidence == 95.0


def test_failed_providers_are_reported():
    failed = VisionReport.empty("mistral", "timed out", 55000, 2)

    result = merge_vision_results([report("claude"), failed])

    assert result.providers_failed == ["mistral"]
    assert result.providers_used == ["claude", "mistral"]
    assert result.warnings[0] == "1 AI provider(s) failed: mistral"
    # single vote: partial; 80 + 5 + 10 * 0.5
    assert result.overall_confidence == 90.0


def test_no_grade_found():
    result = merge_vision_results([report("claude", None, "not_found"), report("gemini", None, "not_found")])

    assert result.grade_agreement == GradeAgreement.NONE
    assert result.final_result.grade.value is None
    assert "Grade could not be automatically detected. Please verify manually." in result.warnings
    assert result.overall_confidence == 80.0


def test_lists_are_deduplicated():
    result = merge_vision_results([report("claude"), report("gemini")])
    final = result.final_result

    assert [s.point for s in final.strengths] == ["Sauberer Rechenweg"]
    assert [r.action for r in final.recommendations] == ["Einheiten immer mitschreiben"]
    assert final.teacher_feedback.margin_notes == ["Rechenweg!"]
    assert final.student.class_name == "5b"


def test_all_failed_raises():
    with pytest.raises(AllProvidersFailedError):
        merge_vision_results([VisionReport.empty("claude", "boom", 10, 1), VisionReport.empty("gemini", "429", 10, 1)])
