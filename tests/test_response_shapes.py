"""
Tests for provider response shape adapters.
"""

import json

import pytest

from gradeai.ai.response_shapes import (
    ResponseShape,
    adapt_analysis_data,
    adapt_analysis_payload,
    adapt_vision_payload,
    detect_shape,
    normalize_confidence,
    vision_report_to_analysis,
)
from gradeai.config.constants import UNABLE_TO_DETERMINE
from gradeai.core.exceptions import ParsingError
from gradeai.core.models import GradeConfidence, TransformStatus

from conftest import summary_reply, vision_reply

HEADER_REPORT = {
    "header": {
        "studentName": "Jonas",
        "subject": "Deutsch",
        "grade": "3-",
        "points": 31,
        "maxPoints": 45,
        "confidenceScore": 85,
    },
    "emotionalIntroduction": "Jonas hat sich sichtbar Mühe gegeben.",
    "examinationStructure": [{"taskType": "Diktat", "pointsAchieved": 12, "maxPoints": 20}],
    "strengthsAndHope": {"strengths": ["Gute Wortwahl", "Saubere Schrift"], "outlook": "Note 2 ist erreichbar"},
    "topErrorAnalysis": [{"errorType": "Kommasetzung"}, {"description": "Groß- und Kleinschreibung"}],
    "prioritizedLearningPlan": [{"what": "Kommaregeln", "how": "Jeden Tag fünf Sätze", "why": "Häufigster Fehler"}],
    "parentActionPlan": {"thisWeek": ["Diktat üben", "Lesen"]},
}


@pytest.mark.parametrize("value, expected", [
    (0.82, 0.82),
    (82, 0.82),
    ("85", 0.85),
    (1, 1.0),
    (150, 1.0),
    (-3, 0.0),
])
def test_normalize_confidence(value, expected):
    assert normalize_confidence(value) == pytest.approx(expected)


@pytest.mark.parametrize("value", [None, "high", float("nan"), float("inf"), True])
def test_normalize_confidence_falls_back_to_default(value):
    assert normalize_confidence(value) == 0.85
    assert normalize_confidence(value, default=None) is None


def test_detect_shape():
    assert detect_shape(json.loads(summary_reply())) == ResponseShape.SUMMARY
    assert detect_shape(HEADER_REPORT) == ResponseShape.HEADER_REPORT
    assert detect_shape({"grade": "2"}) == ResponseShape.UNKNOWN


def test_summary_shape_is_transformed():
    result = adapt_analysis_payload(summary_reply(grade="2+", confidence=90), "claude-test")

    assert result.status == TransformStatus.TRANSFORMED
    assert result.shape == ResponseShape.SUMMARY
    analysis = result.analysis
    assert analysis.summary.overall_grade == "2+"
    assert analysis.summary.confidence == pytest.approx(0.9)
    assert analysis.summary.max_score == 20
    assert analysis.performance.by_section[0].name == "Aufgabe 1"
    assert analysis.recommendations[0].action == "Jeden Tag zehn Minuten Kopfrechnen üben"
    assert analysis.long_term_development.semester_prediction == "2"
    assert analysis.metadata.ai_model == "claude-test"


def test_header_report_is_transformed():
    result = adapt_analysis_data(HEADER_REPORT, "gemini-test")

    assert result.status == TransformStatus.TRANSFORMED
    analysis = result.analysis
    assert analysis.summary.overall_grade == "3-"
    assert analysis.summary.child_name == "Jonas"
    assert analysis.summary.confidence == pytest.approx(0.85)
    assert analysis.summary.overall_score == 31
    assert analysis.summary.executive_summary.startswith("Jonas")
    assert analysis.strengths == ["Gute Wortwahl", "Saubere Schrift"]
    assert analysis.weaknesses == ["Kommasetzung", "Groß- und Kleinschreibung"]
    assert analysis.performance.by_section[0].points_possible == 20
    assert analysis.recommendations[0].action == "Jeden Tag fünf Sätze"
    assert analysis.recommendations[0].rationale == "Häufigster Fehler"
    assert analysis.teacher_feedback.written == "Diktat üben\nLesen"
    assert analysis.long_term_development.semester_prediction == "Note 2 ist erreichbar"


def test_unknown_shape_is_mapped_best_effort():
    result = adapt_analysis_data({"strengths": ["Fleißig"], "recommendations": ["Mehr lesen"]}, "groq-test")

    assert result.status == TransformStatus.TRANSFORMED
    assert result.shape == ResponseShape.UNKNOWN
    assert result.analysis.summary.overall_grade == "Unknown"
    assert result.analysis.strengths == ["Fleißig"]
    assert result.analysis.recommendations[0].action == "Mehr lesen"


def test_wrongly_typed_fields_are_coerced():
    payload = json.loads(summary_reply())
    payload["summary"]["overallGrade"] = 2
    payload["summary"]["overallScore"] = "n/a"
    payload["strengths"] = "not a list"
    payload["recommendations"] = [None, 5, {"priority": "high", "action": "Üben"}]

    result = adapt_analysis_data(payload, "mistral-test")

    assert result.status == TransformStatus.TRANSFORMED
    assert result.analysis.summary.overall_grade == "2"
    assert result.analysis.summary.overall_score == 0.0
    assert result.analysis.strengths == []
    assert [r.action for r in result.analysis.recommendations] == ["Üben"]
    assert result.analysis.recommendations[0].priority == 1


def test_adapter_failure_is_defaulted(monkeypatch):
    from gradeai.ai import response_shapes

    def broken(data, model_name):
        raise KeyError("summary")

    monkeypatch.setitem(response_shapes.ANALYSIS_ADAPTERS, ResponseShape.SUMMARY, broken)

    result = adapt_analysis_payload(summary_reply(), "claude-test")

    assert result.status == TransformStatus.DEFAULTED
    assert result.analysis.summary.overall_grade == UNABLE_TO_DETERMINE
    assert result.analysis.summary.confidence == 0.0
    assert result.analysis.metadata.ai_model == "claude-test"


def test_prose_reply_is_unrecoverable():
    result = adapt_analysis_payload("Sorry, I can't help with that.", "claude-test")

    assert result.status == TransformStatus.UNRECOVERABLE
    assert result.analysis is None
    assert not result.usable


def test_vision_payload():
    report = adapt_vision_payload(vision_reply(grade="2-"), "claude", pages_analyzed=3, duration_ms=1200)

    assert report.success
    assert report.student.class_name == "5b"
    assert report.grade.value == "2-"
    assert report.grade.confidence == GradeConfidence.HIGH
    assert report.grade.found_on_page == 1
    assert report.metadata.pages_analyzed == 3
    assert report.metadata.confidence == 80
    assert report.recommendations[0].priority == "high"


def test_vision_payload_unknown_tier():
    data = json.loads(vision_reply())
    data["grade"]["confidence"] = "pretty sure"

    report = adapt_vision_payload(json.dumps(data), "gemini", 1, 10)

    assert report.grade.confidence == GradeConfidence.LOW


def test_vision_payload_requires_json():
    with pytest.raises(ParsingError):
        adapt_vision_payload("no json here", "gemini", 1, 10)


def test_vision_report_to_analysis():
    report = adapt_vision_payload(vision_reply(grade="3"), "claude", 2, 500)

    analysis = vision_report_to_analysis(report, 92.5, "Vision Consensus (claude)")

    assert analysis.summary.overall_grade == "3"
    assert analysis.summary.child_name == "Mia"
    assert analysis.summary.confidence == pytest.approx(0.925)
    assert analysis.teacher_feedback.written == "Weiter so!"
    assert analysis.teacher_feedback.praise == ["Sauberer Rechenweg"]
    assert analysis.recommendations[0].priority == 1
    assert analysis.long_term_development.improvement_areas == ["Einheiten vergessen"]
    assert analysis.metadata.ai_model == "Vision Consensus (claude)"
