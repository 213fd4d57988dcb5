"""
Response shape adapters.

Providers answer in one of a few JSON shapes depending on which prompt
generation produced them. Each shape has exactly one adapter into
NormalizedAnalysis; nothing outside this module sees provider JSON.

Adapters report how the mapping went instead of hiding it:
- TRANSFORMED: mapped field by field
- DEFAULTED: mapping raised, a minimal valid analysis was substituted
- UNRECOVERABLE: the response was not structured data at all
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from loguru import logger

from gradeai.config.constants import DEFAULT_CONFIDENCE
from gradeai.core.exceptions import ParsingError
from gradeai.core.models import (
    AnalysisMetadata,
    GradeConfidence,
    GradeInfo,
    LanguageEnhancement,
    LongTermDevelopment,
    NormalizedAnalysis,
    PerformanceBlock,
    Recommendation,
    RecommendationItem,
    SectionPerformance,
    StrengthItem,
    SummaryBlock,
    TeacherFeedbackBlock,
    TimeManagement,
    TransformStatus,
    VisionMetadata,
    VisionReport,
    VisionStudent,
    VisionTeacherFeedback,
    VisionTest,
    WeaknessItem,
)
from gradeai.utils.json_extractor import extract_json_from_response
from gradeai.utils.type_guards import (
    ensure_dict,
    ensure_float,
    ensure_int,
    ensure_list,
    ensure_optional_str,
    ensure_str,
    ensure_str_list,
    has_any_key,
)

HEADER_REPORT_KEYS = ["header", "examinationStructure", "strengthsAndHope", "emotionalIntroduction"]


class ResponseShape(str, Enum):
    """Closed set of known provider response shapes."""
    SUMMARY = "summary"              # summary + performance blocks
    HEADER_REPORT = "header_report"  # header / examinationStructure / strengthsAndHope ...
    UNKNOWN = "unknown"              # anything else, mapped best-effort
    VISION_REPORT = "vision_report"  # student / test / grade from page images


@dataclass(frozen=True)
class AdaptationResult:
    status: TransformStatus
    shape: Optional[ResponseShape] = None
    analysis: Optional[NormalizedAnalysis] = None
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return self.analysis is not None


def normalize_confidence(value: Any, default: Optional[float] = DEFAULT_CONFIDENCE) -> Optional[float]:
    """
    Bring a self-reported confidence onto the 0-1 scale.

    Providers report either 0-1 or 0-100; anything above 1 is a percentage.
    Missing or non-finite values become default.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    if number > 1:
        number = number / 100
    return max(0.0, min(1.0, number))


def detect_shape(data: Dict[str, Any]) -> ResponseShape:
    """Classify a parsed analysis payload."""
    if has_any_key(data, HEADER_REPORT_KEYS):
        return ResponseShape.HEADER_REPORT
    if isinstance(data.get("summary"), dict) and isinstance(data.get("performance"), dict):
        return ResponseShape.SUMMARY
    return ResponseShape.UNKNOWN


# ==================== SHARED FIELD MAPPERS ====================

def _sections(items: Any) -> list[SectionPerformance]:
    sections = []
    for task in ensure_list(items):
        if not isinstance(task, dict):
            continue
        sections.append(SectionPerformance(
            name=ensure_str(task.get("name") or task.get("taskType"), "Task"),
            points_achieved=ensure_float(task.get("pointsAchieved")),
            points_possible=ensure_float(task.get("pointsPossible") or task.get("maxPoints")),
            percentage=ensure_float(task.get("percentage")),
            notes=ensure_str(task.get("notes") or task.get("topic")),
        ))
    return sections


def _recommendations(items: Any) -> list[Recommendation]:
    recommendations = []
    for item in ensure_list(items):
        if isinstance(item, str) and item.strip():
            recommendations.append(Recommendation(action=item.strip(), category="Learning"))
            continue
        if not isinstance(item, dict):
            continue
        recommendations.append(Recommendation(
            priority=ensure_int(item.get("priority"), 1) or 1,
            category=ensure_str(item.get("category") or item.get("what"), "Learning"),
            action=ensure_str(item.get("action") or item.get("how") or item.get("what"), "Practice"),
            timeframe=ensure_str(item.get("timeframe"), "1 week"),
            rationale=ensure_str(item.get("rationale") or item.get("why")),
            resources=ensure_str_list(item.get("resources")),
        ))
    return recommendations


def _time_management(data: Any) -> Optional[TimeManagement]:
    if not isinstance(data, dict):
        return None
    return TimeManagement(
        assessment=ensure_str(data.get("assessment")),
        suggestions=ensure_str_list(data.get("suggestions")),
    )


def _language_enhancement(data: Any) -> Optional[LanguageEnhancement]:
    if not isinstance(data, dict):
        return None
    return LanguageEnhancement(
        applicable=bool(data.get("applicable")),
        notes=ensure_optional_str(data.get("notes")),
        grammar_issues=ensure_str_list(data.get("grammarIssues")),
        vocabulary_tips=ensure_str_list(data.get("vocabularyTips")),
    )


def _error_labels(items: Any) -> list[str]:
    labels = []
    for entry in ensure_list(items):
        if isinstance(entry, dict):
            label = ensure_str(entry.get("errorType") or entry.get("description")).strip()
        else:
            label = ensure_str(entry).strip()
        if label:
            labels.append(label)
    return labels


# ==================== ANALYSIS ADAPTERS ====================

def _from_summary(data: Dict[str, Any], model_name: str) -> NormalizedAnalysis:
    """Legacy shape: already close to NormalizedAnalysis, coerce each field."""
    summary = ensure_dict(data.get("summary"))
    performance = ensure_dict(data.get("performance"))
    feedback = ensure_dict(data.get("teacherFeedback"))
    long_term = ensure_dict(data.get("longTermDevelopment"))
    metadata = ensure_dict(data.get("metadata"))

    return NormalizedAnalysis(
        summary=SummaryBlock(
            overall_grade=ensure_str(summary.get("overallGrade")).strip(),
            overall_score=ensure_float(summary.get("overallScore")),
            max_score=ensure_float(summary.get("maxScore")),
            percentage=ensure_float(summary.get("percentage")),
            subject=ensure_str(summary.get("subject")),
            topic=ensure_optional_str(summary.get("topic")),
            child_name=ensure_str(summary.get("childName")),
            test_date=ensure_optional_str(summary.get("testDate")),
            executive_summary=ensure_optional_str(summary.get("executiveSummary")),
            confidence=normalize_confidence(summary.get("confidence"), default=None),
        ),
        performance=PerformanceBlock(
            by_section=_sections(performance.get("bySection")),
            trends=ensure_str_list(performance.get("trends")),
        ),
        teacher_feedback=TeacherFeedbackBlock(
            evaluation_methodology=ensure_optional_str(feedback.get("evaluationMethodology")),
            written=ensure_str(feedback.get("written")),
            corrections=ensure_str_list(feedback.get("corrections")),
            praise=ensure_str_list(feedback.get("praise")),
        ),
        strengths=ensure_str_list(data.get("strengths")),
        weaknesses=ensure_str_list(data.get("weaknesses")),
        recommendations=_recommendations(data.get("recommendations")),
        time_management=_time_management(data.get("timeManagement")),
        language_enhancement=_language_enhancement(data.get("languageEnhancement")),
        long_term_development=LongTermDevelopment(
            semester_prediction=ensure_str(long_term.get("semesterPrediction")),
            improvement_areas=ensure_str_list(long_term.get("improvementAreas")),
            goal_setting=ensure_str(long_term.get("goalSetting")),
        ),
        metadata=AnalysisMetadata(
            ocr_confidence=normalize_confidence(metadata.get("ocrConfidence"), default=0.0),
            ai_model=model_name,
            processing_steps=ensure_str_list(metadata.get("processingSteps")),
        ),
    )


def _from_header_report(data: Dict[str, Any], model_name: str) -> NormalizedAnalysis:
    """
    Header-style report (also used best-effort for unknown shapes).

    Falls back to summary-style keys wherever the header keys are absent.
    """
    header = ensure_dict(data.get("header"))
    summary = ensure_dict(data.get("summary"))
    hope = ensure_dict(data.get("strengthsAndHope"))
    action_plan = ensure_dict(data.get("parentActionPlan"))
    fairness = ensure_dict(data.get("fairnessCheck"))
    feedback = ensure_dict(data.get("teacherFeedback"))
    performance = ensure_dict(data.get("performance"))

    # confidenceScore is a percentage in this shape
    confidence = normalize_confidence(header.get("confidenceScore"), default=None)
    if confidence is None:
        confidence = normalize_confidence(summary.get("confidence"), default=None)

    strengths = ensure_str_list(hope.get("strengths")) or ensure_str_list(data.get("strengths"))
    if "topErrorAnalysis" in data:
        weaknesses = _error_labels(data.get("topErrorAnalysis"))
    else:
        weaknesses = ensure_str_list(data.get("weaknesses"))

    sections = data.get("examinationStructure")
    if sections is None:
        sections = performance.get("bySection")

    plan = data.get("prioritizedLearningPlan")
    if plan is None:
        plan = data.get("recommendations")

    this_week = action_plan.get("thisWeek")
    if isinstance(this_week, list):
        written = "\n".join(ensure_str_list(this_week))
    elif isinstance(this_week, str):
        written = this_week
    else:
        written = ensure_str(data.get("teacherComment") or feedback.get("written"))

    outlook = ensure_str(hope.get("outlook") or ensure_dict(data.get("prediction")).get("outlook"))

    return NormalizedAnalysis(
        summary=SummaryBlock(
            overall_grade=ensure_str(header.get("grade") or summary.get("overallGrade"), "Unknown").strip(),
            overall_score=ensure_float(header.get("points") or summary.get("overallScore")),
            max_score=ensure_float(header.get("maxPoints") or summary.get("maxScore")),
            percentage=ensure_float(header.get("percentage") or summary.get("percentage")),
            subject=ensure_str(header.get("subject") or summary.get("subject"), "Unknown"),
            topic=ensure_optional_str(header.get("topic") or summary.get("topic")),
            child_name=ensure_str(header.get("studentName") or summary.get("childName"), "Student"),
            test_date=ensure_optional_str(header.get("testDate") or summary.get("testDate")),
            executive_summary=ensure_optional_str(
                data.get("emotionalIntroduction") or summary.get("executiveSummary")
            ),
            confidence=confidence,
        ),
        performance=PerformanceBlock(
            by_section=_sections(sections),
            trends=ensure_str_list(performance.get("trends")),
        ),
        teacher_feedback=TeacherFeedbackBlock(
            evaluation_methodology=ensure_optional_str(fairness.get("assessment")),
            written=written,
            corrections=ensure_str_list(feedback.get("corrections")),
            praise=strengths[:3],
        ),
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=_recommendations(plan),
        time_management=_time_management(data.get("timeManagement")),
        language_enhancement=_language_enhancement(data.get("languageEnhancement")),
        long_term_development=LongTermDevelopment(
            semester_prediction=outlook,
            improvement_areas=list(weaknesses),
            goal_setting=ensure_str(hope.get("outlook")),
        ),
        metadata=AnalysisMetadata(
            ocr_confidence=confidence or 0.0,
            ai_model=model_name,
            processing_steps=["OCR", "Visual Detection", "AI Analysis"],
        ),
    )


ANALYSIS_ADAPTERS: Dict[ResponseShape, Callable[[Dict[str, Any], str], NormalizedAnalysis]] = {
    ResponseShape.SUMMARY: _from_summary,
    ResponseShape.HEADER_REPORT: _from_header_report,
    ResponseShape.UNKNOWN: _from_header_report,
}


def adapt_analysis_data(data: Dict[str, Any], model_name: str) -> AdaptationResult:
    """Map an already-parsed payload, substituting the minimal analysis on failure."""
    shape = detect_shape(data)
    if shape == ResponseShape.UNKNOWN:
        logger.warning(f"{model_name}: unknown response shape (keys: {sorted(data)[:10]}), mapping best-effort")

    try:
        analysis = ANALYSIS_ADAPTERS[shape](data, model_name)
    except Exception as e:
        logger.warning(f"{model_name}: could not map {shape.value} response, using defaults: {e}")
        return AdaptationResult(
            status=TransformStatus.DEFAULTED,
            shape=shape,
            analysis=NormalizedAnalysis.minimal(model_name),
            error=str(e),
        )

    return AdaptationResult(status=TransformStatus.TRANSFORMED, shape=shape, analysis=analysis)


def adapt_analysis_payload(raw_response: str, model_name: str) -> AdaptationResult:
    """
    Turn a raw provider reply into a NormalizedAnalysis.

    Args:
        raw_response: Text returned by the model
        model_name: Label stored in metadata.ai_model

    Returns:
        AdaptationResult; UNRECOVERABLE when no JSON object could be found
    """
    data = extract_json_from_response(raw_response)
    if data is None:
        return AdaptationResult(
            status=TransformStatus.UNRECOVERABLE,
            error=f"Response is not valid JSON ({len(raw_response or '')} chars)",
        )
    return adapt_analysis_data(data, model_name)


# ==================== VISION ADAPTER ====================

def _grade_tier(value: Any, has_grade: bool) -> GradeConfidence:
    try:
        return GradeConfidence(ensure_str(value).strip().lower())
    except ValueError:
        return GradeConfidence.LOW if has_grade else GradeConfidence.NOT_FOUND


def adapt_vision_payload(raw_response: str, provider: str, pages_analyzed: int, duration_ms: float) -> VisionReport:
    """
    Map a vision reply onto VisionReport.

    Raises:
        ParsingError: when the reply holds no JSON object
    """
    data = extract_json_from_response(raw_response)
    if data is None:
        raise ParsingError(f"{provider}: vision response is not valid JSON")

    student = ensure_dict(data.get("student"))
    test = ensure_dict(data.get("test"))
    grade = ensure_dict(data.get("grade"))
    feedback = ensure_dict(data.get("teacherFeedback"))
    metadata = ensure_dict(data.get("metadata"))

    grade_value = ensure_optional_str(grade.get("value"))
    breakdown = ensure_dict(grade.get("breakdown"))
    found_on_page = grade.get("foundOnPage")

    return VisionReport(
        provider=provider,
        success=True,
        duration_ms=duration_ms,
        student=VisionStudent(
            name=ensure_optional_str(student.get("name")),
            class_name=ensure_optional_str(student.get("class")),
        ),
        test=VisionTest(
            subject=ensure_optional_str(test.get("subject")),
            date=ensure_optional_str(test.get("date")),
            topic=ensure_optional_str(test.get("topic")),
            duration=ensure_optional_str(test.get("duration")),
        ),
        grade=GradeInfo(
            value=grade_value,
            description=ensure_optional_str(grade.get("description")),
            points=ensure_optional_str(grade.get("points")),
            breakdown={str(k): ensure_str(v) for k, v in breakdown.items()} or None,
            confidence=_grade_tier(grade.get("confidence"), grade_value is not None),
            found_on_page=ensure_int(found_on_page) if found_on_page is not None else None,
        ),
        teacher_feedback=VisionTeacherFeedback(
            main_comment=ensure_optional_str(feedback.get("mainComment")),
            margin_notes=ensure_str_list(feedback.get("marginNotes")),
            corrections=ensure_str_list(feedback.get("corrections")),
            tone=ensure_optional_str(feedback.get("tone")),
        ),
        strengths=[
            StrengthItem(point=ensure_str(s.get("point")).strip(), evidence=ensure_str(s.get("evidence")))
            for s in ensure_list(data.get("strengths"))
            if isinstance(s, dict) and ensure_str(s.get("point")).strip()
        ],
        weaknesses=[
            WeaknessItem(
                point=ensure_str(w.get("point")).strip(),
                evidence=ensure_str(w.get("evidence")),
                teacher_note=ensure_optional_str(w.get("teacherNote")),
            )
            for w in ensure_list(data.get("weaknesses"))
            if isinstance(w, dict) and ensure_str(w.get("point")).strip()
        ],
        recommendations=[
            RecommendationItem(
                action=ensure_str(r.get("action")).strip(),
                priority=ensure_str(r.get("priority"), "medium").lower(),
                based_on=ensure_str(r.get("basedOn")),
                timeframe=ensure_optional_str(r.get("timeframe")),
            )
            for r in ensure_list(data.get("recommendations"))
            if isinstance(r, dict) and ensure_str(r.get("action")).strip()
        ],
        metadata=VisionMetadata(
            pages_analyzed=pages_analyzed,
            confidence=ensure_float(metadata.get("confidence")),
            has_red_marks=bool(metadata.get("hasRedMarks")),
            has_handwriting=bool(metadata.get("hasHandwriting")),
        ),
    )


RECOMMENDATION_PRIORITY_RANK = {"high": 1, "medium": 2, "low": 3}


def vision_report_to_analysis(report: VisionReport, confidence: float, model_name: str) -> NormalizedAnalysis:
    """
    Express a merged vision report as a NormalizedAnalysis.

    Args:
        report: Merged vision report
        confidence: Overall consensus confidence, 0-100
        model_name: Label stored in metadata.ai_model
    """
    grade = report.grade
    feedback = report.teacher_feedback
    return NormalizedAnalysis(
        summary=SummaryBlock(
            overall_grade=grade.value or "",
            subject=report.test.subject or "Unknown",
            topic=report.test.topic,
            child_name=report.student.name or "Student",
            test_date=report.test.date,
            executive_summary=grade.description,
            confidence=round(max(0.0, min(100.0, confidence)) / 100, 4),
        ),
        teacher_feedback=TeacherFeedbackBlock(
            written=feedback.main_comment or "",
            corrections=list(feedback.corrections),
            praise=[s.point for s in report.strengths[:3]],
        ),
        strengths=[s.point for s in report.strengths],
        weaknesses=[w.point for w in report.weaknesses],
        recommendations=[
            Recommendation(
                priority=RECOMMENDATION_PRIORITY_RANK.get(r.priority, 2),
                action=r.action,
                timeframe=r.timeframe or "",
                rationale=r.based_on,
            )
            for r in report.recommendations
        ],
        long_term_development=LongTermDevelopment(improvement_areas=[w.point for w in report.weaknesses]),
        metadata=AnalysisMetadata(ai_model=model_name),
    )
