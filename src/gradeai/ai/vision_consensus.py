"""
Merge vision reports from several providers.

The grade comes from the consensus resolver; the base report is picked by
provider priority; list fields are deduplicated unions.
"""

from typing import Iterable, List, Optional, Sequence, TypeVar

from loguru import logger

from gradeai.ai.consensus import resolve_grade_consensus, votes_from_reports
from gradeai.config.constants import (
    AGREEMENT_BONUS_FULL,
    AGREEMENT_BONUS_PARTIAL,
    AGREEMENT_PENALTY_NONE,
    DEDUP_KEY_LENGTH,
    SUCCESS_RATIO_WEIGHT,
)
from gradeai.core.exceptions import AllProvidersFailedError
from gradeai.core.models import (
    GradeAgreement,
    GradeInfo,
    VisionConsensus,
    VisionMetadata,
    VisionReport,
    VisionStudent,
    VisionTeacherFeedback,
    VisionTest,
)

DEFAULT_PRIORITY = ["claude", "gemini", "mistral"]
PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}
AGREEMENT_BONUS = {
    GradeAgreement.FULL: AGREEMENT_BONUS_FULL,
    GradeAgreement.PARTIAL: AGREEMENT_BONUS_PARTIAL,
    GradeAgreement.NONE: AGREEMENT_PENALTY_NONE,
}

T = TypeVar("T")


def _first(values: Iterable[Optional[T]]) -> Optional[T]:
    return next((v for v in values if v), None)


def dedupe_case_insensitive(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        key = item.lower().strip()
        if key and key not in seen:
            seen.add(key)
            result.append(item)
    return result


def _dedupe_by_prefix(items: Iterable[T], text_of) -> List[T]:
    seen = set()
    result = []
    for item in items:
        key = text_of(item).lower()[:DEDUP_KEY_LENGTH]
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def merge_vision_results(
    results: Sequence[VisionReport],
    priority: Optional[List[str]] = None,
) -> VisionConsensus:
    """
    Merge per-provider vision reports.

    Args:
        results: Every attempted report, failed ones included
        priority: Provider order used to pick the base report

    Raises:
        AllProvidersFailedError: when no report succeeded
    """
    priority = priority or DEFAULT_PRIORITY

    def rank(report: VisionReport):
        position = priority.index(report.provider) if report.provider in priority else len(priority)
        return (position, report.provider)

    successful = sorted((r for r in results if r.success), key=rank)
    failed = sorted((r for r in results if not r.success), key=lambda r: r.provider)

    if not successful:
        raise AllProvidersFailedError({r.provider: r.error or "unknown error" for r in failed})

    consensus = resolve_grade_consensus(votes_from_reports(successful))
    base = successful[0]

    breakdown = {}
    for report in successful:
        if report.grade.breakdown:
            breakdown.update(report.grade.breakdown)

    strengths = _dedupe_by_prefix((s for r in successful for s in r.strengths), lambda s: s.point)
    weaknesses = _dedupe_by_prefix((w for r in successful for w in r.weaknesses), lambda w: w.point)
    recommendations = _dedupe_by_prefix((x for r in successful for x in r.recommendations), lambda x: x.action)
    recommendations.sort(key=lambda x: PRIORITY_RANK.get(x.priority, 1))

    warnings = []
    if failed:
        warnings.append(f"{len(failed)} AI provider(s) failed: {', '.join(r.provider for r in failed)}")
    if consensus.agreement == GradeAgreement.NONE:
        warnings.append("Grade could not be automatically detected. Please verify manually.")
    elif consensus.agreement == GradeAgreement.PARTIAL and sum(1 for v in consensus.votes if v.has_value) > 1:
        warnings.append("AI providers disagreed on the grade. Result may need verification.")

    avg_confidence = sum(r.metadata.confidence for r in successful) / len(successful)
    success_ratio = len(successful) / len(results)
    overall = avg_confidence + AGREEMENT_BONUS[consensus.agreement] + success_ratio * SUCCESS_RATIO_WEIGHT
    overall = min(100.0, max(0.0, overall))

    final = VisionReport(
        provider=base.provider,
        success=True,
        duration_ms=max(r.duration_ms for r in successful),
        student=VisionStudent(
            name=_first(r.student.name for r in successful),
            class_name=_first(r.student.class_name for r in successful),
        ),
        test=VisionTest(
            subject=_first(r.test.subject for r in successful),
            date=_first(r.test.date for r in successful),
            topic=_first(r.test.topic for r in successful),
            duration=_first(r.test.duration for r in successful),
        ),
        grade=GradeInfo(
            value=consensus.grade,
            description=base.grade.description,
            points=_first(r.grade.points for r in successful),
            breakdown=breakdown or None,
            confidence=consensus.confidence,
            found_on_page=consensus.found_on_page,
        ),
        teacher_feedback=VisionTeacherFeedback(
            main_comment=_first(r.teacher_feedback.main_comment for r in successful),
            margin_notes=dedupe_case_insensitive(n for r in successful for n in r.teacher_feedback.margin_notes),
            corrections=dedupe_case_insensitive(c for r in successful for c in r.teacher_feedback.corrections),
            tone=_first(r.teacher_feedback.tone for r in successful),
        ),
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=recommendations,
        metadata=VisionMetadata(
            pages_analyzed=base.metadata.pages_analyzed,
            confidence=overall,
            has_red_marks=any(r.metadata.has_red_marks for r in successful),
            has_handwriting=any(r.metadata.has_handwriting for r in successful),
        ),
    )

    logger.info(
        f"Vision consensus: grade={consensus.grade} ({consensus.agreement.value}), "
        f"base={base.provider}, confidence={overall:.0f}"
    )

    return VisionConsensus(
        final_result=final,
        grade_agreement=consensus.agreement,
        providers_used=sorted(r.provider for r in results),
        providers_succeeded=[r.provider for r in successful],
        providers_failed=[r.provider for r in failed],
        individual_results=successful + failed,
        warnings=warnings,
        overall_confidence=overall,
    )
