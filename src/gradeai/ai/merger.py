"""
Merge successful provider results into one analysis.

The best-scored result provides the summary; strengths, weaknesses and
recommendations are deduplicated unions across all results.

Results are put in a canonical order (score desc, provider name asc)
before anything is selected, so arrival order never changes the output.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from loguru import logger

from gradeai.ai.scoring import calculate_quality_score
from gradeai.config.constants import DEFAULT_CONFIDENCE, DEFAULT_OCR_CONFIDENCE
from gradeai.config.settings import ScoringWeights
from gradeai.core.exceptions import AllProvidersFailedError
from gradeai.core.models import MultiProviderResult, ProviderResult, Recommendation


@dataclass(frozen=True)
class MergeLimits:
    max_strengths: int = 8
    max_weaknesses: int = 8
    max_recommendations: int = 10

    @classmethod
    def from_settings(cls, settings) -> "MergeLimits":
        return cls(
            max_strengths=settings.max_strengths,
            max_weaknesses=settings.max_weaknesses,
            max_recommendations=settings.max_recommendations,
        )


def union_strings(lists: Iterable[List[str]], limit: int) -> List[str]:
    """First-seen union of trimmed strings, capped at limit."""
    seen = set()
    merged = []
    for items in lists:
        for item in items:
            key = item.strip()
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(key)
            if len(merged) >= limit:
                return merged
    return merged


def union_recommendations(lists: Iterable[List[Recommendation]], limit: int) -> List[Recommendation]:
    """First occurrence of each action wins, capped at limit."""
    seen = set()
    merged = []
    for items in lists:
        for rec in items:
            key = rec.action.strip()
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(rec.model_copy(deep=True))
            if len(merged) >= limit:
                return merged
    return merged


def consensus_score(successful: int, attempted: int) -> int:
    """Percentage of attempted providers that succeeded."""
    if attempted <= 0:
        return 0
    return round(100 * successful / attempted)


def merge_results(
    results: Sequence[ProviderResult],
    ocr_confidence: Optional[float] = None,
    limits: Optional[MergeLimits] = None,
    weights: Optional[ScoringWeights] = None,
) -> MultiProviderResult:
    """
    Merge provider results.

    Args:
        results: Every attempted result, failed ones included
        ocr_confidence: Confidence of the text the providers read (0-1)
        limits: List caps
        weights: Quality scoring weights

    Returns:
        MultiProviderResult built from the successful results

    Raises:
        AllProvidersFailedError: when no result succeeded
    """
    limits = limits or MergeLimits()
    successful = [r for r in results if r.success and r.analysis is not None]
    if not successful:
        raise AllProvidersFailedError({r.provider: r.error or "unknown error" for r in results})

    scores = {r.provider: calculate_quality_score(r, weights) for r in successful}
    ranked = sorted(successful, key=lambda r: (-scores[r.provider], r.provider))
    best = ranked[0]

    logger.info(
        "Quality scores: " + ", ".join(f"{r.provider}={scores[r.provider]:.1f}" for r in ranked)
        + f" | base={best.provider}"
    )

    merged = best.analysis.model_copy(deep=True)
    merged.strengths = union_strings((r.analysis.strengths for r in ranked), limits.max_strengths)
    merged.weaknesses = union_strings((r.analysis.weaknesses for r in ranked), limits.max_weaknesses)
    merged.recommendations = union_recommendations(
        (r.analysis.recommendations for r in ranked), limits.max_recommendations
    )

    summary_confidence = merged.summary.confidence
    if summary_confidence is None or not math.isfinite(summary_confidence):
        merged.summary.confidence = DEFAULT_CONFIDENCE

    provider_names = [r.provider for r in ranked]
    merged.metadata.ai_model = f"Multi-AI Consensus ({', '.join(provider_names)})"
    merged.metadata.processing_steps = [f"{r.provider}: {round(r.processing_ms)}ms" for r in ranked]
    merged.metadata.processing_time = max(r.processing_ms for r in ranked)
    merged.metadata.ocr_confidence = ocr_confidence if ocr_confidence is not None else DEFAULT_OCR_CONFIDENCE
    merged.metadata.providers = provider_names

    score = consensus_score(len(successful), len(results))
    merged.metadata.consensus_score = score

    # All results in canonical order: successes by rank, then failures by name
    failures = sorted(
        (r for r in results if not (r.success and r.analysis is not None)),
        key=lambda r: r.provider,
    )

    return MultiProviderResult(
        analysis=merged,
        primary_provider=best.provider,
        all_results=ranked + failures,
        consensus_score=score,
        quality_scores=scores,
    )
