"""
AI analysis providers and the multi-provider consensus engine.

Usage:
    from gradeai.ai.provider_factory import create_analysis_providers
    from gradeai.ai import ParallelOrchestrator

    providers = create_analysis_providers(settings)
    orchestrator = ParallelOrchestrator.from_settings(providers, settings)
    merged = await orchestrator.analyze(request)

Provider SDKs are only imported through provider_factory.
"""

from gradeai.ai.base_provider import BaseProvider, ProviderAnalysis
from gradeai.ai.consensus import normalize_grade, resolve_grade_consensus
from gradeai.ai.merger import MergeLimits, merge_results
from gradeai.ai.orchestrator import ParallelOrchestrator
from gradeai.ai.response_shapes import AdaptationResult, ResponseShape, adapt_analysis_payload
from gradeai.ai.scoring import calculate_quality_score
from gradeai.ai.vision_consensus import merge_vision_results

__all__ = [
    "BaseProvider",
    "ProviderAnalysis",
    "normalize_grade",
    "resolve_grade_consensus",
    "MergeLimits",
    "merge_results",
    "ParallelOrchestrator",
    "AdaptationResult",
    "ResponseShape",
    "adapt_analysis_payload",
    "calculate_quality_score",
    "merge_vision_results",
]
