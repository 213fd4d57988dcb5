"""
Parallel orchestration of analysis providers.

Every enabled provider receives its own copy of the request and runs in a
daemon worker thread under an independent timeout. A call that times out
is abandoned, never awaited again. Failures are recorded per provider; the
join waits for all of them and never fails fast.
"""

import asyncio
import threading
import time
from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from gradeai.ai.base_provider import BaseProvider
from gradeai.ai.merger import MergeLimits, merge_results
from gradeai.ai.vision_consensus import merge_vision_results
from gradeai.config.providers import PROVIDER_REGISTRY
from gradeai.config.settings import ScoringWeights, Settings
from gradeai.core.exceptions import AllProvidersFailedError, NoProvidersEnabledError
from gradeai.core.models import (
    AnalysisRequest,
    MultiProviderResult,
    PageImage,
    ProviderResult,
    VisionConsensus,
    VisionReport,
)


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


def call_in_daemon_thread(fn: Callable, *args) -> asyncio.Future:
    """
    Run a blocking provider call on its own daemon thread.

    The thread is never joined. A call abandoned after its timeout keeps
    running in the background but holds up neither the event loop's
    shutdown nor interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(setter, value) -> None:
        if not future.done():
            setter(value)

    def worker() -> None:
        try:
            outcome = (future.set_result, fn(*args))
        except Exception as e:
            outcome = (future.set_exception, e)
        try:
            loop.call_soon_threadsafe(deliver, *outcome)
        except RuntimeError:
            # Event loop already closed, the result has no reader
            logger.debug(f"Discarding late result of {getattr(fn, '__qualname__', fn)}")

    threading.Thread(target=worker, name="provider-call", daemon=True).start()
    return future


class ParallelOrchestrator:
    """
    Fan one analysis out to all providers and merge what comes back.

    Usage:
        orchestrator = ParallelOrchestrator(create_analysis_providers(settings), timeout=60)
        merged = await orchestrator.analyze(request)
    """

    def __init__(
        self,
        providers: Sequence[BaseProvider],
        timeout: float = 60.0,
        vision_timeout: float = 55.0,
        limits: Optional[MergeLimits] = None,
        weights: Optional[ScoringWeights] = None,
        vision_priority: Optional[List[str]] = None,
    ):
        """
        Args:
            providers: Provider clients, built once by the factory
            timeout: Per-provider timeout for text analysis (seconds)
            vision_timeout: Per-provider timeout for page-image analysis
            limits: Merge caps
            weights: Quality scoring weights
            vision_priority: Provider order for the vision base report
        """
        names = [p.name for p in providers]
        if len(set(names)) != len(names):
            raise ValueError(f"Provider names must be unique: {names}")

        self.providers = list(providers)
        self.timeout = timeout
        self.vision_timeout = vision_timeout
        self.limits = limits or MergeLimits()
        self.weights = weights
        self.vision_priority = vision_priority

    @classmethod
    def from_settings(cls, providers: Sequence[BaseProvider], settings: Settings) -> "ParallelOrchestrator":
        return cls(
            providers,
            timeout=settings.provider_timeout_seconds,
            vision_timeout=settings.vision_timeout_seconds,
            limits=MergeLimits.from_settings(settings),
            weights=settings.scoring,
            vision_priority=settings.vision_provider_priority,
        )

    def _require_providers(self) -> None:
        if not self.providers:
            raise NoProvidersEnabledError([meta["env_var"] for meta in PROVIDER_REGISTRY.values()])

    # ==================== TEXT ANALYSIS ====================

    async def _run_one(self, index: int, provider: BaseProvider, request: AnalysisRequest) -> Tuple[int, ProviderResult]:
        """Run one provider; every exception becomes a failed result."""
        log = logger.bind(provider=provider.name)
        own_request = request.model_copy(deep=True)
        start = time.monotonic()
        log.info(f"{provider.name}: analysis started")

        try:
            outcome = await asyncio.wait_for(
                call_in_daemon_thread(
                    provider.analyze,
                    own_request.text,
                    own_request.evidence,
                    own_request.profile,
                    own_request.language,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            duration = _elapsed_ms(start)
            log.warning(f"{provider.name}: timed out after {self.timeout:g}s")
            return index, ProviderResult.failure(provider.name, f"timed out after {self.timeout:g}s", duration)
        except Exception as e:
            duration = _elapsed_ms(start)
            log.warning(f"{provider.name}: failed after {duration:.0f}ms: {e}")
            return index, ProviderResult.failure(provider.name, str(e) or type(e).__name__, duration)

        duration = _elapsed_ms(start)
        log.info(f"{provider.name}: completed in {duration:.0f}ms ({outcome.status.value})")
        return index, ProviderResult(
            provider=provider.name,
            success=True,
            analysis=outcome.analysis,
            processing_ms=duration,
            confidence=outcome.confidence,
            transform_status=outcome.status,
        )

    async def run_providers(self, request: AnalysisRequest) -> List[ProviderResult]:
        """
        Run all providers concurrently and collect every outcome.

        Results are assembled only after all tasks have finished or timed
        out, in provider order.
        """
        self._require_providers()
        outcomes = await asyncio.gather(
            *(self._run_one(i, p, request) for i, p in enumerate(self.providers))
        )
        return [result for _, result in sorted(outcomes, key=lambda pair: pair[0])]

    async def analyze(self, request: AnalysisRequest) -> MultiProviderResult:
        """
        Analyze with every provider and merge the successful results.

        Raises:
            NoProvidersEnabledError: no providers configured
            AllProvidersFailedError: every provider failed or timed out
        """
        start = time.monotonic()
        results = await self.run_providers(request)

        succeeded = [r.provider for r in results if r.success]
        failed = {r.provider: r.error or "unknown error" for r in results if not r.success}
        logger.info(
            f"Providers finished in {_elapsed_ms(start):.0f}ms: "
            f"{len(succeeded)}/{len(results)} succeeded"
            + (f", failed: {failed}" if failed else "")
        )

        if not succeeded:
            raise AllProvidersFailedError(failed)

        return merge_results(
            results,
            ocr_confidence=request.ocr_confidence,
            limits=self.limits,
            weights=self.weights,
        )

    # ==================== PAGE-IMAGE ANALYSIS ====================

    async def _run_vision_one(self, index: int, provider: BaseProvider, pages: List[PageImage], language: str) -> Tuple[int, VisionReport]:
        log = logger.bind(provider=provider.name)
        own_pages = [page.model_copy() for page in pages]
        start = time.monotonic()

        try:
            report = await asyncio.wait_for(
                call_in_daemon_thread(provider.analyze_pages, own_pages, language),
                timeout=self.vision_timeout,
            )
        except asyncio.TimeoutError:
            log.warning(f"{provider.name}: vision timed out after {self.vision_timeout:g}s")
            return index, VisionReport.empty(
                provider.name, f"timed out after {self.vision_timeout:g}s", _elapsed_ms(start), len(pages)
            )
        except Exception as e:
            log.warning(f"{provider.name}: vision failed: {e}")
            return index, VisionReport.empty(provider.name, str(e) or type(e).__name__, _elapsed_ms(start), len(pages))

        log.info(f"{provider.name}: vision grade={report.grade.value} ({report.grade.confidence.value})")
        return index, report

    async def analyze_pages(self, pages: List[PageImage], language: str = "en") -> VisionConsensus:
        """
        Send all page images to every provider and merge the reports.

        Raises:
            NoProvidersEnabledError: no providers configured
            AllProvidersFailedError: every provider failed or timed out
        """
        self._require_providers()
        logger.info(f"Vision analysis of {len(pages)} page(s) with {len(self.providers)} provider(s)")
        outcomes = await asyncio.gather(
            *(self._run_vision_one(i, p, pages, language) for i, p in enumerate(self.providers))
        )
        reports = [report for _, report in sorted(outcomes, key=lambda pair: pair[0])]
        return merge_vision_results(reports, priority=self.vision_priority)
