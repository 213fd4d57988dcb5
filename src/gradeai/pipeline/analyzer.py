"""
Upload analysis pipeline.

Drives one upload from raw page images to a stored, merged analysis:

    fetch upload -> status processing
    OCR (cascading) + visual evidence, concurrently
    text length and content checks
    multi-provider analysis and merge
    metadata enrichment -> save -> status completed

Any failure marks the upload failed with a readable message and is
re-raised to the caller.
"""

import asyncio
import time
from typing import List, Optional

from loguru import logger

from gradeai.ai.orchestrator import ParallelOrchestrator
from gradeai.ai.response_shapes import vision_report_to_analysis
from gradeai.config.settings import Settings, get_settings
from gradeai.core.exceptions import (
    AnalysisTimeoutError,
    InsufficientTextError,
    OCRError,
    PipelineError,
    user_facing_message,
)
from gradeai.core.models import (
    AnalysisRequest,
    NormalizedAnalysis,
    PageImage,
    TextResolution,
    UploadStatus,
    VisionConsensus,
    VisualEvidence,
)
from gradeai.ocr.cascade import CascadingTextResolver
from gradeai.ocr.grade_converter import convert_german_grade
from gradeai.ocr.visual_evidence import VisualEvidenceExtractor
from gradeai.pipeline.content_checks import run_document_checks
from gradeai.prompts.analysis import build_combined_text
from gradeai.storage.upload_store import UploadRepository


class UploadAnalysisPipeline:
    """
    Analysis of one stored upload.

    Usage:
        pipeline = UploadAnalysisPipeline(store, resolver, extractor, orchestrator)
        analysis = await pipeline.analyze_upload(upload_id, pages)
    """

    def __init__(
        self,
        repository: UploadRepository,
        text_resolver: CascadingTextResolver,
        evidence_extractor: VisualEvidenceExtractor,
        orchestrator: ParallelOrchestrator,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.text_resolver = text_resolver
        self.evidence_extractor = evidence_extractor
        self.orchestrator = orchestrator
        self.settings = settings or get_settings()

    # ==================== STEPS ====================

    async def _resolve_text(self, image_bytes: bytes) -> TextResolution:
        timeout = self.settings.ocr_timeout_seconds
        try:
            return await asyncio.wait_for(self.text_resolver.resolve(image_bytes), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise OCRError(f"Text recognition timed out after {timeout}s", {"timeout_seconds": timeout}) from e

    async def _extract_evidence(self, image_bytes: bytes) -> VisualEvidence:
        """Evidence is optional context; a timeout gives empty evidence."""
        try:
            return await asyncio.wait_for(
                self.evidence_extractor.extract(image_bytes),
                timeout=self.settings.evidence_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Visual evidence timed out after {self.settings.evidence_timeout_seconds}s")
            return VisualEvidence.empty()

    def _mark_failed(self, upload_id: str, exc: BaseException) -> None:
        message = user_facing_message(exc)
        try:
            self.repository.update_upload_status(upload_id, UploadStatus.FAILED, message)
        except Exception as e:
            logger.error(f"Upload {upload_id}: could not record failure: {e}")

    # ==================== TEXT PIPELINE ====================

    async def analyze_upload(self, upload_id: str, pages: List[PageImage]) -> NormalizedAnalysis:
        """
        Analyze an upload from its page images.

        OCR and visual evidence use the first page.

        Raises:
            UploadNotFoundError: unknown upload_id
            InsufficientTextError: recognized text too short
            AllOCREnginesFailedError / AllProvidersFailedError: total failure
        """
        start = time.monotonic()
        upload = self.repository.fetch_upload(upload_id)
        log = logger.bind(upload_id=upload_id)
        log.info(f"Analyzing upload {upload_id} ({upload.file_name}, {len(pages)} page(s))")

        try:
            if not pages:
                raise PipelineError("Upload has no pages to analyze", {"upload_id": upload_id})

            self.repository.update_upload_status(upload_id, UploadStatus.PROCESSING)
            primary_page = pages[0].data

            resolution, evidence = await asyncio.gather(
                self._resolve_text(primary_page),
                self._extract_evidence(primary_page),
            )
            log.info(
                f"OCR: {resolution.provider}, {len(resolution.text)} chars, "
                f"confidence {resolution.confidence:.2f}, fallback used: {resolution.fallback_used}"
            )

            text_length = len(resolution.text.strip())
            if text_length < self.settings.min_text_length:
                raise InsufficientTextError(text_length, self.settings.min_text_length)

            checks = run_document_checks(resolution.text)
            for warning in checks["warnings"]:
                log.warning(f"Document check: {warning}")

            request = AnalysisRequest(
                text=build_combined_text(evidence, resolution.text),
                evidence=evidence,
                profile=upload.child,
                language=upload.user.language,
                ocr_confidence=resolution.confidence,
            )
            merged = await self.orchestrator.analyze(request)

            analysis = merged.analysis
            analysis.metadata = analysis.metadata.model_copy(update={
                "visual_evidence": evidence.model_dump(mode="json"),
                "raw_ocr_text": resolution.text,
                "raw_ocr_text_length": len(resolution.text),
                "consensus_score": merged.consensus_score,
                "numeric_grade": convert_german_grade(analysis.summary.overall_grade),
                "document_checks": checks,
            })

            self.repository.save_analysis_result(upload_id, analysis, resolution.text)
            self.repository.update_upload_status(upload_id, UploadStatus.COMPLETED)
        except BaseException as e:
            # Cancellation from the deadline is recorded by run_with_deadline
            if not isinstance(e, asyncio.CancelledError):
                log.error(f"Upload {upload_id} failed: {e}")
                self._mark_failed(upload_id, e)
            raise

        log.info(
            f"Upload {upload_id} completed in {(time.monotonic() - start) * 1000:.0f}ms: "
            f"grade={analysis.summary.overall_grade or 'n/a'}, primary={merged.primary_provider}, "
            f"consensus={merged.consensus_score}%"
        )
        return analysis

    # ==================== VISION PIPELINE ====================

    async def analyze_pages_with_vision(self, upload_id: str, pages: List[PageImage]) -> VisionConsensus:
        """
        Analyze an upload by sending all page images to every provider.

        The merged report is stored as a NormalizedAnalysis with the
        consensus details in metadata.
        """
        upload = self.repository.fetch_upload(upload_id)
        log = logger.bind(upload_id=upload_id)

        try:
            if not pages:
                raise PipelineError("Upload has no pages to analyze", {"upload_id": upload_id})

            self.repository.update_upload_status(upload_id, UploadStatus.PROCESSING)
            consensus = await self.orchestrator.analyze_pages(pages, upload.user.language)
            for warning in consensus.warnings:
                log.warning(f"Vision consensus: {warning}")

            analysis = vision_report_to_analysis(
                consensus.final_result,
                consensus.overall_confidence,
                model_name=f"Vision Consensus ({', '.join(consensus.providers_succeeded)})",
            )
            attempted = len(consensus.providers_used)
            analysis.metadata = analysis.metadata.model_copy(update={
                "providers": list(consensus.providers_succeeded),
                "consensus_score": round(100 * len(consensus.providers_succeeded) / attempted) if attempted else 0,
                "numeric_grade": convert_german_grade(analysis.summary.overall_grade),
                "processing_steps": [f"grade agreement: {consensus.grade_agreement.value}", *consensus.warnings],
            })

            self.repository.save_analysis_result(upload_id, analysis, "")
            self.repository.update_upload_status(upload_id, UploadStatus.COMPLETED)
        except BaseException as e:
            if not isinstance(e, asyncio.CancelledError):
                log.error(f"Upload {upload_id} vision analysis failed: {e}")
                self._mark_failed(upload_id, e)
            raise

        return consensus


async def run_with_deadline(
    pipeline: UploadAnalysisPipeline,
    upload_id: str,
    pages: List[PageImage],
    timeout: Optional[float] = None,
    use_vision: bool = False,
):
    """
    Run a pipeline under the request-level deadline.

    In-flight work is cancelled when the deadline passes and the upload is
    marked failed with the timeout message.

    Raises:
        AnalysisTimeoutError: the deadline passed
    """
    timeout = timeout or pipeline.settings.analysis_timeout_seconds
    run = pipeline.analyze_pages_with_vision if use_vision else pipeline.analyze_upload

    try:
        return await asyncio.wait_for(run(upload_id, pages), timeout=timeout)
    except asyncio.TimeoutError:
        error = AnalysisTimeoutError(timeout)
        logger.error(f"Upload {upload_id}: global timeout after {timeout}s")
        pipeline.repository.update_upload_status(upload_id, UploadStatus.FAILED, error.message)
        raise error from None
