"""
Tests for the upload analysis pipeline.
"""

import asyncio

import pytest

from gradeai.ai.orchestrator import ParallelOrchestrator
from gradeai.config.constants import MSG_ALL_PROVIDERS_FAILED, MSG_ANALYSIS_TIMEOUT, MSG_INSUFFICIENT_TEXT
from gradeai.core.exceptions import (
    AllOCREnginesFailedError,
    AllProvidersFailedError,
    AnalysisTimeoutError,
    APIConnectionError,
    InsufficientTextError,
    OCRError,
    PipelineError,
    UploadNotFoundError,
)
from gradeai.core.models import GradeAgreement, PageImage, StudentProfile, UploadRecord, UploadStatus, UserProfile
from gradeai.ocr.cascade import CascadingTextResolver
from gradeai.ocr.visual_evidence import VisualEvidenceExtractor
from gradeai.pipeline.analyzer import UploadAnalysisPipeline, run_with_deadline
from gradeai.storage.upload_store import JsonUploadStore

from conftest import FakeOcr, FakeProvider, MemoryRepository, png_bytes, vision_reply

TEST_TEXT = (
    "Klassenarbeit Nr. 2 Mathematik Klasse 5b\n"
    "Aufgabe 1: Berechne 3/4 + 1/8. Aufgabe 2: Kürze 12/16.\n"
    "Note: 2  Punkte: 18/20"
)


def upload(upload_id="u1"):
    return UploadRecord(
        upload_id=upload_id,
        file_name="test.jpg",
        child=StudentProfile(name="Mia", grade_level="5"),
        user=UserProfile(language="de"),
    )


def build(repository, settings, providers=None, ocr=None):
    resolver = CascadingTextResolver(ocr or FakeOcr("google-vision", TEST_TEXT, 0.95))
    orchestrator = ParallelOrchestrator(providers or [FakeProvider("claude"), FakeProvider("gemini")], timeout=5)
    return UploadAnalysisPipeline(repository, resolver, VisualEvidenceExtractor(), orchestrator, settings)


def statuses(repository):
    return [status for status, _ in repository.history]


def test_successful_analysis(settings, blank_page):
    repository = MemoryRepository(upload())
    providers = [FakeProvider("claude"), FakeProvider("gemini")]
    pipeline = build(repository, settings, providers)

    analysis = asyncio.run(pipeline.analyze_upload("u1", [blank_page]))

    assert statuses(repository) == [UploadStatus.PROCESSING, UploadStatus.COMPLETED]
    saved, text = repository.saved["u1"]
    assert saved is analysis
    assert text == TEST_TEXT
    metadata = analysis.metadata
    assert metadata.raw_ocr_text == TEST_TEXT
    assert metadata.raw_ocr_text_length == len(TEST_TEXT)
    assert metadata.consensus_score == 100
    assert metadata.numeric_grade == 2.0
    assert metadata.ocr_confidence == 0.95
    assert metadata.visual_evidence["correction_density"] == 0.0
    assert metadata.document_checks["likely_school_test"] is True
    assert sorted(metadata.providers) == ["claude", "gemini"]
    # provider prompt carries profile, language, evidence and OCR text
    prompt = providers[0].prompts[0]
    assert "STUDENT: Mia" in prompt
    assert "OUTPUT LANGUAGE: German" in prompt
    assert "[Visual Evidence]" in prompt
    assert "Kürze 12/16" in prompt


def test_unknown_upload(settings, blank_page):
    repository = MemoryRepository()

    with pytest.raises(UploadNotFoundError):
        asyncio.run(build(repository, settings).analyze_upload("missing", [blank_page]))

    assert repository.history == []


def test_no_pages_fails_upload(settings):
    repository = MemoryRepository(upload())

    with pytest.raises(PipelineError):
        asyncio.run(build(repository, settings).analyze_upload("u1", []))

    assert repository.history[-1][0] == UploadStatus.FAILED


def test_insufficient_text(settings, blank_page):
    repository = MemoryRepository(upload())
    provider = FakeProvider("claude")
    pipeline = build(repository, settings, [provider], FakeOcr("google-vision", "Note 2", 0.95))

    with pytest.raises(InsufficientTextError):
        asyncio.run(pipeline.analyze_upload("u1", [blank_page]))

    assert repository.history[-1] == (UploadStatus.FAILED, MSG_INSUFFICIENT_TEXT)
    assert provider.prompts == []
    assert "u1" not in repository.saved


def test_ocr_failure(settings, blank_page):
    repository = MemoryRepository(upload())
    pipeline = build(repository, settings, ocr=FakeOcr("google-vision", error=OCRError("quota exceeded")))

    with pytest.raises(AllOCREnginesFailedError):
        asyncio.run(pipeline.analyze_upload("u1", [blank_page]))

    status, message = repository.history[-1]
    assert status == UploadStatus.FAILED
    assert "quota exceeded" in message


def test_all_providers_failing(settings, blank_page):
    repository = MemoryRepository(upload())
    providers = [FakeProvider("claude", error=RuntimeError("boom")), FakeProvider("gemini", reply="no json")]

    with pytest.raises(AllProvidersFailedError):
        asyncio.run(build(repository, settings, providers).analyze_upload("u1", [blank_page]))

    status, message = repository.history[-1]
    assert status == UploadStatus.FAILED
    assert message.startswith(MSG_ALL_PROVIDERS_FAILED)


def test_partial_provider_failure_completes(settings, blank_page):
    repository = MemoryRepository(upload())
    providers = [FakeProvider("claude"), FakeProvider("gemini", error=APIConnectionError("down"))]

    analysis = asyncio.run(build(repository, settings, providers).analyze_upload("u1", [blank_page]))

    assert statuses(repository)[-1] == UploadStatus.COMPLETED
    assert analysis.metadata.consensus_score == 50
    # Only the providers that contributed are recorded
    assert analysis.metadata.providers == ["claude"]
    assert analysis.metadata.ai_model == "Multi-AI Consensus (claude)"
    saved, _ = repository.saved["u1"]
    assert saved.metadata.providers == ["claude"]


def test_vision_pipeline_records_only_contributors(settings):
    repository = MemoryRepository(upload())
    providers = [FakeProvider("claude", vision=vision_reply("2")), FakeProvider("gemini", error=APIConnectionError("down"))]
    pages = [PageImage(page_number=1, data=png_bytes())]

    consensus = asyncio.run(build(repository, settings, providers).analyze_pages_with_vision("u1", pages))

    assert consensus.providers_failed == ["gemini"]
    analysis, _ = repository.saved["u1"]
    assert analysis.metadata.providers == ["claude"]
    assert analysis.metadata.consensus_score == 50


def test_global_deadline(settings, blank_page):
    repository = MemoryRepository(upload())
    pipeline = build(repository, settings, [FakeProvider("claude", delay=0.5)])

    with pytest.raises(AnalysisTimeoutError):
        asyncio.run(run_with_deadline(pipeline, "u1", [blank_page], timeout=0.1))

    assert repository.history[-1] == (UploadStatus.FAILED, MSG_ANALYSIS_TIMEOUT)
    assert UploadStatus.COMPLETED not in statuses(repository)


def test_deadline_not_reached(settings, blank_page):
    repository = MemoryRepository(upload())

    analysis = asyncio.run(run_with_deadline(build(repository, settings), "u1", [blank_page], timeout=5))

    assert analysis.summary.overall_grade == "2"
    assert statuses(repository)[-1] == UploadStatus.COMPLETED


def test_vision_pipeline(settings):
    repository = MemoryRepository(upload())
    providers = [FakeProvider("claude", vision=vision_reply("3")), FakeProvider("gemini", vision=vision_reply("3-"))]
    pages = [PageImage(page_number=1, data=png_bytes()), PageImage(page_number=2, data=png_bytes())]

    consensus = asyncio.run(run_with_deadline(build(repository, settings, providers), "u1", pages, use_vision=True))

    assert consensus.grade_agreement == GradeAgreement.FULL
    analysis, text = repository.saved["u1"]
    assert text == ""
    assert analysis.summary.overall_grade == "3"
    assert analysis.metadata.numeric_grade == 3.0
    assert analysis.metadata.consensus_score == 100
    assert analysis.metadata.ai_model == "Vision Consensus (claude, gemini)"
    assert statuses(repository) == [UploadStatus.PROCESSING, UploadStatus.COMPLETED]


def test_with_json_store(settings, blank_page):
    store = JsonUploadStore(settings.data_dir)
    record = store.create_upload(upload("stored"))

    asyncio.run(build(store, settings).analyze_upload(record.upload_id, [blank_page]))

    assert store.fetch_upload("stored").status == UploadStatus.COMPLETED
    assert store.load_analysis("stored").summary.overall_grade == "2"
    assert store.load_extracted_text("stored") == TEST_TEXT


def test_json_store_records_failure(settings, blank_page):
    store = JsonUploadStore(settings.data_dir)
    store.create_upload(upload("bad"))
    pipeline = build(store, settings, ocr=FakeOcr("google-vision", "", 0.0))

    with pytest.raises(InsufficientTextError):
        asyncio.run(pipeline.analyze_upload("bad", [blank_page]))

    record = store.fetch_upload("bad")
    assert record.status == UploadStatus.FAILED
    assert record.error_message == MSG_INSUFFICIENT_TEXT
    assert store.load_analysis("bad") is None
