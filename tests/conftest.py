"""
Shared fixtures and fakes for the test suite.

Fake providers subclass BaseProvider so the real prompt building,
response adaptation and error translation run; only the API call is
replaced.
"""

import io
import json
import time
from typing import Dict, List, Optional

import pytest
from PIL import Image, ImageDraw

from gradeai.ai.base_provider import BaseProvider
from gradeai.config.settings import Settings
from gradeai.core.exceptions import UploadNotFoundError
from gradeai.core.models import (
    NormalizedAnalysis,
    OcrReading,
    PageImage,
    ProviderResult,
    Recommendation,
    SummaryBlock,
    UploadRecord,
    UploadStatus,
)


# ==================== BUILDERS ====================

def make_analysis(
    grade: str = "2",
    subject: str = "Mathematik",
    strengths: Optional[List[str]] = None,
    weaknesses: Optional[List[str]] = None,
    actions: Optional[List[str]] = None,
    confidence: Optional[float] = 0.8,
) -> NormalizedAnalysis:
    return NormalizedAnalysis(
        summary=SummaryBlock(overall_grade=grade, subject=subject, child_name="Mia", confidence=confidence),
        strengths=strengths or [],
        weaknesses=weaknesses or [],
        recommendations=[Recommendation(priority=i + 1, action=a) for i, a in enumerate(actions or [])],
    )


def make_result(provider: str, analysis: Optional[NormalizedAnalysis] = None, confidence: float = 0.8,
                processing_ms: float = 100.0) -> ProviderResult:
    return ProviderResult(
        provider=provider,
        success=True,
        analysis=analysis or make_analysis(),
        processing_ms=processing_ms,
        confidence=confidence,
    )


def summary_reply(grade: str = "2", subject: str = "Mathematik", strengths=None, confidence: float = 0.9) -> str:
    """Provider reply in the summary shape."""
    return json.dumps({
        "summary": {
            "overallGrade": grade,
            "overallScore": 18,
            "maxScore": 20,
            "percentage": 90,
            "subject": subject,
            "childName": "Mia",
            "confidence": confidence,
        },
        "performance": {"bySection": [{"name": "Aufgabe 1", "pointsAchieved": 9, "pointsPossible": 10}]},
        "teacherFeedback": {"written": "Gut gemacht!"},
        "strengths": strengths or ["Sicher im Bruchrechnen"],
        "weaknesses": ["Flüchtigkeitsfehler"],
        "recommendations": [{"priority": 1, "action": "Jeden Tag zehn Minuten Kopfrechnen üben"}],
        "longTermDevelopment": {"semesterPrediction": "2", "goalSetting": "Note 1 im Halbjahr"},
    })


def vision_reply(grade: Optional[str] = "2", confidence: str = "high", subject: str = "Mathematik") -> str:
    return json.dumps({
        "student": {"name": "Mia", "class": "5b"},
        "test": {"subject": subject, "date": "2024-03-01"},
        "grade": {"value": grade, "confidence": confidence, "foundOnPage": 1},
        "teacherFeedback": {"mainComment": "Weiter so!", "marginNotes": ["Rechenweg!"], "corrections": []},
        "strengths": [{"point": "Sauberer Rechenweg", "evidence": "Aufgabe 2"}],
        "weaknesses": [{"point": "Einheiten vergessen", "evidence": "Aufgabe 3"}],
        "recommendations": [{"action": "Einheiten immer mitschreiben", "priority": "high", "basedOn": "Aufgabe 3"}],
        "metadata": {"confidence": 80, "hasRedMarks": True, "hasHandwriting": True},
    })


def png_bytes(width: int = 400, height: int = 600, color=(255, 255, 255), draw=None) -> bytes:
    img = Image.new("RGB", (width, height), color)
    if draw is not None:
        draw(ImageDraw.Draw(img))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


# ==================== FAKES ====================

class FakeProvider(BaseProvider):
    """BaseProvider with a scripted API call."""

    def __init__(self, name: str, reply: str = "", error: Optional[Exception] = None, delay: float = 0.0,
                 vision: str = ""):
        super().__init__(provider_id=name, model=f"{name}-test", display_name=name.title(), default_confidence=0.8)
        self.reply = reply or summary_reply()
        self.vision = vision or vision_reply()
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []

    def _respond(self, prompt: str, reply: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return reply

    def call_text(self, prompt: str, system_prompt: str = None, response_format: str = "text") -> str:
        return self._respond(prompt, self.reply)

    def call_vision(self, prompt: str, pages: List[PageImage], system_prompt: str = None) -> str:
        return self._respond(prompt, self.vision)


class FakeOcr:
    """OCR engine returning a fixed reading, or raising."""

    def __init__(self, name: str, text: str = "", confidence: float = 0.0, error: Optional[Exception] = None):
        self.name = name
        self.text = text
        self.confidence = confidence
        self.error = error
        self.calls = 0

    async def extract(self, image_bytes: bytes) -> OcrReading:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return OcrReading(text=self.text, confidence=self.confidence)


class MemoryRepository:
    """In-memory UploadRepository recording every status change."""

    def __init__(self, *records: UploadRecord):
        self.records: Dict[str, UploadRecord] = {r.upload_id: r for r in records}
        self.history: List[tuple] = []
        self.saved: Dict[str, tuple] = {}

    def fetch_upload(self, upload_id: str) -> UploadRecord:
        if upload_id not in self.records:
            raise UploadNotFoundError(f"Upload not found: {upload_id}")
        return self.records[upload_id]

    def update_upload_status(self, upload_id: str, status: UploadStatus, error_message: Optional[str] = None) -> None:
        record = self.records[upload_id]
        record.status = status
        record.error_message = error_message
        self.history.append((status, error_message))

    def save_analysis_result(self, upload_id: str, analysis: NormalizedAnalysis, extracted_text: str) -> None:
        self.saved[upload_id] = (analysis, extracted_text)


# ==================== FIXTURES ====================

@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        provider_timeout_seconds=5,
        vision_timeout_seconds=5,
        analysis_timeout_seconds=10,
        ocr_timeout_seconds=5,
        evidence_timeout_seconds=5,
    )


@pytest.fixture
def blank_page():
    return PageImage(page_number=1, data=png_bytes())
