"""
Core data models for the analysis engine.

This module defines all Pydantic models used throughout the system.
Analysis records serialize with camelCase keys so stored JSON matches what
the report renderer reads.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from gradeai.config.constants import DEFAULT_CONFIDENCE, MISSING_GRADE_VALUES, UNABLE_TO_DETERMINE


def generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_missing_grade(value: Optional[str]) -> bool:
    """True when a grade string carries no actual grade."""
    if value is None:
        return True
    return value.strip().lower() in MISSING_GRADE_VALUES


class CamelModel(BaseModel):
    """Base for records persisted or rendered with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ==================== ENUMS ====================

class UploadStatus(str, Enum):
    """Lifecycle of an uploaded test."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class GradeConfidence(str, Enum):
    """Confidence tier a provider attaches to the grade it read."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NOT_FOUND = "not_found"


class GradeAgreement(str, Enum):
    """How far providers agree on the grade."""
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class TransformStatus(str, Enum):
    """Outcome of adapting a provider response to NormalizedAnalysis."""
    TRANSFORMED = "transformed"
    DEFAULTED = "defaulted"
    UNRECOVERABLE = "unrecoverable"


# ==================== PROFILES & UPLOADS ====================

class StudentProfile(CamelModel):
    name: str = "Student"
    grade_level: Optional[str] = None


class UserProfile(CamelModel):
    email: Optional[str] = None
    language: str = "en"


class UploadRecord(CamelModel):
    """
    An uploaded test as the persistence layer knows it.

    Pages are stored as file paths relative to the upload directory.
    """
    upload_id: str = Field(default_factory=generate_id)
    file_name: str = ""
    mime_type: str = "image/png"
    child: StudentProfile = Field(default_factory=StudentProfile)
    user: UserProfile = Field(default_factory=UserProfile)
    status: UploadStatus = UploadStatus.PENDING
    error_message: Optional[str] = None
    pages: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


# ==================== VISUAL EVIDENCE ====================

class AnswerRegion(FrozenCamelModel):
    """Rectangle (in downsampled pixels) with dense correction ink."""
    x: int
    y: int
    width: int
    height: int
    score: float


class VisualEvidence(FrozenCamelModel):
    """
    Pixel-heuristic signals computed without any AI call.

    Immutable once produced.
    """
    grade_detected: Optional[int] = None
    marks: List[str] = Field(default_factory=list)
    points: Optional[str] = None
    teacher_comment: Optional[str] = None
    correction_density: float = 0.0
    answer_regions: List[AnswerRegion] = Field(default_factory=list)
    confidence: float = 0.0

    @classmethod
    def empty(cls) -> "VisualEvidence":
        """Low-confidence record used when extraction fails."""
        return cls()


# ==================== TEXT RECOGNITION ====================

class OcrReading(BaseModel):
    """Raw output of one OCR engine; confidence on a 0-1 scale."""
    text: str = ""
    confidence: float = 0.0

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        if v is None or not math.isfinite(v):
            return 0.0
        return max(0.0, min(1.0, v))


class OcrAttempt(BaseModel):
    provider: str
    text: str = ""
    confidence: float = 0.0
    processing_ms: float = 0.0


class TextResolution(BaseModel):
    """Winning OCR result plus every attempt that produced text."""
    text: str
    confidence: float
    provider: str
    fallback_used: bool = False
    attempts: List[OcrAttempt] = Field(default_factory=list)


# ==================== ANALYSIS REQUEST ====================

class AnalysisRequest(BaseModel):
    """
    Immutable input handed to every provider.

    Created once per upload.
    """
    model_config = ConfigDict(frozen=True)

    text: str
    evidence: Optional[VisualEvidence] = None
    profile: StudentProfile = Field(default_factory=StudentProfile)
    language: str = "en"
    ocr_confidence: Optional[float] = None


# ==================== NORMALIZED ANALYSIS ====================

class SummaryBlock(CamelModel):
    overall_grade: str = ""
    overall_score: float = 0.0
    max_score: float = 0.0
    percentage: float = 0.0
    subject: str = ""
    topic: Optional[str] = None
    child_name: str = ""
    test_date: Optional[str] = None
    executive_summary: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def has_grade(self) -> bool:
        return not is_missing_grade(self.overall_grade)


class SectionPerformance(CamelModel):
    name: str = ""
    points_achieved: float = 0.0
    points_possible: float = 0.0
    percentage: float = 0.0
    notes: str = ""


class PerformanceBlock(CamelModel):
    by_section: List[SectionPerformance] = Field(default_factory=list)
    trends: List[str] = Field(default_factory=list)


class TeacherFeedbackBlock(CamelModel):
    evaluation_methodology: Optional[str] = None
    written: str = ""
    corrections: List[str] = Field(default_factory=list)
    praise: List[str] = Field(default_factory=list)


class Recommendation(CamelModel):
    priority: int = 1
    category: str = ""
    action: str = ""
    timeframe: str = ""
    rationale: str = ""
    resources: List[str] = Field(default_factory=list)


class TimeManagement(CamelModel):
    assessment: str = ""
    suggestions: List[str] = Field(default_factory=list)


class LanguageEnhancement(CamelModel):
    applicable: bool = False
    notes: Optional[str] = None
    grammar_issues: List[str] = Field(default_factory=list)
    vocabulary_tips: List[str] = Field(default_factory=list)


class LongTermDevelopment(CamelModel):
    semester_prediction: str = ""
    improvement_areas: List[str] = Field(default_factory=list)
    goal_setting: str = ""


class AnalysisMetadata(CamelModel):
    """
    Processing metadata.

    visual_evidence, raw_ocr_text and document_checks are opaque payloads
    for the report renderer.
    """
    processing_time: float = 0.0
    timestamp: str = Field(default_factory=utc_now_iso)
    ocr_confidence: float = 0.0
    ai_model: str = ""
    processing_steps: List[str] = Field(default_factory=list)
    providers: List[str] = Field(default_factory=list)
    consensus_score: Optional[int] = None
    visual_evidence: Optional[Dict[str, Any]] = None
    raw_ocr_text: Optional[str] = None
    raw_ocr_text_length: Optional[int] = None
    numeric_grade: Optional[float] = None
    document_checks: Optional[Dict[str, Any]] = None


class NormalizedAnalysis(CamelModel):
    """
    Common shape every provider adapter produces.

    Every field has a default so partially-populated responses are safe.
    """
    summary: SummaryBlock = Field(default_factory=SummaryBlock)
    performance: PerformanceBlock = Field(default_factory=PerformanceBlock)
    teacher_feedback: TeacherFeedbackBlock = Field(default_factory=TeacherFeedbackBlock)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    time_management: Optional[TimeManagement] = None
    language_enhancement: Optional[LanguageEnhancement] = None
    long_term_development: LongTermDevelopment = Field(default_factory=LongTermDevelopment)
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    @classmethod
    def minimal(cls, model_name: str = "") -> "NormalizedAnalysis":
        """Valid analysis with zeroed values when a response could not be mapped."""
        return cls(
            summary=SummaryBlock(
                overall_grade=UNABLE_TO_DETERMINE,
                subject="Unknown",
                child_name="Student",
                confidence=0.0,
            ),
            metadata=AnalysisMetadata(ai_model=model_name),
        )


# ==================== PROVIDER RESULTS ====================

class ProviderResult(BaseModel):
    """
    Outcome of one provider call.

    Confidence is always 0-1 here; adapters normalize at the boundary.
    """
    provider: str
    success: bool
    analysis: Optional[NormalizedAnalysis] = None
    processing_ms: float = 0.0
    confidence: float = DEFAULT_CONFIDENCE
    error: Optional[str] = None
    transform_status: Optional[TransformStatus] = None

    @classmethod
    def failure(cls, provider: str, error: str, processing_ms: float = 0.0) -> "ProviderResult":
        return cls(provider=provider, success=False, error=error, processing_ms=processing_ms, confidence=0.0)


class MultiProviderResult(BaseModel):
    """
    Merged analysis across providers.

    Constructed once per request and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    analysis: NormalizedAnalysis
    primary_provider: str
    all_results: List[ProviderResult] = Field(default_factory=list)
    consensus_score: int = 0
    quality_scores: Dict[str, float] = Field(default_factory=dict)


# ==================== GRADE CONSENSUS ====================

class GradeVote(BaseModel):
    """One provider's reading of the grade."""
    model_config = ConfigDict(frozen=True)

    provider: str
    grade: Optional[str] = None
    confidence: GradeConfidence = GradeConfidence.NOT_FOUND
    found_on_page: Optional[int] = None

    @property
    def has_value(self) -> bool:
        return not is_missing_grade(self.grade) and self.confidence != GradeConfidence.NOT_FOUND


class GradeConsensus(BaseModel):
    model_config = ConfigDict(frozen=True)

    agreement: GradeAgreement
    grade: Optional[str] = None
    confidence: GradeConfidence = GradeConfidence.NOT_FOUND
    found_on_page: Optional[int] = None
    votes: List[GradeVote] = Field(default_factory=list)


# ==================== VISION VARIANT ====================

class PageImage(BaseModel):
    """One rendered page sent to vision-capable providers."""
    page_number: int
    data: bytes
    mime_type: str = "image/png"

    @property
    def size_kb(self) -> float:
        return len(self.data) / 1024


class VisionStudent(CamelModel):
    name: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="class")


class VisionTest(CamelModel):
    subject: Optional[str] = None
    date: Optional[str] = None
    topic: Optional[str] = None
    duration: Optional[str] = None


class GradeInfo(CamelModel):
    value: Optional[str] = None
    description: Optional[str] = None
    points: Optional[str] = None
    breakdown: Optional[Dict[str, str]] = None
    confidence: GradeConfidence = GradeConfidence.NOT_FOUND
    found_on_page: Optional[int] = None


class VisionTeacherFeedback(CamelModel):
    main_comment: Optional[str] = None
    margin_notes: List[str] = Field(default_factory=list)
    corrections: List[str] = Field(default_factory=list)
    tone: Optional[str] = None


class StrengthItem(CamelModel):
    point: str
    evidence: str = ""


class WeaknessItem(CamelModel):
    point: str
    evidence: str = ""
    teacher_note: Optional[str] = None


class RecommendationItem(CamelModel):
    action: str
    priority: str = "medium"
    based_on: str = ""
    timeframe: Optional[str] = None


class VisionMetadata(CamelModel):
    pages_analyzed: int = 0
    confidence: float = 0.0  # 0-100
    has_red_marks: bool = False
    has_handwriting: bool = False


class VisionReport(CamelModel):
    """Structured reading of the page images by one provider."""
    provider: str = ""
    success: bool = True
    error: Optional[str] = None
    duration_ms: float = 0.0
    student: VisionStudent = Field(default_factory=VisionStudent)
    test: VisionTest = Field(default_factory=VisionTest)
    grade: GradeInfo = Field(default_factory=GradeInfo)
    teacher_feedback: VisionTeacherFeedback = Field(default_factory=VisionTeacherFeedback)
    strengths: List[StrengthItem] = Field(default_factory=list)
    weaknesses: List[WeaknessItem] = Field(default_factory=list)
    recommendations: List[RecommendationItem] = Field(default_factory=list)
    metadata: VisionMetadata = Field(default_factory=VisionMetadata)

    @classmethod
    def empty(cls, provider: str, error: str, duration_ms: float, pages_analyzed: int) -> "VisionReport":
        return cls(
            provider=provider,
            success=False,
            error=error,
            duration_ms=duration_ms,
            metadata=VisionMetadata(pages_analyzed=pages_analyzed),
        )


class VisionConsensus(BaseModel):
    model_config = ConfigDict(frozen=True)

    final_result: VisionReport
    grade_agreement: GradeAgreement
    providers_used: List[str] = Field(default_factory=list)
    providers_succeeded: List[str] = Field(default_factory=list)
    providers_failed: List[str] = Field(default_factory=list)
    individual_results: List[VisionReport] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    overall_confidence: float = 0.0


# ==================== AUDIT ====================

class AICallResult(BaseModel):
    """
    Result of an AI call with metadata for audit trail.
    """
    call_id: str = Field(default_factory=generate_id)
    timestamp: datetime = Field(default_factory=datetime.now)

    prompt_type: str
    # "text", "vision"

    input_summary: str
    response_summary: str

    # Timing
    duration_ms: Optional[float] = None

    # Tokens (if available)
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    model_name: Optional[str] = None
