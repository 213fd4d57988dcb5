"""
Base provider class for AI API interactions.

Provides shared functionality for text and vision analysis,
including prompt building, token tracking, error translation and
response adaptation.
"""

import base64
import json
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from gradeai.ai.response_shapes import (
    ResponseShape,
    adapt_analysis_payload,
    adapt_vision_payload,
)
from gradeai.config.constants import UNABLE_TO_DETERMINE
from gradeai.core.exceptions import (
    APIConnectionError,
    APIRateLimitError,
    APIResponseError,
    APITimeoutError,
    GradeAIError,
    ParsingError,
    ProviderError,
)
from gradeai.core.models import (
    AICallResult,
    NormalizedAnalysis,
    PageImage,
    StudentProfile,
    TransformStatus,
    VisionReport,
    VisualEvidence,
)
from gradeai.prompts.analysis import ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt, build_combined_text
from gradeai.prompts.vision import VISION_SYSTEM_PROMPT, build_vision_prompt


_SECRET_PATTERNS = [
    (re.compile(r'sk-ant-[a-zA-Z0-9_-]{20,}'), 'sk-ant-[REDACTED]'),
    (re.compile(r'sk-[a-zA-Z0-9]{20,}'), 'sk-[REDACTED]'),
    (re.compile(r'(api[_-]?key\s*[=:]\s*["\']?)([a-zA-Z0-9_-]{20,})', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(Bearer\s+)([a-zA-Z0-9._-]{20,})'), r'\1[REDACTED]'),
    (re.compile(r'AIza[a-zA-Z0-9_-]{35}'), 'AIza[REDACTED]'),
    (re.compile(r'gsk_[a-zA-Z0-9]{20,}'), 'gsk_[REDACTED]'),
]


def sanitize_for_logging(text: str) -> str:
    """
    Mask API keys and bearer tokens before text reaches a log line.

    Args:
        text: Text to sanitize

    Returns:
        Sanitized text with sensitive values masked
    """
    if not text:
        return text
    sanitized = text
    for pattern, replacement in _SECRET_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


class APIErrorContext:
    """
    Context manager for consistent API error handling.

    Translates SDK exceptions into the ProviderError family.
    Errors that are already ours pass through untouched.

    Usage:
        with APIErrorContext("analysis", "claude"):
            response = client.call(...)
    """

    def __init__(self, operation: str, provider_name: str = "unknown"):
        self.operation = operation
        self.provider_name = provider_name

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False
        # Cancellation and our own errors propagate as-is
        if not issubclass(exc_type, Exception) or issubclass(exc_type, GradeAIError):
            return False

        message = sanitize_for_logging(str(exc_val))
        logger.warning(f"{self.provider_name} API error during {self.operation}: {message}")

        exc_name = exc_type.__name__
        details = {"provider": self.provider_name, "operation": self.operation}

        if any(name in exc_name for name in ['Timeout', 'TimedOut', 'DeadlineExceeded']):
            raise APITimeoutError(f"Timeout during {self.operation}: {message}", details) from exc_val

        if any(name in exc_name for name in ['Connection', 'Connect', 'Network']):
            raise APIConnectionError(f"Failed to connect during {self.operation}: {message}", details) from exc_val

        if 'RateLimit' in exc_name or 'TooManyRequests' in exc_name or '429' in message:
            raise APIRateLimitError(f"Rate limited during {self.operation}: {message}", details) from exc_val

        if any(name in exc_name for name in ['JSON', 'Parse', 'Decode']):
            raise ParsingError(f"Failed to parse response during {self.operation}: {message}", details) from exc_val

        raise ProviderError(f"API error during {self.operation}: {message}", details) from exc_val


@dataclass(frozen=True)
class ProviderAnalysis:
    """What a provider returns for one analysis call."""
    analysis: NormalizedAnalysis
    status: TransformStatus
    shape: Optional[ResponseShape]
    confidence: float


class BaseProvider(ABC):
    """
    Abstract base class for AI analysis providers.

    Provides common functionality:
    - Prompt building and response adaptation
    - Token usage tracking
    - Mock responses for offline runs

    Subclasses must implement:
    - call_text()
    - call_vision()
    """

    def __init__(
        self,
        provider_id: str,
        model: str,
        display_name: str = "",
        default_confidence: float = 0.80,
        mock_mode: bool = False,
    ):
        self.provider_id = provider_id
        self.model = model
        self.display_name = display_name or provider_id
        self.default_confidence = default_confidence
        self.mock_mode = mock_mode
        self.call_history: List[AICallResult] = []

    @property
    def name(self) -> str:
        return self.provider_id

    @property
    def model_label(self) -> str:
        return f"{self.display_name} ({self.model})"

    # ==================== IMAGE UTILITIES ====================

    @staticmethod
    def _page_to_base64(page: PageImage) -> str:
        return base64.b64encode(page.data).decode("utf-8")

    # ==================== TOKEN TRACKING ====================

    def _log_call(
        self,
        prompt_type: str,
        prompt: str,
        response: str,
        duration_ms: float,
        prompt_tokens: int = None,
        completion_tokens: int = None,
    ):
        """Record an AI call in the audit trail with sanitized summaries."""
        self.call_history.append(AICallResult(
            prompt_type=prompt_type,
            input_summary=sanitize_for_logging(prompt[:100]),
            response_summary=sanitize_for_logging(response[:200]),
            duration_ms=duration_ms,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            model_name=self.model,
        ))
        logger.debug(
            f"{self.name} {prompt_type} call: {duration_ms:.0f}ms, "
            f"tokens in={prompt_tokens} out={completion_tokens}"
        )

    def get_token_usage(self) -> Dict[str, int]:
        """Get total token usage from all calls."""
        prompt_tokens = sum(c.prompt_tokens or 0 for c in self.call_history)
        completion_tokens = sum(c.completion_tokens or 0 for c in self.call_history)
        return {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
            "calls": len(self.call_history)
        }

    # ==================== ABSTRACT METHODS ====================

    @abstractmethod
    def call_text(
        self,
        prompt: str,
        system_prompt: str = None,
        response_format: str = "text"
    ) -> str:
        """Call the text API."""
        pass

    @abstractmethod
    def call_vision(
        self,
        prompt: str,
        pages: List[PageImage],
        system_prompt: str = None,
    ) -> str:
        """Call the vision API with one or more page images."""
        pass

    # ==================== ANALYSIS ====================

    def analyze(
        self,
        text: str,
        evidence: Optional[VisualEvidence],
        profile: StudentProfile,
        language: str = "en",
    ) -> ProviderAnalysis:
        """
        Analyze document text and return a normalized analysis.

        Args:
            text: Recognized document text (evidence block optional)
            evidence: Visual evidence; prepended when text lacks it
            profile: Student profile
            language: Output language code

        Returns:
            ProviderAnalysis with the adaptation status

        Raises:
            ProviderError: on API failure or a reply with no JSON at all
        """
        if evidence is not None and "[Visual Evidence]" not in text:
            text = build_combined_text(evidence, text)
        prompt = build_analysis_prompt(text, profile, language)

        if self.mock_mode:
            raw = self._mock_analysis_response(profile)
        else:
            with APIErrorContext("analysis", self.name):
                raw = self.call_text(prompt, system_prompt=ANALYSIS_SYSTEM_PROMPT, response_format="json")
        if not raw or not raw.strip():
            raise APIResponseError(f"{self.name}: empty response", {"provider": self.name})

        adapted = adapt_analysis_payload(raw, self.model_label)
        if adapted.status == TransformStatus.UNRECOVERABLE:
            raise ParsingError(f"{self.name}: {adapted.error}", {"provider": self.name})

        analysis = adapted.analysis
        confidence = analysis.summary.confidence
        if adapted.status == TransformStatus.DEFAULTED:
            confidence = 0.0
        elif confidence is None:
            confidence = self.default_confidence

        logger.info(
            f"{self.name}: grade={analysis.summary.overall_grade or 'n/a'}, "
            f"shape={adapted.shape.value if adapted.shape else 'n/a'}, status={adapted.status.value}"
        )
        return ProviderAnalysis(analysis=analysis, status=adapted.status, shape=adapted.shape, confidence=confidence)

    def analyze_pages(self, pages: List[PageImage], language: str = "en") -> VisionReport:
        """
        Read page images directly and return a vision report.

        Raises:
            ProviderError: on API failure or unparseable reply
        """
        start_time = time.time()
        prompt = build_vision_prompt(len(pages), language)

        if self.mock_mode:
            raw = self._mock_vision_response()
        else:
            with APIErrorContext("vision analysis", self.name):
                raw = self.call_vision(prompt, pages, system_prompt=VISION_SYSTEM_PROMPT)
        if not raw or not raw.strip():
            raise APIResponseError(f"{self.name}: empty vision response", {"provider": self.name})

        return adapt_vision_payload(
            raw,
            provider=self.name,
            pages_analyzed=len(pages),
            duration_ms=(time.time() - start_time) * 1000,
        )

    # ==================== MOCK RESPONSES ====================

    def _mock_analysis_response(self, profile: StudentProfile) -> str:
        """Canned reply in the summary shape."""
        return json.dumps({
            "summary": {
                "overallGrade": UNABLE_TO_DETERMINE,
                "overallScore": 0,
                "maxScore": 0,
                "percentage": 0,
                "subject": "Unknown",
                "childName": profile.name,
                "executiveSummary": f"Mock analysis by {self.display_name}.",
                "confidence": self.default_confidence,
            },
            "performance": {"bySection": [], "trends": []},
            "teacherFeedback": {"written": "", "corrections": [], "praise": []},
            "strengths": [f"Mock strength from {self.display_name}"],
            "weaknesses": [],
            "recommendations": [{
                "priority": 1,
                "category": "Practice",
                "action": "Review the corrected tasks together for 15 minutes",
                "timeframe": "1 week",
                "rationale": "Mock recommendation",
            }],
            "longTermDevelopment": {"semesterPrediction": "", "improvementAreas": [], "goalSetting": ""},
        })

    def _mock_vision_response(self) -> str:
        return json.dumps({
            "grade": {"value": None, "confidence": "not_found"},
            "metadata": {"confidence": self.default_confidence * 100},
        })
