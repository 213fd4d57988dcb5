"""
Custom exception hierarchy for the analysis engine.

Provides a consistent error handling approach across all modules.
"""

from typing import Dict

from gradeai.config.constants import (
    MSG_ALL_PROVIDERS_FAILED,
    MSG_ANALYSIS_TIMEOUT,
    MSG_GENERIC_FAILURE,
    MSG_INSUFFICIENT_TEXT,
)


class GradeAIError(Exception):
    """
    Base exception for all analysis engine errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== Configuration Errors ====================

class ConfigurationError(GradeAIError):
    """
    Error in system configuration.

    Fatal and never retried.
    """
    pass


class MissingAPIKeyError(ConfigurationError):
    """Raised when a required API key is not configured."""
    pass


class NoProvidersEnabledError(ConfigurationError):
    """Raised when no analysis provider is both enabled and configured."""

    def __init__(self, missing_credentials: list[str]):
        names = ", ".join(missing_credentials) or "none"
        super().__init__(
            f"No AI providers configured. Set at least one of: {names}",
            {"missing_credentials": list(missing_credentials)},
        )
        self.missing_credentials = list(missing_credentials)


# ==================== Provider Errors ====================

class ProviderError(GradeAIError):
    """
    Base error for AI provider issues.

    Recorded as a failed provider result; siblings keep running.
    """
    pass


class APIConnectionError(ProviderError):
    """Raised when connection to AI API fails."""
    pass


class APITimeoutError(ProviderError):
    """Raised when an AI API call times out."""
    pass


class APIRateLimitError(ProviderError):
    """Raised when API rate limit is exceeded."""
    pass


class APIResponseError(ProviderError):
    """Raised when API returns an unexpected or invalid response."""
    pass


class ParsingError(ProviderError):
    """Raised when an AI response is not structured data at all."""
    pass


class AllProvidersFailedError(GradeAIError):
    """Raised when every launched provider failed or timed out."""

    def __init__(self, failures: Dict[str, str]):
        listing = "; ".join(f"{name}: {reason}" for name, reason in failures.items())
        super().__init__(
            f"{MSG_ALL_PROVIDERS_FAILED}. Providers attempted: {listing}",
            {"failures": dict(failures)},
        )
        self.failures = dict(failures)


# ==================== OCR Errors ====================

class OCRError(GradeAIError):
    """Raised when a text recognition engine fails."""
    pass


class AllOCREnginesFailedError(OCRError):
    """Raised when every attempted text recognition engine failed."""

    def __init__(self, failures: Dict[str, str]):
        listing = "; ".join(f"{name}: {reason}" for name, reason in failures.items())
        super().__init__(f"All OCR engines failed. {listing}", {"failures": dict(failures)})
        self.failures = dict(failures)


# ==================== Pipeline Errors ====================

class PipelineError(GradeAIError):
    """Base error for upload processing."""
    pass


class UploadNotFoundError(PipelineError):
    """Raised when a requested upload doesn't exist."""
    pass


class InsufficientTextError(PipelineError):
    """Raised when too little text was recognized to analyze."""

    def __init__(self, length: int, minimum: int):
        super().__init__(MSG_INSUFFICIENT_TEXT, {"length": length, "minimum": minimum})


class AnalysisTimeoutError(PipelineError):
    """Raised when the whole analysis exceeds its deadline."""

    def __init__(self, timeout: float):
        super().__init__(MSG_ANALYSIS_TIMEOUT, {"timeout_seconds": timeout})


# ==================== Storage Errors ====================

class StorageError(GradeAIError):
    """Base error for storage issues."""
    pass


class SerializationError(StorageError):
    """Raised when a record cannot be (de)serialized."""
    pass


# ==================== PDF Errors ====================

class PDFError(GradeAIError):
    """Base error for PDF processing issues."""
    pass


class PDFReadError(PDFError):
    """Raised when a PDF cannot be read."""
    pass


def user_facing_message(exc: BaseException) -> str:
    """
    Message stored on a failed upload.

    Known errors carry their own message; anything else collapses to a
    generic line so stack traces never reach the user.
    """
    if isinstance(exc, GradeAIError):
        return exc.message
    if isinstance(exc, TimeoutError):
        return MSG_ANALYSIS_TIMEOUT
    return f"{MSG_GENERIC_FAILURE}: {type(exc).__name__}"

