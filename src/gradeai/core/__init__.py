"""
Core module for the analysis engine.

Exports key models and exceptions for easy access.
"""

from gradeai.core.models import (
    AnalysisRequest,
    GradeAgreement,
    GradeConfidence,
    GradeConsensus,
    GradeVote,
    MultiProviderResult,
    NormalizedAnalysis,
    ProviderResult,
    StudentProfile,
    TextResolution,
    UploadRecord,
    UploadStatus,
    VisionConsensus,
    VisionReport,
    VisualEvidence,
)

from gradeai.core.exceptions import (
    GradeAIError,
    ConfigurationError,
    MissingAPIKeyError,
    NoProvidersEnabledError,
    ProviderError,
    ParsingError,
    AllProvidersFailedError,
    OCRError,
    AllOCREnginesFailedError,
    PipelineError,
    UploadNotFoundError,
    InsufficientTextError,
    AnalysisTimeoutError,
    user_facing_message,
)

__all__ = [
    # Models
    'AnalysisRequest',
    'GradeAgreement',
    'GradeConfidence',
    'GradeConsensus',
    'GradeVote',
    'MultiProviderResult',
    'NormalizedAnalysis',
    'ProviderResult',
    'StudentProfile',
    'TextResolution',
    'UploadRecord',
    'UploadStatus',
    'VisionConsensus',
    'VisionReport',
    'VisualEvidence',
    # Exceptions
    'GradeAIError',
    'ConfigurationError',
    'MissingAPIKeyError',
    'NoProvidersEnabledError',
    'ProviderError',
    'ParsingError',
    'AllProvidersFailedError',
    'OCRError',
    'AllOCREnginesFailedError',
    'PipelineError',
    'UploadNotFoundError',
    'InsufficientTextError',
    'AnalysisTimeoutError',
    'user_facing_message',
]
