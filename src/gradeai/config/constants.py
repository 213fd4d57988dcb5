"""
Constants and configuration values for the analysis engine.

Defines thresholds, defaults, and system-wide constants.
Values that operators tune live in settings.py instead.
"""

from typing import Final

# AI call configuration
MAX_RETRIES: Final[int] = 2
API_CONNECT_TIMEOUT: Final[float] = 10.0
API_READ_TIMEOUT: Final[float] = 120.0
ANALYSIS_MAX_TOKENS: Final[int] = 8000
ANALYSIS_TEMPERATURE: Final[float] = 0.2
CLAUDE_MAX_TOKENS: Final[int] = 4000
CLAUDE_TEMPERATURE: Final[float] = 0.3
VISION_MAX_TOKENS: Final[int] = 4096

# Confidence defaults
DEFAULT_CONFIDENCE: Final[float] = 0.85
DEFAULT_OCR_CONFIDENCE: Final[float] = 0.85

# Grades that mean "no grade was found"
MISSING_GRADE_VALUES: Final[frozenset] = frozenset({
    "", "unknown", "unable to determine", "n/a", "not_found", "none", "null", "-",
})
UNABLE_TO_DETERMINE: Final[str] = "Unable to determine"

# Visual evidence heuristics
EVIDENCE_GRID_COLS: Final[int] = 6
EVIDENCE_GRID_ROWS: Final[int] = 9
EVIDENCE_CELL_THRESHOLD: Final[float] = 0.08
EVIDENCE_RED_MARK_RATIO: Final[float] = 0.01
EVIDENCE_BLUE_MARK_RATIO: Final[float] = 0.008
EVIDENCE_BASE_CONFIDENCE: Final[float] = 0.85
EVIDENCE_DENSITY_WEIGHT: Final[float] = 0.5
EVIDENCE_MAX_BOOST: Final[float] = 0.12
EVIDENCE_MAX_CONFIDENCE: Final[float] = 0.99
EVIDENCE_MIN_COMMENT_LENGTH: Final[int] = 5
MARK_WRONG: Final[str] = "✗"
MARK_CORRECT: Final[str] = "✓"

# Ink classification (RGB channel dominance)
RED_MIN: Final[int] = 150
RED_DOMINANCE: Final[int] = 40
BLUE_MIN: Final[int] = 140
BLUE_OVER_RED: Final[int] = 20
BLUE_OVER_GREEN: Final[int] = 10

# Vision consensus
AGREEMENT_BONUS_FULL: Final[float] = 15.0
AGREEMENT_BONUS_PARTIAL: Final[float] = 5.0
AGREEMENT_PENALTY_NONE: Final[float] = -10.0
SUCCESS_RATIO_WEIGHT: Final[float] = 10.0
DEDUP_KEY_LENGTH: Final[int] = 50

# PDF processing
PDF_DPI: Final[int] = 200
PDF_MAX_PAGES: Final[int] = 20
PAGE_MAX_WIDTH: Final[int] = 1600
PAGE_MAX_HEIGHT: Final[int] = 2200
SUPPORTED_IMAGE_FORMATS: Final[tuple] = (".png", ".jpg", ".jpeg", ".webp")

# Storage
UPLOADS_INDEX: Final[str] = "_index.json"
UPLOAD_JSON: Final[str] = "upload.json"
ANALYSIS_JSON: Final[str] = "analysis.json"
EXTRACTED_TEXT_FILE: Final[str] = "extracted_text.txt"

# User-facing failure messages
MSG_ANALYSIS_TIMEOUT: Final[str] = "Analysis timeout - please try again with a clearer image"
MSG_INSUFFICIENT_TEXT: Final[str] = (
    "Insufficient text extracted from image. The image may be blank or unreadable."
)
MSG_ALL_PROVIDERS_FAILED: Final[str] = "All AI providers failed"
MSG_GENERIC_FAILURE: Final[str] = "Analysis failed"
