"""
Configuration management for the analysis engine.

All configuration comes from environment variables or .env file.
Nested values use a double underscore, e.g. GRADEAI_SCORING__GRADE_BONUS=12.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScoringWeights(BaseModel):
    """
    Bonuses and caps used by the quality scorer.

    The values are empirically tuned, not business rules.
    """
    grade_bonus: float = 10.0
    score_bonus: float = 5.0
    subject_bonus: float = 5.0
    sections_present_bonus: float = 10.0
    per_section_bonus: float = 2.0
    sections_cap: float = 10.0
    recommendations_present_bonus: float = 15.0
    recommendation_length_divisor: float = 20.0
    recommendation_length_cap: float = 10.0
    strengths_bonus: float = 10.0
    weaknesses_bonus: float = 10.0
    list_bonus_min_items: int = 2
    semester_prediction_bonus: float = 5.0
    goal_setting_bonus: float = 5.0


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Timeouts nest: the request deadline (analysis_timeout_seconds) must cover
    text recognition plus one provider round (ocr_timeout_seconds +
    provider_timeout_seconds) and the vision round (vision_timeout_seconds),
    so a slow provider is recorded as a provider failure instead of failing
    the whole upload.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GRADEAI_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys
    anthropic_api_key: str = ""
    mistral_api_key: str = ""
    gemini_api_key: str = ""
    deepseek_api_key: str = ""
    groq_api_key: str = ""

    # Provider switches (a provider also needs its key)
    claude_enabled: bool = True
    mistral_enabled: bool = True
    gemini_enabled: bool = True
    deepseek_enabled: bool = False
    groq_enabled: bool = False

    # Models
    claude_model: str = "claude-sonnet-4-20250514"
    mistral_model: str = "mistral-large-latest"
    gemini_model: str = "gemini-2.5-flash"
    deepseek_model: str = "deepseek-chat"
    groq_model: str = "llama-3.3-70b-versatile"

    # Orchestration
    provider_timeout_seconds: float = Field(default=60.0, gt=0)
    vision_timeout_seconds: float = Field(default=55.0, gt=0)
    vision_provider_priority: list[str] = ["claude", "gemini", "mistral"]

    # Text recognition
    google_credentials_json: Optional[str] = None
    ocr_confidence_threshold: float = Field(default=0.85, ge=0, le=1)
    ocr_high_confidence: float = Field(default=0.90, ge=0, le=1)
    ocr_similarity_margin: float = Field(default=0.10, ge=0, le=1)
    skip_ocr_fallback: bool = False
    ocr_timeout_seconds: float = 15.0
    tesseract_languages: str = "deu+eng"
    tesseract_timeout_seconds: float = 20.0
    tesseract_terminate_timeout_seconds: float = 5.0

    # Visual evidence
    evidence_timeout_seconds: float = 8.0
    crop_ocr_timeout_seconds: float = 6.0
    evidence_max_width: int = 1400

    # Merge caps
    max_strengths: int = Field(default=8, ge=1)
    max_weaknesses: int = Field(default=8, ge=1)
    max_recommendations: int = Field(default=10, ge=1)
    scoring: ScoringWeights = ScoringWeights()

    # Pipeline
    min_text_length: int = 50
    analysis_timeout_seconds: float = Field(default=90.0, gt=0)

    # Storage
    data_dir: str = "data"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one loguru knows."""
        valid = ['TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid:
            raise ValueError(f"log_level must be one of: {', '.join(valid)}")
        return v.upper()

    @field_validator('vision_provider_priority')
    @classmethod
    def lowercase_priority(cls, v: list[str]) -> list[str]:
        return [p.lower() for p in v]

    @model_validator(mode="after")
    def check_timeout_nesting(self) -> "Settings":
        """The request deadline must outlast the per-stage timeouts."""
        text_round = self.ocr_timeout_seconds + self.provider_timeout_seconds
        if self.analysis_timeout_seconds < max(text_round, self.vision_timeout_seconds):
            raise ValueError(
                f"analysis_timeout_seconds ({self.analysis_timeout_seconds:g}) must be at least "
                f"ocr_timeout_seconds + provider_timeout_seconds ({text_round:g}) "
                f"and vision_timeout_seconds ({self.vision_timeout_seconds:g})"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from environment."""
    get_settings.cache_clear()
    return get_settings()
