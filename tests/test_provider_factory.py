"""
Tests for provider configuration and the provider factory.
"""

import pytest

from gradeai.ai.claude_provider import ClaudeProvider
from gradeai.ai.openai_provider import OpenAICompatibleProvider
from gradeai.ai.provider_factory import (
    create_ai_provider,
    create_analysis_providers,
    get_available_providers,
    get_provider_status,
)
from gradeai.config.providers import PROVIDER_REGISTRY, get_provider_config
from gradeai.config.settings import Settings
from gradeai.core.exceptions import MissingAPIKeyError, NoProvidersEnabledError
from gradeai.core.models import StudentProfile, TransformStatus


def test_registry_entries_are_complete():
    for name, meta in PROVIDER_REGISTRY.items():
        assert meta["client_kind"] in {"anthropic", "gemini", "openai"}, name
        assert meta["env_var"].startswith("GRADEAI_")
        if meta["client_kind"] == "openai":
            assert meta["base_url"].startswith("https://")


def test_provider_config_reads_settings(settings):
    settings.mistral_api_key = "mistral-key"
    settings.mistral_model = "mistral-small-latest"

    config = get_provider_config("Mistral", settings)

    assert config.provider_id == "mistral"
    assert config.model == "mistral-small-latest"
    assert config.base_url == "https://api.mistral.ai/v1"
    assert config.is_active


def test_provider_needs_switch_and_key(settings):
    settings.groq_api_key = "groq-key"
    assert not get_provider_config("groq", settings).is_active

    settings.groq_enabled = True
    assert get_provider_config("groq", settings).is_active


def test_unknown_provider(settings):
    with pytest.raises(ValueError):
        create_ai_provider("watson", settings)


def test_missing_key(settings):
    with pytest.raises(MissingAPIKeyError) as exc_info:
        create_ai_provider("claude", settings)

    assert exc_info.value.details["env_var"] == "GRADEAI_ANTHROPIC_API_KEY"


def test_create_with_keys(settings):
    settings.anthropic_api_key = "sk-ant-test"
    settings.deepseek_api_key = "sk-test"

    claude = create_ai_provider("claude", settings, model="claude-test-model")
    deepseek = create_ai_provider("deepseek", settings)

    assert isinstance(claude, ClaudeProvider)
    assert claude.model == "claude-test-model"
    assert isinstance(deepseek, OpenAICompatibleProvider)
    assert deepseek.name == "deepseek"


def test_no_providers_names_missing_credentials(settings):
    with pytest.raises(NoProvidersEnabledError) as exc_info:
        create_analysis_providers(settings)

    assert exc_info.value.missing_credentials == [
        "GRADEAI_ANTHROPIC_API_KEY",
        "GRADEAI_MISTRAL_API_KEY",
        "GRADEAI_GEMINI_API_KEY",
    ]


def test_only_active_providers_are_built(settings):
    settings.anthropic_api_key = "sk-ant-test"
    settings.mistral_api_key = "mistral-key"
    settings.mistral_enabled = False

    providers = create_analysis_providers(settings)

    assert [p.name for p in providers] == ["claude"]
    assert get_available_providers(settings) == ["claude"]


def test_mock_mode_needs_no_keys(settings):
    providers = create_analysis_providers(settings, mock_mode=True)

    assert [p.name for p in providers] == ["claude", "mistral", "gemini"]
    outcome = providers[0].analyze("Note: 2", None, StudentProfile(name="Mia"))
    assert outcome.status == TransformStatus.TRANSFORMED
    assert outcome.analysis.summary.child_name == "Mia"
    assert outcome.confidence == pytest.approx(0.85)


def test_provider_status(settings):
    settings.gemini_api_key = "AIza-test"

    status = get_provider_status(settings)

    assert set(status) == set(PROVIDER_REGISTRY)
    assert status["gemini"]["configured"] and status["gemini"]["active"]
    assert not status["claude"]["configured"]
    assert status["groq"]["enabled"] is False


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("GRADEAI_ANTHROPIC_API_KEY", "sk-ant-env")
    monkeypatch.setenv("GRADEAI_PROVIDER_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("GRADEAI_SCORING__GRADE_BONUS", "12")
    monkeypatch.setenv("GRADEAI_LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.anthropic_api_key == "sk-ant-env"
    assert settings.provider_timeout_seconds == 30
    assert settings.scoring.grade_bonus == 12
    assert settings.log_level == "DEBUG"


def test_settings_reject_bad_values():
    with pytest.raises(ValueError):
        Settings(_env_file=None, log_level="LOUD")
    with pytest.raises(ValueError):
        Settings(_env_file=None, provider_timeout_seconds=0)


def test_default_deadline_outlasts_a_provider_round():
    settings = Settings(_env_file=None)

    assert settings.analysis_timeout_seconds >= settings.ocr_timeout_seconds + settings.provider_timeout_seconds
    assert settings.analysis_timeout_seconds >= settings.vision_timeout_seconds


def test_settings_reject_deadline_shorter_than_provider_timeout():
    with pytest.raises(ValueError, match="analysis_timeout_seconds"):
        Settings(_env_file=None, provider_timeout_seconds=60, ocr_timeout_seconds=15, analysis_timeout_seconds=55)
    with pytest.raises(ValueError, match="vision_timeout_seconds"):
        Settings(_env_file=None, vision_timeout_seconds=120, analysis_timeout_seconds=100)
