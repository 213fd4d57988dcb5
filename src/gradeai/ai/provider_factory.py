"""
Factory for creating AI provider instances.

Clients are built once at process start and handed to the orchestrator;
nothing here caches them globally.
"""

from typing import Dict, List, Optional

from loguru import logger

from gradeai.ai.base_provider import BaseProvider
from gradeai.ai.claude_provider import ClaudeProvider
from gradeai.ai.gemini_provider import GeminiProvider
from gradeai.ai.openai_provider import OpenAICompatibleProvider
from gradeai.config.providers import PROVIDER_REGISTRY, ProviderConfig, get_all_provider_configs, get_provider_config
from gradeai.config.settings import Settings, get_settings
from gradeai.core.exceptions import MissingAPIKeyError, NoProvidersEnabledError

PROVIDER_CLASSES = {
    "anthropic": ClaudeProvider,
    "gemini": GeminiProvider,
    "openai": OpenAICompatibleProvider,
}


def create_ai_provider(
    provider_type: str,
    settings: Optional[Settings] = None,
    model: str = None,
    mock_mode: bool = False
) -> BaseProvider:
    """
    Create one AI provider instance.

    Args:
        provider_type: Provider name from the registry
        settings: Settings (default: cached settings)
        model: Override model name
        mock_mode: Skip API key validation and client creation

    Returns:
        Provider instance
    """
    settings = settings or get_settings()
    provider_type = provider_type.lower()

    if provider_type not in PROVIDER_REGISTRY:
        raise ValueError(f"Unknown provider: {provider_type}. Available: {list(PROVIDER_REGISTRY.keys())}")

    config = get_provider_config(provider_type, settings)
    if model:
        config.model = model

    if not config.api_key and not mock_mode:
        raise MissingAPIKeyError(
            f"API key required for {provider_type}. Set {config.env_var}",
            {"provider": provider_type, "env_var": config.env_var},
        )

    return _instantiate(config, mock_mode)


def _instantiate(config: ProviderConfig, mock_mode: bool) -> BaseProvider:
    provider_class = PROVIDER_CLASSES[config.client_kind]
    kwargs = dict(
        provider_id=config.provider_id,
        api_key=config.api_key,
        model=config.model,
        display_name=config.display_name,
        default_confidence=config.default_confidence,
        mock_mode=mock_mode,
        **config.extra_kwargs
    )
    if config.client_kind == "openai":
        kwargs["base_url"] = config.base_url
    return provider_class(**kwargs)


def create_analysis_providers(settings: Optional[Settings] = None, mock_mode: bool = False) -> List[BaseProvider]:
    """
    Build every enabled provider.

    A provider is enabled when its switch is on and its key is set
    (in mock mode the switch alone is enough).

    Raises:
        NoProvidersEnabledError: naming the credentials that would enable a provider
    """
    settings = settings or get_settings()
    configs = get_all_provider_configs(settings)

    if mock_mode:
        active = [c for c in configs if c.enabled]
    else:
        active = [c for c in configs if c.is_active]

    if not active:
        missing = [c.env_var for c in configs if c.enabled and not c.api_key] or [c.env_var for c in configs]
        raise NoProvidersEnabledError(missing)

    providers = [_instantiate(c, mock_mode) for c in active]
    logger.info(f"Analysis providers: {', '.join(p.name for p in providers)}{' (mock)' if mock_mode else ''}")
    return providers


def get_provider_status(settings: Optional[Settings] = None) -> Dict[str, Dict[str, object]]:
    """Configured/enabled state of every registered provider."""
    settings = settings or get_settings()
    return {
        c.provider_id: {
            "display_name": c.display_name,
            "model": c.model,
            "enabled": c.enabled,
            "configured": bool(c.api_key),
            "active": c.is_active,
            "env_var": c.env_var,
        }
        for c in get_all_provider_configs(settings)
    }


def get_available_providers(settings: Optional[Settings] = None) -> List[str]:
    """Get providers that are switched on and have a key."""
    settings = settings or get_settings()
    return [c.provider_id for c in get_all_provider_configs(settings) if c.is_active]
