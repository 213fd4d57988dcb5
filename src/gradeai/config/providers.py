"""
Provider registry and configuration.

All provider-specific settings in one place.
No hardcoded values in provider classes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ProviderConfig:
    """Configuration for a single AI analysis provider."""
    provider_id: str
    display_name: str
    client_kind: str
    api_key: str = ""
    enabled: bool = False
    model: Optional[str] = None
    base_url: Optional[str] = None
    env_var: str = ""
    default_confidence: float = 0.80
    extra_kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        """A provider runs only when switched on and holding a key."""
        return self.enabled and bool(self.api_key)


# Provider metadata - defines how to create each provider.
# client_kind selects the SDK: "anthropic", "gemini" or "openai" (compatible API).
PROVIDER_REGISTRY: Dict[str, Dict[str, Any]] = {
    "claude": {
        "display_name": "Claude",
        "client_kind": "anthropic",
        "api_key_attr": "anthropic_api_key",
        "enabled_attr": "claude_enabled",
        "model_attr": "claude_model",
        "env_var": "GRADEAI_ANTHROPIC_API_KEY",
        "default_confidence": 0.85,
    },
    "mistral": {
        "display_name": "Mistral",
        "client_kind": "openai",
        "api_key_attr": "mistral_api_key",
        "enabled_attr": "mistral_enabled",
        "model_attr": "mistral_model",
        "base_url": "https://api.mistral.ai/v1",
        "env_var": "GRADEAI_MISTRAL_API_KEY",
        "default_confidence": 0.80,
    },
    "gemini": {
        "display_name": "Gemini",
        "client_kind": "gemini",
        "api_key_attr": "gemini_api_key",
        "enabled_attr": "gemini_enabled",
        "model_attr": "gemini_model",
        "env_var": "GRADEAI_GEMINI_API_KEY",
        "default_confidence": 0.80,
    },
    "deepseek": {
        "display_name": "DeepSeek",
        "client_kind": "openai",
        "api_key_attr": "deepseek_api_key",
        "enabled_attr": "deepseek_enabled",
        "model_attr": "deepseek_model",
        "base_url": "https://api.deepseek.com/v1",
        "env_var": "GRADEAI_DEEPSEEK_API_KEY",
        "default_confidence": 0.85,
    },
    "groq": {
        "display_name": "Groq",
        "client_kind": "openai",
        "api_key_attr": "groq_api_key",
        "enabled_attr": "groq_enabled",
        "model_attr": "groq_model",
        "base_url": "https://api.groq.com/openai/v1",
        "env_var": "GRADEAI_GROQ_API_KEY",
        "default_confidence": 0.80,
    },
}


def get_provider_config(provider_name: str, settings) -> ProviderConfig:
    """
    Build ProviderConfig from settings for a given provider.

    Args:
        provider_name: Name of provider (e.g., "claude", "mistral", "gemini")
        settings: Settings instance

    Returns:
        ProviderConfig with all settings populated
    """
    registry = PROVIDER_REGISTRY.get(provider_name.lower())
    if not registry:
        raise ValueError(f"Unknown provider: {provider_name}. Available: {list(PROVIDER_REGISTRY.keys())}")

    return ProviderConfig(
        provider_id=provider_name.lower(),
        display_name=registry["display_name"],
        client_kind=registry["client_kind"],
        api_key=getattr(settings, registry["api_key_attr"], "") or "",
        enabled=bool(getattr(settings, registry["enabled_attr"], False)),
        model=getattr(settings, registry["model_attr"], None),
        base_url=registry.get("base_url"),
        env_var=registry["env_var"],
        default_confidence=registry["default_confidence"],
        extra_kwargs=registry.get("extra_kwargs", {}),
    )


def get_all_provider_configs(settings) -> List[ProviderConfig]:
    """Configs for every registered provider, in registry order."""
    return [get_provider_config(name, settings) for name in PROVIDER_REGISTRY]
