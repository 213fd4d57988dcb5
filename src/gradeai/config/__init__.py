"""
Configuration module for the analysis engine.

Provides settings, constants, the provider registry and logging configuration.
"""

from gradeai.config.settings import get_settings, reload_settings, Settings, ScoringWeights
from gradeai.config.logging_config import setup_logging, setup_logging_from_settings
from gradeai.config.providers import (
    PROVIDER_REGISTRY,
    ProviderConfig,
    get_provider_config,
    get_all_provider_configs,
)

__all__ = [
    # Settings
    'get_settings',
    'reload_settings',
    'Settings',
    'ScoringWeights',
    # Logging
    'setup_logging',
    'setup_logging_from_settings',
    # Providers
    'PROVIDER_REGISTRY',
    'ProviderConfig',
    'get_provider_config',
    'get_all_provider_configs',
]
