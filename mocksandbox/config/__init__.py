"""Configuration management for mocksandbox."""

from mocksandbox.config.settings import (
    DEFAULT_CONFIG_FILE,
    VALID_FALLBACK_STRATEGIES,
    SandboxSettings,
    load_config,
)

__all__ = [
    "SandboxSettings",
    "load_config",
    "DEFAULT_CONFIG_FILE",
    "VALID_FALLBACK_STRATEGIES",
]
