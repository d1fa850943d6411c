"""Configuration settings and loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mocksandbox.errors import InvalidConfigurationError

DEFAULT_CONFIG_FILE = "mocksandbox.yaml"
VALID_FALLBACK_STRATEGIES = {"rules", "schema"}


class SandboxSettings(BaseSettings):
    """Configuration for a mocksandbox run."""

    model_config = SettingsConfigDict(
        env_prefix="MOCKSANDBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Model runner (OpenAI-compatible chat completions)
    model_runner_url: str | None = None
    model: str = "ai/smollm2"
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    request_timeout: float = Field(default=60.0, gt=0)

    # Sandbox
    provider: str = "docker"
    app_port: int = 5173
    mock_port: int = 9000
    sandbox_dir: str = ".sandbox"
    latency_min_ms: int = Field(default=100, ge=0)
    latency_max_ms: int = Field(default=300, ge=0)

    # Discovery
    scan_workers: int = Field(default=8, ge=1, le=64)
    max_file_bytes: int = Field(default=1024 * 1024, gt=0)

    # Synthesis
    fallback_strategy: str = "rules"

    @field_validator("app_port", "mock_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        # Names are checked against the provider registry when the pipeline
        # resolves them (get_provider raises InvalidConfigurationError), so
        # providers registered at runtime are accepted here.
        v = v.strip().lower()
        if not v:
            raise ValueError("provider cannot be empty")
        return v

    @field_validator("fallback_strategy")
    @classmethod
    def validate_fallback_strategy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in VALID_FALLBACK_STRATEGIES:
            raise ValueError(
                f"Invalid fallback strategy: {v}. Valid: {sorted(VALID_FALLBACK_STRATEGIES)}"
            )
        return v

    @model_validator(mode="after")
    def validate_latency_window(self) -> SandboxSettings:
        if self.latency_min_ms > self.latency_max_ms:
            raise ValueError(
                f"latency_min_ms ({self.latency_min_ms}) must not exceed "
                f"latency_max_ms ({self.latency_max_ms})"
            )
        if self.app_port == self.mock_port:
            raise ValueError("app_port and mock_port must differ")
        return self

    @property
    def latency(self) -> tuple[int, int]:
        return (self.latency_min_ms, self.latency_max_ms)


def load_config(config_path: str | Path | None = None, **overrides: Any) -> SandboxSettings:
    """Load configuration from file and environment.

    Priority: explicit overrides > env vars > config file > defaults

    Raises:
        InvalidConfigurationError: If the file is unreadable or any value is invalid.
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            try:
                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise InvalidConfigurationError(
                    f"Cannot read config file {config_path}", cause=e, path=str(config_path)
                ) from e
            if not isinstance(config_data, dict):
                raise InvalidConfigurationError(
                    f"Config file {config_path} must contain a mapping", path=str(config_path)
                )

    config_data.update(_get_env_overrides())
    config_data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return SandboxSettings(**config_data)
    except ValidationError as e:
        raise InvalidConfigurationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            cause=e,
            errors="; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()),
        ) from e


def _get_env_overrides() -> dict[str, Any]:
    """Environment variables that win over the config file."""
    overrides: dict[str, Any] = {}

    env_mappings = {
        "MOCKSANDBOX_MODEL_RUNNER_URL": "model_runner_url",
        "MOCKSANDBOX_MODEL": "model",
        "MOCKSANDBOX_PROVIDER": "provider",
        "MOCKSANDBOX_APP_PORT": ("app_port", int),
        "MOCKSANDBOX_MOCK_PORT": ("mock_port", int),
    }

    for env_key, config_key in env_mappings.items():
        value = os.environ.get(env_key)
        if value is not None:
            if isinstance(config_key, tuple):
                key, converter = config_key
                try:
                    overrides[key] = converter(value)
                except ValueError as e:
                    raise InvalidConfigurationError(
                        f"{env_key} must be an integer, got {value!r}", cause=e
                    ) from e
            else:
                overrides[config_key] = value

    return overrides
