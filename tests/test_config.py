"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from mocksandbox.config import SandboxSettings, load_config
from mocksandbox.errors import InvalidConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in (
        "MOCKSANDBOX_MODEL_RUNNER_URL",
        "MOCKSANDBOX_MODEL",
        "MOCKSANDBOX_PROVIDER",
        "MOCKSANDBOX_APP_PORT",
        "MOCKSANDBOX_MOCK_PORT",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestSandboxSettings:
    def test_defaults(self) -> None:
        settings = SandboxSettings()
        assert settings.model == "ai/smollm2"
        assert settings.temperature == 0.2
        assert settings.app_port == 5173
        assert settings.mock_port == 9000
        assert settings.provider == "docker"
        assert settings.latency == (100, 300)
        assert settings.scan_workers == 8
        assert settings.max_file_bytes == 1024 * 1024
        assert settings.fallback_strategy == "rules"
        assert settings.sandbox_dir == ".sandbox"

    def test_provider_normalized(self) -> None:
        assert SandboxSettings(provider=" None ").provider == "none"

    def test_provider_names_resolved_later(self) -> None:
        assert SandboxSettings(provider="podman").provider == "podman"
        with pytest.raises(ValidationError):
            SandboxSettings(provider="  ")

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOCKSANDBOX_MOCK_PORT", "9100")
        assert SandboxSettings().mock_port == 9100

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"app_port": 0},
            {"mock_port": 70000},
            {"app_port": 8000, "mock_port": 8000},
            {"latency_min_ms": 500, "latency_max_ms": 100},
            {"fallback_strategy": "magic"},
            {"scan_workers": 0},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            SandboxSettings(**kwargs)


class TestLoadConfig:
    def test_no_file(self) -> None:
        assert load_config(None).mock_port == 9000

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path / "absent.yaml").app_port == 5173

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "mocksandbox.yaml"
        path.write_text(yaml.safe_dump({"mock_port": 9200, "fallback_strategy": "schema"}))

        settings = load_config(path)

        assert settings.mock_port == 9200
        assert settings.fallback_strategy == "schema"

    def test_env_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "mocksandbox.yaml"
        path.write_text(yaml.safe_dump({"model": "from-file"}))
        monkeypatch.setenv("MOCKSANDBOX_MODEL", "from-env")

        assert load_config(path).model == "from-env"

    def test_overrides_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOCKSANDBOX_PROVIDER", "docker")
        assert load_config(None, provider="none").provider == "none"

    def test_none_overrides_are_ignored(self) -> None:
        assert load_config(None, app_port=None).app_port == 5173

    def test_invalid_value_raises(self) -> None:
        with pytest.raises(InvalidConfigurationError) as exc_info:
            load_config(None, app_port=9000, mock_port=9000)
        assert exc_info.value.cause is not None

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        path = tmp_path / "mocksandbox.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(InvalidConfigurationError):
            load_config(path)

    def test_bad_port_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOCKSANDBOX_APP_PORT", "abc")
        with pytest.raises(InvalidConfigurationError):
            load_config(None)
