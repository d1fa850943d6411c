"""Pytest fixtures for mocksandbox tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from mocksandbox.config import SandboxSettings
from mocksandbox.errors import SynthesisUnreachableError
from mocksandbox.events import EventChannel, EventType
from mocksandbox.models import DetectedProject


class UnreachableGenerator:
    """Text generator whose backend is never reachable."""

    model = "test/unreachable"

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def synthesize(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        raise SynthesisUnreachableError("Model runner unreachable at http://localhost:1")


class ScriptedGenerator:
    """Text generator that replays canned replies in order."""

    model = "test/scripted"

    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    def synthesize(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        return self.replies.pop(0)


class RecordingChannel(EventChannel):
    """EventChannel that also keeps every emitted event."""

    def __init__(self) -> None:
        super().__init__()
        self.received: list[tuple[EventType, dict[str, Any]]] = []
        self.subscribe(lambda event, payload: self.received.append((event, payload)))

    def types(self) -> list[EventType]:
        return [event for event, _ in self.received]


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Write a frontend project into tmp_path.

    Usage: ``make_project(files={"src/api.ts": "..."}, dependencies={...})``.
    """

    def _make(
        files: dict[str, str] | None = None,
        dependencies: dict[str, str] | None = None,
        dev_dependencies: dict[str, str] | None = None,
        scripts: dict[str, str] | None = None,
        root: Path | None = None,
    ) -> Path:
        project_root = root or tmp_path / "app"
        project_root.mkdir(parents=True, exist_ok=True)
        package_json = {
            "name": "app",
            "version": "1.0.0",
            "scripts": scripts if scripts is not None else {"dev": "vite"},
            "dependencies": dependencies if dependencies is not None else {"react": "^18.2.0"},
            "devDependencies": dev_dependencies if dev_dependencies is not None else {"vite": "^5.0.0"},
        }
        (project_root / "package.json").write_text(json.dumps(package_json), encoding="utf-8")
        for relpath, content in (files or {}).items():
            path = project_root / relpath
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return project_root

    return _make


@pytest.fixture
def project_factory() -> Callable[..., DetectedProject]:
    def _make(root: Path | str, **kwargs: Any) -> DetectedProject:
        kwargs.setdefault("framework", "vite")
        return DetectedProject(root=str(root), **kwargs)

    return _make


@pytest.fixture
def settings(tmp_path: Path) -> SandboxSettings:
    return SandboxSettings(
        _env_file=None,
        model_runner_url="http://localhost:1",
        provider="none",
        latency_min_ms=0,
        latency_max_ms=0,
        scan_workers=2,
    )


@pytest.fixture
def unreachable() -> UnreachableGenerator:
    return UnreachableGenerator()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def scripted_generator() -> type[ScriptedGenerator]:
    return ScriptedGenerator


@pytest.fixture
def todo_app() -> str:
    return """\
export async function listTodos() {
  const res = await fetch("/api/todos");
  return res.json();
}

export async function createTodo() {
  const res = await fetch("/api/todos", {
    method: "POST",
    body: JSON.stringify({ title: "x" }),
  });
  return res.json();
}
"""


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() calls made by a test (the CLI makes one per run)."""
    yield
    logger = logging.getLogger("mocksandbox")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
