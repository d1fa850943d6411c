"""Sandbox provider and framework overlay interfaces.

A sandbox moves through Unprepared -> Prepared (``prepare`` returned a
SandboxPlan) -> Running (``up`` returned RunningServices) -> Stopped
(``RunningServices.stop()`` succeeded).
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from mocksandbox.events import EventChannel, EventType, emit
from mocksandbox.models import DetectedProject, MockSpec, SandboxPlan, SandboxState

logger = logging.getLogger(__name__)

MOCK_SERVER_DIR = "mock-server"
OVERLAY_DIR = "overlay"


class RunningServices:
    """Handle to started sandbox services.

    ``stop()`` is idempotent and safe to call from several threads: the
    first successful call tears the services down, later calls do nothing.
    If tearing down fails the handle stays running so ``stop()`` can be
    retried.

    Attributes:
        provider: Name of the provider that started the services.
        app_url: URL of the application dev server, when one was started.
        mock_url: URL of the mock server, when one was started.
        state_path: State record removed after a successful stop.
        events: Run channel that receives ``services-down``.
    """

    def __init__(
        self,
        provider: str,
        app_url: str | None = None,
        mock_url: str | None = None,
        stop_fn: Callable[[], None] | None = None,
    ) -> None:
        self.provider = provider
        self.app_url = app_url
        self.mock_url = mock_url
        self.state_path: Path | None = None
        self.events: EventChannel | None = None
        self._stop_fn = stop_fn
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Tear the services down.

        Raises:
            SandboxError: If the provider's teardown command fails.
        """
        with self._lock:
            if self._stopped:
                return
            if self._stop_fn is not None:
                self._stop_fn()
            self._stopped = True

        if self.state_path is not None:
            self.state_path.unlink(missing_ok=True)
        logger.info("Sandbox services stopped (%s)", self.provider)
        emit(self.events, EventType.SERVICES_DOWN, {"provider": self.provider})

    def __repr__(self) -> str:
        return (
            f"RunningServices(provider={self.provider!r}, app_url={self.app_url!r}, "
            f"mock_url={self.mock_url!r}, stopped={self._stopped})"
        )


class SandboxProvider(ABC):
    """Starts and stops the processes of a prepared sandbox."""

    name: str = ""

    @abstractmethod
    def prepare(
        self,
        project: DetectedProject,
        mock_spec: MockSpec,
        app_port: int,
        mock_port: int,
        work_dir: Path,
    ) -> SandboxPlan:
        """Write provider configuration into ``work_dir`` and return the plan."""

    @abstractmethod
    def up(self, plan: SandboxPlan) -> RunningServices:
        """Start the planned services, blocking until they are started.

        Raises:
            SandboxError: If the services could not be started.
        """

    def resume(self, state: SandboxState) -> RunningServices:
        """Rebuild a handle to services started by another process."""
        return RunningServices(
            provider=state.provider,
            app_url=state.app_url,
            mock_url=state.mock_url,
        )


class FrameworkOverlay(ABC):
    """Writes dev-server configuration that routes API calls to the mock server."""

    framework: str = ""

    @abstractmethod
    def write_overlay(self, project: DetectedProject, plan: SandboxPlan, mock_spec: MockSpec) -> Path:
        """Write the overlay under ``plan.work_dir`` and return its path."""


def api_prefixes(mock_spec: MockSpec) -> list[str]:
    """Relative path prefixes the app calls, used for proxy rules.

    Relative base URLs come first; otherwise the first segment of every
    mocked path. Falls back to ``/api``.
    """
    prefixes: dict[str, None] = {}
    for url in mock_spec.meta.base_urls:
        if url.startswith("/"):
            prefixes.setdefault(url.rstrip("/") or "/", None)
    if not prefixes:
        paths = [entry.path for entry in mock_spec.rest] + [op.endpoint for op in mock_spec.graphql]
        for path in paths:
            first = path.strip("/").split("/", 1)[0]
            if first and not first.startswith(":"):
                prefixes.setdefault(f"/{first}", None)
    return list(prefixes) or ["/api"]
