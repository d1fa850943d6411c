"""Prepare, run and stop a project's sandbox."""

from __future__ import annotations

import logging
from pathlib import Path

from mocksandbox.config import SandboxSettings
from mocksandbox.errors import ArtifactWriteError, InvalidConfigurationError, SandboxError
from mocksandbox.events import EventChannel, EventType, emit
from mocksandbox.generate import MockServerArtifacts, generate_mock_server
from mocksandbox.models import DetectedProject, MockSpec, SandboxPlan, SandboxState
from mocksandbox.sandbox.base import MOCK_SERVER_DIR, RunningServices, SandboxProvider
from mocksandbox.sandbox.registry import get_overlay, get_provider
from mocksandbox.sandbox.state import load_state, state_path, write_state

logger = logging.getLogger(__name__)


def _resolve_provider(provider: str | SandboxProvider) -> SandboxProvider:
    if isinstance(provider, SandboxProvider):
        return provider
    return get_provider(provider.strip().lower())


def _validate_ports(app_port: int, mock_port: int) -> None:
    for label, port in (("app_port", app_port), ("mock_port", mock_port)):
        if not 1 <= port <= 65535:
            raise InvalidConfigurationError(f"{label} must be between 1 and 65535, got {port}")
    if app_port == mock_port:
        raise InvalidConfigurationError(
            f"app_port and mock_port must differ (both {app_port})",
            suggestions=["Pass a different --mock-port"],
        )


def work_dir_for(root: str | Path, settings: SandboxSettings | None = None) -> Path:
    settings = settings or SandboxSettings()
    return Path(root) / settings.sandbox_dir


def prepare_sandbox(
    project: DetectedProject,
    mock_spec: MockSpec,
    provider: str | SandboxProvider = "docker",
    app_port: int | None = None,
    mock_port: int | None = None,
    artifacts: MockServerArtifacts | None = None,
    settings: SandboxSettings | None = None,
    events: EventChannel | None = None,
) -> SandboxPlan:
    """Write everything the sandbox needs under ``<root>/.sandbox``.

    The mock server is generated unless ``artifacts`` says it already was.
    The provider then writes its own configuration, and the overlay
    registered for the project's framework (if any) writes its config.

    Raises:
        InvalidConfigurationError: On invalid ports or an unknown provider.
        ArtifactWriteError: If a file cannot be written.
    """
    settings = settings or SandboxSettings()
    app_port = settings.app_port if app_port is None else app_port
    mock_port = settings.mock_port if mock_port is None else mock_port
    _validate_ports(app_port, mock_port)
    impl = _resolve_provider(provider)

    work_dir = work_dir_for(project.root, settings)
    if artifacts is None:
        generate_mock_server(
            mock_spec,
            work_dir / MOCK_SERVER_DIR,
            port=mock_port,
            latency=settings.latency,
            events=events,
        )

    plan = impl.prepare(project, mock_spec, app_port, mock_port, work_dir)

    overlay = get_overlay(project.framework)
    if overlay is not None:
        try:
            path = overlay.write_overlay(project, plan, mock_spec)
        except OSError as e:
            raise ArtifactWriteError(
                f"Failed to write {project.framework} overlay", cause=e, work_dir=str(work_dir)
            ) from e
        logger.debug("Wrote %s overlay to %s", project.framework, path)

    logger.info("Sandbox prepared in %s (provider=%s)", work_dir, impl.name)
    return plan


def run_sandbox(
    plan: SandboxPlan,
    events: EventChannel | None = None,
    provider: SandboxProvider | None = None,
) -> RunningServices:
    """Start a prepared sandbox and record its state.

    Raises:
        SandboxError: If the provider fails to start the services.
        ArtifactWriteError: If the state record cannot be written. The
            services are stopped before the error propagates.
    """
    impl = provider or get_provider(plan.provider)
    services = impl.up(plan)

    state = SandboxState(
        provider=services.provider,
        app_url=services.app_url,
        mock_url=services.mock_url,
        work_dir=plan.work_dir,
        provider_handle=plan.provider_handle,
    )
    try:
        services.state_path = write_state(state)
    except ArtifactWriteError:
        # without a state record nothing could stop these services later
        try:
            services.stop()
        except SandboxError as stop_error:
            logger.error("Failed to stop sandbox after state write failure: %s", stop_error)
        raise
    services.events = events

    logger.info("Sandbox running: app=%s mock=%s", services.app_url, services.mock_url)
    emit(
        events,
        EventType.SERVICES_UP,
        {"provider": services.provider, "app_url": services.app_url, "mock_url": services.mock_url},
    )
    return services


def read_state(root: str | Path, settings: SandboxSettings | None = None) -> SandboxState | None:
    """The state record of the project's sandbox, if one is running."""
    return load_state(work_dir_for(root, settings))


def stop_sandbox(
    root: str | Path,
    settings: SandboxSettings | None = None,
    events: EventChannel | None = None,
) -> bool:
    """Stop the sandbox recorded for ``root`` by another process.

    Returns:
        False when no sandbox state is recorded, True after stopping.

    Raises:
        SandboxError: If the provider's teardown fails.
    """
    work_dir = work_dir_for(root, settings)
    state = load_state(work_dir)
    if state is None:
        return False
    services = get_provider(state.provider).resume(state)
    services.state_path = state_path(work_dir)
    services.events = events
    services.stop()
    return True
