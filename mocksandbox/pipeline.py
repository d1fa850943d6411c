"""Staged pipeline: detect, discover, synthesize, generate, prepare, run.

Each stage runs inside a logging context tagged with the run id and the
stage name. A stage failure is wrapped in StageError and aborts the
remaining stages; there are no retries at this level.

Example:
    >>> from mocksandbox import EventChannel, run_all
    >>> events = EventChannel()
    >>> events.subscribe(lambda event, payload: print(event.value))
    >>> result = run_all("./my-app", events=events)
    >>> result.services.stop()
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from mocksandbox.config import SandboxSettings
from mocksandbox.detect import detect_project
from mocksandbox.discovery import discover_apis
from mocksandbox.errors import StageError
from mocksandbox.events import EventChannel
from mocksandbox.generate import MockServerArtifacts, generate_mock_server
from mocksandbox.models import DetectedProject, DiscoveryResult, MockSpec, SandboxPlan
from mocksandbox.observability import log_context
from mocksandbox.sandbox import (
    RunningServices,
    SandboxProvider,
    get_provider,
    prepare_sandbox,
    run_sandbox,
    work_dir_for,
)
from mocksandbox.sandbox.base import MOCK_SERVER_DIR
from mocksandbox.synthesis import TextGenerator, synthesize_mock_spec

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineStage(Enum):
    """Pipeline stages in execution order."""

    DETECT = "detect"
    DISCOVER = "discover"
    SYNTHESIZE = "synthesize"
    GENERATE = "generate"
    PREPARE = "prepare"
    RUN = "run"


@dataclass
class PipelineResult:
    """Everything one pipeline run produced.

    Fields stay None for stages that did not run (``services`` after
    ``Pipeline.plan``).
    """

    run_id: str
    project: DetectedProject | None = None
    discovery: DiscoveryResult | None = None
    mock_spec: MockSpec | None = None
    artifacts: MockServerArtifacts | None = None
    plan: SandboxPlan | None = None
    services: RunningServices | None = None
    completed: list[PipelineStage] = field(default_factory=list)


class Pipeline:
    """Runs the stages for one project.

    Holds no state between invocations: every ``plan``/``run`` call gets a
    fresh run id and result.

    Args:
        settings: Run configuration. Defaults to ``SandboxSettings()``.
        events: Channel for lifecycle events. A new one is created when omitted.
        provider: Provider instance overriding ``settings.provider``.
        generator: Text-generation backend overriding the model runner client.
    """

    def __init__(
        self,
        settings: SandboxSettings | None = None,
        events: EventChannel | None = None,
        provider: SandboxProvider | None = None,
        generator: TextGenerator | None = None,
    ) -> None:
        self.settings = settings or SandboxSettings()
        self.events = events if events is not None else EventChannel()
        self.provider = provider
        self.generator = generator

    def _stage(
        self,
        result: PipelineResult,
        stage: PipelineStage,
        fn: Callable[..., T],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        with log_context(run_id=result.run_id, stage=stage.value):
            logger.debug("Stage %s started", stage.value)
            try:
                value = fn(*args, **kwargs)
            except Exception as e:
                logger.error("Stage %s failed: %s", stage.value, e)
                raise StageError(stage.value, e) from e
            result.completed.append(stage)
            logger.debug("Stage %s finished", stage.value)
            return value

    def _resolve_provider(self) -> SandboxProvider:
        if self.provider is None:
            self.provider = get_provider(self.settings.provider)
        return self.provider

    def plan(self, cwd: str | Path) -> PipelineResult:
        """Run every stage except ``run``.

        Raises:
            StageError: If any stage fails.
        """
        result = PipelineResult(run_id=uuid.uuid4().hex[:12])
        logger.info("Pipeline %s started for %s", result.run_id, cwd)

        project = self._stage(result, PipelineStage.DETECT, detect_project, cwd, events=self.events)
        result.project = project

        result.discovery = self._stage(
            result,
            PipelineStage.DISCOVER,
            discover_apis,
            project,
            settings=self.settings,
            events=self.events,
        )
        result.mock_spec = self._stage(
            result,
            PipelineStage.SYNTHESIZE,
            synthesize_mock_spec,
            result.discovery,
            generator=self.generator,
            settings=self.settings,
            events=self.events,
        )
        result.artifacts = self._stage(
            result,
            PipelineStage.GENERATE,
            generate_mock_server,
            result.mock_spec,
            work_dir_for(project.root, self.settings) / MOCK_SERVER_DIR,
            port=self.settings.mock_port,
            latency=self.settings.latency,
            events=self.events,
        )
        result.plan = self._stage(
            result,
            PipelineStage.PREPARE,
            self._prepare,
            project,
            result.mock_spec,
            result.artifacts,
        )
        return result

    def _prepare(
        self,
        project: DetectedProject,
        mock_spec: MockSpec,
        artifacts: MockServerArtifacts,
    ) -> SandboxPlan:
        return prepare_sandbox(
            project,
            mock_spec,
            provider=self._resolve_provider(),
            artifacts=artifacts,
            settings=self.settings,
            events=self.events,
        )

    def run(self, cwd: str | Path) -> PipelineResult:
        """Run all stages and start the sandbox.

        Raises:
            StageError: If any stage fails.
        """
        result = self.plan(cwd)
        if result.plan is None:
            raise StageError(PipelineStage.RUN.value, RuntimeError("no sandbox plan was prepared"))
        result.services = self._stage(
            result,
            PipelineStage.RUN,
            run_sandbox,
            result.plan,
            events=self.events,
            provider=self._resolve_provider(),
        )
        logger.info("Pipeline %s complete", result.run_id)
        return result


def run_all(
    cwd: str | Path,
    settings: SandboxSettings | None = None,
    events: EventChannel | None = None,
    provider: SandboxProvider | str | None = None,
    generator: TextGenerator | None = None,
) -> PipelineResult:
    """Detect, discover, synthesize, generate, prepare and run in one call.

    Args:
        cwd: Frontend project directory.
        settings: Run configuration.
        events: Channel for lifecycle events.
        provider: Provider instance or registered name; ``settings.provider``
            when omitted.
        generator: Text-generation backend; the model runner client when omitted.

    Returns:
        The pipeline result; ``result.services`` is the running sandbox.

    Raises:
        StageError: If any stage fails.
    """
    if isinstance(provider, str):
        provider = get_provider(provider)
    return Pipeline(settings, events, provider=provider, generator=generator).run(cwd)
