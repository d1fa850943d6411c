"""mocksandbox - Mock synthesis and sandboxing for JavaScript frontends.

mocksandbox statically discovers the HTTP and GraphQL calls a frontend
makes, synthesizes realistic mock responses for each of them, and runs the
app next to a generated mock server inside ``<project>/.sandbox/`` without
touching the project's own files.

Key Features:
    - Discovery: fetch, axios and GraphQL call sites via tree-sitter
    - Synthesis: a local model runner with a deterministic fallback
    - Schema mocks: seeded, reproducible values from JSON Schema
    - Mock server: a generated FastAPI app serving the synthesized responses
    - Sandboxes: Docker Compose or dry-run providers, Vite/Next proxy overlays

Example:
    >>> from mocksandbox import EventChannel, run_all
    >>>
    >>> events = EventChannel()
    >>> events.subscribe(lambda event, payload: print(event.value))
    >>> result = run_all("./my-app", events=events)
    >>> print(result.services.app_url, result.services.mock_url)
    >>> result.services.stop()

The stages are also available individually:
    >>> from mocksandbox import detect_project, discover_apis, synthesize_mock_spec
    >>> project = detect_project("./my-app")
    >>> discovery = discover_apis(project)
    >>> spec = synthesize_mock_spec(discovery)
"""

from mocksandbox.config import SandboxSettings, load_config
from mocksandbox.data import (
    GenerationOptions,
    SeededRandom,
    generate_mock,
    mock_from_model,
    mock_from_openapi,
)
from mocksandbox.detect import detect_project
from mocksandbox.discovery import Scanner, discover_apis, register_scanner
from mocksandbox.errors import (
    ArtifactWriteError,
    DetectionError,
    ErrorCode,
    InvalidConfigurationError,
    MockSandboxError,
    SandboxError,
    ScannerError,
    StageError,
    SynthesisError,
    SynthesisResponseError,
    SynthesisUnreachableError,
)
from mocksandbox.events import EventChannel, EventType
from mocksandbox.generate import MockServerArtifacts, generate_mock_server
from mocksandbox.models import (
    DetectedProject,
    DiscoveryResult,
    GraphQLOperation,
    MockGraphQLEntry,
    MockRestEntry,
    MockSpec,
    RestEndpoint,
    SandboxPlan,
    SandboxState,
)
from mocksandbox.pipeline import Pipeline, PipelineResult, PipelineStage, run_all
from mocksandbox.sandbox import (
    FrameworkOverlay,
    RunningServices,
    SandboxProvider,
    prepare_sandbox,
    read_state,
    register_overlay,
    register_provider,
    run_sandbox,
    stop_sandbox,
)
from mocksandbox.synthesis import ModelRunnerClient, TextGenerator, synthesize_mock_spec

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "run_all",
    "Pipeline",
    "PipelineResult",
    "PipelineStage",
    # Stages
    "detect_project",
    "discover_apis",
    "synthesize_mock_spec",
    "generate_mock_server",
    "prepare_sandbox",
    "run_sandbox",
    "read_state",
    "stop_sandbox",
    # Events
    "EventChannel",
    "EventType",
    # Models
    "DetectedProject",
    "RestEndpoint",
    "GraphQLOperation",
    "DiscoveryResult",
    "MockRestEntry",
    "MockGraphQLEntry",
    "MockSpec",
    "SandboxPlan",
    "SandboxState",
    "MockServerArtifacts",
    "RunningServices",
    # Extension points
    "Scanner",
    "register_scanner",
    "SandboxProvider",
    "register_provider",
    "FrameworkOverlay",
    "register_overlay",
    "TextGenerator",
    "ModelRunnerClient",
    # Mock data
    "GenerationOptions",
    "SeededRandom",
    "generate_mock",
    "mock_from_openapi",
    "mock_from_model",
    # Config
    "SandboxSettings",
    "load_config",
    # Errors
    "ErrorCode",
    "MockSandboxError",
    "DetectionError",
    "ScannerError",
    "SynthesisError",
    "SynthesisUnreachableError",
    "SynthesisResponseError",
    "ArtifactWriteError",
    "SandboxError",
    "InvalidConfigurationError",
    "StageError",
    "__version__",
]
