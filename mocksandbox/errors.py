"""Exception hierarchy for mocksandbox.

Every error raised by the toolkit inherits from MockSandboxError and carries:
- error_code: an ErrorCode for programmatic handling
- context: free-form key/value details (file, endpoint, stage, ...)
- suggestions: actionable steps to resolve the problem
- cause: the underlying exception, when there is one

Recoverable problems (a single file that fails to parse, a single endpoint
the model runner cannot answer) are handled where they occur and turned into
notes or fallback values. Errors that prevent a whole stage from producing
its output propagate to the pipeline, which wraps them in StageError.

Example:
    try:
        run_all("./my-app")
    except StageError as e:
        print(e.format_verbose())
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes.

    Codes are grouped by category:
    - E1xx: project detection
    - E2xx: API discovery
    - E3xx: mock synthesis
    - E4xx: artifact generation
    - E5xx: sandbox lifecycle
    - E6xx: configuration
    - E9xx: pipeline/internal
    """

    DETECT_FAIL = "E101"
    DISCOVERY_FAIL = "E201"
    SYNTHESIS_UNREACHABLE = "E301"
    SYNTHESIS_RESPONSE_ERROR = "E302"
    MOCK_GENERATION_FAIL = "E401"
    FILE_WRITE_ERROR = "E402"
    SANDBOX_FAIL = "E501"
    SANDBOX_COMMAND_NOT_FOUND = "E502"
    INVALID_CONFIG = "E601"
    STAGE_FAILED = "E901"
    UNKNOWN = "E999"

    @property
    def category(self) -> str:
        """Get the error category name."""
        code_num = int(self.value[1:])
        if code_num < 200:
            return "detection"
        elif code_num < 300:
            return "discovery"
        elif code_num < 400:
            return "synthesis"
        elif code_num < 500:
            return "artifacts"
        elif code_num < 600:
            return "sandbox"
        elif code_num < 700:
            return "configuration"
        else:
            return "pipeline"


class MockSandboxError(Exception):
    """Base exception for all mocksandbox errors.

    Attributes:
        message: Human-readable error description.
        error_code: ErrorCode for this error type.
        context: Extra details about where the error happened.
        cause: The underlying exception (if any).
        recoverable: Whether the caller can reasonably continue.
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "An unexpected error occurred"
    default_suggestions: list[str] = []
    default_recoverable: bool = False

    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode | None = None,
        cause: BaseException | None = None,
        recoverable: bool | None = None,
        suggestions: list[str] | None = None,
        **context: Any,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.error_code
        self.cause = cause
        self.recoverable = self.default_recoverable if recoverable is None else recoverable
        self.context: dict[str, Any] = dict(context)
        self._suggestions = suggestions
        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def suggestions(self) -> list[str]:
        """Get actionable suggestions for resolving this error."""
        if self._suggestions is not None:
            return self._suggestions
        return self.default_suggestions.copy()

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"

    def format_verbose(self) -> str:
        """Format error with context, cause and suggestions."""
        lines = [f"Error [{self.error_code.value}]: {self.message}"]

        for key, value in self.context.items():
            lines.append(f"  {key}: {value}")

        if self.cause is not None:
            lines.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code.value,
            "error_type": self.__class__.__name__,
            "category": self.error_code.category,
            "message": self.message,
            "recoverable": self.recoverable,
            "suggestions": self.suggestions,
            "context": {k: str(v) for k, v in self.context.items()},
            "cause": str(self.cause) if self.cause else None,
        }


class DetectionError(MockSandboxError):
    """The project root could not be turned into a project descriptor."""

    error_code = ErrorCode.DETECT_FAIL
    default_message = "Project detection failed"
    default_suggestions = [
        "Point the command at the directory that contains package.json",
        "Check that package.json is valid JSON",
    ]


class ScannerError(MockSandboxError):
    """A call-site scanner failed. Recorded as a note, never fatal."""

    error_code = ErrorCode.DISCOVERY_FAIL
    default_message = "Scanner failed"
    default_recoverable = True


class SynthesisError(MockSandboxError):
    """Base class for model-runner failures during mock synthesis."""

    error_code = ErrorCode.SYNTHESIS_RESPONSE_ERROR
    default_message = "Mock synthesis failed"
    default_recoverable = True


class SynthesisUnreachableError(SynthesisError):
    """The text-generation backend could not be reached."""

    error_code = ErrorCode.SYNTHESIS_UNREACHABLE
    default_message = "Cannot connect to the model runner"
    default_suggestions = [
        "Make sure the model runner is running and listening on port 12434",
        "Set MOCKSANDBOX_MODEL_RUNNER_URL to the runner's base URL",
    ]


class SynthesisResponseError(SynthesisError):
    """The text-generation backend answered with unusable output."""

    error_code = ErrorCode.SYNTHESIS_RESPONSE_ERROR
    default_message = "Model runner returned an unusable response"


class ArtifactWriteError(MockSandboxError):
    """Mock server artifacts or sandbox files could not be written."""

    error_code = ErrorCode.FILE_WRITE_ERROR
    default_message = "Failed to write sandbox artifacts"
    default_suggestions = [
        "Check write permissions for the project's .sandbox directory",
    ]


class SandboxError(MockSandboxError):
    """Starting or stopping the sandbox services failed."""

    error_code = ErrorCode.SANDBOX_FAIL
    default_message = "Sandbox command failed"
    default_suggestions = [
        "Check that Docker is running: docker info",
        "Inspect the compose file in .sandbox/docker-compose.sandbox.yml",
        "Use --provider none to only generate the sandbox files",
    ]


class InvalidConfigurationError(MockSandboxError):
    """The caller supplied invalid options or settings."""

    error_code = ErrorCode.INVALID_CONFIG
    default_message = "Invalid configuration"


class StageError(MockSandboxError):
    """A pipeline stage failed; wraps the error that caused it.

    Attributes:
        stage: Name of the stage that failed (detect, discover, ...).
    """

    error_code = ErrorCode.STAGE_FAILED
    default_message = "Pipeline stage failed"

    def __init__(self, stage: str, cause: BaseException, message: str | None = None) -> None:
        super().__init__(
            message or f"Stage '{stage}' failed: {cause}",
            cause=cause,
            recoverable=False,
            stage=stage,
        )
        self.stage = stage

    @property
    def suggestions(self) -> list[str]:
        if self._suggestions is not None:
            return self._suggestions
        if isinstance(self.cause, MockSandboxError):
            return self.cause.suggestions
        return []
