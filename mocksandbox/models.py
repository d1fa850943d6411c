"""Core data models for mocksandbox.

Models are pydantic BaseModels. Python code uses snake_case attributes; the
JSON written to disk (mock-spec.json, state.json) uses camelCase aliases so
the generated artifacts read naturally next to a JavaScript project.

Example:
    >>> endpoint = RestEndpoint(method="get", path="/api/users/")
    >>> endpoint.key
    ('GET', '/api/users')
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PATH_PLACEHOLDER = ":param"

Framework = Literal["vite", "cra", "next", "remix", "unknown"]
PackageManager = Literal["npm", "pnpm", "yarn", "bun"]
OperationType = Literal["query", "mutation", "subscription"]

_MULTI_SLASH = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Normalize a URL path for identity comparison.

    Ensures a leading slash, collapses repeated slashes and drops a trailing
    slash (the root path stays "/").
    """
    path = path.strip()
    if not path.startswith("/"):
        path = "/" + path
    path = _MULTI_SLASH.sub("/", path)
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the on-disk (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


class DetectedProject(_Model):
    """A frontend project found at ``root``.

    Attributes:
        root: Absolute project directory.
        framework: Detected framework identifier.
        package_manager: Package manager inferred from lock files.
        scripts: The package.json ``scripts`` map.
        dependencies: Merged dependencies and devDependencies.
        env: Client-visible environment merged from the project's .env files.
    """

    root: str
    framework: Framework = "unknown"
    package_manager: PackageManager = "npm"
    scripts: dict[str, str] = Field(default_factory=dict)
    dependencies: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)

    def has_dependency(self, *names: str) -> bool:
        return any(name in self.dependencies for name in names)


class RestEndpoint(_Model):
    """One discovered REST call site."""

    method: str = "GET"
    path: str
    query: list[str] = Field(default_factory=list)
    headers: dict[str, str] | None = None
    example_request_body: Any = None

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        return v.strip().upper() or "GET"

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return normalize_path(v)

    @property
    def key(self) -> tuple[str, str]:
        return (self.method, self.path)

    @property
    def is_collection(self) -> bool:
        """True when the path has no placeholder segment."""
        return "/:" not in self.path


class GraphQLOperation(_Model):
    """One discovered GraphQL operation."""

    endpoint: str = "/graphql"
    operation_type: OperationType = "query"
    operation_name: str
    document: str = ""
    example_variables: dict[str, Any] | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.endpoint, self.operation_name)


class DiscoveryFragment(_Model):
    """Partial discovery output produced by a single scanner."""

    rest: list[RestEndpoint] = Field(default_factory=list)
    graphql: list[GraphQLOperation] = Field(default_factory=list)
    base_urls: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class DiscoveryResult(_Model):
    """Merged, deduplicated output of every scanner.

    Produced once per pipeline run and frozen afterwards.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    rest: list[RestEndpoint] = Field(default_factory=list)
    graphql: list[GraphQLOperation] = Field(default_factory=list)
    base_urls: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rest) + len(self.graphql)


class MockRestEntry(RestEndpoint):
    """A REST endpoint paired with the response the mock server returns."""

    status: int = 200
    example_response: Any = None


class MockGraphQLEntry(_Model):
    """A GraphQL operation paired with its mock response."""

    endpoint: str = "/graphql"
    operation_type: OperationType = "query"
    operation_name: str
    example_variables: dict[str, Any] | None = None
    example_response: Any = None


class MockSpecMeta(_Model):
    base_urls: list[str] = Field(default_factory=list)
    generated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    model_id: str = ""
    source_count: int = 0
    fallback_count: int = 0


class MockSpec(_Model):
    """Every mock response for one DiscoveryResult."""

    rest: list[MockRestEntry] = Field(default_factory=list)
    graphql: list[MockGraphQLEntry] = Field(default_factory=list)
    meta: MockSpecMeta = Field(default_factory=MockSpecMeta)

    @property
    def total(self) -> int:
        return len(self.rest) + len(self.graphql)


class SandboxPlan(_Model):
    """Output of ``prepare``; input of ``up``.

    Attributes:
        provider: Name of the provider that prepared the plan.
        app_port: Host port of the application dev server.
        mock_port: Host port of the mock server.
        work_dir: The project's isolated ``.sandbox`` directory.
        provider_handle: Provider-specific data ``up`` needs (compose path, ...).
        notes: Human-readable routing and setup notes.
    """

    provider: str
    app_port: int
    mock_port: int
    work_dir: str
    provider_handle: dict[str, Any] = Field(default_factory=dict)
    notes: list[str] = Field(default_factory=list)


class SandboxState(_Model):
    """The ``state.json`` record used by out-of-process status queries."""

    provider: str
    app_url: str | None = None
    mock_url: str | None = None
    work_dir: str
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    provider_handle: dict[str, Any] = Field(default_factory=dict)
