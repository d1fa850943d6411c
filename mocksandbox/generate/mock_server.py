"""Mock server artifact generation.

Writes a standalone FastAPI application that replays a MockSpec:

    <out_dir>/server.py          the app (uvicorn entry point)
    <out_dir>/requirements.txt   what it needs to run
    <out_dir>/mock-spec.json     the MockSpec, verbatim

Every call rewrites all three files, so generation is idempotent.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from string import Template

from mocksandbox.errors import ArtifactWriteError, InvalidConfigurationError
from mocksandbox.events import EventChannel, EventType, emit
from mocksandbox.generate.server_template import REQUIREMENTS, SERVER_TEMPLATE
from mocksandbox.models import MockSpec

logger = logging.getLogger(__name__)

ENTRY_FILE = "server.py"
MANIFEST_FILE = "requirements.txt"
SPEC_FILE = "mock-spec.json"

_NON_IDENTIFIER = re.compile(r"\W")


@dataclass
class MockServerArtifacts:
    """Paths of the written mock server files."""

    out_dir: Path
    entry_file: Path
    manifest_file: Path
    spec_file: Path
    port: int


def to_route_path(path: str) -> str:
    """Convert ``:name`` segments to ``{name}`` route parameters.

    Parameter names are made unique within the route, so
    ``/users/:param/posts/:param`` becomes ``/users/{param}/posts/{param_2}``.
    """
    seen: dict[str, int] = {}
    segments = []
    for segment in path.split("/"):
        if segment.startswith(":") and len(segment) > 1:
            name = _NON_IDENTIFIER.sub("_", segment[1:]) or "param"
            if name[0].isdigit():
                name = f"p_{name}"
            count = seen.get(name, 0) + 1
            seen[name] = count
            segments.append("{" + (name if count == 1 else f"{name}_{count}") + "}")
        else:
            segments.append(segment)
    return "/".join(segments) or "/"


def route_table(mock_spec: MockSpec) -> list[tuple[str, str, int]]:
    """(method, route path, entry index) rows, literal routes before parameterized ones."""
    rows = [
        (entry.method, to_route_path(entry.path), index)
        for index, entry in enumerate(mock_spec.rest)
    ]
    # starlette matches in registration order: /users/me must precede /users/{param}
    return sorted(rows, key=lambda row: row[1].count("{"))


def _python_list(rows: list) -> str:
    if not rows:
        return "[]"
    return "[\n" + "".join(f"    {row!r},\n" for row in rows) + "]"


def render_server(mock_spec: MockSpec, port: int, latency: tuple[int, int]) -> str:
    endpoints = list(dict.fromkeys(op.endpoint for op in mock_spec.graphql))
    return Template(SERVER_TEMPLATE).substitute(
        rest_count=len(mock_spec.rest),
        graphql_count=len(mock_spec.graphql),
        port=port,
        latency_min=latency[0],
        latency_max=latency[1],
        routes=_python_list(route_table(mock_spec)),
        graphql_endpoints=_python_list(endpoints),
    )


def generate_mock_server(
    mock_spec: MockSpec,
    out_dir: str | Path,
    port: int = 9000,
    latency: tuple[int, int] = (100, 300),
    events: EventChannel | None = None,
) -> MockServerArtifacts:
    """Write the mock server for ``mock_spec`` into ``out_dir``.

    Args:
        mock_spec: Responses to serve.
        out_dir: Target directory; created if missing.
        port: Default listening port (``PORT`` env overrides it at runtime).
        latency: Inclusive response delay window in milliseconds.
        events: Optional run channel; receives ``artifacts-written``.

    Raises:
        InvalidConfigurationError: If port or latency window is invalid.
        ArtifactWriteError: If a file cannot be written.
    """
    if not 1 <= port <= 65535:
        raise InvalidConfigurationError(f"Invalid mock server port: {port}", port=port)
    low, high = latency
    if low < 0 or high < low:
        raise InvalidConfigurationError(
            f"Invalid latency window: {latency}", latency_min=low, latency_max=high
        )

    out = Path(out_dir)
    artifacts = MockServerArtifacts(
        out_dir=out,
        entry_file=out / ENTRY_FILE,
        manifest_file=out / MANIFEST_FILE,
        spec_file=out / SPEC_FILE,
        port=port,
    )

    try:
        out.mkdir(parents=True, exist_ok=True)
        artifacts.entry_file.write_text(render_server(mock_spec, port, (low, high)), encoding="utf-8")
        artifacts.manifest_file.write_text(REQUIREMENTS, encoding="utf-8")
        artifacts.spec_file.write_text(
            json.dumps(mock_spec.to_dict(), indent=2) + "\n", encoding="utf-8"
        )
    except OSError as e:
        raise ArtifactWriteError(
            f"Failed to write mock server to {out}", cause=e, path=str(out)
        ) from e

    logger.info("Mock server written to %s (%d mocks)", out, mock_spec.total)
    emit(
        events,
        EventType.ARTIFACTS_WRITTEN,
        {
            "path": str(out),
            "files": [str(artifacts.entry_file), str(artifacts.manifest_file), str(artifacts.spec_file)],
        },
    )
    return artifacts
