"""Tests for the source index and the discovery aggregator."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from mocksandbox.config import SandboxSettings
from mocksandbox.detect import detect_project
from mocksandbox.discovery import (
    ScanContext,
    Scanner,
    SourceIndex,
    discover_apis,
    get_scanners,
    merge_fragments,
    register_scanner,
    unregister_scanner,
)
from mocksandbox.discovery.base import iter_source_paths
from mocksandbox.events import EventType
from mocksandbox.models import DetectedProject, DiscoveryFragment, GraphQLOperation, RestEndpoint


class ExplodingScanner(Scanner):
    name = "exploding"

    def discover(self, project: DetectedProject, ctx: ScanContext) -> DiscoveryFragment:
        raise RuntimeError("boom")


class StaticScanner(Scanner):
    name = "static"

    def __init__(self, *paths: str, supported: bool = True) -> None:
        self.paths = paths
        self.supported = supported

    def supports(self, project: DetectedProject) -> bool:
        return self.supported

    def discover(self, project: DetectedProject, ctx: ScanContext) -> DiscoveryFragment:
        return DiscoveryFragment(rest=[RestEndpoint(path=p) for p in self.paths])


class TestSourceIndex:
    def test_exclusions(self, tmp_path: Path) -> None:
        for relpath in (
            "src/App.tsx",
            "src/api.ts",
            "src/api.test.ts",
            "src/types.d.ts",
            "src/Button.stories.tsx",
            "src/__tests__/x.js",
            "node_modules/lib/index.js",
            "dist/bundle.js",
            ".sandbox/overlay/vite.config.sandbox.ts",
            "src/styles.css",
            "server/handler.mjs",
        ):
            path = tmp_path / relpath
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("export {};\n")

        found = [p.relative_to(tmp_path).as_posix() for p in iter_source_paths(tmp_path)]

        assert found == ["server/handler.mjs", "src/App.tsx", "src/api.ts"]

    def test_parses_once(self, tmp_path: Path) -> None:
        (tmp_path / "a.js").write_text("fetch('/a');\n")
        index = SourceIndex(tmp_path, workers=2)
        assert index.files() is index.files()
        assert [f.relpath for f in index.files()] == ["a.js"]

    def test_oversize_file_note(self, tmp_path: Path) -> None:
        (tmp_path / "big.js").write_text("x".join(["fetch('/a');"] * 50))
        index = SourceIndex(tmp_path, max_file_bytes=10)

        assert index.files() == []
        assert len(index.notes) == 1
        assert index.notes[0].startswith("Skipped big.js")

    def test_syntax_error_note_keeps_file(self, tmp_path: Path) -> None:
        (tmp_path / "bad.ts").write_text("const x = ;\nfetch('/still/found');\n")
        index = SourceIndex(tmp_path)

        assert [f.relpath for f in index.files()] == ["bad.ts"]
        assert index.notes == ["Syntax errors in bad.ts; scanned recovered tree"]


class TestMergeFragments:
    def test_first_occurrence_wins(self) -> None:
        first = DiscoveryFragment(
            rest=[RestEndpoint(method="GET", path="/a", query=["x"])],
            base_urls=["/api"],
            notes=["n1"],
        )
        second = DiscoveryFragment(
            rest=[RestEndpoint(method="get", path="/a/", query=["y"]), RestEndpoint(path="/b")],
            graphql=[GraphQLOperation(operation_name="Q")],
            base_urls=["/api", "http://h"],
            notes=["n1", "n2"],
        )

        result = merge_fragments([first, second])

        assert [e.key for e in result.rest] == [("GET", "/a"), ("GET", "/b")]
        assert result.rest[0].query == ["x"]
        assert result.base_urls == ["/api", "http://h"]
        assert result.notes == ["n1", "n2"]
        assert result.total == 3


class TestDiscoverApis:
    def test_end_to_end_with_builtin_scanners(
        self, make_project: Callable[..., Path], settings: SandboxSettings, todo_app: str
    ) -> None:
        root = make_project(
            files={
                "src/todos.ts": todo_app,
                "src/users.ts": 'import axios from "axios";\naxios.get("/api/todos");\naxios.get("/api/users");\n',
                "src/q.ts": 'import { gql } from "@apollo/client";\nexport const Q = gql`query Me { me { id } }`;\n',
            },
            dependencies={"react": "18", "axios": "1", "@apollo/client": "3"},
        )

        result = discover_apis(detect_project(root), settings=settings)

        assert [e.key for e in result.rest] == [
            ("GET", "/api/todos"),
            ("POST", "/api/todos"),
            ("GET", "/api/users"),
        ]
        assert [op.operation_name for op in result.graphql] == ["Me"]

    def test_axios_skipped_without_dependency(
        self, make_project: Callable[..., Path], settings: SandboxSettings
    ) -> None:
        root = make_project(files={"src/a.js": 'import axios from "axios";\naxios.get("/api/x");\n'})
        result = discover_apis(detect_project(root), settings=settings)
        assert result.rest == []

    def test_failing_scanner_becomes_note(self, tmp_path: Path, settings: SandboxSettings) -> None:
        project = DetectedProject(root=str(tmp_path))
        result = discover_apis(project, scanners=[ExplodingScanner(), StaticScanner("/ok")], settings=settings)

        assert [e.path for e in result.rest] == ["/ok"]
        assert result.notes == ["Scanner exploding failed: boom"]

    def test_unsupported_scanner_not_run(self, tmp_path: Path, settings: SandboxSettings) -> None:
        project = DetectedProject(root=str(tmp_path))
        result = discover_apis(project, scanners=[StaticScanner("/x", supported=False)], settings=settings)
        assert result.rest == []

    def test_index_notes_come_first(self, tmp_path: Path) -> None:
        (tmp_path / "bad.js").write_text("fetch(buildUrl(;\n")
        project = DetectedProject(root=str(tmp_path))

        result = discover_apis(project, settings=SandboxSettings(_env_file=None, scan_workers=1))

        assert result.notes[0].startswith("Syntax errors in bad.js")

    def test_emits_discovered(self, tmp_path: Path, settings: SandboxSettings, channel) -> None:
        project = DetectedProject(root=str(tmp_path))
        result = discover_apis(project, scanners=[StaticScanner("/x")], settings=settings, events=channel)

        assert channel.types() == [EventType.DISCOVERED]
        assert channel.received[0][1]["result"] is result


class TestScannerRegistry:
    def test_builtins_registered_in_order(self) -> None:
        assert [s.name for s in get_scanners()][:3] == ["fetch", "axios", "graphql"]

    def test_register_and_unregister(self) -> None:
        register_scanner(StaticScanner("/custom"))
        try:
            assert "static" in [s.name for s in get_scanners()]
        finally:
            unregister_scanner("static")
        assert "static" not in [s.name for s in get_scanners()]

    def test_requires_name(self) -> None:
        class Nameless(StaticScanner):
            name = ""

        with pytest.raises(ValueError):
            register_scanner(Nameless())
