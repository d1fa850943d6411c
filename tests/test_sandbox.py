"""Tests for sandbox providers, overlays and lifecycle."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from mocksandbox.errors import ArtifactWriteError, ErrorCode, InvalidConfigurationError, SandboxError
from mocksandbox.events import EventType
from mocksandbox.models import MockRestEntry, MockSpec, MockSpecMeta, SandboxPlan, SandboxState
from mocksandbox.sandbox import (
    ComposeRunner,
    DockerProvider,
    NoneProvider,
    RunningServices,
    api_prefixes,
    get_overlay,
    get_provider,
    list_providers,
    prepare_sandbox,
    read_state,
    run_sandbox,
    stop_sandbox,
)
from mocksandbox.sandbox.providers.docker import COMPOSE_FILE, compose_document, dev_command, project_name_for

SUBPROCESS_RUN = "mocksandbox.sandbox.providers.docker.subprocess.run"


def completed(returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)


@pytest.fixture
def mock_spec() -> MockSpec:
    return MockSpec(
        rest=[MockRestEntry(method="GET", path="/api/todos", example_response=[])],
        meta=MockSpecMeta(base_urls=["/api"]),
    )


class StubProvider(NoneProvider):
    """Provider whose services record how they were stopped."""

    name = "stub"

    def __init__(self, stop_error: Exception | None = None) -> None:
        self.stop_fn = MagicMock(side_effect=stop_error)
        self.services: RunningServices | None = None

    def up(self, plan: SandboxPlan) -> RunningServices:
        self.services = RunningServices(self.name, app_url="http://localhost:5173", stop_fn=self.stop_fn)
        return self.services


class TestComposeRunner:
    def test_prefers_compose_v2(self) -> None:
        with patch(SUBPROCESS_RUN, return_value=completed()) as run:
            runner = ComposeRunner("dc.yml", "proj")
            assert runner.compose_cmd == ["docker", "compose"]
        assert run.call_args_list[0].args[0] == ["docker", "compose", "version"]

    def test_falls_back_to_legacy_binary(self) -> None:
        with patch(SUBPROCESS_RUN, side_effect=[FileNotFoundError(), completed()]):
            assert ComposeRunner("dc.yml", "proj").compose_cmd == ["docker-compose"]

    def test_missing_compose(self) -> None:
        with patch(SUBPROCESS_RUN, side_effect=FileNotFoundError()):
            with pytest.raises(SandboxError) as exc_info:
                ComposeRunner("dc.yml", "proj").compose_cmd
        assert exc_info.value.error_code == ErrorCode.SANDBOX_COMMAND_NOT_FOUND

    def test_build_command(self) -> None:
        runner = ComposeRunner("dc.yml", "proj")
        runner._compose_cmd = ["docker", "compose"]
        assert runner.build_command("up", "-d") == [
            "docker", "compose", "-f", "dc.yml", "-p", "proj", "up", "-d",
        ]

    def test_non_zero_exit(self) -> None:
        runner = ComposeRunner("dc.yml", "proj")
        runner._compose_cmd = ["docker", "compose"]
        with patch(SUBPROCESS_RUN, return_value=completed(1, "boom")):
            with pytest.raises(SandboxError) as exc_info:
                runner.up()
        assert exc_info.value.context["stderr"] == "boom"

    def test_timeout(self) -> None:
        runner = ComposeRunner("dc.yml", "proj", timeout=1)
        runner._compose_cmd = ["docker", "compose"]
        with patch(SUBPROCESS_RUN, side_effect=subprocess.TimeoutExpired("docker", 1)):
            with pytest.raises(SandboxError, match="timed out"):
                runner.down()


class TestComposeDocument:
    def test_services(self, project_factory) -> None:
        project = project_factory("/work/app", package_manager="pnpm", scripts={"dev": "vite"})
        document = compose_document(project, 5173, 9000, "./mock-server")

        mock = document["services"]["mock"]
        app = document["services"]["app"]
        assert mock["ports"] == ["9000:9000"]
        assert mock["volumes"] == ["./mock-server:/mock"]
        assert "python server.py" in mock["command"]
        assert app["depends_on"] == ["mock"]
        assert app["volumes"][0] == "/work/app:/app"
        assert app["environment"]["VITE_API_BASE_URL"] == "http://localhost:9000"
        assert "pnpm install" in app["command"]
        assert "pnpm run dev -- --host 0.0.0.0 --port 5173" in app["command"]

    @pytest.mark.parametrize(
        "framework,scripts,expected",
        [
            ("next", {"dev": "next dev"}, "npm run dev -- -H 0.0.0.0 -p 3000"),
            ("cra", {"start": "react-scripts start"}, "npm start"),
            ("vite", {}, "npx vite --host 0.0.0.0 --port 3000"),
            ("unknown", {}, "npm run dev"),
        ],
    )
    def test_dev_command(self, project_factory, framework: str, scripts: dict, expected: str) -> None:
        project = project_factory("/app", framework=framework, scripts=scripts)
        assert dev_command(project, 3000) == expected

    def test_project_name_is_stable(self) -> None:
        assert project_name_for("/a") == project_name_for("/a")
        assert project_name_for("/a") != project_name_for("/b")


class TestDockerProvider:
    def test_prepare_writes_compose_file(self, project_factory, mock_spec: MockSpec, tmp_path: Path) -> None:
        project = project_factory(tmp_path)
        plan = DockerProvider().prepare(project, mock_spec, 5173, 9000, tmp_path / ".sandbox")

        compose_path = tmp_path / ".sandbox" / COMPOSE_FILE
        document = yaml.safe_load(compose_path.read_text())
        assert set(document["services"]) == {"mock", "app"}
        assert plan.provider == "docker"
        assert plan.provider_handle["compose_path"] == str(compose_path)
        assert plan.provider_handle["project_name"] == project_name_for(str(tmp_path))

    def test_up_and_stop(self, project_factory, mock_spec: MockSpec, tmp_path: Path) -> None:
        provider = DockerProvider()
        plan = provider.prepare(project_factory(tmp_path), mock_spec, 5173, 9000, tmp_path / ".sandbox")

        with patch(SUBPROCESS_RUN, return_value=completed()) as run:
            services = provider.up(plan)
            assert services.app_url == "http://localhost:5173"
            assert services.mock_url == "http://localhost:9000"
            assert run.call_args.args[0][-3:] == ["up", "--build", "-d"]

            services.stop()
            services.stop()

        down_calls = [c for c in run.call_args_list if c.args[0][-1] == "down"]
        assert len(down_calls) == 1
        assert services.stopped

    def test_up_without_compose_file(self, tmp_path: Path) -> None:
        plan = SandboxPlan(provider="docker", app_port=1, mock_port=2, work_dir=str(tmp_path))
        with pytest.raises(SandboxError):
            DockerProvider().up(plan)


class TestRunningServices:
    def test_stop_is_idempotent(self, channel) -> None:
        stop_fn = MagicMock()
        services = RunningServices("docker", stop_fn=stop_fn)
        services.events = channel

        services.stop()
        services.stop()

        stop_fn.assert_called_once()
        assert channel.types() == [EventType.SERVICES_DOWN]

    def test_failed_stop_can_be_retried(self) -> None:
        stop_fn = MagicMock(side_effect=[SandboxError("down failed"), None])
        services = RunningServices("docker", stop_fn=stop_fn)

        with pytest.raises(SandboxError):
            services.stop()
        assert not services.stopped

        services.stop()
        assert services.stopped

    def test_stop_removes_state(self, tmp_path: Path) -> None:
        state_file = tmp_path / "state.json"
        state_file.write_text("{}")
        services = RunningServices("none")
        services.state_path = state_file

        services.stop()

        assert not state_file.exists()


class TestNoneProvider:
    def test_prepare_and_up(self, project_factory, mock_spec: MockSpec, tmp_path: Path) -> None:
        provider = NoneProvider()
        plan = provider.prepare(project_factory(tmp_path), mock_spec, 5173, 9000, tmp_path / ".sandbox")

        assert plan.provider == "none"
        assert any("will not be started" in note for note in plan.notes)

        services = provider.up(plan)
        assert services.app_url is None
        assert services.mock_url is None


class TestOverlays:
    def test_vite_overlay(self, project_factory, mock_spec: MockSpec, tmp_path: Path) -> None:
        project = project_factory(tmp_path, dependencies={"@vitejs/plugin-react": "^4"})
        plan = SandboxPlan(provider="none", app_port=5173, mock_port=9000, work_dir=str(tmp_path))

        path = get_overlay("vite").write_overlay(project, plan, mock_spec)
        text = path.read_text()

        assert path.name == "vite.config.sandbox.ts"
        assert "'/api': {" in text
        assert "target: 'http://localhost:9000'" in text
        assert "plugins: [react()]" in text
        assert "port: 5173" in text

    def test_next_overlay(self, project_factory, mock_spec: MockSpec, tmp_path: Path) -> None:
        project = project_factory(tmp_path, framework="next")
        plan = SandboxPlan(provider="none", app_port=3000, mock_port=9000, work_dir=str(tmp_path))

        text = get_overlay("next").write_overlay(project, plan, mock_spec).read_text()

        assert '"source": "/api/:path*"' in text
        assert '"destination": "http://localhost:9000/api/:path*"' in text

    def test_no_overlay_for_other_frameworks(self) -> None:
        assert get_overlay("cra") is None
        assert get_overlay("unknown") is None

    def test_api_prefixes_from_paths(self) -> None:
        spec = MockSpec(
            rest=[
                MockRestEntry(path="/v1/users"),
                MockRestEntry(path="/v1/posts"),
                MockRestEntry(path="/:param/x"),
            ]
        )
        assert api_prefixes(spec) == ["/v1"]
        assert api_prefixes(MockSpec()) == ["/api"]


class TestRegistry:
    def test_builtin_providers(self) -> None:
        assert list_providers() == ["docker", "none"]
        assert isinstance(get_provider("none"), NoneProvider)

    def test_unknown_provider(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            get_provider("kubernetes")


class TestLifecycle:
    def test_prepare_sandbox(self, project_factory, mock_spec: MockSpec, settings, tmp_path: Path, channel) -> None:
        project = project_factory(tmp_path)
        plan = prepare_sandbox(project, mock_spec, provider="none", settings=settings, events=channel)

        work_dir = tmp_path / ".sandbox"
        assert plan.work_dir == str(work_dir)
        assert (work_dir / "mock-server" / "server.py").is_file()
        assert (work_dir / "overlay" / "vite.config.sandbox.ts").is_file()
        assert channel.types() == [EventType.ARTIFACTS_WRITTEN]

    def test_skips_overlay_for_unknown_framework(self, project_factory, mock_spec: MockSpec, settings, tmp_path: Path) -> None:
        project = project_factory(tmp_path, framework="unknown")
        prepare_sandbox(project, mock_spec, provider="none", settings=settings)
        assert not (tmp_path / ".sandbox" / "overlay").exists()

    @pytest.mark.parametrize("ports", [(9000, 9000), (0, 9000), (5173, 70000)])
    def test_invalid_ports(self, project_factory, mock_spec: MockSpec, settings, tmp_path: Path, ports) -> None:
        with pytest.raises(InvalidConfigurationError):
            prepare_sandbox(
                project_factory(tmp_path),
                mock_spec,
                provider="none",
                app_port=ports[0],
                mock_port=ports[1],
                settings=settings,
            )

    def test_unknown_provider(self, project_factory, mock_spec: MockSpec, settings, tmp_path: Path) -> None:
        with pytest.raises(InvalidConfigurationError):
            prepare_sandbox(project_factory(tmp_path), mock_spec, provider="podman", settings=settings)

    def test_run_and_stop(self, project_factory, mock_spec: MockSpec, settings, tmp_path: Path, channel) -> None:
        plan = prepare_sandbox(project_factory(tmp_path), mock_spec, provider="none", settings=settings)
        services = run_sandbox(plan, events=channel)

        state_file = tmp_path / ".sandbox" / "state.json"
        assert json.loads(state_file.read_text())["provider"] == "none"
        assert channel.received[-1] == (
            EventType.SERVICES_UP,
            {"provider": "none", "app_url": None, "mock_url": None},
        )
        assert read_state(tmp_path, settings).provider == "none"

        assert stop_sandbox(tmp_path, settings, events=channel) is True
        assert not state_file.exists()
        assert channel.types()[-1] == EventType.SERVICES_DOWN
        assert read_state(tmp_path, settings) is None
        assert not services.stopped

    def test_state_write_failure_stops_services(self, tmp_path: Path, channel) -> None:
        provider = StubProvider()
        plan = SandboxPlan(provider="stub", app_port=5173, mock_port=9000, work_dir=str(tmp_path))

        with patch("mocksandbox.sandbox.lifecycle.write_state", side_effect=ArtifactWriteError("disk full")):
            with pytest.raises(ArtifactWriteError):
                run_sandbox(plan, events=channel, provider=provider)

        provider.stop_fn.assert_called_once()
        assert provider.services.stopped
        assert EventType.SERVICES_UP not in channel.types()

    def test_state_write_failure_with_failing_stop(self, tmp_path: Path) -> None:
        provider = StubProvider(stop_error=SandboxError("down failed"))
        plan = SandboxPlan(provider="stub", app_port=5173, mock_port=9000, work_dir=str(tmp_path))

        with patch("mocksandbox.sandbox.lifecycle.write_state", side_effect=ArtifactWriteError("disk full")):
            with pytest.raises(ArtifactWriteError):
                run_sandbox(plan, provider=provider)

        provider.stop_fn.assert_called_once()
        assert not provider.services.stopped

    def test_stop_without_state(self, settings, tmp_path: Path) -> None:
        assert stop_sandbox(tmp_path, settings) is False

    def test_stop_docker_sandbox_from_state(self, settings, tmp_path: Path) -> None:
        work_dir = tmp_path / ".sandbox"
        work_dir.mkdir()
        state = SandboxState(
            provider="docker",
            app_url="http://localhost:5173",
            mock_url="http://localhost:9000",
            work_dir=str(work_dir),
            provider_handle={"compose_path": str(work_dir / COMPOSE_FILE), "project_name": "p"},
        )
        (work_dir / "state.json").write_text(json.dumps(state.to_dict()))

        with patch(SUBPROCESS_RUN, return_value=completed()) as run:
            assert stop_sandbox(tmp_path, settings) is True

        assert run.call_args.args[0][-1] == "down"
        assert not (work_dir / "state.json").exists()

    def test_corrupt_state_is_ignored(self, settings, tmp_path: Path) -> None:
        work_dir = tmp_path / ".sandbox"
        work_dir.mkdir()
        (work_dir / "state.json").write_text("not json")
        assert read_state(tmp_path, settings) is None
