"""Docker Compose sandbox provider."""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
from pathlib import Path
from typing import Any

import yaml

from mocksandbox.errors import ArtifactWriteError, ErrorCode, SandboxError
from mocksandbox.models import DetectedProject, MockSpec, SandboxPlan, SandboxState
from mocksandbox.sandbox.base import MOCK_SERVER_DIR, RunningServices, SandboxProvider

logger = logging.getLogger(__name__)

COMPOSE_FILE = "docker-compose.sandbox.yml"
MOCK_IMAGE = "python:3.12-slim"
APP_IMAGE = "node:20-alpine"

INSTALL_COMMANDS = {
    "npm": "npm install",
    "pnpm": "corepack enable && pnpm install",
    "yarn": "yarn install",
    "bun": "npm install -g bun && bun install",
}

API_BASE_ENV = ("VITE_API_BASE_URL", "REACT_APP_API_BASE_URL", "NEXT_PUBLIC_API_BASE_URL")


class ComposeRunner:
    """Runs ``docker compose`` (or legacy ``docker-compose``) for one project.

    Args:
        compose_file: Path to the compose file.
        project_name: Compose project name (``-p``).
        cwd: Working directory for the command.
        timeout: Per-command timeout in seconds; None waits indefinitely.
    """

    def __init__(
        self,
        compose_file: str | Path,
        project_name: str,
        cwd: str | Path | None = None,
        timeout: float | None = None,
    ) -> None:
        self.compose_file = str(compose_file)
        self.project_name = project_name
        self.cwd = str(cwd) if cwd else None
        self.timeout = timeout
        self._compose_cmd: list[str] | None = None

    def _detect_compose_command(self) -> list[str]:
        """Prefer ``docker compose`` (v2), fall back to ``docker-compose``.

        Raises:
            SandboxError: If neither is installed.
        """
        for candidate, probe in (
            (["docker", "compose"], ["docker", "compose", "version"]),
            (["docker-compose"], ["docker-compose", "--version"]),
        ):
            try:
                result = subprocess.run(probe, capture_output=True, text=True, timeout=10)
            except (FileNotFoundError, subprocess.TimeoutExpired):
                continue
            if result.returncode == 0:
                return candidate
        raise SandboxError(
            "Docker Compose not found. Install Docker Desktop or docker-compose.",
            error_code=ErrorCode.SANDBOX_COMMAND_NOT_FOUND,
        )

    @property
    def compose_cmd(self) -> list[str]:
        if self._compose_cmd is None:
            self._compose_cmd = self._detect_compose_command()
        return self._compose_cmd

    def build_command(self, *args: str) -> list[str]:
        return [*self.compose_cmd, "-f", self.compose_file, "-p", self.project_name, *args]

    def run(self, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a compose subcommand; success is exit code 0.

        Raises:
            SandboxError: On a non-zero exit, a missing binary or a timeout.
        """
        cmd = self.build_command(*args)
        logger.debug("Running docker command: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                cwd=self.cwd,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise SandboxError(
                f"Command not found: {cmd[0]}",
                error_code=ErrorCode.SANDBOX_COMMAND_NOT_FOUND,
                cause=e,
                command=" ".join(cmd),
            ) from e
        except subprocess.TimeoutExpired as e:
            raise SandboxError(
                f"Docker compose command timed out: {' '.join(args)}",
                cause=e,
                command=" ".join(cmd),
            ) from e

        if result.returncode != 0:
            raise SandboxError(
                f"Docker compose {' '.join(args)} exited with code {result.returncode}",
                command=" ".join(cmd),
                stderr=(result.stderr or "").strip()[-2000:],
            )
        return result

    def up(self) -> None:
        self.run("up", "--build", "-d")

    def down(self) -> None:
        self.run("down")


def project_name_for(root: str) -> str:
    """Stable compose project name for a project root."""
    digest = hashlib.md5(root.encode("utf-8")).hexdigest()[:8]
    return f"mocksandbox_{digest}"


def dev_command(project: DetectedProject, app_port: int) -> str:
    pm = project.package_manager
    if "dev" in project.scripts:
        command = "npm run dev" if pm == "npm" else f"{pm} run dev"
    elif "start" in project.scripts:
        command = "npm start" if pm == "npm" else f"{pm} start"
    elif project.framework == "vite":
        return f"npx vite --host 0.0.0.0 --port {app_port}"
    elif project.framework == "next":
        return f"npx next dev -H 0.0.0.0 -p {app_port}"
    elif project.framework == "cra":
        return "npx react-scripts start"
    else:
        command = "npm run dev"

    # the dev server must listen on all interfaces to be reachable from the host
    if project.framework == "vite":
        command += f" -- --host 0.0.0.0 --port {app_port}"
    elif project.framework == "next":
        command += f" -- -H 0.0.0.0 -p {app_port}"
    return command


def compose_document(
    project: DetectedProject,
    app_port: int,
    mock_port: int,
    mock_server_dir: str,
) -> dict[str, Any]:
    mock_url = f"http://localhost:{mock_port}"
    app_env = {
        "NODE_ENV": "development",
        "HOST": "0.0.0.0",
        "PORT": str(app_port),
        **{name: mock_url for name in API_BASE_ENV},
    }
    install = INSTALL_COMMANDS.get(project.package_manager, "npm install")
    return {
        "services": {
            "mock": {
                "image": MOCK_IMAGE,
                "working_dir": "/mock",
                "volumes": [f"{mock_server_dir}:/mock"],
                "ports": [f"{mock_port}:{mock_port}"],
                "environment": {"PORT": str(mock_port)},
                "command": 'sh -c "pip install --no-cache-dir -r requirements.txt && python server.py"',
            },
            "app": {
                "image": APP_IMAGE,
                "working_dir": "/app",
                "volumes": [f"{project.root}:/app", "/app/node_modules"],
                "ports": [f"{app_port}:{app_port}"],
                "environment": app_env,
                "command": f'sh -c "{install} && {dev_command(project, app_port)}"',
                "depends_on": ["mock"],
            },
        }
    }


class DockerProvider(SandboxProvider):
    """Runs the app and the mock server as two compose services."""

    name = "docker"

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def runner_for(self, compose_path: str, project_name: str, cwd: str) -> ComposeRunner:
        return ComposeRunner(compose_path, project_name, cwd=cwd, timeout=self.timeout)

    def prepare(
        self,
        project: DetectedProject,
        mock_spec: MockSpec,
        app_port: int,
        mock_port: int,
        work_dir: Path,
    ) -> SandboxPlan:
        compose_path = work_dir / COMPOSE_FILE
        mock_dir = "./" + os.path.relpath(work_dir / MOCK_SERVER_DIR, work_dir).replace(os.sep, "/")
        document = compose_document(project, app_port, mock_port, mock_dir)
        try:
            work_dir.mkdir(parents=True, exist_ok=True)
            with open(compose_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(document, f, sort_keys=False, default_flow_style=False)
        except OSError as e:
            raise ArtifactWriteError(
                f"Failed to write compose file {compose_path}", cause=e, path=str(compose_path)
            ) from e

        logger.info("Compose file written to %s", compose_path)
        return SandboxPlan(
            provider=self.name,
            app_port=app_port,
            mock_port=mock_port,
            work_dir=str(work_dir),
            provider_handle={
                "compose_path": str(compose_path),
                "project_name": project_name_for(project.root),
            },
            notes=[
                f"Docker Compose file generated at {compose_path}",
                f"App will run on port {app_port}",
                f"Mock server will run on port {mock_port}",
            ],
        )

    def _runner(self, handle: dict[str, Any], work_dir: str) -> ComposeRunner:
        compose_path = handle.get("compose_path")
        project_name = handle.get("project_name")
        if not compose_path or not project_name:
            raise SandboxError("Sandbox plan has no compose file", work_dir=work_dir)
        return self.runner_for(compose_path, project_name, work_dir)

    def up(self, plan: SandboxPlan) -> RunningServices:
        runner = self._runner(plan.provider_handle, plan.work_dir)
        logger.info("Starting sandbox services with %s", " ".join(runner.compose_cmd))
        runner.up()
        return RunningServices(
            provider=self.name,
            app_url=f"http://localhost:{plan.app_port}",
            mock_url=f"http://localhost:{plan.mock_port}",
            stop_fn=runner.down,
        )

    def resume(self, state: SandboxState) -> RunningServices:
        runner = self._runner(state.provider_handle, state.work_dir)
        return RunningServices(
            provider=self.name,
            app_url=state.app_url,
            mock_url=state.mock_url,
            stop_fn=runner.down,
        )
