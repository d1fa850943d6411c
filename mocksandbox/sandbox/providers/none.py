"""Dry-run provider: writes the sandbox files and starts nothing."""

from __future__ import annotations

from pathlib import Path

from mocksandbox.models import DetectedProject, MockSpec, SandboxPlan
from mocksandbox.sandbox.base import MOCK_SERVER_DIR, RunningServices, SandboxProvider


class NoneProvider(SandboxProvider):
    name = "none"

    def prepare(
        self,
        project: DetectedProject,
        mock_spec: MockSpec,
        app_port: int,
        mock_port: int,
        work_dir: Path,
    ) -> SandboxPlan:
        work_dir.mkdir(parents=True, exist_ok=True)
        mock_dir = work_dir / MOCK_SERVER_DIR
        return SandboxPlan(
            provider=self.name,
            app_port=app_port,
            mock_port=mock_port,
            work_dir=str(work_dir),
            notes=[
                "No sandbox provider configured (provider=none)",
                "Files generated but services will not be started",
                f"Mock server available in {mock_dir}",
                f"Start it with: cd {mock_dir} && pip install -r requirements.txt && python server.py",
            ],
        )

    def up(self, plan: SandboxPlan) -> RunningServices:
        return RunningServices(provider=self.name)
