"""Next.js overlay: rewrites that send API prefixes to the mock server."""

from __future__ import annotations

import json
from pathlib import Path

from mocksandbox.models import DetectedProject, MockSpec, SandboxPlan
from mocksandbox.sandbox.base import OVERLAY_DIR, FrameworkOverlay, api_prefixes

CONFIG_FILE = "next.config.sandbox.js"


def render_next_config(prefixes: list[str], mock_port: int) -> str:
    rewrites = [
        {
            "source": f"{prefix.rstrip('/')}/:path*",
            "destination": f"http://localhost:{mock_port}{prefix.rstrip('/')}/:path*",
        }
        for prefix in prefixes
    ]
    body = json.dumps(rewrites, indent=2).replace("\n", "\n    ")
    return (
        "// Generated by mocksandbox. Rewrites API calls to the mock server.\n"
        "/** @type {import('next').NextConfig} */\n"
        "module.exports = {\n"
        "  async rewrites() {\n"
        f"    return {body};\n"
        "  },\n"
        "};\n"
    )


class NextOverlay(FrameworkOverlay):
    framework = "next"

    def write_overlay(self, project: DetectedProject, plan: SandboxPlan, mock_spec: MockSpec) -> Path:
        overlay_dir = Path(plan.work_dir) / OVERLAY_DIR
        overlay_dir.mkdir(parents=True, exist_ok=True)
        path = overlay_dir / CONFIG_FILE
        path.write_text(render_next_config(api_prefixes(mock_spec), plan.mock_port), encoding="utf-8")
        plan.notes.append(f"Next.js rewrites written to {path}")
        return path
