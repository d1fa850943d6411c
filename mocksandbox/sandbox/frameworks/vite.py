"""Vite overlay: a dev-server config that proxies API prefixes to the mock server."""

from __future__ import annotations

from pathlib import Path

from mocksandbox.models import DetectedProject, MockSpec, SandboxPlan
from mocksandbox.sandbox.base import OVERLAY_DIR, FrameworkOverlay, api_prefixes

CONFIG_FILE = "vite.config.sandbox.ts"


def render_vite_config(prefixes: list[str], app_port: int, mock_port: int, react: bool) -> str:
    rules = ",\n".join(
        f"      '{prefix}': {{\n"
        f"        target: 'http://localhost:{mock_port}',\n"
        f"        changeOrigin: true,\n"
        f"      }}"
        for prefix in prefixes
    )
    imports = ["import { defineConfig } from 'vite';"]
    plugins = "[]"
    if react:
        imports.append("import react from '@vitejs/plugin-react';")
        plugins = "[react()]"
    return (
        "\n".join(imports)
        + "\n\n"
        + "// Generated by mocksandbox. Proxies API calls to the mock server.\n"
        + "export default defineConfig({\n"
        + f"  plugins: {plugins},\n"
        + "  server: {\n"
        + "    host: '0.0.0.0',\n"
        + f"    port: {app_port},\n"
        + "    proxy: {\n"
        + rules
        + "\n    },\n"
        + "  },\n"
        + "});\n"
    )


class ViteOverlay(FrameworkOverlay):
    framework = "vite"

    def write_overlay(self, project: DetectedProject, plan: SandboxPlan, mock_spec: MockSpec) -> Path:
        overlay_dir = Path(plan.work_dir) / OVERLAY_DIR
        overlay_dir.mkdir(parents=True, exist_ok=True)
        path = overlay_dir / CONFIG_FILE
        path.write_text(
            render_vite_config(
                api_prefixes(mock_spec),
                plan.app_port,
                plan.mock_port,
                react=project.has_dependency("@vitejs/plugin-react"),
            ),
            encoding="utf-8",
        )
        plan.notes.append(f"Vite proxy config written to {path}")
        plan.notes.append(f"API calls will be routed to http://localhost:{plan.mock_port}")
        return path
