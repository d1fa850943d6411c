"""Project detection.

Reads a frontend project's package.json, lock files and .env files and
produces a DetectedProject that the rest of the pipeline works from.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from mocksandbox.errors import DetectionError
from mocksandbox.events import EventChannel, EventType, emit
from mocksandbox.models import DetectedProject

logger = logging.getLogger(__name__)

# More specific frameworks first: a Next or Remix app usually depends on
# react-scripts or vite tooling as well.
FRAMEWORK_MARKERS: list[tuple[str, str]] = [
    ("next", "next"),
    ("@remix-run/react", "remix"),
    ("react-scripts", "cra"),
    ("vite", "vite"),
]

LOCK_FILES: list[tuple[str, str]] = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("package-lock.json", "npm"),
]

# Later files override earlier ones.
ENV_FILES = [".env", ".env.local", ".env.development", ".env.development.local"]

CLIENT_ENV_PREFIXES: dict[str, str] = {
    "vite": "VITE_",
    "next": "NEXT_PUBLIC_",
    "cra": "REACT_APP_",
}


def detect_project(cwd: str | Path, events: EventChannel | None = None) -> DetectedProject:
    """Describe the frontend project rooted at ``cwd``.

    Args:
        cwd: Project directory (must contain package.json).
        events: Optional run channel; receives ``detected``.

    Returns:
        The detected project.

    Raises:
        DetectionError: If package.json is missing, unreadable or not an object.
    """
    root = Path(cwd).resolve()
    package_json_path = root / "package.json"
    logger.info("Detecting project", extra={"root": str(root)})

    try:
        package_json = json.loads(package_json_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise DetectionError(
            f"Failed to read package.json at {package_json_path}",
            cause=e,
            path=str(package_json_path),
        ) from e
    if not isinstance(package_json, dict):
        raise DetectionError(
            f"package.json at {package_json_path} is not a JSON object",
            path=str(package_json_path),
        )

    dependencies = _merged_dependencies(package_json)
    framework = detect_framework(dependencies)
    package_manager = detect_package_manager(root)
    scripts = package_json.get("scripts") or {}
    env = merge_env_files(root, framework)

    logger.debug(
        "Detected %s project using %s with %d client env vars",
        framework,
        package_manager,
        len(env),
    )

    project = DetectedProject(
        root=str(root),
        framework=framework,
        package_manager=package_manager,
        scripts={str(k): str(v) for k, v in scripts.items()},
        dependencies=dependencies,
        env=env,
    )
    emit(events, EventType.DETECTED, {"project": project})
    return project


def _merged_dependencies(package_json: dict[str, Any]) -> dict[str, str]:
    merged: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        deps = package_json.get(section) or {}
        if isinstance(deps, dict):
            merged.update({str(k): str(v) for k, v in deps.items()})
    return merged


def detect_framework(dependencies: dict[str, str]) -> str:
    for package, framework in FRAMEWORK_MARKERS:
        if package in dependencies:
            return framework
    return "unknown"


def detect_package_manager(root: Path) -> str:
    for filename, manager in LOCK_FILES:
        if (root / filename).exists():
            return manager
    return "npm"


def merge_env_files(root: Path, framework: str) -> dict[str, str]:
    """Merge the project's .env files and keep the client-visible keys.

    Vite, Next and CRA only expose prefixed variables to browser code, so
    only those are kept. Remix and unknown frameworks keep everything.
    """
    merged: dict[str, str] = {}
    for filename in ENV_FILES:
        path = root / filename
        if not path.is_file():
            continue
        try:
            values = dotenv_values(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable env file %s: %s", path, e)
            continue
        merged.update({k: v for k, v in values.items() if v is not None})

    prefix = CLIENT_ENV_PREFIXES.get(framework)
    if prefix is None:
        return merged
    return {k: v for k, v in merged.items() if k.startswith(prefix)}
