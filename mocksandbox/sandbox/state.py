"""The sandbox state record (``<work_dir>/state.json``)."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from mocksandbox.errors import ArtifactWriteError
from mocksandbox.models import SandboxState

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"


def state_path(work_dir: str | Path) -> Path:
    return Path(work_dir) / STATE_FILE


def write_state(state: SandboxState) -> Path:
    path = state_path(state.work_dir)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(state.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ArtifactWriteError(f"Failed to write sandbox state to {path}", cause=e) from e
    return path


def load_state(work_dir: str | Path) -> SandboxState | None:
    """The recorded state, or None when there is no readable record."""
    path = state_path(work_dir)
    if not path.is_file():
        return None
    try:
        return SandboxState.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning("Ignoring unreadable sandbox state %s: %s", path, e)
        return None
