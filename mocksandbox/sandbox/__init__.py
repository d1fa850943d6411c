"""Sandbox providers, framework overlays and lifecycle."""

from mocksandbox.sandbox.base import (
    FrameworkOverlay,
    RunningServices,
    SandboxProvider,
    api_prefixes,
)
from mocksandbox.sandbox.lifecycle import (
    prepare_sandbox,
    read_state,
    run_sandbox,
    stop_sandbox,
    work_dir_for,
)
from mocksandbox.sandbox.providers import ComposeRunner, DockerProvider, NoneProvider
from mocksandbox.sandbox.registry import (
    get_overlay,
    get_provider,
    list_providers,
    register_overlay,
    register_provider,
)

__all__ = [
    "SandboxProvider",
    "FrameworkOverlay",
    "RunningServices",
    "api_prefixes",
    "prepare_sandbox",
    "run_sandbox",
    "read_state",
    "stop_sandbox",
    "work_dir_for",
    "DockerProvider",
    "NoneProvider",
    "ComposeRunner",
    "register_provider",
    "get_provider",
    "list_providers",
    "register_overlay",
    "get_overlay",
]
