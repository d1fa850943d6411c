"""Registries of sandbox providers and framework overlays."""

from __future__ import annotations

from mocksandbox.errors import InvalidConfigurationError
from mocksandbox.sandbox.base import FrameworkOverlay, SandboxProvider
from mocksandbox.sandbox.frameworks import NextOverlay, ViteOverlay
from mocksandbox.sandbox.providers import DockerProvider, NoneProvider

_provider_registry: dict[str, type[SandboxProvider]] = {}
_overlay_registry: dict[str, FrameworkOverlay] = {}


def register_provider(provider_class: type[SandboxProvider]) -> type[SandboxProvider]:
    """Register a provider class under its ``name``. Usable as a decorator."""
    if not provider_class.name:
        raise ValueError("Sandbox provider must have a name")
    _provider_registry[provider_class.name] = provider_class
    return provider_class


def get_provider(name: str) -> SandboxProvider:
    """Instantiate the provider registered as ``name``.

    Raises:
        InvalidConfigurationError: If no provider has that name.
    """
    try:
        return _provider_registry[name]()
    except KeyError:
        raise InvalidConfigurationError(
            f"Unknown sandbox provider: {name}. Available: {sorted(_provider_registry)}",
            provider=name,
        ) from None


def list_providers() -> list[str]:
    return sorted(_provider_registry)


def register_overlay(overlay: FrameworkOverlay) -> None:
    if not overlay.framework:
        raise ValueError("Framework overlay must name a framework")
    _overlay_registry[overlay.framework] = overlay


def get_overlay(framework: str) -> FrameworkOverlay | None:
    return _overlay_registry.get(framework)


register_provider(DockerProvider)
register_provider(NoneProvider)
register_overlay(ViteOverlay())
register_overlay(NextOverlay())
