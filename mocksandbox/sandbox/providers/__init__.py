"""Built-in sandbox providers."""

from mocksandbox.sandbox.providers.docker import ComposeRunner, DockerProvider
from mocksandbox.sandbox.providers.none import NoneProvider

__all__ = ["DockerProvider", "NoneProvider", "ComposeRunner"]
