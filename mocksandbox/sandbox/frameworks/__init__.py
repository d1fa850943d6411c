"""Built-in framework overlays."""

from mocksandbox.sandbox.frameworks.next import NextOverlay
from mocksandbox.sandbox.frameworks.vite import ViteOverlay

__all__ = ["ViteOverlay", "NextOverlay"]
