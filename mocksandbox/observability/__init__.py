"""Logging setup for mocksandbox."""

from mocksandbox.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    get_context,
    log_context,
)

__all__ = [
    "StructuredFormatter",
    "HumanReadableFormatter",
    "configure_logging",
    "log_context",
    "get_context",
]
