"""Static discovery of HTTP and GraphQL call sites."""

from mocksandbox.discovery.aggregator import (
    discover_apis,
    get_scanners,
    merge_fragments,
    register_scanner,
    unregister_scanner,
)
from mocksandbox.discovery.base import ScanContext, Scanner, SourceFile, SourceIndex

__all__ = [
    "discover_apis",
    "register_scanner",
    "unregister_scanner",
    "get_scanners",
    "merge_fragments",
    "Scanner",
    "ScanContext",
    "SourceFile",
    "SourceIndex",
]
