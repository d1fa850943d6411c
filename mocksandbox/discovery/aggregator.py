"""Runs the registered scanners and merges their fragments."""

from __future__ import annotations

import logging

from mocksandbox.config import SandboxSettings
from mocksandbox.discovery.base import ScanContext, Scanner, SourceIndex
from mocksandbox.discovery.scanners import AxiosScanner, FetchScanner, GraphQLScanner
from mocksandbox.errors import ScannerError
from mocksandbox.events import EventChannel, EventType, emit
from mocksandbox.models import (
    DetectedProject,
    DiscoveryFragment,
    DiscoveryResult,
    GraphQLOperation,
    RestEndpoint,
)

logger = logging.getLogger(__name__)

# Registry of scanners, in run order
_scanner_registry: dict[str, Scanner] = {}


def register_scanner(scanner: Scanner) -> None:
    """Add a scanner, replacing any registered under the same name."""
    if not scanner.name:
        raise ValueError("Scanner must have a name")
    _scanner_registry[scanner.name] = scanner


def get_scanners() -> list[Scanner]:
    return list(_scanner_registry.values())


def unregister_scanner(name: str) -> None:
    _scanner_registry.pop(name, None)


for _builtin in (FetchScanner(), AxiosScanner(), GraphQLScanner()):
    register_scanner(_builtin)


def merge_fragments(fragments: list[DiscoveryFragment]) -> DiscoveryResult:
    """Concatenate fragments, keeping the first occurrence of every key."""
    rest: dict[tuple[str, str], RestEndpoint] = {}
    graphql: dict[tuple[str, str], GraphQLOperation] = {}
    base_urls: dict[str, None] = {}
    notes: dict[str, None] = {}
    for fragment in fragments:
        for endpoint in fragment.rest:
            rest.setdefault(endpoint.key, endpoint)
        for operation in fragment.graphql:
            graphql.setdefault(operation.key, operation)
        for url in fragment.base_urls:
            base_urls.setdefault(url, None)
        for note in fragment.notes:
            notes.setdefault(note, None)
    return DiscoveryResult(
        rest=list(rest.values()),
        graphql=list(graphql.values()),
        base_urls=list(base_urls),
        notes=list(notes),
    )


def discover_apis(
    project: DetectedProject,
    scanners: list[Scanner] | None = None,
    settings: SandboxSettings | None = None,
    events: EventChannel | None = None,
) -> DiscoveryResult:
    """Discover the project's REST endpoints and GraphQL operations.

    Args:
        project: The detected project.
        scanners: Scanners to run; defaults to the registry.
        settings: Parse pool size and file size limit come from here.
        events: Optional run channel; receives ``discovered``.

    Returns:
        The merged DiscoveryResult. A scanner that fails contributes a note
        instead of endpoints.
    """
    settings = settings or SandboxSettings()
    scanners = get_scanners() if scanners is None else scanners
    index = SourceIndex(
        project.root,
        max_file_bytes=settings.max_file_bytes,
        workers=settings.scan_workers,
    )
    ctx = ScanContext(index=index)

    fragments: list[DiscoveryFragment] = []
    for scanner in scanners:
        if not scanner.supports(project):
            logger.debug("Skipping scanner %s (not supported)", scanner.name)
            continue
        logger.debug("Running scanner %s", scanner.name)
        try:
            fragments.append(scanner.discover(project, ctx))
        except Exception as e:
            error = ScannerError(f"Scanner {scanner.name} failed: {e}", cause=e, scanner=scanner.name)
            logger.error(str(error), exc_info=True)
            fragments.append(DiscoveryFragment(notes=[error.message]))

    # index notes first: they are per-file and shared by every scanner
    result = merge_fragments([DiscoveryFragment(notes=index.notes), *fragments])
    logger.info(
        "Discovery complete: %d REST, %d GraphQL, %d base URLs",
        len(result.rest),
        len(result.graphql),
        len(result.base_urls),
    )
    emit(events, EventType.DISCOVERED, {"result": result})
    return result
