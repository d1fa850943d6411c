"""Scanner interface and the shared, parse-once source index."""

from __future__ import annotations

import fnmatch
import logging
import os
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Tree

from mocksandbox.discovery.syntax import UrlResolver, collect_constants, parse_source
from mocksandbox.models import (
    DetectedProject,
    DiscoveryFragment,
    GraphQLOperation,
    RestEndpoint,
)

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}

EXCLUDED_DIRS = {
    "node_modules",
    "dist",
    "build",
    ".next",
    "out",
    "coverage",
    ".sandbox",
    ".git",
    "__tests__",
    "__mocks__",
    "test",
    "tests",
}

EXCLUDED_GLOBS = ("*.test.*", "*.spec.*", "*.d.ts", "*.stories.*")


@dataclass
class SourceFile:
    """One parsed source file.

    Attributes:
        path: Absolute file path.
        relpath: Path relative to the project root, with forward slashes.
        source: Raw file bytes.
        tree: The tree-sitter tree. Trees with syntax errors are kept; the
            parser recovers around the error.
    """

    path: Path
    relpath: str
    source: bytes
    tree: Tree
    _constants: dict[str, str] | None = field(default=None, repr=False)

    def constants(self, env: dict[str, str]) -> dict[str, str]:
        if self._constants is None:
            self._constants = collect_constants(self.tree.root_node, env)
        return self._constants

    def resolver(self, env: dict[str, str]) -> UrlResolver:
        return UrlResolver(env, self.constants(env))

    def where(self, line: int) -> str:
        return f"{self.relpath}:{line}"


def iter_source_paths(root: Path) -> list[Path]:
    """Source files under ``root`` in a stable (sorted) order."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
        for filename in sorted(filenames):
            suffix = os.path.splitext(filename)[1]
            if suffix not in SOURCE_EXTENSIONS:
                continue
            if any(fnmatch.fnmatch(filename, pattern) for pattern in EXCLUDED_GLOBS):
                continue
            found.append(Path(dirpath) / filename)
    return found


class SourceIndex:
    """Enumerates and parses a project's source files once.

    Parsing runs in a bounded thread pool; results keep file order. Read
    failures, oversize files and syntax errors become notes.

    Args:
        root: Project root directory.
        max_file_bytes: Files larger than this are skipped.
        workers: Parser pool size.
    """

    def __init__(self, root: str | Path, max_file_bytes: int = 1024 * 1024, workers: int = 8) -> None:
        self.root = Path(root)
        self.max_file_bytes = max_file_bytes
        self.workers = workers
        self.notes: list[str] = []
        self._files: list[SourceFile] | None = None

    def _relpath(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _load(self, path: Path) -> SourceFile | str:
        relpath = self._relpath(path)
        try:
            size = path.stat().st_size
            if size > self.max_file_bytes:
                return f"Skipped {relpath}: {size} bytes exceeds limit of {self.max_file_bytes}"
            source = path.read_bytes()
        except OSError as e:
            return f"Failed to read {relpath}: {e}"
        tree = parse_source(source, path.suffix)
        return SourceFile(path=path, relpath=relpath, source=source, tree=tree)

    def files(self) -> list[SourceFile]:
        if self._files is not None:
            return self._files

        paths = iter_source_paths(self.root)
        logger.debug("Parsing %d source files with %d workers", len(paths), self.workers)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            results = list(executor.map(self._load, paths))

        files: list[SourceFile] = []
        for result in results:
            if isinstance(result, str):
                logger.warning(result)
                self.notes.append(result)
                continue
            if result.tree.root_node.has_error:
                self.notes.append(f"Syntax errors in {result.relpath}; scanned recovered tree")
            files.append(result)
        self._files = files
        return files


@dataclass
class ScanContext:
    """What a scanner gets besides the project: the shared source index."""

    index: SourceIndex

    def files(self) -> list[SourceFile]:
        return self.index.files()


class FragmentBuilder:
    """Collects one scanner's output, deduplicating by identity key."""

    def __init__(self) -> None:
        self._rest: dict[tuple[str, str], RestEndpoint] = {}
        self._graphql: dict[tuple[str, str], GraphQLOperation] = {}
        self._base_urls: dict[str, None] = {}
        self._notes: list[str] = []

    def add_rest(self, endpoint: RestEndpoint) -> None:
        self._rest.setdefault(endpoint.key, endpoint)

    def add_graphql(self, operation: GraphQLOperation) -> None:
        self._graphql.setdefault(operation.key, operation)

    def add_base_url(self, url: str) -> None:
        self._base_urls.setdefault(url.rstrip("/") or url, None)

    def add_note(self, note: str) -> None:
        self._notes.append(note)

    def build(self) -> DiscoveryFragment:
        return DiscoveryFragment(
            rest=list(self._rest.values()),
            graphql=list(self._graphql.values()),
            base_urls=list(self._base_urls),
            notes=list(self._notes),
        )


class Scanner(ABC):
    """A call-site scanner.

    Subclasses set ``name`` and implement ``discover``. ``supports`` decides
    whether the scanner runs for a project at all.
    """

    name: str = ""

    def supports(self, project: DetectedProject) -> bool:
        return True

    @abstractmethod
    def discover(self, project: DetectedProject, ctx: ScanContext) -> DiscoveryFragment:
        """Scan the project's files and return a partial discovery result."""
