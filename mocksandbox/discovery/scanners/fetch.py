"""Scanner for the Fetch API: ``fetch(url, init)``."""

from __future__ import annotations

import logging

from tree_sitter import Node

from mocksandbox.discovery.base import FragmentBuilder, ScanContext, Scanner, SourceFile
from mocksandbox.discovery.syntax import (
    UrlResolver,
    call_arguments,
    get_property,
    line_of,
    literal_value,
    member_path,
    node_text,
    object_properties,
    request_body,
    split_url,
    unwrap,
    walk,
)
from mocksandbox.models import DetectedProject, DiscoveryFragment, RestEndpoint

logger = logging.getLogger(__name__)

FETCH_CALLEES = {"fetch", "window.fetch", "globalThis.fetch", "self.fetch"}


def string_headers(node: Node | None) -> dict[str, str] | None:
    headers = {}
    for key, value in object_properties(node):
        literal = literal_value(value)
        if isinstance(literal, str):
            headers[key] = literal
    return headers or None


class FetchScanner(Scanner):
    """Finds ``fetch`` calls. Runs for every project."""

    name = "fetch"

    def discover(self, project: DetectedProject, ctx: ScanContext) -> DiscoveryFragment:
        builder = FragmentBuilder()
        calls = 0
        for source in ctx.files():
            resolver = source.resolver(project.env)
            for node in walk(source.tree.root_node):
                if node.type != "call_expression":
                    continue
                if member_path(node.child_by_field_name("function")) not in FETCH_CALLEES:
                    continue
                calls += 1
                self._record(node, source, resolver, builder)

        fragment = builder.build()
        logger.info("fetch scanner found %d endpoints in %d calls", len(fragment.rest), calls)
        return fragment

    def _record(
        self,
        call: Node,
        source: SourceFile,
        resolver: UrlResolver,
        builder: FragmentBuilder,
    ) -> None:
        args = call_arguments(call)
        if not args:
            return
        raw = resolver.resolve(args[0])
        if raw is None:
            builder.add_note(
                f"{source.where(line_of(call))}: unresolved fetch URL {node_text(args[0])[:80]}"
            )
            return

        url = split_url(raw)
        if url.origin:
            builder.add_base_url(url.origin)

        init = unwrap(args[1]) if len(args) > 1 else None
        method = literal_value(get_property(init, "method"))
        builder.add_rest(
            RestEndpoint(
                method=method if isinstance(method, str) else "GET",
                path=url.path,
                query=url.query,
                headers=string_headers(get_property(init, "headers")),
                example_request_body=request_body(get_property(init, "body")),
            )
        )
