"""Scanner for GraphQL documents in ``gql``/``graphql`` tagged templates."""

from __future__ import annotations

import logging
import re

from tree_sitter import Node

from mocksandbox.discovery.base import FragmentBuilder, ScanContext, Scanner, SourceFile
from mocksandbox.discovery.syntax import (
    UrlResolver,
    call_arguments,
    get_property,
    line_of,
    member_path,
    split_url,
    template_text,
    walk,
)
from mocksandbox.models import DetectedProject, DiscoveryFragment, GraphQLOperation

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "/graphql"

GRAPHQL_PACKAGES = (
    "@apollo/client",
    "apollo-boost",
    "apollo-client",
    "graphql-request",
    "graphql-tag",
    "graphql",
    "urql",
    "@urql/core",
    "relay-runtime",
    "react-relay",
)

TAGS = {"gql", "graphql"}

NAMED_OPERATION = re.compile(r"(query|mutation|subscription)\s+([A-Za-z_]\w*)")
ANONYMOUS_HEADER = re.compile(r"(query|mutation|subscription)(\s*\(.*\))?", re.S)
_COMMENT = re.compile(r"#[^\n]*")

# constructor or factory -> (argument index, config key); key None means the
# argument itself is the URL
ENDPOINT_SOURCES: dict[str, tuple[int, str | None]] = {
    "ApolloClient": (0, "uri"),
    "HttpLink": (0, "uri"),
    "createHttpLink": (0, "uri"),
    "createClient": (0, "url"),
    "GraphQLClient": (0, None),
}


def operations_in(document: str) -> tuple[list[tuple[str, str]], int]:
    """Named top-level operations in a document and the number of anonymous ones."""
    text = _COMMENT.sub("", document)
    named: list[tuple[str, str]] = []
    anonymous = 0
    depth = 0
    parens = 0
    start = 0
    for i, ch in enumerate(text):
        if ch == "(":
            parens += 1
        elif ch == ")":
            parens = max(0, parens - 1)
        elif ch == "{" and parens == 0:
            if depth == 0:
                header = text[start:i].strip()
                match = NAMED_OPERATION.match(header)
                if match:
                    named.append((match.group(1), match.group(2)))
                elif not header or ANONYMOUS_HEADER.fullmatch(header):
                    anonymous += 1
            depth += 1
        elif ch == "}" and parens == 0:
            depth = max(0, depth - 1)
            if depth == 0:
                start = i + 1
    return named, anonymous


class GraphQLScanner(Scanner):
    """Finds GraphQL operations. Runs when a GraphQL client is a dependency."""

    name = "graphql"

    def supports(self, project: DetectedProject) -> bool:
        return project.has_dependency(*GRAPHQL_PACKAGES)

    def discover(self, project: DetectedProject, ctx: ScanContext) -> DiscoveryFragment:
        builder = FragmentBuilder()
        files = ctx.files()

        endpoint = DEFAULT_ENDPOINT
        for source in files:
            found = self._find_endpoint(source, source.resolver(project.env), builder)
            if found is not None:
                endpoint = found
                break

        for source in files:
            for node in walk(source.tree.root_node):
                if node.type != "call_expression":
                    continue
                if member_path(node.child_by_field_name("function")) not in TAGS:
                    continue
                template = node.child_by_field_name("arguments")
                if template is None or template.type != "template_string":
                    continue
                self._record(template, endpoint, source, builder)

        fragment = builder.build()
        logger.info("graphql scanner found %d operations at %s", len(fragment.graphql), endpoint)
        return fragment

    def _find_endpoint(
        self,
        source: SourceFile,
        resolver: UrlResolver,
        builder: FragmentBuilder,
    ) -> str | None:
        for node in walk(source.tree.root_node):
            if node.type == "new_expression":
                callee = member_path(node.child_by_field_name("constructor"))
            elif node.type == "call_expression":
                callee = member_path(node.child_by_field_name("function"))
            else:
                continue
            if callee not in ENDPOINT_SOURCES:
                continue
            index, key = ENDPOINT_SOURCES[callee]
            args = call_arguments(node)
            if len(args) <= index:
                continue
            target = args[index] if key is None else get_property(args[index], key)
            raw = resolver.resolve(target) if target is not None else None
            if raw is None:
                continue
            url = split_url(raw)
            if url.origin:
                builder.add_base_url(url.origin)
            return url.path
        return None

    def _record(
        self,
        template: Node,
        endpoint: str,
        source: SourceFile,
        builder: FragmentBuilder,
    ) -> None:
        document = template_text(template).strip()
        named, anonymous = operations_in(document)
        if anonymous:
            builder.add_note(
                f"{source.where(line_of(template))}: skipped {anonymous} anonymous GraphQL operation(s)"
            )
        for operation_type, operation_name in named:
            builder.add_graphql(
                GraphQLOperation(
                    endpoint=endpoint,
                    operation_type=operation_type,
                    operation_name=operation_name,
                    document=document,
                )
            )
