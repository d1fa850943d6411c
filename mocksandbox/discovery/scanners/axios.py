"""Scanner for axios calls and axios instances.

Recognized shapes::

    axios(config) / axios(url, config) / axios.request(config)
    axios.get(url, config) / axios.post(url, data, config) / ...
    const api = axios.create({ baseURL: "/api" })
    api.get("/users")

Instances are collected from every file before any call is matched. A file
sees its own instances first, then those created elsewhere, so an instance
created in ``src/api.ts`` is recognized in ``src/pages/Users.tsx`` while two
files that each bind ``api`` keep their own base URLs.
"""

from __future__ import annotations

import logging

from tree_sitter import Node

from mocksandbox.discovery.base import FragmentBuilder, ScanContext, Scanner, SourceFile
from mocksandbox.discovery.scanners.fetch import string_headers
from mocksandbox.discovery.syntax import (
    UrlResolver,
    call_arguments,
    get_property,
    join_url,
    line_of,
    literal_value,
    member_path,
    node_text,
    object_properties,
    request_body,
    split_url,
    string_value,
    unwrap,
    walk,
)
from mocksandbox.models import DetectedProject, DiscoveryFragment, RestEndpoint

logger = logging.getLogger(__name__)

URL_VERBS = {"get", "delete", "head", "options"}
BODY_VERBS = {"post", "put", "patch"}


def axios_aliases(source: SourceFile) -> set[str]:
    """Local names bound to the axios default export in a file."""
    aliases = {"axios"}
    for node in walk(source.tree.root_node):
        if node.type == "import_statement":
            module = node.child_by_field_name("source")
            if module is None or string_value(module) != "axios":
                continue
            for clause in node.named_children:
                if clause.type != "import_clause":
                    continue
                for child in clause.named_children:
                    if child.type == "identifier":
                        aliases.add(node_text(child))
        elif node.type == "variable_declarator":
            name = node.child_by_field_name("name")
            value = unwrap(node.child_by_field_name("value"))
            if name is None or name.type != "identifier" or value is None:
                continue
            if value.type == "call_expression" and member_path(value.child_by_field_name("function")) == "require":
                args = call_arguments(value)
                if args and args[0].type == "string" and string_value(args[0]) == "axios":
                    aliases.add(node_text(name))
    return aliases


class AxiosScanner(Scanner):
    """Finds axios calls. Runs when axios is a project dependency."""

    name = "axios"

    def supports(self, project: DetectedProject) -> bool:
        return project.has_dependency("axios")

    def discover(self, project: DetectedProject, ctx: ScanContext) -> DiscoveryFragment:
        builder = FragmentBuilder()
        files = ctx.files()
        aliases = {source.relpath: axios_aliases(source) for source in files}

        # relpath -> instance name -> base URL
        local: dict[str, dict[str, str]] = {}
        shared: dict[str, str] = {}
        for source in files:
            found = self._collect_instances(source, aliases[source.relpath], source.resolver(project.env))
            local[source.relpath] = found
            for name, base in found.items():
                shared.setdefault(name, base)
        if shared:
            logger.debug("axios instances: %s", local)

        for source in files:
            resolver = source.resolver(project.env)
            instances = {**shared, **local[source.relpath]}
            for node in walk(source.tree.root_node):
                if node.type == "call_expression":
                    self._match_call(node, source, aliases[source.relpath], instances, resolver, builder)

        fragment = builder.build()
        logger.info("axios scanner found %d endpoints", len(fragment.rest))
        return fragment

    def _collect_instances(
        self,
        source: SourceFile,
        aliases: set[str],
        resolver: UrlResolver,
    ) -> dict[str, str]:
        instances: dict[str, str] = {}
        for node in walk(source.tree.root_node):
            if node.type != "variable_declarator":
                continue
            name = node.child_by_field_name("name")
            value = unwrap(node.child_by_field_name("value"))
            if name is None or name.type != "identifier" or value is None:
                continue
            if value.type != "call_expression":
                continue
            callee = member_path(value.child_by_field_name("function"))
            if callee is None or not any(callee == f"{alias}.create" for alias in aliases):
                continue
            args = call_arguments(value)
            base_node = get_property(args[0], "baseURL") if args else None
            base = resolver.resolve(base_node) if base_node is not None else None
            instances.setdefault(node_text(name), base or "")
        return instances

    def _match_call(
        self,
        call: Node,
        source: SourceFile,
        aliases: set[str],
        instances: dict[str, str],
        resolver: UrlResolver,
        builder: FragmentBuilder,
    ) -> None:
        function = unwrap(call.child_by_field_name("function"))
        args = call_arguments(call)
        path = member_path(function)
        if path is None or not args:
            return

        if path in aliases:
            self._from_direct_call(call, args, "", source, resolver, builder)
            return
        if path in instances:
            self._from_direct_call(call, args, instances[path], source, resolver, builder)
            return

        if function.type != "member_expression":
            return
        owner = member_path(function.child_by_field_name("object"))
        verb = node_text(function.child_by_field_name("property"))
        if owner in aliases:
            base = ""
        elif owner in instances:
            base = instances[owner]
        else:
            return

        if verb == "request":
            self._from_config(call, args[0], base, "GET", source, resolver, builder)
        elif verb in URL_VERBS:
            config = args[1] if len(args) > 1 else None
            self._record(call, args[0], verb, base, config, None, source, resolver, builder)
        elif verb in BODY_VERBS:
            data = args[1] if len(args) > 1 else None
            config = args[2] if len(args) > 2 else None
            self._record(call, args[0], verb, base, config, data, source, resolver, builder)

    def _from_direct_call(
        self,
        call: Node,
        args: list[Node],
        base: str,
        source: SourceFile,
        resolver: UrlResolver,
        builder: FragmentBuilder,
    ) -> None:
        first = unwrap(args[0])
        if first is not None and first.type == "object":
            self._from_config(call, first, base, "GET", source, resolver, builder)
            return
        config = args[1] if len(args) > 1 else None
        method = literal_value(get_property(config, "method"))
        data = get_property(config, "data")
        self._record(
            call,
            first,
            method if isinstance(method, str) else "GET",
            base,
            config,
            data,
            source,
            resolver,
            builder,
        )

    def _from_config(
        self,
        call: Node,
        config: Node,
        base: str,
        default_method: str,
        source: SourceFile,
        resolver: UrlResolver,
        builder: FragmentBuilder,
    ) -> None:
        method = literal_value(get_property(config, "method"))
        self._record(
            call,
            get_property(config, "url"),
            method if isinstance(method, str) else default_method,
            base,
            config,
            get_property(config, "data"),
            source,
            resolver,
            builder,
        )

    def _record(
        self,
        call: Node,
        url_node: Node | None,
        method: str,
        base: str,
        config: Node | None,
        data: Node | None,
        source: SourceFile,
        resolver: UrlResolver,
        builder: FragmentBuilder,
    ) -> None:
        raw = resolver.resolve(url_node) if url_node is not None else None
        if raw is None:
            builder.add_note(f"{source.where(line_of(call))}: unresolved axios URL")
            return

        config_base = get_property(config, "baseURL")
        if config_base is not None:
            base = resolver.resolve(config_base) or base

        if base and not raw.startswith(("http://", "https://")):
            builder.add_base_url(base)
        url = split_url(join_url(base, raw))
        if url.origin and not base:
            builder.add_base_url(url.origin)

        query = list(url.query)
        for key, _ in object_properties(get_property(config, "params")):
            if key not in query:
                query.append(key)

        builder.add_rest(
            RestEndpoint(
                method=method,
                path=url.path,
                query=query,
                headers=string_headers(get_property(config, "headers")),
                example_request_body=request_body(data) if data is not None else None,
            )
        )
