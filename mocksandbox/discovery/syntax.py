"""tree-sitter helpers shared by the call-site scanners.

Sources are parsed with the TypeScript grammar for ``.ts`` files and the TSX
grammar for everything else (TSX accepts plain JavaScript and JSX too).

URL expressions are resolved statically by UrlResolver:

- string literals are used as written
- template literals inline env lookups and file-level string constants;
  any other interpolation becomes ``:param``
- ``+`` concatenations resolve operand by operand, unknown operands become
  ``:param`` and an env lookup missing from the project env makes the whole
  URL unresolved
- a leading unresolved piece followed by ``/`` (``${base}/users``) is dropped
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser, Tree

from mocksandbox.models import PATH_PLACEHOLDER, normalize_path

_TRANSPARENT = {
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
    "type_assertion",
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}

_ENV_OBJECTS = ("process.env", "import.meta.env")

_languages: dict[str, Language] = {}
_languages_lock = threading.Lock()


def language_for(suffix: str) -> Language:
    """Grammar for a file extension."""
    key = "typescript" if suffix == ".ts" else "tsx"
    with _languages_lock:
        if key not in _languages:
            factory = tsts.language_typescript if key == "typescript" else tsts.language_tsx
            _languages[key] = Language(factory())
        return _languages[key]


def parse_source(source: bytes, suffix: str) -> Tree:
    # Parsers are not shared between threads.
    parser = Parser(language_for(suffix))
    return parser.parse(source)


def walk(node: Node) -> Iterator[Node]:
    """Depth-first, document-order walk over named nodes."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.named_children))


def node_text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def line_of(node: Node) -> int:
    return node.start_point[0] + 1


def unwrap(node: Node | None) -> Node | None:
    """Skip parentheses and TypeScript-only wrappers (``x as T``, ``x!``)."""
    while node is not None and node.type in _TRANSPARENT:
        inner = [c for c in node.named_children if c.type != "comment"]
        node = inner[0] if inner else None
    return node


def call_arguments(call: Node) -> list[Node]:
    """Argument nodes of a call_expression (empty for tagged templates)."""
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return [a for a in args.named_children if a.type != "comment"]


def member_path(node: Node | None) -> str | None:
    """Dotted name of an identifier/member chain, e.g. ``import.meta.env.X``."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type in ("identifier", "this", "property_identifier", "meta_property"):
        return node_text(node)
    if node.type == "member_expression":
        obj = member_path(node.child_by_field_name("object"))
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        return f"{obj}.{node_text(prop)}"
    return None


def env_name(node: Node | None) -> str | None:
    """Variable name for ``process.env.X``, ``import.meta.env.X`` or ``process.env["X"]``."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "member_expression":
        obj = member_path(node.child_by_field_name("object"))
        prop = node.child_by_field_name("property")
        if obj in _ENV_OBJECTS and prop is not None:
            return node_text(prop)
    if node.type == "subscript_expression":
        obj = member_path(node.child_by_field_name("object"))
        index = unwrap(node.child_by_field_name("index"))
        if obj in _ENV_OBJECTS and index is not None and index.type == "string":
            return string_value(index)
    return None


def _unescape(sequence: str) -> str:
    body = sequence[1:]
    if body in _ESCAPES:
        return _ESCAPES[body]
    if body.startswith("u") and len(body) >= 5:
        try:
            return chr(int(body[1:].strip("{}"), 16))
        except ValueError:
            return body
    return body


def string_value(node: Node) -> str:
    """Decoded value of a ``string`` node."""
    parts = []
    for child in node.named_children:
        if child.type == "string_fragment":
            parts.append(node_text(child))
        elif child.type == "escape_sequence":
            parts.append(_unescape(node_text(child)))
    return "".join(parts)


def object_properties(node: Node | None) -> list[tuple[str, Node]]:
    """(key, value) pairs of an object literal, in source order."""
    node = unwrap(node)
    if node is None or node.type != "object":
        return []
    pairs: list[tuple[str, Node]] = []
    for child in node.named_children:
        if child.type == "pair":
            key = child.child_by_field_name("key")
            value = child.child_by_field_name("value")
            if key is None or value is None:
                continue
            if key.type == "string":
                name = string_value(key)
            elif key.type in ("property_identifier", "number"):
                name = node_text(key)
            else:
                continue
            pairs.append((name, value))
        elif child.type == "shorthand_property_identifier":
            pairs.append((node_text(child), child))
    return pairs


def get_property(node: Node | None, name: str) -> Node | None:
    for key, value in object_properties(node):
        if key == name:
            return value
    return None


def literal_value(node: Node | None) -> Any:
    """JSON-compatible value of a literal expression; None when not literal."""
    node = unwrap(node)
    if node is None:
        return None
    t = node.type
    if t == "string":
        return string_value(node)
    if t == "template_string":
        if any(c.type == "template_substitution" for c in node.named_children):
            return None
        return template_text(node)
    if t == "number":
        text = node_text(node).replace("_", "")
        try:
            return int(text)
        except ValueError:
            try:
                return float(text)
            except ValueError:
                return None
    if t == "true":
        return True
    if t == "false":
        return False
    if t == "null":
        return None
    if t == "unary_expression" and node_text(node).startswith("-"):
        value = literal_value(node.child_by_field_name("argument"))
        return -value if isinstance(value, (int, float)) else None
    if t == "object":
        return {key: literal_value(value) for key, value in object_properties(node)}
    if t == "array":
        return [literal_value(c) for c in node.named_children if c.type != "comment"]
    return None


def template_text(node: Node, substitution: str = "") -> str:
    """Text of a template string with every interpolation replaced."""
    parts = []
    for child in node.named_children:
        if child.type == "string_fragment":
            parts.append(node_text(child))
        elif child.type == "escape_sequence":
            parts.append(_unescape(node_text(child)))
        elif child.type == "template_substitution":
            parts.append(substitution)
    return "".join(parts)


def request_body(node: Node | None) -> Any:
    """Example request body from a ``body``/``data`` expression.

    ``JSON.stringify(<literal>)`` gives the literal; a string holding JSON
    is decoded; an object literal is used directly.
    """
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "call_expression":
        if member_path(node.child_by_field_name("function")) == "JSON.stringify":
            args = call_arguments(node)
            return literal_value(args[0]) if args else None
        return None
    if node.type == "string":
        text = string_value(node)
        try:
            return json.loads(text)
        except ValueError:
            return text
    return literal_value(node)


class _Unresolved(Exception):
    """An env lookup in a concatenation is missing from the project env."""


@dataclass
class _Piece:
    text: str
    resolved: bool


class UrlResolver:
    """Resolve URL-valued expressions in one file.

    Args:
        env: The project's merged client environment.
        constants: File-level string constants (``const API = "/api"``).
    """

    MAX_DEPTH = 8

    def __init__(self, env: dict[str, str], constants: dict[str, str] | None = None) -> None:
        self.env = env
        self.constants = dict(constants or {})

    def resolve(self, node: Node | None, partial: bool = True) -> str | None:
        """Resolved URL text, or None when the expression is not a URL we can read.

        With ``partial=False`` any unresolved piece makes the result None.
        """
        try:
            pieces = self._pieces(unwrap(node), 0)
        except _Unresolved:
            return None
        if not pieces or not any(p.resolved and p.text for p in pieces):
            return None
        if not partial and not all(p.resolved for p in pieces):
            return None
        if len(pieces) > 1 and not pieces[0].resolved and pieces[1].text.startswith("/"):
            pieces = pieces[1:]
        return "".join(p.text for p in pieces)

    def _pieces(self, node: Node | None, depth: int) -> list[_Piece]:
        if node is None or depth > self.MAX_DEPTH:
            return []
        t = node.type
        if t == "string":
            return [_Piece(string_value(node), True)]
        if t == "template_string":
            return self._template(node, depth)
        if t == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is None or node_text(operator) != "+":
                return []
            left = self._operand(node.child_by_field_name("left"), depth)
            right = self._operand(node.child_by_field_name("right"), depth)
            return left + right
        name = env_name(node)
        if name is not None:
            value = self.env.get(name)
            return [_Piece(value, True)] if value is not None else []
        if t == "identifier":
            value = self.constants.get(node_text(node))
            return [_Piece(value, True)] if value is not None else []
        return []

    def _operand(self, node: Node | None, depth: int) -> list[_Piece]:
        node = unwrap(node)
        name = env_name(node)
        if name is not None and name not in self.env:
            raise _Unresolved(name)
        pieces = self._pieces(node, depth + 1)
        return pieces or [_Piece(PATH_PLACEHOLDER, False)]

    def _template(self, node: Node, depth: int) -> list[_Piece]:
        pieces: list[_Piece] = []
        for child in node.named_children:
            if child.type == "string_fragment":
                pieces.append(_Piece(node_text(child), True))
            elif child.type == "escape_sequence":
                pieces.append(_Piece(_unescape(node_text(child)), True))
            elif child.type == "template_substitution":
                inner = [c for c in child.named_children if c.type != "comment"]
                expr = unwrap(inner[0]) if inner else None
                value = self._inline(expr)
                if value is None:
                    pieces.append(_Piece(PATH_PLACEHOLDER, False))
                else:
                    pieces.append(_Piece(value, True))
        return _merge_pieces(pieces)

    def _inline(self, node: Node | None) -> str | None:
        if node is None:
            return None
        name = env_name(node)
        if name is not None:
            return self.env.get(name)
        if node.type == "identifier":
            return self.constants.get(node_text(node))
        return None


def _merge_pieces(pieces: list[_Piece]) -> list[_Piece]:
    merged: list[_Piece] = []
    for piece in pieces:
        if merged and piece.resolved and merged[-1].resolved:
            merged[-1] = _Piece(merged[-1].text + piece.text, True)
        else:
            merged.append(piece)
    return merged


def collect_constants(root: Node, env: dict[str, str]) -> dict[str, str]:
    """Top-level ``const NAME = <string expression>`` bindings of a file.

    Resolution is repeated until no new names appear, so constants built
    from other constants resolve regardless of declaration order.
    """
    declarators = []
    for statement in root.named_children:
        target = statement
        if statement.type == "export_statement":
            target = statement.child_by_field_name("declaration")
        if target is None or target.type not in ("lexical_declaration", "variable_declaration"):
            continue
        for declarator in target.named_children:
            if declarator.type == "variable_declarator":
                declarators.append(declarator)

    constants: dict[str, str] = {}
    for _ in range(UrlResolver.MAX_DEPTH):
        resolver = UrlResolver(env, constants)
        found = 0
        for declarator in declarators:
            name_node = declarator.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            name = node_text(name_node)
            if name in constants:
                continue
            value = unwrap(declarator.child_by_field_name("value"))
            if value is None or value.type not in (
                "string",
                "template_string",
                "binary_expression",
                "member_expression",
                "subscript_expression",
                "identifier",
            ):
                continue
            resolved = resolver.resolve(value, partial=False)
            if resolved is not None:
                constants[name] = resolved
                found += 1
        if not found:
            break
    return constants


@dataclass
class SplitUrl:
    path: str
    query: list[str]
    origin: str | None = None


def split_url(raw: str) -> SplitUrl:
    """Split a resolved URL into origin, normalized path and query keys."""
    raw = raw.strip()
    origin = None
    if raw.startswith(("http://", "https://")):
        parts = urlsplit(raw)
        origin = f"{parts.scheme}://{parts.netloc}"
        path, query = parts.path, parts.query
    else:
        path, _, query = raw.partition("?")
        path = path.split("#", 1)[0]
    keys: list[str] = []
    for pair in query.split("#", 1)[0].split("&"):
        key = pair.split("=", 1)[0].strip()
        if key and key not in keys:
            keys.append(key)
    return SplitUrl(path=normalize_path(path or "/"), query=keys, origin=origin)


def join_url(base: str, path: str) -> str:
    """Join a client base URL and a call path (absolute call URLs win)."""
    if path.startswith(("http://", "https://")) or not base:
        return path
    return base.rstrip("/") + "/" + path.lstrip("/")
