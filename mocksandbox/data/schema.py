"""Typed schema nodes for mock generation.

JSON-schema dictionaries are parsed once into a closed set of node types.
The generator switches over these types instead of probing dictionary keys,
so every schema shape it understands is listed here.

Keyword precedence when a dictionary carries several of them:
``$ref`` > ``allOf`` > ``oneOf``/``anyOf`` > ``const`` > ``enum`` > ``type``
> inferred type (``properties``/``required`` -> object, ``items`` -> array).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

DEF_KEYWORDS = ("$defs", "defs", "definitions")
REF_PREFIXES = (
    "#/components/schemas/",
    "#/$defs/",
    "#/definitions/",
    "#/defs/",
    "#/",
)

_EMPTY_BY_TYPE: dict[str, Any] = {
    "object": {},
    "array": [],
    "string": "",
    "number": 0,
    "integer": 0,
    "boolean": False,
    "null": None,
}


@dataclass(frozen=True)
class RefNode:
    ref: str
    name: str
    declared_type: str | None = None


@dataclass(frozen=True)
class AllOfNode:
    branches: tuple[SchemaNode, ...]
    declared_type: str | None = None


@dataclass(frozen=True)
class AnyOfNode:
    """Covers both ``oneOf`` and ``anyOf``; exactly one branch is generated."""

    branches: tuple[SchemaNode, ...]
    keyword: str = "anyOf"
    declared_type: str | None = None


@dataclass(frozen=True)
class ConstNode:
    value: Any
    declared_type: str | None = None


@dataclass(frozen=True)
class EnumNode:
    values: tuple[Any, ...]
    declared_type: str | None = None


@dataclass(frozen=True)
class ObjectNode:
    properties: tuple[tuple[str, SchemaNode], ...] = ()
    required: frozenset[str] = frozenset()
    additional: SchemaNode | None = None
    declared_type: str | None = "object"


@dataclass(frozen=True)
class ArrayNode:
    items: SchemaNode | None = None
    prefix_items: tuple[SchemaNode, ...] | None = None
    min_items: int | None = None
    max_items: int | None = None
    declared_type: str | None = "array"


@dataclass(frozen=True)
class StringNode:
    format: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    declared_type: str | None = "string"


@dataclass(frozen=True)
class NumberNode:
    minimum: float | None = None
    maximum: float | None = None
    multiple_of: float | None = None
    declared_type: str | None = "number"


@dataclass(frozen=True)
class IntegerNode:
    minimum: int | None = None
    maximum: int | None = None
    declared_type: str | None = "integer"


@dataclass(frozen=True)
class BooleanNode:
    declared_type: str | None = "boolean"


@dataclass(frozen=True)
class NullNode:
    declared_type: str | None = "null"


SchemaNode = Union[
    RefNode,
    AllOfNode,
    AnyOfNode,
    ConstNode,
    EnumNode,
    ObjectNode,
    ArrayNode,
    StringNode,
    NumberNode,
    IntegerNode,
    BooleanNode,
    NullNode,
]


@dataclass
class SchemaDocument:
    """A parsed root node plus the definitions embedded anywhere in it."""

    root: SchemaNode
    defs: dict[str, Any] = field(default_factory=dict)


def ref_name(ref: str) -> str:
    """Strip the JSON-pointer prefix from a ``$ref`` value."""
    for prefix in REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix) :]
    return ref


def empty_value(node: SchemaNode) -> Any:
    """Minimal value for the node's declared type (None when untyped)."""
    if node.declared_type is None:
        return None
    value = _EMPTY_BY_TYPE.get(node.declared_type)
    # fresh containers so callers can mutate the result
    if isinstance(value, dict):
        return {}
    if isinstance(value, list):
        return []
    return value


def _declared_type(raw: dict[str, Any]) -> str | None:
    t = raw.get("type")
    if isinstance(t, list):
        return t[0] if t else None
    return t if isinstance(t, str) else None


def parse_schema(raw: Any, defs_sink: dict[str, Any] | None = None) -> SchemaNode:
    """Parse a JSON-schema value into a SchemaNode.

    Args:
        raw: A schema dictionary. Boolean and missing schemas parse as an
            untyped node that generates ``None``.
        defs_sink: When given, definitions embedded under ``$defs``, ``defs``
            or ``definitions`` at any level are collected into it.
    """
    if not isinstance(raw, dict):
        return NullNode(declared_type=None)

    if defs_sink is not None:
        for keyword in DEF_KEYWORDS:
            embedded = raw.get(keyword)
            if isinstance(embedded, dict):
                for name, definition in embedded.items():
                    defs_sink.setdefault(name, definition)

    declared = _declared_type(raw)

    def sub(value: Any) -> SchemaNode:
        return parse_schema(value, defs_sink)

    if isinstance(raw.get("$ref"), str):
        return RefNode(ref=raw["$ref"], name=ref_name(raw["$ref"]), declared_type=declared)

    if isinstance(raw.get("allOf"), list):
        return AllOfNode(branches=tuple(sub(s) for s in raw["allOf"]), declared_type=declared)

    for keyword in ("anyOf", "oneOf"):
        branches = raw.get(keyword)
        if isinstance(branches, list) and branches:
            return AnyOfNode(
                branches=tuple(sub(s) for s in branches),
                keyword=keyword,
                declared_type=declared,
            )

    if "const" in raw:
        return ConstNode(value=raw["const"], declared_type=declared)

    if isinstance(raw.get("enum"), list) and raw["enum"]:
        return EnumNode(values=tuple(raw["enum"]), declared_type=declared)

    type_name = declared
    if type_name is None:
        if "properties" in raw or "required" in raw:
            type_name = "object"
        elif "items" in raw:
            type_name = "array"

    if type_name == "object":
        properties = raw.get("properties") or {}
        additional = raw.get("additionalProperties")
        return ObjectNode(
            properties=tuple((name, sub(schema)) for name, schema in properties.items()),
            required=frozenset(raw.get("required") or ()),
            additional=sub(additional) if isinstance(additional, dict) else None,
        )
    if type_name == "array":
        prefix = raw.get("prefixItems")
        items = raw.get("items")
        return ArrayNode(
            items=sub(items) if isinstance(items, dict) else None,
            prefix_items=tuple(sub(s) for s in prefix) if isinstance(prefix, list) else None,
            min_items=raw.get("minItems"),
            max_items=raw.get("maxItems"),
        )
    if type_name == "string":
        return StringNode(
            format=raw.get("format"),
            min_length=raw.get("minLength"),
            max_length=raw.get("maxLength"),
        )
    if type_name == "number":
        return NumberNode(
            minimum=raw.get("minimum"),
            maximum=raw.get("maximum"),
            multiple_of=raw.get("multipleOf"),
        )
    if type_name == "integer":
        return IntegerNode(minimum=raw.get("minimum"), maximum=raw.get("maximum"))
    if type_name == "boolean":
        return BooleanNode()
    if type_name == "null":
        return NullNode()

    return NullNode(declared_type=None)


def parse_document(raw: Any) -> SchemaDocument:
    """Parse a root schema and collect its embedded definitions."""
    defs: dict[str, Any] = {}
    root = parse_schema(raw, defs)
    return SchemaDocument(root=root, defs=defs)
