"""Schema-driven mock value generation.

Generates a plausible JSON value for a JSON schema. Generation is seeded:
the same schema and seed always produce the same value, because a single
random stream is threaded through the whole traversal (object properties in
declaration order, array items by index).

Example:
    >>> schema = {
    ...     "type": "object",
    ...     "required": ["id", "email"],
    ...     "properties": {
    ...         "id": {"type": "integer"},
    ...         "email": {"type": "string", "format": "email"},
    ...     },
    ... }
    >>> generate_mock(schema, GenerationOptions(seed=7)) == generate_mock(
    ...     schema, GenerationOptions(seed=7)
    ... )
    True
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel

from mocksandbox.data.schema import (
    AllOfNode,
    AnyOfNode,
    ArrayNode,
    BooleanNode,
    ConstNode,
    EnumNode,
    IntegerNode,
    NullNode,
    NumberNode,
    ObjectNode,
    RefNode,
    SchemaNode,
    StringNode,
    empty_value,
    parse_document,
    parse_schema,
)
from mocksandbox.data.seeded import SeededRandom

logger = logging.getLogger(__name__)

# Window for generated date/date-time values, fixed so output does not
# depend on the wall clock.
_DATE_START = datetime(2020, 1, 1, tzinfo=timezone.utc)
_DATE_END = datetime(2025, 12, 31, tzinfo=timezone.utc)

# Hops followed when a $ref chain hits the depth guard.
_MAX_REF_HOPS = 16


@dataclass
class GenerationOptions:
    """Options for generate_mock.

    Attributes:
        seed: Seed for the random stream. None gives non-reproducible output.
        max_depth: Nesting depth after which minimal empty values are returned.
        optional_prop_probability: Chance that an optional property is emitted.
        min_items: Array length lower bound when the schema has no minItems.
        max_items: Array length upper bound when the schema has no maxItems.
        defs: Named schemas that ``$ref`` values resolve against.
        overrides: Structural path ("/address/city", "/items/0") to a literal
            value or a zero-argument callable producing one.
    """

    seed: int | str | None = None
    max_depth: int = 4
    optional_prop_probability: float = 0.8
    min_items: int = 1
    max_items: int = 3
    defs: dict[str, Any] = field(default_factory=dict)
    overrides: dict[str, Any | Callable[[], Any]] = field(default_factory=dict)


class _Generator:
    """One generation run: options, resolved defs and the shared stream."""

    def __init__(self, options: GenerationOptions, embedded_defs: dict[str, Any]) -> None:
        self.options = options
        self.rng = SeededRandom(options.seed)
        # caller-supplied defs win over definitions embedded in the schema
        self._raw_defs = {**embedded_defs, **options.defs}
        self._parsed: dict[str, SchemaNode] = {}

    def resolve(self, name: str) -> SchemaNode | None:
        if name in self._parsed:
            return self._parsed[name]
        raw = self._raw_defs.get(name)
        if raw is None:
            return None
        sink: dict[str, Any] = {}
        node = parse_schema(raw, sink)
        for key, value in sink.items():
            self._raw_defs.setdefault(key, value)
        self._parsed[name] = node
        return node

    def cutoff_value(self, node: SchemaNode) -> Any:
        hops = 0
        while isinstance(node, RefNode) and node.declared_type is None:
            target = self.resolve(node.name)
            hops += 1
            if target is None or hops > _MAX_REF_HOPS:
                return None
            node = target
        return empty_value(node)

    def generate(self, node: SchemaNode, depth: int, path: str) -> Any:
        overrides = self.options.overrides
        if path in overrides:
            value = overrides[path]
            return value() if callable(value) else value

        if depth > self.options.max_depth:
            return self.cutoff_value(node)

        if isinstance(node, RefNode):
            target = self.resolve(node.name)
            if target is None:
                logger.debug("Unresolved $ref %s at %r", node.ref, path)
                return None
            return self.generate(target, depth + 1, path)

        if isinstance(node, AllOfNode):
            merged: Any = {}
            for branch in node.branches:
                part = self.generate(branch, depth + 1, path)
                if isinstance(merged, dict) and isinstance(part, dict):
                    merged = {**merged, **part}
                elif part is not None:
                    merged = part
            return merged

        if isinstance(node, AnyOfNode):
            idx = self.rng.branch_index(len(node.branches))
            return self.generate(node.branches[idx], depth + 1, path)

        if isinstance(node, ConstNode):
            return node.value

        if isinstance(node, EnumNode):
            return node.values[self.rng.index(len(node.values))]

        if isinstance(node, ObjectNode):
            return self._object(node, depth, path)

        if isinstance(node, ArrayNode):
            return self._array(node, depth, path)

        if isinstance(node, StringNode):
            return self._string(node)

        if isinstance(node, NumberNode):
            return self._number(node)

        if isinstance(node, IntegerNode):
            low = node.minimum if node.minimum is not None else 0
            high = node.maximum if node.maximum is not None else 100
            return int(math.floor(low + self.rng.next_float() * (high - low + 1)))

        if isinstance(node, BooleanNode):
            return self.rng.next_float() < 0.5

        if isinstance(node, NullNode):
            return None

        raise TypeError(f"Unsupported schema node: {type(node).__name__}")

    def _object(self, node: ObjectNode, depth: int, path: str) -> dict[str, Any]:
        out: dict[str, Any] = {}
        probability = self.options.optional_prop_probability
        for key, prop in node.properties:
            if key in node.required or self.rng.next_float() < probability:
                out[key] = self.generate(prop, depth + 1, f"{path}/{key}")
        if node.additional is not None:
            for i in range(int(self.rng.next_float() * 3)):
                key = f"extra_{i}"
                out[key] = self.generate(node.additional, depth + 1, f"{path}/{key}")
        return out

    def _array(self, node: ArrayNode, depth: int, path: str) -> list[Any]:
        if node.prefix_items is not None:
            return [
                self.generate(item, depth + 1, f"{path}/{i}")
                for i, item in enumerate(node.prefix_items)
            ]
        low = node.min_items if node.min_items is not None else self.options.min_items
        high = node.max_items if node.max_items is not None else self.options.max_items
        high = max(low, high)
        length = low + int(math.floor(self.rng.next_float() * (high - low + 1)))
        item = node.items if node.items is not None else NullNode(declared_type=None)
        return [self.generate(item, depth + 1, f"{path}/{i}") for i in range(length)]

    def _string(self, node: StringNode) -> str:
        fmt = node.format
        if fmt == "email":
            return self.rng.faker().email()
        if fmt in ("uri", "url"):
            return self.rng.faker().url()
        if fmt == "uuid":
            return str(self.rng.faker().uuid4())
        if fmt == "date-time":
            return self._datetime().isoformat()
        if fmt == "date":
            return self._datetime().date().isoformat()
        if fmt == "ipv4":
            return self.rng.faker().ipv4()
        if fmt == "hostname":
            return self.rng.faker().hostname()

        min_len = node.min_length if node.min_length is not None else 3
        max_len = node.max_length if node.max_length is not None else 12
        length = max(min_len, min(max_len, int(math.floor(3 + self.rng.next_float() * 9))))
        return self.rng.alpha(length)

    def _datetime(self) -> datetime:
        return self.rng.faker().date_time_between(
            start_date=_DATE_START, end_date=_DATE_END, tzinfo=timezone.utc
        )

    def _number(self, node: NumberNode) -> float:
        low = node.minimum if node.minimum is not None else 0
        high = node.maximum if node.maximum is not None else 1000
        step = node.multiple_of or 0.01
        value = low + self.rng.next_float() * (high - low)
        snapped = round(value / step) * step
        return round(snapped, _decimal_places(step))


def _decimal_places(step: float) -> int:
    text = repr(float(step))
    if "e-" in text:
        return int(text.split("e-")[1]) + 1
    _, _, frac = text.partition(".")
    return 0 if frac == "0" else len(frac)


def generate_mock(
    schema: dict[str, Any] | SchemaNode,
    options: GenerationOptions | None = None,
    depth: int = 0,
    path: str = "",
) -> Any:
    """Generate a mock value for a JSON schema.

    Args:
        schema: A JSON-schema dictionary or an already parsed SchemaNode.
        options: Generation options; defaults apply when omitted.
        depth: Starting depth, compared against ``options.max_depth``.
        path: Structural path of ``schema`` within the overall value, used to
            look up overrides.

    Returns:
        A JSON-compatible value. Unresolvable ``$ref`` targets become None.
    """
    options = options or GenerationOptions()
    if isinstance(schema, dict):
        document = parse_document(schema)
        root, embedded = document.root, document.defs
    else:
        root, embedded = schema, {}
    return _Generator(options, embedded).generate(root, depth, path)


def mock_from_openapi(
    components: dict[str, Any],
    name: str,
    options: GenerationOptions | None = None,
) -> Any:
    """Generate a mock for ``components.schemas[name]`` of an OpenAPI document."""
    options = options or GenerationOptions()
    schemas = components.get("schemas") or {}
    options = replace(options, defs={**schemas, **options.defs})
    return generate_mock({"$ref": f"#/components/schemas/{name}"}, options)


def mock_from_model(model: type[BaseModel], options: GenerationOptions | None = None) -> Any:
    """Generate a mock for a pydantic model class from its JSON schema."""
    options = options or GenerationOptions()
    schema = model.model_json_schema()
    return generate_mock(schema, options)
