"""Deterministic responses used when the model runner gives nothing usable.

``rules`` returns fixed shapes keyed on method and path. ``schema`` builds a
small JSON schema for the resource the path names and generates a seeded
mock from it, so repeated runs produce the same values.
"""

from __future__ import annotations

from typing import Any, Callable

from mocksandbox.data import GenerationOptions, generate_mock, stable_seed
from mocksandbox.models import GraphQLOperation, RestEndpoint

FallbackFn = Callable[[RestEndpoint], Any]

_ID = {"type": "string", "const": "1"}

RESOURCE_PROPERTIES: dict[str, dict[str, Any]] = {
    "user": {
        "name": {"type": "string", "minLength": 4, "maxLength": 10},
        "email": {"type": "string", "format": "email"},
    },
    "post": {
        "title": {"type": "string", "minLength": 5, "maxLength": 12},
        "content": {"type": "string", "minLength": 8, "maxLength": 12},
        "author": {"type": "string", "minLength": 4, "maxLength": 10},
    },
    "product": {
        "name": {"type": "string", "minLength": 4, "maxLength": 10},
        "price": {"type": "number", "minimum": 1, "maximum": 500},
        "description": {"type": "string", "minLength": 8, "maxLength": 12},
    },
}

GENERIC_PROPERTIES: dict[str, Any] = {
    "name": {"type": "string"},
    "createdAt": {"type": "string", "format": "date-time"},
}


def rule_fallback(endpoint: RestEndpoint) -> Any:
    """Fixed response by method; GET distinguishes collection and by-id paths."""
    method = endpoint.method
    if method == "GET":
        if not endpoint.is_collection:
            return {"id": "1", "message": "Mock response"}
        return [{"id": "1", "message": "Mock response"}]
    if method == "POST":
        return {"id": "1", "message": "Resource created"}
    if method in ("PUT", "PATCH"):
        return {"id": "1", "message": "Resource updated"}
    if method == "DELETE":
        return {"success": True, "message": "Resource deleted"}
    return {"message": "Mock response"}


def graphql_fallback(operation: GraphQLOperation) -> Any:
    return {"data": {}}


def resource_name(path: str) -> str | None:
    """Singular resource name from the last literal path segment."""
    segments = [s for s in path.split("/") if s and not s.startswith(":")]
    if not segments:
        return None
    name = segments[-1].lower()
    if name.endswith("ies"):
        return name[:-3] + "y"
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


def resource_schema(endpoint: RestEndpoint) -> dict[str, Any]:
    """JSON schema for the response an endpoint most likely returns."""
    method = endpoint.method
    if method == "DELETE":
        return {
            "type": "object",
            "required": ["success", "message"],
            "properties": {
                "success": {"const": True},
                "message": {"const": "Resource deleted"},
            },
        }
    if method not in ("GET", "POST", "PUT", "PATCH"):
        return {
            "type": "object",
            "required": ["message"],
            "properties": {"message": {"const": "Mock response"}},
        }

    extra = RESOURCE_PROPERTIES.get(resource_name(endpoint.path) or "", GENERIC_PROPERTIES)
    item = {
        "type": "object",
        "required": ["id", *extra],
        "properties": {"id": _ID, **extra},
    }
    if method == "GET" and endpoint.is_collection:
        return {"type": "array", "items": item, "minItems": 1, "maxItems": 3}
    return item


def schema_fallback(endpoint: RestEndpoint) -> Any:
    options = GenerationOptions(seed=stable_seed(endpoint.method, endpoint.path))
    return generate_mock(resource_schema(endpoint), options)


FALLBACK_STRATEGIES: dict[str, FallbackFn] = {
    "rules": rule_fallback,
    "schema": schema_fallback,
}


def get_fallback(name: str) -> FallbackFn:
    try:
        return FALLBACK_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown fallback strategy: {name}. Valid: {sorted(FALLBACK_STRATEGIES)}"
        ) from None
