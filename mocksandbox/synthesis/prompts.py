"""Prompt construction for mock synthesis."""

from __future__ import annotations

import json

from mocksandbox.models import GraphQLOperation, RestEndpoint

REST_SYSTEM_PROMPT = (
    "You are an API mock data generator. Generate realistic, happy-path JSON "
    "responses for REST endpoints. Always respond with valid JSON only."
)

GRAPHQL_SYSTEM_PROMPT = (
    "You are a GraphQL mock data generator. Generate realistic GraphQL responses "
    "matching the query's selection set. Always respond with valid JSON in the "
    "format { data: {...} }."
)

# path segment -> (resource label, typical fields)
RESOURCE_HINTS: list[tuple[tuple[str, ...], str, str]] = [
    (("users", "user"), "user", "id, name, email"),
    (("posts", "post"), "post", "id, title, content, author"),
    (("products", "product"), "product", "id, name, price, description"),
]


def resource_hint(path: str) -> str | None:
    segments = {s.lower() for s in path.split("/") if s and not s.startswith(":")}
    for names, label, fields in RESOURCE_HINTS:
        if segments.intersection(names):
            return f"Response should include {label} data ({fields}, etc.)."
    return None


def response_semantics(endpoint: RestEndpoint) -> str | None:
    method = endpoint.method
    if method == "GET":
        return "Return an array of resources." if endpoint.is_collection else "Return a single resource object."
    if method == "POST":
        return "Return the created resource with an id."
    if method in ("PUT", "PATCH"):
        return "Return the updated resource."
    if method == "DELETE":
        return "Return a success confirmation."
    return None


def build_rest_prompt(endpoint: RestEndpoint) -> str:
    lines = [f"Generate a realistic mock response for a {endpoint.method} request to {endpoint.path}."]
    if endpoint.query:
        lines.append(f"Query parameters: {', '.join(endpoint.query)}")
    if endpoint.example_request_body is not None:
        lines.append(f"Request body example: {json.dumps(endpoint.example_request_body)}")
    hint = resource_hint(endpoint.path)
    if hint:
        lines.append(hint)
    semantics = response_semantics(endpoint)
    if semantics:
        lines.append(semantics)
    lines.append("")
    lines.append("Respond with JSON only, no markdown.")
    return "\n".join(lines)


def build_graphql_prompt(operation: GraphQLOperation) -> str:
    lines = [
        f"Generate a realistic mock response for this GraphQL {operation.operation_type}:",
        "",
        f"Operation name: {operation.operation_name}",
        "Query:",
        operation.document,
        "",
    ]
    if operation.example_variables:
        lines.append(f"Variables: {json.dumps(operation.example_variables)}")
        lines.append("")
    lines.append(
        "Generate a response that matches the query's selection set. "
        'Respond with JSON in the format { "data": {...} }, no markdown.'
    )
    return "\n".join(lines)
