"""Seeded, schema-driven mock data generation."""

from mocksandbox.data.generators import (
    GenerationOptions,
    generate_mock,
    mock_from_model,
    mock_from_openapi,
)
from mocksandbox.data.schema import SchemaNode, parse_document, parse_schema
from mocksandbox.data.seeded import SeededRandom, stable_seed

__all__ = [
    "GenerationOptions",
    "generate_mock",
    "mock_from_openapi",
    "mock_from_model",
    "SchemaNode",
    "parse_schema",
    "parse_document",
    "SeededRandom",
    "stable_seed",
]
