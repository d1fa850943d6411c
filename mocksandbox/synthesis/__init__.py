"""Mock response synthesis with deterministic fallback."""

from mocksandbox.synthesis.client import (
    ModelRunnerClient,
    TextGenerator,
    default_base_url,
    parse_json_text,
)
from mocksandbox.synthesis.fallback import (
    FALLBACK_STRATEGIES,
    resource_schema,
    rule_fallback,
    schema_fallback,
)
from mocksandbox.synthesis.orchestrator import synthesize_mock_spec

__all__ = [
    "synthesize_mock_spec",
    "TextGenerator",
    "ModelRunnerClient",
    "default_base_url",
    "parse_json_text",
    "FALLBACK_STRATEGIES",
    "rule_fallback",
    "schema_fallback",
    "resource_schema",
]
