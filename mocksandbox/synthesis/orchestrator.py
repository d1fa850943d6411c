"""Turns a DiscoveryResult into a MockSpec, one endpoint at a time."""

from __future__ import annotations

import logging
from typing import Any

from mocksandbox.config import SandboxSettings
from mocksandbox.errors import SynthesisError
from mocksandbox.events import EventChannel, EventType, emit
from mocksandbox.models import (
    DiscoveryResult,
    GraphQLOperation,
    MockGraphQLEntry,
    MockRestEntry,
    MockSpec,
    MockSpecMeta,
    RestEndpoint,
)
from mocksandbox.synthesis.client import ModelRunnerClient, TextGenerator, parse_json_text
from mocksandbox.synthesis.fallback import FallbackFn, get_fallback, graphql_fallback
from mocksandbox.synthesis.prompts import (
    GRAPHQL_SYSTEM_PROMPT,
    REST_SYSTEM_PROMPT,
    build_graphql_prompt,
    build_rest_prompt,
)

logger = logging.getLogger(__name__)


class _Synthesizer:
    def __init__(
        self,
        generator: TextGenerator,
        fallback: FallbackFn,
        events: EventChannel | None,
        total: int,
    ) -> None:
        self.generator = generator
        self.fallback = fallback
        self.events = events
        self.total = total
        self.position = 0
        self.fallback_count = 0

    def _attempt(self, system_prompt: str, user_prompt: str, label: str) -> tuple[Any, str | None]:
        try:
            return parse_json_text(self.generator.synthesize(system_prompt, user_prompt)), None
        except SynthesisError as e:
            logger.warning("Falling back for %s: %s", label, e)
            return None, str(e)

    def rest(self, endpoint: RestEndpoint) -> MockRestEntry:
        self.position += 1
        label = f"{endpoint.method} {endpoint.path}"
        payload = {
            "kind": "rest",
            "method": endpoint.method,
            "path": endpoint.path,
            "index": self.position,
            "total": self.total,
        }
        emit(self.events, EventType.SYNTHESIS_REQUEST, payload)

        response, error = self._attempt(REST_SYSTEM_PROMPT, build_rest_prompt(endpoint), label)
        if error is not None:
            response = self.fallback(endpoint)
            self.fallback_count += 1

        emit(self.events, EventType.SYNTHESIS_RESPONSE, {**payload, "fallback": error is not None, "error": error})
        return MockRestEntry(**endpoint.model_dump(), status=200, example_response=response)

    def graphql(self, operation: GraphQLOperation) -> MockGraphQLEntry:
        self.position += 1
        label = f"GraphQL {operation.operation_type} {operation.operation_name}"
        payload = {
            "kind": "graphql",
            "operation_type": operation.operation_type,
            "operation_name": operation.operation_name,
            "index": self.position,
            "total": self.total,
        }
        emit(self.events, EventType.SYNTHESIS_REQUEST, payload)

        response, error = self._attempt(GRAPHQL_SYSTEM_PROMPT, build_graphql_prompt(operation), label)
        if error is not None:
            response = graphql_fallback(operation)
            self.fallback_count += 1

        emit(self.events, EventType.SYNTHESIS_RESPONSE, {**payload, "fallback": error is not None, "error": error})
        return MockGraphQLEntry(
            endpoint=operation.endpoint,
            operation_type=operation.operation_type,
            operation_name=operation.operation_name,
            example_variables=operation.example_variables,
            example_response=response,
        )


def synthesize_mock_spec(
    discovery: DiscoveryResult,
    generator: TextGenerator | None = None,
    settings: SandboxSettings | None = None,
    events: EventChannel | None = None,
) -> MockSpec:
    """Produce one mock entry per discovered endpoint and operation.

    Endpoints are processed sequentially in discovery order. A generator
    failure (unreachable runner, unusable output) never aborts synthesis:
    the configured fallback supplies the response instead.

    Args:
        discovery: Result of discovery.
        generator: Text-generation backend; a ModelRunnerClient built from
            ``settings`` when omitted.
        settings: Model, runner URL and fallback strategy.
        events: Optional run channel; receives ``synthesis-request`` and
            ``synthesis-response`` around every attempt.
    """
    settings = settings or SandboxSettings()
    fallback = get_fallback(settings.fallback_strategy)

    owned: ModelRunnerClient | None = None
    if generator is None:
        owned = ModelRunnerClient(
            base_url=settings.model_runner_url,
            model=settings.model,
            temperature=settings.temperature,
            timeout=settings.request_timeout,
        )
        generator = owned
    model_id = getattr(generator, "model", None) or settings.model

    synthesizer = _Synthesizer(generator, fallback, events, discovery.total)
    logger.info("Synthesizing %d mocks with %s", discovery.total, model_id)
    try:
        rest = [synthesizer.rest(endpoint) for endpoint in discovery.rest]
        graphql = [synthesizer.graphql(operation) for operation in discovery.graphql]
    finally:
        if owned is not None:
            owned.close()

    spec = MockSpec(
        rest=rest,
        graphql=graphql,
        meta=MockSpecMeta(
            base_urls=list(discovery.base_urls),
            model_id=model_id,
            source_count=discovery.total,
            fallback_count=synthesizer.fallback_count,
        ),
    )
    logger.info(
        "Synthesis complete: %d REST, %d GraphQL, %d fallbacks",
        len(spec.rest),
        len(spec.graphql),
        synthesizer.fallback_count,
    )
    return spec
