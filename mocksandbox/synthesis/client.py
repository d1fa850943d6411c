"""Text-generation backends for mock synthesis.

ModelRunnerClient talks to a local model runner that exposes an
OpenAI-compatible chat-completions API.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Protocol, runtime_checkable

import httpx

from mocksandbox.errors import SynthesisResponseError, SynthesisUnreachableError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "ai/smollm2"
DEFAULT_TEMPERATURE = 0.2
DEFAULT_TIMEOUT = 60.0
LOCAL_BASE_URL = "http://localhost:12434"
CONTAINER_BASE_URL = "http://model-runner.docker.internal"
COMPLETIONS_PATH = "/engines/v1/chat/completions"

_FENCE = re.compile(r"```(?:json)?[ \t]*\n?")


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that turns a system and a user prompt into text."""

    def synthesize(self, system_prompt: str, user_prompt: str) -> str: ...


def parse_json_text(text: str) -> Any:
    """Parse model output as JSON, stripping markdown fences on a second try.

    Raises:
        SynthesisResponseError: If the text is not JSON either way.
    """
    try:
        return json.loads(text)
    except ValueError:
        pass
    stripped = _FENCE.sub("", text).strip()
    try:
        return json.loads(stripped)
    except ValueError as e:
        raise SynthesisResponseError(
            "Model output is not valid JSON",
            cause=e,
            output=text[:200],
        ) from e


def default_base_url() -> str:
    """Base URL of the model runner as seen from this process."""
    if os.environ.get("DOCKER") or os.environ.get("KUBERNETES_SERVICE_HOST"):
        return CONTAINER_BASE_URL
    return LOCAL_BASE_URL


class ModelRunnerClient:
    """Chat-completions client for a local model runner.

    Args:
        base_url: Runner base URL; detected from the environment when omitted.
        model: Model identifier sent with every request.
        temperature: Sampling temperature.
        timeout: Request timeout in seconds.

    Example:
        >>> with ModelRunnerClient() as client:
        ...     text = client.synthesize("Reply with JSON.", "{}")
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = (base_url or default_base_url()).rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> ModelRunnerClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def synthesize(self, system_prompt: str, user_prompt: str) -> str:
        """Send one chat completion constrained to JSON output.

        Raises:
            SynthesisUnreachableError: If the runner cannot be reached.
            SynthesisResponseError: On HTTP errors or a response without content.
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }
        try:
            response = self.client.post(COMPLETIONS_PATH, json=payload)
            response.raise_for_status()
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise SynthesisUnreachableError(
                f"Cannot connect to model runner at {self.base_url}",
                cause=e,
                base_url=self.base_url,
            ) from e
        except httpx.HTTPStatusError as e:
            raise SynthesisResponseError(
                f"Model runner returned HTTP {e.response.status_code}",
                cause=e,
                base_url=self.base_url,
            ) from e
        except httpx.RequestError as e:
            raise SynthesisResponseError(
                f"Model runner request failed: {e}",
                cause=e,
                base_url=self.base_url,
            ) from e

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise SynthesisResponseError("Malformed chat completion response", cause=e) from e
        if not content:
            raise SynthesisResponseError("No content in model runner response")
        return content
