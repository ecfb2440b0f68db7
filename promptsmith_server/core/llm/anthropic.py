"""Anthropic Messages API provider implementation."""

import logging
import time
from typing import Any

import httpx

from .errors import InvalidModel, ProviderRateLimited, ProviderTimeout, ProviderUnavailable
from .provider import ExecutionResult, ModelInfo

logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

ANTHROPIC_MODELS = [
    ModelInfo("claude-opus-4-1-20250805", "Claude Opus 4.1", "anthropic", "claude-opus-4-1-20250805", 4096),
    ModelInfo("claude-sonnet-4-20250514", "Claude Sonnet 4", "anthropic", "claude-sonnet-4-20250514", 4096),
    ModelInfo("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", "anthropic", "claude-3-5-haiku-20241022", 4096),
]


class AnthropicProvider:
    """Provider for Anthropic models over plain HTTPS."""

    name = "anthropic"
    temperature_range = (0.0, 1.0)

    def __init__(
        self,
        api_key: str,
        url: str = ANTHROPIC_MESSAGES_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            url: Messages endpoint
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.url = url
        self._transport = transport

    async def execute(
        self, prompt: str, model: str, max_tokens: int, temperature: float
    ) -> ExecutionResult:
        """Execute a prompt against the Messages API.

        Raises:
            ProviderError: If execution fails
        """
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }

        logger.debug(f"anthropic call: model={model} max_tokens={max_tokens}")
        start_time = time.time()

        try:
            # Timeout is enforced by the registry
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
                response = await client.post(self.url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise ProviderTimeout("anthropic request timed out", self.name, model) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"anthropic request failed: {e}", self.name, model) from e

        if response.status_code == 429:
            raise ProviderRateLimited("anthropic rate limit hit", self.name, model)
        if response.status_code == 404:
            raise InvalidModel(f"anthropic does not serve model {model}", self.name, model)
        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"anthropic API call failed: {response.status_code} {response.text}",
                self.name,
                model,
            )

        latency_ms = int((time.time() - start_time) * 1000)

        try:
            data = response.json()
            blocks = [b.get("text", "") for b in data.get("content") or [] if b.get("type") == "text"]
            usage = data.get("usage") or {}
        except (ValueError, AttributeError, TypeError) as e:
            raise ProviderUnavailable(f"anthropic returned a malformed response: {e}", self.name, model) from e

        if not blocks:
            raise ProviderUnavailable("anthropic returned no text content", self.name, model)

        tokens_input = usage.get("input_tokens")
        tokens_output = usage.get("output_tokens")
        tokens_total = None
        if tokens_input is not None and tokens_output is not None:
            tokens_total = tokens_input + tokens_output

        return ExecutionResult(
            content="".join(blocks),
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            tokens_total=tokens_total,
            latency_ms=latency_ms,
            model=model,
            provider=self.name,
        )

    def get_available_models(self) -> list[ModelInfo]:
        """Get list of available models for Anthropic."""
        return list(ANTHROPIC_MODELS)
