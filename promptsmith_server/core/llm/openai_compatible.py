"""OpenAI-compatible chat completions provider (OpenAI, Groq, Mistral)."""

import logging
import re
import time
from typing import Any

import openai
from openai import AsyncOpenAI

from .errors import InvalidModel, ProviderRateLimited, ProviderTimeout, ProviderUnavailable
from .provider import ExecutionResult, ModelInfo

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
MISTRAL_BASE_URL = "https://api.mistral.ai/v1"

OPENAI_MODELS = [
    ModelInfo("gpt-5-2025-08-07", "GPT-5", "openai", "gpt-5-2025-08-07", 4096),
    ModelInfo("gpt-5-mini-2025-08-07", "GPT-5 Mini", "openai", "gpt-5-mini-2025-08-07", 4096),
    ModelInfo("gpt-5-nano-2025-08-07", "GPT-5 Nano", "openai", "gpt-5-nano-2025-08-07", 4096),
    ModelInfo("gpt-4.1-2025-04-14", "GPT-4.1", "openai", "gpt-4.1-2025-04-14", 4096),
    ModelInfo("gpt-4o", "GPT-4o", "openai", "gpt-4o", 4096),
    ModelInfo("gpt-4o-mini", "GPT-4o Mini", "openai", "gpt-4o-mini", 4096),
]

GROQ_MODELS = [
    ModelInfo("llama-3.1-8b", "Llama 3.1 8B", "groq", "llama-3.1-8b-instant", 2048),
]

MISTRAL_MODELS = [
    ModelInfo("mistral-large", "Mistral Large", "mistral", "mistral-large-latest", 2048),
    ModelInfo("mistral-medium", "Mistral Medium", "mistral", "mistral-medium-latest", 2048),
]


class OpenAICompatibleProvider:
    """Provider for any backend speaking the OpenAI chat completions API."""

    temperature_range = (0.0, 1.0)

    # Newer OpenAI families take max_completion_tokens and ignore temperature
    NEWER_MODEL_PATTERN = re.compile(r"^(gpt-5|gpt-4\.1|o3|o4)", re.IGNORECASE)

    def __init__(
        self,
        name: str,
        api_key: str,
        models: list[ModelInfo],
        base_url: str | None = None,
    ):
        """Initialize provider.

        Args:
            name: Provider name used in results and errors ("openai", "groq", ...)
            api_key: API key for the backend
            models: Models exposed through this provider
            base_url: Override for OpenAI-compatible backends (None = api.openai.com)
        """
        self.name = name
        self.models = models
        # The adapter contract forbids internal retries
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    async def execute(
        self, prompt: str, model: str, max_tokens: int, temperature: float
    ) -> ExecutionResult:
        """Execute a prompt as a single user message.

        Raises:
            ProviderError: If execution fails
        """
        payload: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self.NEWER_MODEL_PATTERN.match(model):
            payload["max_completion_tokens"] = max_tokens
        else:
            payload["max_tokens"] = max_tokens
            payload["temperature"] = temperature

        logger.debug(f"{self.name} call: model={model} max_tokens={max_tokens}")
        start_time = time.time()

        try:
            response = await self.client.chat.completions.create(**payload)
        except openai.APITimeoutError as e:
            raise ProviderTimeout(f"{self.name} request timed out", self.name, model) from e
        except openai.RateLimitError as e:
            raise ProviderRateLimited(f"{self.name} rate limit hit: {e}", self.name, model) from e
        except openai.NotFoundError as e:
            raise InvalidModel(f"{self.name} does not serve model {model}", self.name, model) from e
        except openai.APIError as e:
            raise ProviderUnavailable(f"{self.name} execution failed: {e}", self.name, model) from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise ProviderUnavailable(f"{self.name} returned no choices", self.name, model)
        content = response.choices[0].message.content or ""

        usage = response.usage
        return ExecutionResult(
            content=content,
            tokens_input=usage.prompt_tokens if usage else None,
            tokens_output=usage.completion_tokens if usage else None,
            tokens_total=usage.total_tokens if usage else None,
            latency_ms=latency_ms,
            model=model,
            provider=self.name,
        )

    def get_available_models(self) -> list[ModelInfo]:
        """Get list of available models for this provider."""
        return list(self.models)


def create_openai_provider(api_key: str) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider("openai", api_key, OPENAI_MODELS)


def create_groq_provider(api_key: str) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider("groq", api_key, GROQ_MODELS, base_url=GROQ_BASE_URL)


def create_mistral_provider(api_key: str) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider("mistral", api_key, MISTRAL_MODELS, base_url=MISTRAL_BASE_URL)
