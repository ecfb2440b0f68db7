"""Google Gemini provider implementation."""

import logging
import time

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .errors import InvalidModel, ProviderRateLimited, ProviderTimeout, ProviderUnavailable
from .provider import ExecutionResult, ModelInfo

logger = logging.getLogger(__name__)

GEMINI_MODELS = [
    ModelInfo("gemini-2.0-flash-lite", "Gemini 2.0 Flash Lite", "google", "gemini-2.0-flash-lite", 4096),
    ModelInfo("gemini-2.0-flash", "Gemini 2.0 Flash", "google", "gemini-2.0-flash", 4096),
    ModelInfo("gemini-2.5-flash-lite", "Gemini 2.5 Flash Lite", "google", "gemini-2.5-flash-lite", 4096),
    ModelInfo("gemini-2.5-flash", "Gemini 2.5 Flash", "google", "gemini-2.5-flash", 4096),
    ModelInfo("gemini-2.5-pro", "Gemini 2.5 Pro", "google", "gemini-2.5-pro", 8192),
]


class GoogleGeminiProvider:
    """Provider for Google Gemini."""

    name = "google"
    temperature_range = (0.0, 2.0)

    def __init__(self, api_key: str):
        """Initialize Google Gemini provider.

        Args:
            api_key: Google Gemini API key
        """
        self.api_key = api_key
        genai.configure(api_key=api_key)

    async def execute(
        self, prompt: str, model: str, max_tokens: int, temperature: float
    ) -> ExecutionResult:
        """Execute a prompt against Google Gemini.

        Raises:
            ProviderError: If execution fails
        """
        logger.debug(f"google call: model={model} max_tokens={max_tokens}")
        start_time = time.time()

        try:
            gemini_model = genai.GenerativeModel(model)
            response = await gemini_model.generate_content_async(
                prompt,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": max_tokens,
                },
            )
        except google_exceptions.ResourceExhausted as e:
            raise ProviderRateLimited(f"google rate limit hit: {e}", self.name, model) from e
        except google_exceptions.DeadlineExceeded as e:
            raise ProviderTimeout("google request timed out", self.name, model) from e
        except google_exceptions.NotFound as e:
            raise InvalidModel(f"google does not serve model {model}", self.name, model) from e
        except (genai.types.BlockedPromptException, genai.types.StopCandidateException) as e:
            raise ProviderUnavailable(f"google blocked the request: {e}", self.name, model) from e
        except google_exceptions.GoogleAPIError as e:
            raise ProviderUnavailable(f"Google Gemini execution failed: {e}", self.name, model) from e

        latency_ms = int((time.time() - start_time) * 1000)

        try:
            # .text raises ValueError when the candidate has no parts (e.g. safety block)
            content = response.text
        except ValueError as e:
            raise ProviderUnavailable(f"google returned no content parts: {e}", self.name, model) from e

        usage = response.usage_metadata
        return ExecutionResult(
            content=content,
            tokens_input=usage.prompt_token_count if usage else None,
            tokens_output=usage.candidates_token_count if usage else None,
            tokens_total=usage.total_token_count if usage else None,
            latency_ms=latency_ms,
            model=model,
            provider=self.name,
        )

    def get_available_models(self) -> list[ModelInfo]:
        """Get list of available models for Google Gemini."""
        return list(GEMINI_MODELS)
