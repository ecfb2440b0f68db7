"""Provider registry and the uniform ``invoke`` contract over all backends."""

import asyncio
import logging
from typing import Optional

from ...config import Settings, get_settings
from .anthropic import ANTHROPIC_MODELS, AnthropicProvider
from .errors import InvalidModel, ProviderNotConfigured, ProviderTimeout, ProviderUnavailable
from .google_gemini import GEMINI_MODELS, GoogleGeminiProvider
from .openai_compatible import (
    GROQ_MODELS,
    MISTRAL_MODELS,
    OPENAI_MODELS,
    create_groq_provider,
    create_mistral_provider,
    create_openai_provider,
)
from .provider import ExecutionResult, LLMProvider, ModelInfo

logger = logging.getLogger(__name__)

# Static catalog: provider name -> model id -> ModelInfo
MODEL_CATALOG: dict[str, dict[str, ModelInfo]] = {
    "openai": {m.id: m for m in OPENAI_MODELS},
    "anthropic": {m.id: m for m in ANTHROPIC_MODELS},
    "google": {m.id: m for m in GEMINI_MODELS},
    "groq": {m.id: m for m in GROQ_MODELS},
    "mistral": {m.id: m for m in MISTRAL_MODELS},
}

SUPPORTED_PROVIDERS = tuple(MODEL_CATALOG)

# Groq exposes a single model; any other requested name falls back to it
GROQ_FALLBACK_MODEL = "llama-3.1-8b"


def resolve_model(provider_name: str, model: str) -> ModelInfo:
    """Look up a model in the static catalog.

    Raises:
        ProviderUnavailable: If the provider is not supported at all
        InvalidModel: If the model does not exist under the provider
    """
    models = MODEL_CATALOG.get(provider_name)
    if models is None:
        raise ProviderUnavailable(
            f"Unsupported provider '{provider_name}'. "
            f"Supported providers: {list(SUPPORTED_PROVIDERS)}",
            provider_name,
            model,
        )

    model_info = models.get(model)
    if model_info is None and provider_name == "groq":
        model_info = models[GROQ_FALLBACK_MODEL]
    if model_info is None:
        raise InvalidModel(
            f"Model '{model}' is not available for provider '{provider_name}'",
            provider_name,
            model,
        )
    return model_info


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


class ProviderRegistry:
    """Registry for configured LLM providers.

    ``invoke`` is the single entry point the optimizer uses: it validates the
    provider/model pair, clamps sampling parameters to what the backend
    accepts and enforces the per-call timeout. It never retries.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        providers: Optional[dict[str, LLMProvider]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        """Initialize provider registry.

        Args:
            settings: Settings to read credentials from (defaults to global settings)
            providers: Pre-built providers; skips credential-based initialization
            timeout_seconds: Per-call timeout (defaults to settings.provider_timeout_seconds)
        """
        self._settings = settings or get_settings()
        self._cached_providers: dict[str, LLMProvider] = dict(providers or {})
        self._initialized = providers is not None
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else self._settings.provider_timeout_seconds
        )

    def _initialize_providers(self) -> None:
        """Initialize all configured providers (lazy initialization)."""
        if self._initialized:
            return
        self._initialized = True

        if self._settings.openai_api_key:
            self._cached_providers["openai"] = create_openai_provider(self._settings.openai_api_key)

        if self._settings.anthropic_api_key:
            self._cached_providers["anthropic"] = AnthropicProvider(api_key=self._settings.anthropic_api_key)

        if self._settings.google_api_key:
            self._cached_providers["google"] = GoogleGeminiProvider(api_key=self._settings.google_api_key)

        if self._settings.groq_api_key:
            self._cached_providers["groq"] = create_groq_provider(self._settings.groq_api_key)

        if self._settings.mistral_api_key:
            self._cached_providers["mistral"] = create_mistral_provider(self._settings.mistral_api_key)

    def configured_providers(self) -> list[str]:
        """Names of providers that have credentials."""
        self._initialize_providers()
        return list(self._cached_providers)

    def get_provider_by_name(self, provider_name: str) -> LLMProvider:
        """Get specific LLM provider by name.

        Raises:
            ProviderNotConfigured: If provider is not configured
        """
        self._initialize_providers()

        if provider_name not in self._cached_providers:
            raise ProviderNotConfigured(
                f"Provider '{provider_name}' is not configured. "
                f"Available providers: {list(self._cached_providers.keys())}",
                provider_name,
            )

        return self._cached_providers[provider_name]

    def get_catalog(self) -> dict[str, list[ModelInfo]]:
        """Get the static model catalog for every supported provider."""
        return {name: list(models.values()) for name, models in MODEL_CATALOG.items()}

    async def invoke(
        self,
        provider_name: str,
        model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> ExecutionResult:
        """Call a model once with clamped sampling parameters.

        Unknown models and missing credentials fail before any network call.

        Raises:
            ProviderError: InvalidModel, ProviderUnavailable, ProviderRateLimited
                or ProviderTimeout
        """
        model_info = resolve_model(provider_name, model)
        provider = self.get_provider_by_name(provider_name)

        low, high = provider.temperature_range
        clamped_temperature = clamp(temperature, low, high)
        clamped_tokens = int(clamp(max_tokens, 1, model_info.max_tokens))

        try:
            return await asyncio.wait_for(
                provider.execute(
                    prompt,
                    model_info.api_name,
                    max_tokens=clamped_tokens,
                    temperature=clamped_temperature,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(
                f"{provider_name} did not respond within {self.timeout_seconds}s",
                provider_name,
                model,
            ) from e


# Global registry instance
_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    """Get global provider registry instance."""
    global _registry

    if _registry is None:
        _registry = ProviderRegistry()

    return _registry
