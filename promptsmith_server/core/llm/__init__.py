"""LLM provider abstractions and implementations."""

from .provider import ExecutionResult, LLMProvider, ModelInfo
from .errors import (
    InvalidModel,
    ProviderError,
    ProviderNotConfigured,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
)
from .anthropic import AnthropicProvider
from .google_gemini import GoogleGeminiProvider
from .openai_compatible import OpenAICompatibleProvider
from .registry import (
    MODEL_CATALOG,
    SUPPORTED_PROVIDERS,
    ProviderRegistry,
    get_provider_registry,
    resolve_model,
)

__all__ = [
    "ExecutionResult",
    "LLMProvider",
    "ModelInfo",
    "InvalidModel",
    "ProviderError",
    "ProviderNotConfigured",
    "ProviderRateLimited",
    "ProviderTimeout",
    "ProviderUnavailable",
    "AnthropicProvider",
    "GoogleGeminiProvider",
    "OpenAICompatibleProvider",
    "MODEL_CATALOG",
    "SUPPORTED_PROVIDERS",
    "ProviderRegistry",
    "get_provider_registry",
    "resolve_model",
]
