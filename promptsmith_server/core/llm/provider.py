"""LLM provider protocol and data models."""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class ExecutionResult:
    """Result from executing a prompt against an LLM."""

    content: str
    tokens_input: Optional[int]
    tokens_output: Optional[int]
    tokens_total: Optional[int]
    latency_ms: int
    model: str
    provider: str


@dataclass(frozen=True)
class ModelInfo:
    """Information about an available LLM model."""

    id: str  # "gpt-4o-mini", "mistral-large"
    name: str  # "GPT-4o Mini"
    provider: str  # "openai", "anthropic"
    api_name: str  # identifier sent to the backend, e.g. "mistral-large-latest"
    max_tokens: int  # output token ceiling accepted by the backend


class LLMProvider(Protocol):
    """Protocol for LLM providers.

    Implementations make exactly one backend call per ``execute`` and never
    retry internally. Failures are raised as ``ProviderError`` subclasses.
    """

    name: str
    temperature_range: tuple[float, float]

    async def execute(
        self, prompt: str, model: str, max_tokens: int, temperature: float
    ) -> ExecutionResult:
        """Execute a prompt against the LLM.

        Args:
            prompt: The prompt text to execute
            model: Backend model identifier (already resolved and validated)
            max_tokens: Output token limit, already clamped by the caller
            temperature: Sampling temperature, already clamped by the caller

        Returns:
            ExecutionResult with content and metrics

        Raises:
            ProviderError: If execution fails
        """
        ...

    def get_available_models(self) -> list[ModelInfo]:
        """Get list of available models for this provider.

        Returns:
            List of ModelInfo objects
        """
        ...
