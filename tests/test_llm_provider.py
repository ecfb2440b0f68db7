"""Tests for LLM provider module."""

import asyncio
import json

import google.generativeai as genai
import httpx
import openai
import pytest
from google.api_core import exceptions as google_exceptions
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

from promptsmith_server.config import Settings
from promptsmith_server.core.llm import (
    AnthropicProvider,
    ExecutionResult,
    GoogleGeminiProvider,
    InvalidModel,
    ProviderNotConfigured,
    ProviderRateLimited,
    ProviderRegistry,
    ProviderTimeout,
    ProviderUnavailable,
    resolve_model,
)
from promptsmith_server.core.llm.openai_compatible import (
    GROQ_BASE_URL,
    create_groq_provider,
    create_openai_provider,
)

from tests.mocks import MockLLMProvider

FAKE_REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def chat_response(content="Hello Alice!", usage=True):
    response = MagicMock()
    response.usage = MagicMock(prompt_tokens=45, completion_tokens=120, total_tokens=165) if usage else None
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


class TestOpenAICompatibleProvider:
    """Tests for OpenAICompatibleProvider."""

    @pytest.fixture
    def provider(self):
        return create_openai_provider("test-key")

    @pytest.mark.asyncio
    async def test_execute_success(self, provider):
        with patch.object(provider.client.chat.completions, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = chat_response()

            result = await provider.execute("Say hello", model="gpt-4o-mini", max_tokens=100, temperature=0.5)

            assert isinstance(result, ExecutionResult)
            assert result.content == "Hello Alice!"
            assert result.tokens_input == 45
            assert result.tokens_output == 120
            assert result.tokens_total == 165
            assert result.model == "gpt-4o-mini"
            assert result.provider == "openai"
            assert result.latency_ms >= 0

            kwargs = mock_create.call_args.kwargs
            assert kwargs["max_tokens"] == 100
            assert kwargs["temperature"] == 0.5
            assert kwargs["messages"] == [{"role": "user", "content": "Say hello"}]

    @pytest.mark.asyncio
    async def test_newer_models_use_completion_token_limit(self, provider):
        with patch.object(provider.client.chat.completions, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = chat_response()

            await provider.execute("Say hello", model="gpt-5-mini-2025-08-07", max_tokens=300, temperature=0.5)

            kwargs = mock_create.call_args.kwargs
            assert kwargs["max_completion_tokens"] == 300
            assert "max_tokens" not in kwargs
            assert "temperature" not in kwargs

    @pytest.mark.asyncio
    async def test_missing_usage(self, provider):
        with patch.object(provider.client.chat.completions, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = chat_response(usage=False)

            result = await provider.execute("Say hello", model="gpt-4o", max_tokens=100, temperature=0.5)

            assert result.tokens_total is None

    @pytest.mark.asyncio
    async def test_no_choices(self, provider):
        response = chat_response()
        response.choices = []
        with patch.object(provider.client.chat.completions, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = response

            with pytest.raises(ProviderUnavailable):
                await provider.execute("Say hello", model="gpt-4o", max_tokens=100, temperature=0.5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,expected",
        [
            (openai.APITimeoutError(request=FAKE_REQUEST), ProviderTimeout),
            (
                openai.RateLimitError(
                    "rate limited", response=httpx.Response(429, request=FAKE_REQUEST), body=None
                ),
                ProviderRateLimited,
            ),
            (
                openai.NotFoundError("no such model", response=httpx.Response(404, request=FAKE_REQUEST), body=None),
                InvalidModel,
            ),
            (
                openai.InternalServerError("boom", response=httpx.Response(500, request=FAKE_REQUEST), body=None),
                ProviderUnavailable,
            ),
        ],
    )
    async def test_error_mapping(self, provider, error, expected):
        with patch.object(provider.client.chat.completions, "create", new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = error

            with pytest.raises(expected) as exc_info:
                await provider.execute("Say hello", model="gpt-4o", max_tokens=100, temperature=0.5)

            assert exc_info.value.provider == "openai"

    def test_groq_uses_openai_compatible_endpoint(self):
        provider = create_groq_provider("groq-key")
        assert provider.name == "groq"
        assert str(provider.client.base_url).rstrip("/") == GROQ_BASE_URL.rstrip("/")


class TestAnthropicProvider:
    """Tests for AnthropicProvider over a mocked HTTP transport."""

    def make_provider(self, handler):
        return AnthropicProvider(api_key="anthropic-key", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_execute_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "content": [{"type": "text", "text": "Hello "}, {"type": "text", "text": "there"}],
                    "usage": {"input_tokens": 12, "output_tokens": 8},
                },
            )

        result = await self.make_provider(handler).execute(
            "Say hello", model="claude-sonnet-4-20250514", max_tokens=200, temperature=0.3
        )

        assert result.content == "Hello there"
        assert result.tokens_input == 12
        assert result.tokens_output == 8
        assert result.tokens_total == 20
        assert result.provider == "anthropic"
        assert seen["headers"]["x-api-key"] == "anthropic-key"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"]["max_tokens"] == 200
        assert seen["body"]["messages"] == [{"role": "user", "content": "Say hello"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,expected",
        [(429, ProviderRateLimited), (404, InvalidModel), (500, ProviderUnavailable), (401, ProviderUnavailable)],
    )
    async def test_status_mapping(self, status, expected):
        provider = self.make_provider(lambda request: httpx.Response(status, json={"error": "nope"}))
        with pytest.raises(expected):
            await provider.execute("Say hello", model="claude-sonnet-4-20250514", max_tokens=200, temperature=0.3)

    @pytest.mark.asyncio
    async def test_no_text_content(self):
        provider = self.make_provider(lambda request: httpx.Response(200, json={"content": []}))
        with pytest.raises(ProviderUnavailable):
            await provider.execute("Say hello", model="claude-sonnet-4-20250514", max_tokens=200, temperature=0.3)

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        provider = self.make_provider(lambda request: httpx.Response(200, text="<html>Bad gateway</html>"))
        with pytest.raises(ProviderUnavailable):
            await provider.execute("Say hello", model="claude-sonnet-4-20250514", max_tokens=200, temperature=0.3)

    @pytest.mark.asyncio
    async def test_transport_errors(self):
        def timeout(request):
            raise httpx.ReadTimeout("slow", request=request)

        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderTimeout):
            await self.make_provider(timeout).execute("Hi", model="m", max_tokens=10, temperature=0)
        with pytest.raises(ProviderUnavailable):
            await self.make_provider(refused).execute("Hi", model="m", max_tokens=10, temperature=0)


class TestGoogleGeminiProvider:
    """Tests for GoogleGeminiProvider."""

    @pytest.fixture
    def provider(self):
        with patch("promptsmith_server.core.llm.google_gemini.genai.configure"):
            return GoogleGeminiProvider(api_key="test-gemini-key")

    @pytest.mark.asyncio
    async def test_execute_success(self, provider):
        mock_response = MagicMock()
        mock_response.usage_metadata = MagicMock(
            prompt_token_count=50,
            candidates_token_count=100,
            total_token_count=150,
        )
        mock_response.text = "Hello from Gemini!"

        mock_model = MagicMock()
        mock_model.generate_content_async = AsyncMock(return_value=mock_response)

        with patch(
            "promptsmith_server.core.llm.google_gemini.genai.GenerativeModel",
            return_value=mock_model,
        ):
            result = await provider.execute("Test prompt", model="gemini-2.5-flash", max_tokens=1024, temperature=1.5)

            assert result.content == "Hello from Gemini!"
            assert result.tokens_total == 150
            assert result.provider == "google"
            mock_model.generate_content_async.assert_called_once_with(
                "Test prompt",
                generation_config={"temperature": 1.5, "max_output_tokens": 1024},
            )

    @pytest.mark.asyncio
    async def test_blocked_response_has_no_text(self, provider):
        mock_response = MagicMock()
        type(mock_response).text = PropertyMock(side_effect=ValueError("no parts"))
        mock_model = MagicMock()
        mock_model.generate_content_async = AsyncMock(return_value=mock_response)

        with patch(
            "promptsmith_server.core.llm.google_gemini.genai.GenerativeModel",
            return_value=mock_model,
        ):
            with pytest.raises(ProviderUnavailable):
                await provider.execute("Test prompt", model="gemini-2.5-flash", max_tokens=100, temperature=0.5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,expected",
        [
            (google_exceptions.ResourceExhausted("quota"), ProviderRateLimited),
            (google_exceptions.DeadlineExceeded("slow"), ProviderTimeout),
            (google_exceptions.NotFound("no model"), InvalidModel),
            (google_exceptions.InternalServerError("boom"), ProviderUnavailable),
            (genai.types.BlockedPromptException("blocked"), ProviderUnavailable),
            (genai.types.StopCandidateException("safety"), ProviderUnavailable),
        ],
    )
    async def test_error_mapping(self, provider, error, expected):
        mock_model = MagicMock()
        mock_model.generate_content_async = AsyncMock(side_effect=error)

        with patch(
            "promptsmith_server.core.llm.google_gemini.genai.GenerativeModel",
            return_value=mock_model,
        ):
            with pytest.raises(expected):
                await provider.execute("Test prompt", model="gemini-2.5-flash", max_tokens=100, temperature=0.5)


class TestResolveModel:
    def test_known_model(self):
        info = resolve_model("mistral", "mistral-large")
        assert info.api_name == "mistral-large-latest"
        assert info.max_tokens == 2048

    def test_unknown_provider(self):
        with pytest.raises(ProviderUnavailable):
            resolve_model("cohere", "command-r")

    def test_unknown_model(self):
        with pytest.raises(InvalidModel):
            resolve_model("openai", "gpt-9000")

    def test_groq_falls_back_to_its_only_model(self):
        assert resolve_model("groq", "mixtral-8x7b").id == "llama-3.1-8b"


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    @pytest.fixture(autouse=True)
    def clear_provider_keys(self, monkeypatch):
        for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "GROQ_API_KEY", "MISTRAL_API_KEY"):
            monkeypatch.delenv(key, raising=False)

    def test_initializes_configured_providers(self):
        settings = Settings(openai_api_key="sk-test", groq_api_key="gsk-test", _env_file=None)
        registry = ProviderRegistry(settings=settings)

        assert sorted(registry.configured_providers()) == ["groq", "openai"]

    def test_no_credentials(self):
        registry = ProviderRegistry(settings=Settings(_env_file=None))

        assert registry.configured_providers() == []
        with pytest.raises(ProviderNotConfigured) as exc_info:
            registry.get_provider_by_name("openai")
        assert isinstance(exc_info.value, ProviderUnavailable)
        assert exc_info.value.transient is False

    def test_catalog_lists_every_provider(self):
        catalog = ProviderRegistry(providers={}).get_catalog()
        assert set(catalog) == {"openai", "anthropic", "google", "groq", "mistral"}
        assert any(m.id == "gemini-2.5-pro" and m.max_tokens == 8192 for m in catalog["google"])

    @pytest.mark.asyncio
    async def test_invoke_clamps_parameters(self):
        provider = MockLLMProvider()
        registry = ProviderRegistry(providers={"openai": provider}, timeout_seconds=5)

        await registry.invoke("openai", "gpt-4o", "Hi", max_tokens=50_000, temperature=1.8)

        call = provider.calls[0]
        assert call["max_tokens"] == 4096
        assert call["temperature"] == 1.0

    @pytest.mark.asyncio
    async def test_invoke_sends_backend_model_name(self):
        provider = MockLLMProvider()
        registry = ProviderRegistry(providers={"mistral": provider}, timeout_seconds=5)

        result = await registry.invoke("mistral", "mistral-medium", "Hi", max_tokens=100, temperature=0.2)

        assert provider.calls[0]["model"] == "mistral-medium-latest"
        assert result.content

    @pytest.mark.asyncio
    async def test_invoke_rejects_unknown_model_before_calling(self):
        provider = MockLLMProvider()
        registry = ProviderRegistry(providers={"openai": provider}, timeout_seconds=5)

        with pytest.raises(InvalidModel):
            await registry.invoke("openai", "gpt-9000", "Hi", max_tokens=100, temperature=0.2)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_invoke_timeout(self):
        provider = MockLLMProvider(delay=0.5)
        registry = ProviderRegistry(providers={"openai": provider}, timeout_seconds=0.05)

        with pytest.raises(ProviderTimeout) as exc_info:
            await registry.invoke("openai", "gpt-4o", "Hi", max_tokens=100, temperature=0.2)

        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_invoke_does_not_swallow_cancellation(self):
        provider = MockLLMProvider(delay=1.0)
        registry = ProviderRegistry(providers={"openai": provider}, timeout_seconds=5)

        task = asyncio.create_task(registry.invoke("openai", "gpt-4o", "Hi", max_tokens=100, temperature=0.2))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
