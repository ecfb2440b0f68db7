"""Unit tests for deep mode variant generation."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from promptsmith_server.core.llm.errors import (
    InvalidModel,
    ProviderNotConfigured,
    ProviderRateLimited,
    ProviderUnavailable,
)
from promptsmith_server.core.llm.registry import ProviderRegistry
from promptsmith_server.core.optimizer.deep import (
    DeepModeGenerator,
    build_test_prompt,
    rewrite_token_budget,
    sample_token_budget,
    sanitize_rewrite,
)
from promptsmith_server.core.optimizer.strategies import get_strategy

from tests.mocks import REWRITES, SAMPLE_ANSWER, MockLLMProvider


def deep_generator(provider: MockLLMProvider, max_workers: int = 4, retry_attempts: int = 1, timeout: float = 5.0):
    registry = ProviderRegistry(providers={"openai": provider}, timeout_seconds=timeout)
    return DeepModeGenerator(registry, max_workers=max_workers, retry_attempts=retry_attempts)


class FlakyProvider(MockLLMProvider):
    """Fails the first ``failures`` calls with a transient error, then answers."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures

    async def execute(self, prompt, model, max_tokens, temperature):
        if self.failures > 0:
            self.failures -= 1
            self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens, "temperature": temperature})
            raise ProviderRateLimited("slow down", "openai", model)
        return await super().execute(prompt, model, max_tokens, temperature)


class SlowOnProvider(MockLLMProvider):
    """Hangs on prompts containing ``marker``."""

    def __init__(self, marker: str):
        super().__init__()
        self.marker = marker

    async def execute(self, prompt, model, max_tokens, temperature):
        if self.marker in prompt:
            await asyncio.sleep(1.0)
        return await super().execute(prompt, model, max_tokens, temperature)


class TestTokenBudgets:
    @pytest.mark.parametrize("max_tokens,expected", [(None, 4096), (100, 256), (1000, 1000), (10_000, 4096)])
    def test_rewrite_budget(self, max_tokens, expected):
        assert rewrite_token_budget(max_tokens) == expected

    @pytest.mark.parametrize("max_tokens,expected", [(None, 2048), (100, 512), (1000, 1000), (9_999, 4096)])
    def test_sample_budget(self, max_tokens, expected):
        assert sample_token_budget(max_tokens) == expected


class TestSanitizeRewrite:
    def test_tagged_content_wins(self):
        raw = "Sure! <optimized_prompt>\nList three fruits.\n</optimized_prompt> Hope this helps."
        assert sanitize_rewrite(raw) == "List three fruits."

    def test_strips_code_fence(self):
        assert sanitize_rewrite("```\nList three fruits.\n```") == "List three fruits."

    def test_strips_label(self):
        assert sanitize_rewrite("Optimized Prompt: List three fruits.") == "List three fruits."

    def test_strips_preamble_line(self):
        raw = "Here is the improved prompt:\nList three fruits."
        assert sanitize_rewrite(raw) == "List three fruits."

    def test_strips_short_preamble(self):
        assert sanitize_rewrite("Certainly! List three fruits.") == "List three fruits."

    def test_empty_tags(self):
        assert sanitize_rewrite("<optimized_prompt>   </optimized_prompt>") == ""


def test_build_test_prompt_adds_scenario():
    assert build_test_prompt("List fruits", None) == "List fruits"
    assert build_test_prompt("List fruits", "Grocery app") == "List fruits\n\nScenario: Grocery app"


@pytest.mark.asyncio
async def test_all_strategies_succeed(make_request):
    provider = MockLLMProvider()
    variants = await deep_generator(provider).generate(make_request(variant_count=3))

    assert [v.strategy_name for v in variants] == ["clarity", "specificity", "structure"]
    for variant in variants:
        assert variant.prompt_text == REWRITES[variant.strategy_name]
        assert variant.sample_response == SAMPLE_ANSWER
        assert 0.0 <= variant.score <= 1.0
        assert variant.metrics.tokens_used == 300

    assert len(provider.rewrite_calls()) == 3
    assert len(provider.sample_calls()) == 3


@pytest.mark.asyncio
async def test_sample_call_tests_the_rewritten_prompt(make_request):
    provider = MockLLMProvider()
    await deep_generator(provider).generate(make_request(variant_count=1, task_description="Interview prep"))

    sample_prompt = provider.sample_calls()[0]["prompt"]
    assert sample_prompt == f"{REWRITES['clarity']}\n\nScenario: Interview prep"


@pytest.mark.asyncio
async def test_failed_strategy_is_skipped(make_request):
    marker = get_strategy("specificity").directive
    provider = MockLLMProvider(fail_on={marker: InvalidModel("gone", "openai", "gpt-4o-mini")})

    variants = await deep_generator(provider).generate(make_request(variant_count=3))

    assert [v.strategy_name for v in variants] == ["clarity", "structure"]
    # InvalidModel is not transient: no retry
    assert sum(marker in c["prompt"] for c in provider.calls) == 1


@pytest.mark.asyncio
async def test_transient_failure_is_retried_then_skipped(make_request):
    marker = get_strategy("specificity").directive
    provider = MockLLMProvider(fail_on={marker: ProviderUnavailable("down", "openai", "gpt-4o-mini")})

    variants = await deep_generator(provider, retry_attempts=1).generate(make_request(variant_count=3))

    assert len(variants) == 2
    assert sum(marker in c["prompt"] for c in provider.calls) == 2


@pytest.mark.asyncio
async def test_transient_failure_recovers_on_retry(make_request):
    provider = FlakyProvider(failures=1)
    variants = await deep_generator(provider, max_workers=1, retry_attempts=1).generate(
        make_request(variant_count=1)
    )

    assert len(variants) == 1
    assert len(provider.calls) == 3


@pytest.mark.asyncio
async def test_failed_sample_call_skips_strategy(make_request):
    provider = MockLLMProvider(
        fail_on={REWRITES["structure"]: InvalidModel("gone", "openai", "gpt-4o-mini")}
    )
    variants = await deep_generator(provider).generate(make_request(variant_count=3))

    assert [v.strategy_name for v in variants] == ["clarity", "specificity"]


@pytest.mark.asyncio
async def test_timed_out_strategy_is_skipped(make_request):
    provider = SlowOnProvider(get_strategy("specificity").directive)
    variants = await deep_generator(provider, retry_attempts=0, timeout=0.05).generate(
        make_request(variant_count=3)
    )

    assert [v.strategy_name for v in variants] == ["clarity", "structure"]


@pytest.mark.asyncio
async def test_empty_rewrite_is_skipped(make_request):
    provider = MockLLMProvider(rewrites={"clarity": "   "})
    variants = await deep_generator(provider).generate(make_request(variant_count=2))

    assert [v.strategy_name for v in variants] == ["specificity"]


@pytest.mark.asyncio
async def test_untagged_rewrite_is_sanitized(make_request):
    provider = MockLLMProvider(rewrites={"clarity": "Optimized Prompt: List three fruits."}, tagged=False)
    variants = await deep_generator(provider).generate(make_request(variant_count=1))

    assert variants[0].prompt_text == "List three fruits."


@pytest.mark.asyncio
async def test_all_strategies_fail(make_request):
    provider = MockLLMProvider(fail_on={"": InvalidModel("gone", "openai", "gpt-4o-mini")})
    variants = await deep_generator(provider).generate(make_request(variant_count=3))
    assert variants == []


@pytest.mark.asyncio
async def test_parallelism_is_bounded(make_request):
    provider = MockLLMProvider(delay=0.02)
    variants = await deep_generator(provider, max_workers=2).generate(make_request(variant_count=5))

    assert len(variants) == 5
    assert provider.max_in_flight <= 2


@pytest.mark.asyncio
async def test_variant_order_follows_slots_not_completion(make_request):
    # The first slot is slowest but must still come first
    provider = SlowOnProvider(get_strategy("clarity").directive)
    variants = await deep_generator(provider, timeout=5.0).generate(make_request(variant_count=3))

    assert [v.index for v in variants] == [0, 1, 2]


@pytest.mark.asyncio
async def test_sampling_parameters_are_clamped_and_budgeted(make_request):
    provider = MockLLMProvider()
    await deep_generator(provider).generate(make_request(variant_count=1, temperature=1.5, max_tokens=1000))

    rewrite_call, sample_call = provider.rewrite_calls()[0], provider.sample_calls()[0]
    assert rewrite_call["temperature"] == 1.0
    assert rewrite_call["max_tokens"] == 1000
    assert sample_call["max_tokens"] == 1000


@pytest.mark.asyncio
async def test_token_usage_estimated_without_provider_counts(make_request):
    provider = MockLLMProvider(tokens_total=None)
    variants = await deep_generator(provider).generate(make_request(variant_count=1))

    assert variants[0].metrics.tokens_used > 0


@pytest.mark.asyncio
async def test_unexpected_adapter_error_skips_only_that_strategy(make_request):
    marker = get_strategy("structure").directive
    provider = MockLLMProvider(fail_on={marker: KeyError("content")})

    variants = await deep_generator(provider).generate(make_request(variant_count=3))

    assert [v.strategy_name for v in variants] == ["clarity", "specificity"]


@pytest.mark.asyncio
async def test_missing_credentials_are_not_retried(make_request):
    registry = ProviderRegistry(providers={}, timeout_seconds=5.0)
    registry.invoke = AsyncMock(side_effect=ProviderNotConfigured("no key", "openai"))
    generator = DeepModeGenerator(registry, retry_attempts=3)

    variants = await generator.generate(make_request(variant_count=1))

    assert variants == []
    assert registry.invoke.await_count == 1
