"""Deep mode: model-driven rewrites, each tested with a live sample response."""

import asyncio
import logging
import re
from typing import Optional

from ..llm.errors import ProviderError
from ..llm.provider import ExecutionResult
from ..llm.registry import ProviderRegistry
from .scorer import estimate_tokens, score_breakdown
from .strategies import build_rewrite_instruction, cycle_strategies
from .types import OptimizationRequest, Strategy, Variant, VariantMetrics

logger = logging.getLogger(__name__)

REWRITE_TOKEN_CEILING = 4096
REWRITE_TOKEN_FLOOR = 256
SAMPLE_TOKEN_CEILING = 4096
SAMPLE_TOKEN_FLOOR = 512
SAMPLE_TOKEN_DEFAULT = 2048

_TAGGED_RE = re.compile(r"<optimized_prompt>\s*([\s\S]*?)\s*</optimized_prompt>", re.IGNORECASE)
_FENCE_RE = re.compile(r"^```[\w-]*\s*\n?([\s\S]*?)\n?```$")
_LABEL_RE = re.compile(r"^\s*(?:\*\*)?(?:optimized|improved) prompt:?(?:\*\*)?:?\s*", re.IGNORECASE)
_PREAMBLE_LINE_RE = re.compile(
    r"^\s*(?:here is|here's|sure|certainly|of course)\b[^\n]*:\s*\n", re.IGNORECASE
)
_PREAMBLE_RE = re.compile(r"^\s*(?:here is|here's|sure|certainly|of course)\b[,:!.]?\s*", re.IGNORECASE)


def rewrite_token_budget(max_tokens: Optional[int]) -> int:
    """Token budget for the rewrite call."""
    return max(REWRITE_TOKEN_FLOOR, min(max_tokens or REWRITE_TOKEN_CEILING, REWRITE_TOKEN_CEILING))


def sample_token_budget(max_tokens: Optional[int]) -> int:
    """Token budget for the sample-response call."""
    if not max_tokens:
        return SAMPLE_TOKEN_DEFAULT
    return max(SAMPLE_TOKEN_FLOOR, min(max_tokens, SAMPLE_TOKEN_CEILING))


def sanitize_rewrite(raw: str) -> str:
    """Extract the bare improved prompt from a rewrite response.

    Tagged content wins when present; otherwise code fences, an
    "Optimized Prompt:" label and chatty preambles are stripped.
    """
    tagged = _TAGGED_RE.search(raw)
    if tagged:
        return tagged.group(1).strip()

    text = raw.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    text = _PREAMBLE_LINE_RE.sub("", text, count=1)
    text = _LABEL_RE.sub("", text, count=1)
    text = _PREAMBLE_RE.sub("", text, count=1)
    return text.strip().strip('"').strip()


def build_test_prompt(prompt_text: str, task_description: Optional[str]) -> str:
    if task_description and task_description.strip():
        return f"{prompt_text}\n\nScenario: {task_description.strip()}"
    return prompt_text


def _tokens(result: ExecutionResult, prompt: str) -> int:
    if result.tokens_total is not None:
        return result.tokens_total
    return int(estimate_tokens(prompt) + estimate_tokens(result.content))


class DeepModeGenerator:
    """Generates deep-mode variants with bounded parallelism.

    Each strategy slot issues one rewrite call and one test call to the
    requested provider. A slot whose calls fail is skipped; the rest of
    the batch continues.
    """

    def __init__(self, registry: ProviderRegistry, max_workers: int = 4, retry_attempts: int = 1):
        """
        Initialize deep mode generator.

        Args:
            registry: Provider registry used for every model call
            max_workers: Upper bound on strategy slots running at once
            retry_attempts: Extra attempts for a transient provider failure
        """
        self.registry = registry
        self.max_workers = max(1, max_workers)
        self.retry_attempts = max(0, retry_attempts)

    async def generate(self, request: OptimizationRequest) -> list[Variant]:
        """
        Generate up to ``request.variant_count`` variants.

        Returns:
            Successful variants in generation order; may be empty
        """
        strategies = cycle_strategies(request.variant_count)
        semaphore = asyncio.Semaphore(min(len(strategies), self.max_workers))

        async def run_slot(index: int, strategy: Strategy) -> Optional[Variant]:
            async with semaphore:
                try:
                    return await self._generate_variant(index, strategy, request)
                except Exception as e:
                    # Unexpected adapter failures skip the slot like provider errors
                    logger.error(
                        f"Skipping strategy {strategy.name} (slot {index}): unexpected {type(e).__name__}: {e}",
                        exc_info=True,
                    )
                    return None

        results = await asyncio.gather(*(run_slot(i, s) for i, s in enumerate(strategies)))
        variants = [variant for variant in results if variant is not None]

        skipped = len(strategies) - len(variants)
        if skipped:
            logger.warning(f"Deep mode skipped {skipped} of {len(strategies)} strategies")
        return variants

    async def _invoke(
        self, request: OptimizationRequest, prompt: str, max_tokens: int, strategy: Strategy, step: str
    ) -> ExecutionResult:
        attempt = 0
        while True:
            try:
                return await self.registry.invoke(
                    request.provider,
                    request.model,
                    prompt,
                    max_tokens=max_tokens,
                    temperature=request.temperature,
                )
            except ProviderError as e:
                if not e.transient or attempt >= self.retry_attempts:
                    raise
                attempt += 1
                logger.warning(
                    f"Retrying {step} call for strategy {strategy.name} after {type(e).__name__}: {e} "
                    f"(attempt {attempt + 1} of {self.retry_attempts + 1})"
                )

    async def _generate_variant(
        self, index: int, strategy: Strategy, request: OptimizationRequest
    ) -> Optional[Variant]:
        instruction = build_rewrite_instruction(strategy, request)
        try:
            rewrite = await self._invoke(
                request, instruction, rewrite_token_budget(request.max_tokens), strategy, "rewrite"
            )
        except ProviderError as e:
            logger.warning(f"Skipping strategy {strategy.name} (slot {index}): rewrite failed: {e}")
            return None

        prompt_text = sanitize_rewrite(rewrite.content)
        if not prompt_text:
            logger.warning(f"Skipping strategy {strategy.name} (slot {index}): empty rewrite")
            return None

        test_prompt = build_test_prompt(prompt_text, request.task_description)
        try:
            sample = await self._invoke(
                request, test_prompt, sample_token_budget(request.max_tokens), strategy, "test"
            )
        except ProviderError as e:
            logger.warning(f"Skipping strategy {strategy.name} (slot {index}): test call failed: {e}")
            return None

        breakdown = score_breakdown(prompt_text, sample.content, strategy.weight)
        logger.debug(f"Deep variant {index} ({strategy.name}) scored {breakdown.total:.3f}: {breakdown.as_dict()}")

        return Variant(
            strategy_name=strategy.name,
            display_name=strategy.display_name,
            prompt_text=prompt_text,
            sample_response=sample.content,
            score=breakdown.total,
            metrics=VariantMetrics(
                tokens_used=_tokens(rewrite, instruction) + _tokens(sample, test_prompt),
                response_length=len(sample.content),
                prompt_length=len(request.original_prompt),
                strategy_weight_pct=strategy.weight * 100,
            ),
            index=index,
            sub_scores=breakdown.as_dict(),
        )
