"""Prompt optimization engine for PromptSmith.

Speed mode rewrites prompts locally with deterministic templates; deep mode
asks the selected model to rewrite the prompt once per strategy and scores
each rewrite against a live sample response.

Example usage:
    from promptsmith_server.core.llm import ProviderRegistry
    from promptsmith_server.core.optimizer import OptimizationEngine, OptimizationRequest

    engine = OptimizationEngine(ProviderRegistry())

    request = OptimizationRequest(
        original_prompt="Write a function to sort a list",
        provider="openai",
        model="gpt-4o-mini",
        output_type="code",
        mode="deep",
    )
    result = await engine.optimize(request, user_id="local-user")

    print(result.best_variant.prompt_text)
    print(result.summary.improvement_score)
"""

from .engine import (
    OptimizationEngine,
    OptimizationRun,
    OptimizationState,
    rank_variants,
    select_best,
)
from .insights import InMemoryInsightCache, InsightCache, SqlInsightCache, UserInsights
from .strategies import STRATEGIES
from .types import (
    OptimizationRequest,
    OptimizationResult,
    OptimizationSummary,
    SpeedImprovement,
    Strategy,
    Variant,
    VariantMetrics,
)

__all__ = [
    # Main engine
    "OptimizationEngine",
    "OptimizationRun",
    "OptimizationState",
    "rank_variants",
    "select_best",
    # Insights
    "InsightCache",
    "InMemoryInsightCache",
    "SqlInsightCache",
    "UserInsights",
    # Types
    "STRATEGIES",
    "OptimizationRequest",
    "OptimizationResult",
    "OptimizationSummary",
    "SpeedImprovement",
    "Strategy",
    "Variant",
    "VariantMetrics",
]
