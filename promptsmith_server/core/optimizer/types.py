"""Data models for the prompt optimization engine."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ProviderName = Literal["openai", "anthropic", "google", "groq", "mistral"]
OutputType = Literal["text", "code", "json", "list", "essay"]
OptimizationMode = Literal["speed", "deep"]


class CamelModel(BaseModel):
    """Base model that accepts and emits camelCase keys for the JSON boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OptimizationRequest(CamelModel):
    """Request to optimize a prompt. Lives only for one optimization call."""

    original_prompt: str = Field(min_length=1)
    """The user's prompt to optimize."""

    provider: ProviderName
    """AI backend used for deep mode rewrite and test calls."""

    model: str = Field(min_length=1)
    """Model id; must exist under ``provider``."""

    output_type: OutputType
    """Format the final model response should take."""

    task_description: Optional[str] = None
    """Optional context describing what the prompt is for."""

    variant_count: int = Field(default=3, ge=1, le=10)
    """Upper bound on the number of candidates returned."""

    max_tokens: Optional[int] = Field(default=None, ge=1)
    """Response token limit the optimized prompt should respect."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    influence_text: Optional[str] = None
    """Example text used to bias rewrites toward a style."""

    influence_weight: int = Field(default=0, ge=0, le=100)
    """How strongly ``influence_text`` should steer rewrites, in percent."""

    mode: OptimizationMode = "deep"


@dataclass(frozen=True)
class Strategy:
    """A named rewriting approach."""

    name: str
    display_name: str
    directive: str
    rewrite_template: str
    weight: float


class VariantMetrics(CamelModel):
    tokens_used: int
    response_length: int
    prompt_length: int
    strategy_weight_pct: float


class Variant(CamelModel):
    """One scored candidate rewrite of the original prompt."""

    strategy_name: str
    display_name: str
    prompt_text: str
    sample_response: str
    score: float = Field(ge=0.0, le=1.0)
    metrics: VariantMetrics
    index: int
    """Generation order (strategy slot); lower wins score ties."""

    sub_scores: dict[str, float] = {}


class OptimizationSummary(CamelModel):
    improvement_score: float
    best_strategy_name: str
    variant_count: int
    processing_time_ms: int
    average_score: float


class SpeedImprovement(CamelModel):
    """Coarse description of what a speed-mode rewrite changed."""

    length_change: Literal["expanded", "condensed"]
    structure_added: bool
    specificity_boost: bool


class OptimizationResult(CamelModel):
    """Result of one optimization run. Written once, never mutated afterwards."""

    request_id: str = Field(default_factory=lambda: str(uuid4()))
    mode: OptimizationMode
    original_prompt: str
    best_variant: Variant
    all_variants: list[Variant]
    """Ordered by score descending, ties by generation order."""

    summary: OptimizationSummary
    prompt_record_id: Optional[str] = None
    speed_record_id: Optional[str] = None
    requires_rating: bool = False
    synced: bool = False
    """False until the result has been written to durable storage."""

    improvement: Optional[SpeedImprovement] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def best_score(self) -> float:
        return self.best_variant.score

    @property
    def best_optimized_prompt(self) -> str:
        return self.best_variant.prompt_text

    @property
    def optimized_prompt(self) -> str:
        return self.best_variant.prompt_text
