"""Pydantic schemas for API requests and responses"""

from typing import List, Optional

from pydantic import Field

from ..core.optimizer.types import (
    CamelModel,
    OptimizationMode,
    OptimizationResult,
    OptimizationSummary,
    SpeedImprovement,
    Variant,
)


class ErrorResponse(CamelModel):
    """Error body returned with 4xx/5xx responses."""
    error: str = Field(description="Machine-readable error code")
    reason: str = Field(description="Human-readable explanation")
    original_prompt: Optional[str] = Field(default=None, description="Prompt the caller submitted, for retry")


class OptimizePromptResponse(CamelModel):
    """Response from prompt optimization."""
    request_id: str
    prompt_id: Optional[str] = Field(description="Durable record id; null while the result is unsynced")
    mode: OptimizationMode
    original_prompt: str
    best_optimized_prompt: str
    optimized_prompt: str
    best_score: float
    strategy: str = Field(description="Strategy that produced the best variant")
    processing_time_ms: int
    speed_result_id: Optional[str] = Field(default=None, description="Record to rate (speed mode only)")
    requires_rating: bool
    synced: bool = Field(description="Whether the result has been written to durable storage")
    best_variant: Variant
    variants: List[Variant] = Field(description="All scored variants, best first")
    summary: OptimizationSummary
    improvement: Optional[SpeedImprovement] = None
    created_at: str = Field(description="ISO timestamp of optimization")

    @classmethod
    def from_result(cls, result: OptimizationResult) -> "OptimizePromptResponse":
        return cls(
            request_id=result.request_id,
            prompt_id=result.prompt_record_id,
            mode=result.mode,
            original_prompt=result.original_prompt,
            best_optimized_prompt=result.best_optimized_prompt,
            optimized_prompt=result.optimized_prompt,
            best_score=result.best_score,
            strategy=result.summary.best_strategy_name,
            processing_time_ms=result.summary.processing_time_ms,
            speed_result_id=result.speed_record_id,
            requires_rating=result.requires_rating,
            synced=result.synced,
            best_variant=result.best_variant,
            variants=result.all_variants,
            summary=result.summary,
            improvement=result.improvement,
            created_at=result.created_at.isoformat(),
        )


class OptimizationRecord(CamelModel):
    """Record of a past optimization run."""
    id: str
    original_prompt: str
    optimized_prompt: str
    ai_provider: str
    model_name: str
    output_type: str
    mode: str
    score: float
    best_strategy: Optional[str] = None
    variants_generated: int
    created_at: str


class OptimizationHistoryResponse(CamelModel):
    """List of recent optimization runs for the caller."""
    optimizations: List[OptimizationRecord]
    total: int


class RatingRequest(CamelModel):
    """Star rating for a speed-mode result."""
    record_id: str = Field(min_length=1, description="speedResultId from the optimize response")
    stars: int = Field(ge=1, le=5)


class RatingResponse(CamelModel):
    record_id: str
    stars: int
    applied: bool


class ProviderModel(CamelModel):
    id: str
    name: str
    max_tokens: int


class ProviderInfo(CamelModel):
    name: str
    configured: bool = Field(description="Whether credentials are present for this provider")
    models: List[ProviderModel]


class ProvidersResponse(CamelModel):
    providers: List[ProviderInfo]
