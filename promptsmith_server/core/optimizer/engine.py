"""Main orchestrator for prompt optimization."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..llm.errors import ProviderError
from ..llm.registry import ProviderRegistry, resolve_model
from .deep import DeepModeGenerator
from .errors import AlreadyRated, InvalidRequest, NoVariantsGenerated, PersistenceFailure, RecordNotFound
from .insights import InMemoryInsightCache, InsightCache
from .speed import SpeedModeGenerator, speed_improvement
from .types import OptimizationRequest, OptimizationResult, OptimizationSummary, Variant

if TYPE_CHECKING:
    from ..store import OptimizationStore

logger = logging.getLogger(__name__)

# Baseline the best score is compared against when reporting improvement
BASELINE_SCORE = 0.5


class OptimizationState(str, Enum):
    RECEIVED = "received"
    GENERATING_VARIANTS = "generating_variants"
    SCORING = "scoring"
    SELECTING = "selecting"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[OptimizationState, tuple[OptimizationState, ...]] = {
    OptimizationState.RECEIVED: (OptimizationState.GENERATING_VARIANTS,),
    OptimizationState.GENERATING_VARIANTS: (OptimizationState.SCORING, OptimizationState.FAILED),
    OptimizationState.SCORING: (OptimizationState.SELECTING,),
    OptimizationState.SELECTING: (OptimizationState.PERSISTING,),
    OptimizationState.PERSISTING: (OptimizationState.COMPLETED,),
    OptimizationState.COMPLETED: (),
    OptimizationState.FAILED: (),
}


@dataclass
class OptimizationRun:
    """Lifecycle of a single optimization request."""

    state: OptimizationState = OptimizationState.RECEIVED
    history: list[OptimizationState] = field(default_factory=lambda: [OptimizationState.RECEIVED])

    def advance(self, new_state: OptimizationState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal optimization transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


@dataclass
class PendingWrite:
    user_id: str
    request: OptimizationRequest
    result: OptimizationResult


def rank_variants(variants: list[Variant]) -> list[Variant]:
    """Score descending; ties keep generation order."""
    return sorted(variants, key=lambda v: (-v.score, v.index))


def select_best(variants: list[Variant]) -> Variant:
    """
    Highest-scoring variant, the earliest generated one on ties.

    Raises:
        ValueError: If ``variants`` is empty
    """
    if not variants:
        raise ValueError("Cannot select from an empty variant list")
    return min(variants, key=lambda v: (-v.score, v.index))


class OptimizationEngine:
    """Orchestrates the complete prompt optimization process."""

    def __init__(
        self,
        registry: ProviderRegistry,
        store: Optional["OptimizationStore"] = None,
        insight_cache: Optional[InsightCache] = None,
        max_workers: int = 4,
        retry_attempts: int = 1,
    ):
        """
        Initialize optimization engine.

        Args:
            registry: Provider registry for deep mode model calls
            store: Durable storage; results stay unsynced without one
            insight_cache: Learned per-user patterns (in-memory by default)
            max_workers: Deep mode parallelism bound
            retry_attempts: Retries per transient provider failure
        """
        self.registry = registry
        self.store = store
        self.insight_cache: InsightCache = insight_cache or InMemoryInsightCache()
        self.deep = DeepModeGenerator(registry, max_workers=max_workers, retry_attempts=retry_attempts)
        self.speed = SpeedModeGenerator(self.insight_cache)
        self.unsynced: list[PendingWrite] = []

    def validate(self, request: OptimizationRequest) -> None:
        """
        Reject requests that cannot be optimized.

        Raises:
            InvalidRequest: Blank prompt or unknown provider/model pair
        """
        if not request.original_prompt.strip():
            raise InvalidRequest("Prompt must not be empty", original_prompt=request.original_prompt)
        try:
            resolve_model(request.provider, request.model)
        except ProviderError as e:
            raise InvalidRequest(str(e), original_prompt=request.original_prompt) from e

    async def optimize(
        self,
        request: OptimizationRequest,
        user_id: str,
        run: Optional[OptimizationRun] = None,
    ) -> OptimizationResult:
        """
        Optimize a prompt.

        Process:
        1. Validate the request
        2. Generate variants (speed: local templates, deep: model calls)
        3. Rank all variants by score
        4. Select the best variant
        5. Persist the result; on failure keep it queued as unsynced

        Args:
            request: Optimization request
            user_id: Owner of the resulting records
            run: Lifecycle tracker to advance (a fresh one when omitted)

        Returns:
            Optimization result with the best variant and every alternative

        Raises:
            InvalidRequest: If the request fails validation
            NoVariantsGenerated: If every strategy failed
        """
        run = run or OptimizationRun()
        started = time.perf_counter()

        self.validate(request)

        run.advance(OptimizationState.GENERATING_VARIANTS)
        logger.info(
            f"Optimizing prompt for user {user_id}: mode={request.mode} provider={request.provider} "
            f"model={request.model} variants={request.variant_count}"
        )
        if request.mode == "speed":
            variants = self.speed.generate(request, user_id)
        else:
            variants = await self.deep.generate(request)

        if not variants:
            run.advance(OptimizationState.FAILED)
            logger.warning(f"No variants generated for user {user_id} ({request.variant_count} strategies failed)")
            raise NoVariantsGenerated(
                f"All {request.variant_count} optimization strategies failed. Please try again.",
                original_prompt=request.original_prompt,
            )

        run.advance(OptimizationState.SCORING)
        ranked = rank_variants(variants)

        run.advance(OptimizationState.SELECTING)
        best = select_best(variants)
        average = sum(v.score for v in variants) / len(variants)
        processing_time_ms = int((time.perf_counter() - started) * 1000)

        result = OptimizationResult(
            mode=request.mode,
            original_prompt=request.original_prompt,
            best_variant=best,
            all_variants=ranked,
            summary=OptimizationSummary(
                improvement_score=round(best.score - BASELINE_SCORE, 4),
                best_strategy_name=best.strategy_name,
                variant_count=len(variants),
                processing_time_ms=processing_time_ms,
                average_score=round(average, 4),
            ),
            requires_rating=request.mode == "speed",
            improvement=(
                speed_improvement(request.original_prompt, best.prompt_text) if request.mode == "speed" else None
            ),
        )

        run.advance(OptimizationState.PERSISTING)
        result = self._persist(user_id, request, result)

        run.advance(OptimizationState.COMPLETED)
        logger.info(
            f"Optimization {result.request_id} completed: best={best.strategy_name} "
            f"score={best.score:.3f} variants={len(variants)} time={processing_time_ms}ms synced={result.synced}"
        )
        return result

    def _persist(
        self, user_id: str, request: OptimizationRequest, result: OptimizationResult
    ) -> OptimizationResult:
        if self.store is None:
            return result

        try:
            ids = self.store.save_result(user_id, request, result)
        except PersistenceFailure as e:
            logger.error(f"Failed to persist optimization {result.request_id}: {e.reason}", exc_info=True)
            self.unsynced.append(PendingWrite(user_id=user_id, request=request, result=result))
            return result

        return result.model_copy(
            update={
                "prompt_record_id": ids.prompt_record_id,
                "speed_record_id": ids.speed_record_id,
                "synced": True,
            }
        )

    def flush_unsynced(self) -> int:
        """
        Retry durable writes that failed earlier.

        Returns:
            Number of results written; the rest stay queued
        """
        if self.store is None or not self.unsynced:
            return 0

        pending, self.unsynced = self.unsynced, []
        flushed = 0
        for write in pending:
            try:
                self.store.save_result(write.user_id, write.request, write.result)
            except PersistenceFailure as e:
                logger.warning(f"Optimization {write.result.request_id} still unsynced: {e.reason}")
                self.unsynced.append(write)
            else:
                flushed += 1

        if flushed:
            logger.info(f"Flushed {flushed} unsynced optimization(s), {len(self.unsynced)} remaining")
        return flushed

    def submit_rating(self, user_id: str, record_id: str, stars: int) -> bool:
        """
        Rate a speed-mode result and feed the rating into the insight cache.

        Returns:
            True if the rating was applied, False if the record was already rated

        Raises:
            InvalidRequest: If ``stars`` is outside 1-5
            RecordNotFound: If the record is missing or belongs to another user
            PersistenceFailure: If the rating could not be read or stored
        """
        if not 1 <= stars <= 5:
            raise InvalidRequest(f"Rating must be between 1 and 5, got {stars}")
        if self.store is None:
            raise RecordNotFound(f"Speed optimization '{record_id}' not found")

        try:
            record = self.store.rate_speed_optimization(user_id, record_id, stars)
        except AlreadyRated:
            logger.warning(f"Ignoring rating for {record_id}: already rated")
            return False

        try:
            self.insight_cache.record_rating(user_id, record.optimization_strategy, record.optimized_prompt, stars)
        except SQLAlchemyError as e:
            # The rating itself is stored; insights catch up on the next rating
            logger.error(f"Failed to update insights for user {user_id}: {e}", exc_info=True)
        return True
