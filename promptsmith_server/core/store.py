"""Durable storage for optimization results and speed-mode ratings."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .database import (
    get_connection,
    optimization_history_table,
    prompts_table,
    speed_optimizations_table,
)
from .optimizer.errors import AlreadyRated, PersistenceFailure, RecordNotFound
from .optimizer.types import OptimizationRequest, OptimizationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistedIds:
    prompt_record_id: str
    speed_record_id: Optional[str] = None


@dataclass(frozen=True)
class SpeedRecord:
    id: str
    user_id: str
    optimization_strategy: str
    optimized_prompt: str
    rating: Optional[int]


def _parse_id(record_id: str) -> Optional[UUID]:
    try:
        return UUID(str(record_id))
    except ValueError:
        return None


def performance_metrics(result: OptimizationResult) -> dict[str, Any]:
    """Aggregate stats stored alongside the prompt record."""
    return {
        "best_strategy": result.summary.best_strategy_name,
        "total_variants": result.summary.variant_count,
        "processing_time_ms": result.summary.processing_time_ms,
        "average_score": result.summary.average_score,
        "improvement_score": result.summary.improvement_score,
    }


class OptimizationStore:
    """Writes optimization results and reads them back per user."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def save_result(
        self, user_id: str, request: OptimizationRequest, result: OptimizationResult
    ) -> PersistedIds:
        """
        Persist a completed optimization in a single transaction.

        Writes the prompt record, one history row per variant and, in speed
        mode, the rating-eligible speed record. Either all rows land or none.

        Raises:
            PersistenceFailure: If the database write fails
        """
        best = result.best_variant
        try:
            with get_connection(self.engine) as conn:
                prompt_id = conn.execute(
                    insert(prompts_table)
                    .values(
                        user_id=user_id,
                        original_prompt=request.original_prompt,
                        optimized_prompt=best.prompt_text,
                        task_description=request.task_description,
                        ai_provider=request.provider,
                        model_name=request.model,
                        output_type=request.output_type,
                        mode=result.mode,
                        score=best.score,
                        performance_metrics=performance_metrics(result),
                        variants_generated=len(result.all_variants),
                        status="completed",
                    )
                    .returning(prompts_table.c.id)
                ).scalar_one()

                conn.execute(
                    insert(optimization_history_table),
                    [
                        {
                            "user_id": user_id,
                            "prompt_id": prompt_id,
                            "strategy": variant.strategy_name,
                            "position": variant.index,
                            "variant_prompt": variant.prompt_text,
                            "ai_response": variant.sample_response,
                            "score": variant.score,
                            "metrics": {
                                "sub_scores": variant.sub_scores,
                                "response_length": variant.metrics.response_length,
                                "strategy_weight_pct": variant.metrics.strategy_weight_pct,
                            },
                            "generation_time_ms": result.summary.processing_time_ms,
                            "tokens_used": variant.metrics.tokens_used,
                        }
                        for variant in result.all_variants
                    ],
                )

                speed_id = None
                if result.mode == "speed":
                    speed_id = conn.execute(
                        insert(speed_optimizations_table)
                        .values(
                            user_id=user_id,
                            prompt_id=prompt_id,
                            original_prompt=request.original_prompt,
                            optimized_prompt=best.prompt_text,
                            optimization_strategy=best.strategy_name,
                            score=best.score,
                            processing_time_ms=result.summary.processing_time_ms,
                        )
                        .returning(speed_optimizations_table.c.id)
                    ).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceFailure(
                f"Could not save optimization {result.request_id}: {e}",
                original_prompt=request.original_prompt,
            ) from e

        logger.info(f"Saved {result.mode} optimization {prompt_id} for user {user_id}")
        return PersistedIds(
            prompt_record_id=str(prompt_id),
            speed_record_id=str(speed_id) if speed_id else None,
        )

    def get_speed_record(self, user_id: str, record_id: str) -> SpeedRecord:
        """
        Raises:
            RecordNotFound: If the record is missing or owned by someone else
            PersistenceFailure: If the database read fails
        """
        parsed = _parse_id(record_id)
        if parsed is None:
            raise RecordNotFound(f"Speed optimization '{record_id}' not found")

        try:
            with get_connection(self.engine) as conn:
                row = conn.execute(
                    select(speed_optimizations_table).where(speed_optimizations_table.c.id == parsed)
                ).fetchone()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not load speed optimization '{record_id}': {e}") from e

        if row is None or row.user_id != user_id:
            raise RecordNotFound(f"Speed optimization '{record_id}' not found")

        return SpeedRecord(
            id=str(row.id),
            user_id=row.user_id,
            optimization_strategy=row.optimization_strategy,
            optimized_prompt=row.optimized_prompt,
            rating=row.rating,
        )

    def rate_speed_optimization(self, user_id: str, record_id: str, stars: int) -> SpeedRecord:
        """
        Attach a star rating to a speed-mode record, at most once.

        The update only matches an unrated record owned by ``user_id``, so
        two concurrent ratings cannot both succeed.

        Raises:
            RecordNotFound: If the record is missing or owned by someone else
            AlreadyRated: If the record already carries a rating
            PersistenceFailure: If the database read or write fails
        """
        record = self.get_speed_record(user_id, record_id)
        if record.rating is not None:
            raise AlreadyRated(f"Speed optimization '{record_id}' is already rated")

        try:
            with get_connection(self.engine) as conn:
                result = conn.execute(
                    update(speed_optimizations_table)
                    .where(
                        speed_optimizations_table.c.id == UUID(record.id),
                        speed_optimizations_table.c.user_id == user_id,
                        speed_optimizations_table.c.rating.is_(None),
                    )
                    .values(rating=stars, feedback_type="stars", updated_at=datetime.now(timezone.utc))
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not rate speed optimization '{record_id}': {e}") from e

        if result.rowcount == 0:
            raise AlreadyRated(f"Speed optimization '{record_id}' is already rated")

        logger.info(f"User {user_id} rated speed optimization {record_id} with {stars} stars")
        return SpeedRecord(
            id=record.id,
            user_id=record.user_id,
            optimization_strategy=record.optimization_strategy,
            optimized_prompt=record.optimized_prompt,
            rating=stars,
        )

    def list_prompt_records(self, user_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent optimization records for a user, newest first."""
        with get_connection(self.engine) as conn:
            rows = conn.execute(
                select(prompts_table)
                .where(prompts_table.c.user_id == user_id)
                .order_by(prompts_table.c.created_at.desc())
                .limit(limit)
            ).fetchall()

        return [
            {
                "id": str(row.id),
                "original_prompt": row.original_prompt,
                "optimized_prompt": row.optimized_prompt,
                "ai_provider": row.ai_provider,
                "model_name": row.model_name,
                "output_type": row.output_type,
                "mode": row.mode,
                "score": row.score,
                "performance_metrics": row.performance_metrics or {},
                "variants_generated": row.variants_generated,
                "created_at": row.created_at,
            }
            for row in rows
        ]
