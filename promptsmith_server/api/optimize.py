"""API endpoints for prompt optimization"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import AuthContext, get_auth_context
from ..core.optimizer import OptimizationEngine, OptimizationRequest
from ..core.optimizer.errors import InvalidRequest, NoVariantsGenerated, OptimizationError
from .deps import get_optimization_engine
from .schemas import (
    ErrorResponse,
    OptimizationHistoryResponse,
    OptimizationRecord,
    OptimizePromptResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["optimization"])


def error_detail(error: OptimizationError) -> dict:
    return ErrorResponse(
        error=error.code,
        reason=error.reason,
        original_prompt=error.original_prompt,
    ).model_dump(by_alias=True)


@router.post("/optimize")
async def optimize_prompt(
    request: OptimizationRequest,
    auth_ctx: AuthContext = Depends(get_auth_context),
    engine: OptimizationEngine = Depends(get_optimization_engine),
) -> OptimizePromptResponse:
    """
    Optimize a prompt.

    Speed mode answers from local templates; deep mode calls the selected
    provider twice per strategy. Earlier results that failed to save are
    retried before the new optimization runs.
    """
    if engine.unsynced:
        engine.flush_unsynced()

    try:
        result = await engine.optimize(request, auth_ctx.user_id)
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=error_detail(e))
    except NoVariantsGenerated as e:
        raise HTTPException(status_code=502, detail=error_detail(e))

    return OptimizePromptResponse.from_result(result)


@router.get("/optimizations")
async def list_optimizations(
    limit: int = Query(default=10, ge=1, le=100),
    auth_ctx: AuthContext = Depends(get_auth_context),
    engine: OptimizationEngine = Depends(get_optimization_engine),
) -> OptimizationHistoryResponse:
    """
    Get the caller's most recent optimization runs, newest first.
    """
    if engine.store is None:
        return OptimizationHistoryResponse(optimizations=[], total=0)

    records = engine.store.list_prompt_records(auth_ctx.user_id, limit=limit)
    optimizations = [
        OptimizationRecord(
            id=record["id"],
            original_prompt=record["original_prompt"],
            optimized_prompt=record["optimized_prompt"],
            ai_provider=record["ai_provider"],
            model_name=record["model_name"],
            output_type=record["output_type"],
            mode=record["mode"],
            score=record["score"],
            best_strategy=record["performance_metrics"].get("best_strategy"),
            variants_generated=record["variants_generated"],
            created_at=record["created_at"].isoformat(),
        )
        for record in records
    ]
    return OptimizationHistoryResponse(optimizations=optimizations, total=len(optimizations))
