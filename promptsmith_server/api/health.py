"""Health check and provider catalog API routes"""

import time
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..core.database import get_connection
from ..core.optimizer import OptimizationEngine
from .deps import get_optimization_engine
from .schemas import ProviderInfo, ProviderModel, ProvidersResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check(engine: OptimizationEngine = Depends(get_optimization_engine)) -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        dict containing health status, configured providers and database state.
        The status is "degraded" when the database is unreachable, since
        optimizations still complete (unsynced) without it.
    """
    database: dict[str, Any] = {"status": "not_configured"}
    if engine.store is not None:
        started = time.perf_counter()
        try:
            with get_connection(engine.store.engine) as conn:
                conn.execute(text("SELECT 1"))
            database = {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
        except SQLAlchemyError as e:
            database = {"status": "unavailable", "error": str(e)}

    return {
        "status": "healthy" if database["status"] != "unavailable" else "degraded",
        "providers_configured": engine.registry.configured_providers(),
        "database": database,
        "unsynced_results": len(engine.unsynced),
    }


@router.get("/providers")
async def list_providers(engine: OptimizationEngine = Depends(get_optimization_engine)) -> ProvidersResponse:
    """List every supported provider with its model catalog."""
    configured = set(engine.registry.configured_providers())
    return ProvidersResponse(
        providers=[
            ProviderInfo(
                name=name,
                configured=name in configured,
                models=[ProviderModel(id=m.id, name=m.name, max_tokens=m.max_tokens) for m in models],
            )
            for name, models in engine.registry.get_catalog().items()
        ]
    )
