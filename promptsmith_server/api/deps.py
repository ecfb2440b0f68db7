"""Shared FastAPI dependencies"""

from typing import Optional

from ..config import get_settings
from ..core.database import get_engine
from ..core.llm.registry import get_provider_registry
from ..core.optimizer import OptimizationEngine, SqlInsightCache
from ..core.store import OptimizationStore

# Global engine instance - keeps the unsynced queue alive across requests
_optimization_engine: Optional[OptimizationEngine] = None


def get_optimization_engine() -> OptimizationEngine:
    """Get or create the global optimization engine."""
    global _optimization_engine

    if _optimization_engine is None:
        settings = get_settings()
        db_engine = get_engine()
        _optimization_engine = OptimizationEngine(
            get_provider_registry(),
            store=OptimizationStore(db_engine),
            insight_cache=SqlInsightCache(db_engine),
            max_workers=settings.deep_mode_max_workers,
            retry_attempts=settings.provider_retry_attempts,
        )

    return _optimization_engine
