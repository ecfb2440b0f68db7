"""API endpoints for speed-mode star ratings"""

from fastapi import APIRouter, Depends, HTTPException

from ..auth import AuthContext, get_auth_context
from ..core.optimizer import OptimizationEngine
from ..core.optimizer.errors import AlreadyRated, InvalidRequest, PersistenceFailure, RecordNotFound
from .deps import get_optimization_engine
from .optimize import error_detail
from .schemas import RatingRequest, RatingResponse

router = APIRouter(prefix="/api", tags=["ratings"])


@router.post("/ratings")
async def submit_rating(
    rating: RatingRequest,
    auth_ctx: AuthContext = Depends(get_auth_context),
    engine: OptimizationEngine = Depends(get_optimization_engine),
) -> RatingResponse:
    """
    Rate a speed-mode result once.

    Raises:
        HTTPException: 404 if the record is unknown, 409 if it is already rated,
            503 if the database is unavailable
    """
    try:
        applied = engine.submit_rating(auth_ctx.user_id, rating.record_id, rating.stars)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=error_detail(e))
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=error_detail(e))
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=error_detail(e))

    if not applied:
        raise HTTPException(
            status_code=409,
            detail=error_detail(AlreadyRated(f"Speed optimization '{rating.record_id}' is already rated")),
        )

    return RatingResponse(record_id=rating.record_id, stars=rating.stars, applied=True)
