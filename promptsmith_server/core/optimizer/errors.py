"""Optimizer error taxonomy.

Caller-visible failures carry a human-readable ``reason`` and, when known,
the prompt the user submitted so the caller can offer a retry.
"""

from typing import Optional


class OptimizationError(Exception):
    """Base class for optimizer failures surfaced to callers."""

    code = "optimization_failed"

    def __init__(self, reason: str, original_prompt: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.original_prompt = original_prompt


class InvalidRequest(OptimizationError):
    """Request rejected before any work started."""

    code = "invalid_request"


class NoVariantsGenerated(OptimizationError):
    """Every strategy failed; nothing was persisted."""

    code = "no_variants_generated"


class PersistenceFailure(OptimizationError):
    """Durable write failed after a successful optimization."""

    code = "persistence_failure"


class RatingError(OptimizationError):
    code = "rating_rejected"


class RecordNotFound(RatingError):
    """Record does not exist or belongs to another user."""

    code = "record_not_found"


class AlreadyRated(RatingError):
    code = "already_rated"
