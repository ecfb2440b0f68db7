"""Core business logic"""

from .optimizer.errors import (
    AlreadyRated,
    InvalidRequest,
    NoVariantsGenerated,
    OptimizationError,
    PersistenceFailure,
    RecordNotFound,
)

__all__ = [
    "OptimizationError",
    "InvalidRequest",
    "NoVariantsGenerated",
    "PersistenceFailure",
    "RecordNotFound",
    "AlreadyRated",
]
