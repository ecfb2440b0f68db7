"""Request identity for the PromptSmith API.

Callers identify themselves with the ``X-User-Id`` header. When
``auth_required`` is off, requests without the header act as the
configured default user (single-tenant local mode).
"""

from typing import Optional

from fastapi import Header, HTTPException
from pydantic import BaseModel

from .config import get_settings


class AuthContext(BaseModel):
    """Authentication context for a request."""

    user_id: str
    auth_method: str  # "header", "none"


async def get_auth_context(x_user_id: Optional[str] = Header(None)) -> AuthContext:
    """Extract authentication context from request headers.

    Args:
        x_user_id: Caller identity header

    Returns:
        AuthContext with the resolved user_id

    Raises:
        HTTPException: 401 if the header is missing and auth is required
    """
    settings = get_settings()

    if x_user_id and x_user_id.strip():
        return AuthContext(user_id=x_user_id.strip(), auth_method="header")

    if settings.auth_required:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    return AuthContext(user_id=settings.default_user_id, auth_method="none")
