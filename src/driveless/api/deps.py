"""FastAPI dependencies: shared services, bearer-token users and error mapping."""

from __future__ import annotations

import logging
from typing import Optional

import jwt
from fastapi import HTTPException, Request, status

from ..container import Container
from ..errors import (
    AuthError,
    DrivelessError,
    OptimizationError,
    PersistenceError,
    RoutingError,
    RoutingReason,
)

logger = logging.getLogger(__name__)


def get_container(request: Request) -> Container:
    return request.app.state.container


def _extract_token(request: Request) -> Optional[str]:
    """Pull Bearer token from the Authorization header."""
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None


def _decode_token(token: str, secret: Optional[str]) -> dict:
    """Decode and verify a Supabase JWT using HS256."""
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Token verification is not configured.",
        )
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        audience="authenticated",
    )


def get_current_user(request: Request) -> str:
    """Require a valid JWT and return its ``sub`` claim."""
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization header")
    try:
        payload = _decode_token(token, get_container(request).settings.supabase_jwt_secret)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: no sub claim")
    return user_id


def to_http_error(exc: Exception) -> HTTPException:
    """Map engine errors onto HTTP responses."""
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, OptimizationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, RoutingError):
        code = (
            status.HTTP_429_TOO_MANY_REQUESTS
            if exc.reason == RoutingReason.RATE_LIMITED
            else status.HTTP_502_BAD_GATEWAY
        )
        return HTTPException(status_code=code, detail={"reason": exc.reason.value, "message": str(exc)})
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, AuthError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": exc.message, "attempts": exc.attempts},
        )
    if isinstance(exc, DrivelessError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    logger.exception(f"Unexpected error: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Unexpected error: {exc}",
    )
