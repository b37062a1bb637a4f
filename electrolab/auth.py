"""
Admin principal check for the admin API surface.

Login lives elsewhere; this module only verifies the JWT it issued.  The
token is read from the ``auth_token`` cookie set by the login service, or
from an ``Authorization: Bearer`` header for scripted clients.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from electrolab.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AdminPrincipal:
    subject: str
    role: str


def create_access_token(
    subject: str, role: str = "admin", expires_in_seconds: int | None = None
) -> str:
    """Issue a signed token; used by the seed script and the test-suite."""
    if expires_in_seconds is None:
        expires_in_seconds = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in_seconds),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode *token*, raising 401 when it is malformed, forged or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


async def require_admin(request: Request) -> AdminPrincipal:
    """FastAPI dependency: 401 without a valid token, 403 for non-admins."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        credentials: HTTPAuthorizationCredentials | None = await bearer_scheme(request)
        token = credentials.credentials if credentials else None
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")

    payload = decode_access_token(token)
    if payload.get("role") != "admin":
        logger.warning("Rejected non-admin principal sub=%s", payload.get("sub"))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return AdminPrincipal(subject=str(payload.get("sub")), role="admin")
