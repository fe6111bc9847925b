"""
Resolve the authenticated subject once per request.

Sessions are issued by the hosted auth backend as HS256 JWTs. They arrive as
a bearer token on API calls and as a cookie on browser redirects (the OAuth
callback). Anything that does not verify resolves to no subject.
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jobdash.core.config import AppSettings
from jobdash.dependencies.config import get_app_settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def decode_session_token(token: str, settings: AppSettings) -> Optional[str]:
    """Return the ``sub`` claim of a valid session token, else ``None``."""
    secret = settings.security.session_jwt_secret
    if not secret:
        logger.error("SESSION_JWT_SECRET is not configured; rejecting all sessions.")
        return None

    audience = settings.security.session_jwt_audience
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience or None,
            options={"require": ["sub", "exp"], "verify_aud": bool(audience)},
        )
    except jwt.PyJWTError as exc:
        logger.info("Rejected session token: %s", type(exc).__name__)
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    return subject


def get_current_subject(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(_bearer_scheme)
    ] = None,
) -> Optional[str]:
    """FastAPI dependency returning the session subject, or ``None``."""
    token = (
        credentials.credentials
        if credentials
        else request.cookies.get(settings.security.session_cookie_name)
    )
    if not token:
        return None
    return decode_session_token(token, settings)


def require_subject(
    subject: Annotated[Optional[str], Depends(get_current_subject)],
) -> str:
    """FastAPI dependency that rejects unauthenticated callers with 401."""
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return subject


__all__ = ["decode_session_token", "get_current_subject", "require_subject"]
