# app/auth/middleware.py
"""
FastAPI authentication dependency for the admin endpoints.

A single shared key read from KAFI_ADMIN_API_KEY, sent as a bearer token.
"""

import os
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

security = HTTPBearer(auto_error=False)

ADMIN_KEY_ENV = "KAFI_ADMIN_API_KEY"


@dataclass
class AuthResult:
    """Result of authentication check."""
    authenticated: bool
    error: Optional[str] = None


def get_admin_key() -> Optional[str]:
    # Read per request so the key can be rotated without a restart
    return os.getenv(ADMIN_KEY_ENV) or None


async def require_admin_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthResult:
    """
    Dependency that requires the admin bearer key.

    Raises:
        HTTPException 503: If no admin key is configured
        HTTPException 401: If the key is missing or wrong
    """
    admin_key = get_admin_key()
    if not admin_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Admin authentication not configured. Set {ADMIN_KEY_ENV}.",
            headers={"X-Auth-Status": "not_configured"},
        )

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(credentials.credentials.encode(), admin_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthResult(authenticated=True)
