"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from climaroute.app.core.exceptions import AuthenticationError, InsufficientPermissionsError
from climaroute.app.core.jwt import decode_access_token

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Requires the subject (driver email) and role claims

    Returns:
        Decoded token payload: {"sub": email, "role": "admin" | "user", ...}

    Raises:
        AuthenticationError: 401 if the token is invalid or has no subject
        InsufficientPermissionsError: 403 if the token carries no role
    """
    token = credentials.credentials

    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    if not payload.get("sub"):
        raise AuthenticationError("Invalid token payload")

    if not payload.get("role"):
        raise InsufficientPermissionsError("Role information missing from token")

    return payload
