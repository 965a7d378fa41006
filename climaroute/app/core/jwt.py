"""
Bearer tokens for drivers and fleet operators.

A token names one identity: `sub` is the driver or operator email and
`role` is "admin" for operators who see the whole fleet, "user" for a
driver scoped to their own trips and alerts.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from climaroute.app.core.config import settings


def create_access_token(
    subject: str,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
    **claims: Any
) -> str:
    """
    Issue a signed token for a driver or operator.

    A token issued without a role still decodes, but the API answers it
    with 403 since it cannot be scoped.
    """
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload: Dict[str, Any] = dict(claims, sub=subject, exp=datetime.now(timezone.utc) + lifetime)
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified claims, or None for a bad signature, expired token or garbage."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
