"""
Security utilities.

Verification of identity provider JWTs and one-time password setup tokens.
"""

from __future__ import annotations

import secrets
from typing import Any

from jose import JWTError, jwt

from lms.core.config import settings


# ---------------------------------------------------------------------------
# Identity provider tokens
# ---------------------------------------------------------------------------

def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an access token issued by the identity provider.

    Args:
        token: Encoded JWT string from the Authorization header.

    Returns:
        Decoded payload dict. `sub` holds the user id.

    Raises:
        JWTError: If the token is invalid, expired, tampered or has no subject.
    """
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        options=options,
    )
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload


# ---------------------------------------------------------------------------
# Password setup tokens
# ---------------------------------------------------------------------------

def create_password_setup_token() -> str:
    """Generate a secure random one-time password setup token."""
    return secrets.token_urlsafe(32)


def password_setup_redis_key(token: str) -> str:
    """Redis key for a password setup token. Format: pwd_setup:{token}"""
    return f"pwd_setup:{token}"


def password_setup_url(token: str) -> str:
    """Link sent to the user; the frontend exchanges the token with the identity provider."""
    return f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
