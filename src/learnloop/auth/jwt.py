"""
HS256 JWT verification.

Tokens are issued by the platform's auth service with a shared secret; this
service only verifies them. `create_access_token` exists for local
development and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from learnloop.config import get_settings


def create_access_token(user_id: str, expires_in: timedelta | None = None) -> str:
    """
    Create an access token for `user_id`.

    Args:
        user_id: Subject of the token.
        expires_in: Lifetime override; defaults to the configured lifetime.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": user_id,
        "iat": now,
        "exp": now + lifetime,
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, not an
            access token, or carries no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type", "access") != "access":
        msg = f"Expected an access token, got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    if not isinstance(payload["sub"], str) or not payload["sub"]:
        msg = "Token subject is missing"
        raise jwt.InvalidTokenError(msg)

    return payload
