"""
Session token verification.

Sessions are owned by an external provider which signs short-lived HS256
JWTs carrying the subject (``sub``) and, when known, the user's ``email``.
This module only verifies them; ``create_session_token`` mints equivalent
tokens for local development and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from byterunner.config import get_settings


def create_session_token(
    subject: str,
    email: str | None = None,
    *,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """
    Create a session token the way the provider does.

    Args:
        subject: The provider's opaque user identifier.
        email: Optional verified email address.
        expires_in: Token lifetime.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": now,
        "exp": now + expires_in,
        "iss": settings.session_issuer,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


def verify_session_token(token: str) -> dict[str, Any]:
    """
    Verify and decode a session token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[settings.session_algorithm],
            issuer=settings.session_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Session has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not payload.get("sub"):
        msg = "Session token has no subject"
        raise jwt.InvalidTokenError(msg)

    return payload
