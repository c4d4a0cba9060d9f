"""
Run tokens.

``start_run`` hands the client a short-lived HS256 JWT that records who
started the run and when the server saw it start. ``finish_run`` trusts
that timestamp over anything the client claims about elapsed time.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import jwt

from byterunner.config import get_settings
from byterunner.errors import InvalidToken
from byterunner.time_utils import epoch_ms, utcnow

RUN_TOKEN_ALGORITHM = "HS256"


def issue_run_token(subject: str, now: datetime | None = None) -> tuple[str, datetime]:
    """
    Sign a run token for ``subject``.

    Returns:
        Tuple of (encoded token, expiry).
    """
    settings = get_settings()
    if now is None:
        now = utcnow()
    expires_at = now + timedelta(seconds=settings.run_token_ttl_seconds)
    payload: dict[str, Any] = {
        "sub": subject,
        "started_at": epoch_ms(now),
        "iat": now,
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.run_token_secret, algorithm=RUN_TOKEN_ALGORITHM), expires_at


def verify_run_token(token: str, subject: str, now: datetime | None = None) -> int:
    """
    Verify a run token and return its server-side start time (epoch ms).

    Raises:
        InvalidToken: Bad signature, expired, malformed, or issued to another user.
    """
    settings = get_settings()
    options: dict[str, Any] = {"require": ["sub", "started_at", "exp"]}
    try:
        if now is None:
            payload = jwt.decode(token, settings.run_token_secret, algorithms=[RUN_TOKEN_ALGORITHM], options=options)
        else:
            payload = jwt.decode(
                token,
                settings.run_token_secret,
                algorithms=[RUN_TOKEN_ALGORITHM],
                options={**options, "verify_exp": False, "verify_iat": False},
            )
            if payload["exp"] <= now.timestamp():
                raise jwt.ExpiredSignatureError("Signature has expired")
    except jwt.ExpiredSignatureError:
        raise InvalidToken("Run token has expired.") from None
    except jwt.InvalidTokenError:
        raise InvalidToken("Invalid run token.") from None

    if payload.get("sub") != subject:
        raise InvalidToken("Run token does not belong to this user.")

    started_at = payload.get("started_at")
    if not isinstance(started_at, int):
        raise InvalidToken("Invalid run token.")
    return started_at
