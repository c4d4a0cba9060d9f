"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.auth.session import verify_session_token
from byterunner.config import get_settings
from byterunner.database import get_session
from byterunner.db.models import User
from byterunner.users.service import get_or_create_user

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Verify the session token and return the matching User.

    Users are created lazily on their first authenticated request.
    Raises 401 on an invalid session.
    """
    try:
        payload = verify_session_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user, _ = await get_or_create_user(db, payload["sub"], payload.get("email"))
    return user


async def require_admin(
    user: User = Depends(get_current_user),
) -> User:
    """Same as get_current_user but additionally requires an admin email."""
    admin_emails = {e.lower() for e in get_settings().admin_emails}
    if not user.email or user.email.lower() not in admin_emails:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
