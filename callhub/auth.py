"""
Bearer-token authentication.

Tokens are random strings handed out once (user creation, rotation, seed)
and stored only as SHA-256 hashes on ``users.api_token_hash``.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.database import get_session
from callhub.models import Role, User
from callhub.retry import with_db_retry

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def issue_token() -> tuple[str, str]:
    """Return ``(token, token_hash)``; only the hash is ever stored."""
    token = secrets.token_urlsafe(32)
    return token, hash_token(token)


async def _user_for_token(session: AsyncSession, token: str) -> Optional[User]:
    stmt = select(User).where(User.api_token_hash == hash_token(token))
    result = await with_db_retry(lambda: session.execute(stmt), session=session)
    return result.scalar_one_or_none()


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    session: AsyncSession = Depends(get_session),
) -> Optional[User]:
    """Caller for public endpoints: ``None`` when no token is sent."""
    if credentials is None:
        return None
    user = await _user_for_token(session, credentials.credentials)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid API token")
    if user.is_disabled:
        raise HTTPException(status_code=403, detail="User is disabled")
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_roles(*roles: Role):
    """Dependency factory: the caller must hold one of ``roles``."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.info("User %s (%s) denied, needs one of %s", user.id, user.role.value, [r.value for r in roles])
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


require_admin = require_roles(Role.ADMIN)
