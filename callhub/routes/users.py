"""Users endpoint -- accounts, roles and API tokens."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user, issue_token, require_admin
from callhub.database import get_session
from callhub.models import Role, User
from callhub.routes.common import get_or_404, scalar, scalars
from callhub.schemas import RoleUpdate, UserCreate, UserOut, UserWithToken

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return user


@router.get("", response_model=list[UserOut])
async def list_users(
    role: Optional[Role] = None,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    stmt = select(User).order_by(User.created_at)
    if role is not None:
        stmt = stmt.where(User.role == role)
    return await scalars(session, stmt)


@router.post("", response_model=UserWithToken, status_code=201)
async def create_user(
    body: UserCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    email = body.email.strip().lower()
    existing = await scalar(session, select(User.id).where(User.email == email))
    if existing:
        raise HTTPException(status_code=409, detail="User with this email already exists")

    token, token_hash = issue_token()
    user = User(name=body.name, email=email, role=body.role, api_token_hash=token_hash)
    session.add(user)
    await session.commit()
    logger.info("User %s created with role %s", user.id, user.role.value)
    return UserWithToken(user=UserOut.model_validate(user), token=token)


@router.patch("/{user_id}/role", response_model=UserOut)
async def change_role(
    user_id: str,
    body: RoleUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    user = await get_or_404(session, User, user_id, "User")
    user.role = body.role
    await session.commit()
    logger.info("User %s role set to %s by %s", user.id, body.role.value, admin.id)
    return user


async def _set_disabled(session: AsyncSession, admin: User, user_id: str, disabled: bool) -> User:
    user = await get_or_404(session, User, user_id, "User")
    if disabled and user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot disable your own account")
    user.is_disabled = disabled
    await session.commit()
    return user


@router.post("/{user_id}/disable", response_model=UserOut)
async def disable_user(
    user_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _set_disabled(session, admin, user_id, True)


@router.post("/{user_id}/enable", response_model=UserOut)
async def enable_user(
    user_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _set_disabled(session, admin, user_id, False)


@router.post("/{user_id}/token", response_model=UserWithToken)
async def rotate_token(
    user_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Issue a new token; the previous one stops working immediately."""
    if user.role != Role.ADMIN and user.id != user_id:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    target = await get_or_404(session, User, user_id, "User")
    token, token_hash = issue_token()
    target.api_token_hash = token_hash
    await session.commit()
    return UserWithToken(user=UserOut.model_validate(target), token=token)
