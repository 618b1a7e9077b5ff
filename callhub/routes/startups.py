"""Startups endpoint -- entrepreneur companies and who may see or edit them."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user, get_optional_user, require_roles
from callhub.database import get_session
from callhub.models import (
    Budget,
    Expense,
    Milestone,
    Role,
    Startup,
    StartupCallApplication,
    StartupStatus,
    Task,
    User,
)
from callhub.routes.common import apply_changes, get_or_404, scalars
from callhub.schemas import StartupCreate, StartupOut, StartupUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/startups", tags=["startups"])

# Roles that see every startup regardless of status
OVERSIGHT_ROLES = (Role.ADMIN, Role.REVIEWER, Role.SPONSOR)


def can_view(user: Optional[User], startup: Startup) -> bool:
    if startup.status == StartupStatus.ACCEPTED:
        return True
    if user is None:
        return False
    return user.role in OVERSIGHT_ROLES or startup.founder_id == user.id


def can_manage(user: User, startup: Startup) -> bool:
    return user.role == Role.ADMIN or startup.founder_id == user.id


async def load_startup(session: AsyncSession, startup_id: str, user: Optional[User]) -> Startup:
    """Fetch a startup the caller may view, else 404/403."""
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    if not can_view(user, startup):
        raise HTTPException(status_code=403, detail="You don't have permission to view this startup")
    return startup


@router.get("", response_model=list[StartupOut])
async def list_startups(
    status: Optional[StartupStatus] = None,
    industry: Optional[str] = None,
    q: Optional[str] = None,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    stmt = select(Startup).order_by(Startup.created_at.desc())
    if user is None or user.role not in OVERSIGHT_ROLES:
        visible = Startup.status == StartupStatus.ACCEPTED
        if user is not None:
            visible = or_(visible, Startup.founder_id == user.id)
        stmt = stmt.where(visible)
    if status is not None:
        stmt = stmt.where(Startup.status == status)
    if q:
        stmt = stmt.where(Startup.name.ilike(f"%{q}%"))

    startups = await scalars(session, stmt)
    if industry:
        # industry is a JSON list; filter in Python so SQLite and PostgreSQL agree
        needle = industry.lower()
        startups = [s for s in startups if any(needle == (i or "").lower() for i in s.industry or [])]
    return startups


@router.post("", response_model=StartupOut, status_code=201)
async def create_startup(
    body: StartupCreate,
    user: User = Depends(require_roles(Role.ENTREPRENEUR, Role.ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    startup = Startup(**body.model_dump(), founder_id=user.id)
    session.add(startup)
    await session.commit()
    logger.info("Startup %s created by %s", startup.id, user.id)
    return startup


@router.get("/{startup_id}", response_model=StartupOut)
async def get_startup(
    startup_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await load_startup(session, startup_id, user)


@router.patch("/{startup_id}", response_model=StartupOut)
async def update_startup(
    startup_id: str,
    body: StartupUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    if not can_manage(user, startup):
        raise HTTPException(status_code=403, detail="You don't have permission to update this startup")

    changes = body.model_dump(exclude_unset=True)
    if user.role != Role.ADMIN and ({"status", "score"} & changes.keys()):
        raise HTTPException(status_code=403, detail="Only admins can change status or score")
    apply_changes(startup, changes)
    await session.commit()
    return startup


@router.delete("/{startup_id}", status_code=204)
async def delete_startup(
    startup_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    if not can_manage(user, startup):
        raise HTTPException(status_code=403, detail="You don't have permission to delete this startup")

    milestone_ids = select(Milestone.id).where(Milestone.startup_id == startup.id)
    await session.execute(update(Expense).where(Expense.milestone_id.in_(milestone_ids)).values(milestone_id=None))
    await session.execute(delete(Task).where(Task.startup_id == startup.id))
    await session.execute(delete(Milestone).where(Milestone.startup_id == startup.id))
    await session.execute(
        update(StartupCallApplication).where(StartupCallApplication.startup_id == startup.id).values(startup_id=None)
    )
    await session.execute(update(Budget).where(Budget.startup_id == startup.id).values(startup_id=None))
    await session.delete(startup)
    await session.commit()
    logger.info("Startup %s deleted by %s", startup_id, user.id)
