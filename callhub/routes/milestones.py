"""Milestones endpoint -- progress milestones nested under a startup."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user, get_optional_user
from callhub.database import get_session
from callhub.models import Expense, Milestone, MilestoneStatus, Task, User
from callhub.routes.common import apply_changes, rank, scalars
from callhub.routes.startups import can_manage, load_startup
from callhub.schemas import MilestoneCreate, MilestoneOut, MilestoneUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/startups/{startup_id}/milestones", tags=["milestones"])

STATUS_ORDER = (
    MilestoneStatus.PENDING,
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.COMPLETED,
    MilestoneStatus.DELAYED,
)


async def _load_milestone(session: AsyncSession, startup_id: str, milestone_id: str) -> Milestone:
    milestone = await session.get(Milestone, milestone_id)
    if milestone is None or milestone.startup_id != startup_id:
        raise HTTPException(status_code=404, detail="Milestone not found")
    return milestone


async def _require_manager(session: AsyncSession, startup_id: str, user: User):
    startup = await load_startup(session, startup_id, user)
    if not can_manage(user, startup):
        raise HTTPException(status_code=403, detail="You don't have permission to manage this startup")
    return startup


@router.get("", response_model=list[MilestoneOut])
async def list_milestones(
    startup_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    await load_startup(session, startup_id, user)
    stmt = (
        select(Milestone)
        .where(Milestone.startup_id == startup_id)
        .order_by(rank(Milestone.status, STATUS_ORDER), Milestone.due_date)
    )
    return await scalars(session, stmt)


@router.post("", response_model=MilestoneOut, status_code=201)
async def create_milestone(
    startup_id: str,
    body: MilestoneCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_manager(session, startup_id, user)
    milestone = Milestone(startup_id=startup_id, **body.model_dump())
    session.add(milestone)
    await session.commit()
    logger.info("Milestone %s added to startup %s", milestone.id, startup_id)
    return milestone


@router.get("/{milestone_id}", response_model=MilestoneOut)
async def get_milestone(
    startup_id: str,
    milestone_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    await load_startup(session, startup_id, user)
    return await _load_milestone(session, startup_id, milestone_id)


@router.patch("/{milestone_id}", response_model=MilestoneOut)
async def update_milestone(
    startup_id: str,
    milestone_id: str,
    body: MilestoneUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_manager(session, startup_id, user)
    milestone = await _load_milestone(session, startup_id, milestone_id)
    apply_changes(milestone, body.model_dump(exclude_unset=True, exclude_none=True))
    await session.commit()
    return milestone


@router.delete("/{milestone_id}", status_code=204)
async def delete_milestone(
    startup_id: str,
    milestone_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_manager(session, startup_id, user)
    milestone = await _load_milestone(session, startup_id, milestone_id)
    # tasks and expenses outlive the milestone
    await session.execute(update(Task).where(Task.milestone_id == milestone.id).values(milestone_id=None))
    await session.execute(update(Expense).where(Expense.milestone_id == milestone.id).values(milestone_id=None))
    await session.delete(milestone)
    await session.commit()
