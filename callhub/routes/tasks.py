"""Tasks endpoint -- work items of a startup, optionally grouped under a milestone."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user, get_optional_user
from callhub.database import get_session
from callhub.models import Milestone, Startup, Task, TaskPriority, TaskStatus, User, utcnow
from callhub.routes.common import get_or_404, rank, reject_nulls, scalars
from callhub.routes.startups import can_manage, can_view
from callhub.schemas import TaskCreate, TaskOut, TaskUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/startups/{startup_id}/tasks", tags=["tasks"])

STATUS_ORDER = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED, TaskStatus.COMPLETED)
PRIORITY_ORDER = (TaskPriority.HIGH, TaskPriority.MEDIUM, TaskPriority.LOW)


async def _check_references(session: AsyncSession, startup_id: str, milestone_id, assignee_id) -> None:
    if milestone_id:
        milestone = await session.get(Milestone, milestone_id)
        if milestone is None or milestone.startup_id != startup_id:
            raise HTTPException(status_code=400, detail="Milestone does not belong to this startup")
    if assignee_id and await session.get(User, assignee_id) is None:
        raise HTTPException(status_code=400, detail="Assignee not found")


async def _load_task(session: AsyncSession, startup_id: str, task_id: str) -> Task:
    task = await session.get(Task, task_id)
    if task is None or task.startup_id != startup_id:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _stamp_completion(task: Task, previous: TaskStatus) -> None:
    if task.status == TaskStatus.COMPLETED and previous != TaskStatus.COMPLETED:
        task.completed_date = utcnow()
    elif task.status != TaskStatus.COMPLETED:
        task.completed_date = None


@router.get("", response_model=list[TaskOut])
async def list_tasks(
    startup_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    stmt = (
        select(Task)
        .where(Task.startup_id == startup_id)
        .order_by(rank(Task.status, STATUS_ORDER), rank(Task.priority, PRIORITY_ORDER), Task.due_date)
    )
    if not can_view(user, startup):
        if user is None:
            raise HTTPException(status_code=403, detail="You don't have permission to view these tasks")
        # assignees outside the startup only see their own tasks
        stmt = stmt.where(Task.assignee_id == user.id)
        tasks = await scalars(session, stmt)
        if not tasks:
            raise HTTPException(status_code=403, detail="You don't have permission to view these tasks")
        return tasks
    return await scalars(session, stmt)


@router.post("", response_model=TaskOut, status_code=201)
async def create_task(
    startup_id: str,
    body: TaskCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    if not can_manage(user, startup):
        raise HTTPException(status_code=403, detail="You don't have permission to add tasks to this startup")
    await _check_references(session, startup_id, body.milestone_id, body.assignee_id)

    task = Task(startup_id=startup_id, creator_id=user.id, **body.model_dump())
    _stamp_completion(task, TaskStatus.TODO)
    session.add(task)
    await session.commit()
    logger.info("Task %s created in startup %s", task.id, startup_id)
    return task


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    startup_id: str,
    task_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    task = await _load_task(session, startup_id, task_id)
    if not can_view(user, startup) and (user is None or task.assignee_id != user.id):
        raise HTTPException(status_code=403, detail="You don't have permission to view this task")
    return task


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    startup_id: str,
    task_id: str,
    body: TaskUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    task = await _load_task(session, startup_id, task_id)
    changes = body.model_dump(exclude_unset=True)

    if not can_manage(user, startup):
        if task.assignee_id != user.id:
            raise HTTPException(status_code=403, detail="You don't have permission to update this task")
        if set(changes) - {"status"}:
            raise HTTPException(status_code=403, detail="Assignees can only change the task status")

    reject_nulls(changes, ("title", "description", "due_date", "start_date", "status", "priority"))

    start = changes.get("start_date", task.start_date)
    due = changes.get("due_date", task.due_date)
    if due < start:
        raise HTTPException(status_code=400, detail="Due date cannot be before start date")
    await _check_references(session, startup_id, changes.get("milestone_id"), changes.get("assignee_id"))

    previous = task.status
    for field, value in changes.items():
        setattr(task, field, value)
    _stamp_completion(task, previous)
    await session.commit()
    return task


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    startup_id: str,
    task_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    startup = await get_or_404(session, Startup, startup_id, "Startup")
    if not can_manage(user, startup):
        raise HTTPException(status_code=403, detail="You don't have permission to delete this task")
    task = await _load_task(session, startup_id, task_id)
    await session.delete(task)
    await session.commit()
