"""Helpers shared by the routers: retried reads, 404 lookups, ordering ranks, patch checks."""

from __future__ import annotations

import enum
from typing import Sequence

from fastapi import HTTPException
from sqlalchemy import case
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.retry import with_db_retry
from callhub.validation import validate_required_fields


async def execute(session: AsyncSession, stmt):
    """``session.execute(stmt)`` through the retry wrapper."""
    return await with_db_retry(lambda: session.execute(stmt), session=session)


async def scalars(session: AsyncSession, stmt) -> list:
    return list((await execute(session, stmt)).scalars().all())


async def scalar(session: AsyncSession, stmt):
    return (await execute(session, stmt)).scalar()


async def get_or_404(session: AsyncSession, model, obj_id: str, label: str):
    obj = await with_db_retry(lambda: session.get(model, obj_id), session=session)
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj


def rank(column, order: Sequence[enum.Enum]):
    """ORDER BY expression placing ``column`` values in the given order."""
    return case({member: position for position, member in enumerate(order)}, value=column, else_=len(order))


def apply_changes(obj, changes: dict) -> None:
    for field, value in changes.items():
        setattr(obj, field, value)


def reject_nulls(changes: dict, fields: Sequence[str]) -> None:
    """Required fields present in a partial update must not be cleared."""
    validate_required_fields(changes, [f for f in fields if f in changes])
