"""Events endpoint -- program calendar."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import require_admin
from callhub.database import get_session
from callhub.models import Event, EventType, StartupCall, User
from callhub.routes.common import get_or_404, reject_nulls, scalars
from callhub.schemas import EventCreate, EventOut, EventUpdate
from callhub.validation import to_naive_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=list[EventOut])
async def list_events(
    date_from: Optional[dt.datetime] = Query(default=None, alias="from"),
    date_to: Optional[dt.datetime] = Query(default=None, alias="to"),
    type: Optional[EventType] = None,
    session: AsyncSession = Depends(get_session),
):
    stmt = select(Event).order_by(Event.start_date)
    if date_from is not None:
        stmt = stmt.where(Event.start_date >= to_naive_utc(date_from))
    if date_to is not None:
        stmt = stmt.where(Event.start_date <= to_naive_utc(date_to))
    if type is not None:
        stmt = stmt.where(Event.type == type)
    return await scalars(session, stmt)


@router.post("", response_model=EventOut, status_code=201)
async def create_event(
    body: EventCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    if body.startup_call_id and await session.get(StartupCall, body.startup_call_id) is None:
        raise HTTPException(status_code=400, detail="Startup call not found")
    event = Event(**body.model_dump())
    session.add(event)
    await session.commit()
    logger.info("Event %s scheduled for %s", event.id, event.start_date.isoformat())
    return event


@router.get("/{event_id}", response_model=EventOut)
async def get_event(event_id: str, session: AsyncSession = Depends(get_session)):
    return await get_or_404(session, Event, event_id, "Event")


@router.patch("/{event_id}", response_model=EventOut)
async def update_event(
    event_id: str,
    body: EventUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    event = await get_or_404(session, Event, event_id, "Event")
    changes = body.model_dump(exclude_unset=True)
    reject_nulls(changes, ("title", "description", "type", "start_date", "end_date", "is_virtual"))

    if changes.get("end_date", event.end_date) < changes.get("start_date", event.start_date):
        raise HTTPException(status_code=400, detail="End date cannot be before start date")
    if changes.get("is_virtual", event.is_virtual) and not changes.get("virtual_link", event.virtual_link):
        raise HTTPException(status_code=400, detail="Virtual events need a virtual_link")
    if changes.get("startup_call_id") and await session.get(StartupCall, changes["startup_call_id"]) is None:
        raise HTTPException(status_code=400, detail="Startup call not found")

    for field, value in changes.items():
        setattr(event, field, value)
    await session.commit()
    return event


@router.delete("/{event_id}", status_code=204)
async def delete_event(
    event_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    event = await get_or_404(session, Event, event_id, "Event")
    await session.delete(event)
    await session.commit()
