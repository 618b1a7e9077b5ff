"""
Background housekeeping scheduler.

Runs inside the FastAPI process when ENABLE_SCHEDULER is set.
Uses APScheduler to periodically:
    1. Close published startup calls whose application deadline has passed
    2. Close active sponsorship opportunities whose deadline has passed
    3. Mark pending / in-progress milestones past their due date as DELAYED

Every run goes through the database retry wrapper, so a dropped pooled
connection only costs a retry instead of a skipped run.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.config import SCHEDULER_INTERVAL_MINUTES
from callhub.models import (
    CallStatus,
    Milestone,
    MilestoneStatus,
    OpportunityStatus,
    SponsorshipOpportunity,
    StartupCall,
    utcnow,
)
from callhub.retry import run_in_session

logger = logging.getLogger(__name__)


async def close_expired_calls(session: AsyncSession, now: dt.datetime) -> int:
    result = await session.execute(
        update(StartupCall)
        .where(StartupCall.status == CallStatus.PUBLISHED, StartupCall.application_deadline < now)
        .values(status=CallStatus.CLOSED, updated_at=now)
    )
    return result.rowcount


async def close_expired_opportunities(session: AsyncSession, now: dt.datetime) -> int:
    result = await session.execute(
        update(SponsorshipOpportunity)
        .where(
            SponsorshipOpportunity.status == OpportunityStatus.ACTIVE,
            SponsorshipOpportunity.deadline.is_not(None),
            SponsorshipOpportunity.deadline < now,
        )
        .values(status=OpportunityStatus.CLOSED, updated_at=now)
    )
    return result.rowcount


async def flag_overdue_milestones(session: AsyncSession, now: dt.datetime) -> int:
    result = await session.execute(
        update(Milestone)
        .where(
            Milestone.status.in_((MilestoneStatus.PENDING, MilestoneStatus.IN_PROGRESS)),
            Milestone.due_date < now,
        )
        .values(status=MilestoneStatus.DELAYED, updated_at=now)
    )
    return result.rowcount


async def run_housekeeping(now: Optional[dt.datetime] = None) -> dict:
    """Apply every housekeeping rule once; returns rows changed per rule."""
    now = now or utcnow()

    async def work(session: AsyncSession) -> dict:
        counts = {
            "calls_closed": await close_expired_calls(session, now),
            "opportunities_closed": await close_expired_opportunities(session, now),
            "milestones_delayed": await flag_overdue_milestones(session, now),
        }
        await session.commit()
        return counts

    counts = await run_in_session(work)
    logger.info(
        "Housekeeping: %d calls closed, %d opportunities closed, %d milestones delayed",
        counts["calls_closed"], counts["opportunities_closed"], counts["milestones_delayed"],
    )
    return counts


class HousekeepingScheduler:
    """APScheduler wrapper owning the periodic housekeeping job."""

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def start(self, interval_minutes: int = SCHEDULER_INTERVAL_MINUTES):
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._run,
            IntervalTrigger(minutes=interval_minutes),
            id="housekeeping",
            name="Deadline and milestone housekeeping",
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info("Housekeeping scheduler started (interval=%dm)", interval_minutes)

    def stop(self):
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Housekeeping scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _run(self):
        try:
            await run_housekeeping()
        except Exception as e:
            # keep the job scheduled; the next interval tries again
            logger.error("Housekeeping run failed: %s", e)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_scheduler: Optional[HousekeepingScheduler] = None


def get_scheduler() -> HousekeepingScheduler:
    """Get or create the global scheduler singleton."""
    global _scheduler
    if _scheduler is None:
        _scheduler = HousekeepingScheduler()
    return _scheduler
