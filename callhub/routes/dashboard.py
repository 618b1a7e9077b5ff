"""Dashboard endpoint -- role-specific counters."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user
from callhub.database import get_session
from callhub.models import (
    ApplicationReview,
    ApplicationStatus,
    CallStatus,
    Expense,
    ExpenseStatus,
    OpportunityStatus,
    ReviewStatus,
    Role,
    SponsorshipApplication,
    SponsorshipOpportunity,
    SponsorshipStatus,
    StartupCall,
    StartupCallApplication,
    User,
)
from callhub.routes.common import execute, scalar
from callhub.schemas import DashboardStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


async def _count(session: AsyncSession, column, *where) -> int:
    return await scalar(session, select(func.count(column)).where(*where)) or 0


async def _grouped(session: AsyncSession, column, *where) -> dict:
    stmt = select(column, func.count()).group_by(column)
    if where:
        stmt = stmt.where(*where)
    rows = await execute(session, stmt)
    return {key.value: count for key, count in rows.all()}


async def _entrepreneur_stats(session: AsyncSession, user: User) -> dict:
    own = StartupCallApplication.user_id == user.id
    return {
        "applications": await _count(session, StartupCallApplication.id, own),
        "in_review": await _count(
            session, StartupCallApplication.id, own, StartupCallApplication.status == ApplicationStatus.UNDER_REVIEW
        ),
        "approved": await _count(
            session, StartupCallApplication.id, own, StartupCallApplication.status == ApplicationStatus.APPROVED
        ),
        "open_calls": await _count(session, StartupCall.id, StartupCall.status == CallStatus.PUBLISHED),
        "reviews_received": await scalar(
            session,
            select(func.count(ApplicationReview.id))
            .join(StartupCallApplication, StartupCallApplication.id == ApplicationReview.application_id)
            .where(own, ApplicationReview.status == ReviewStatus.COMPLETED),
        ) or 0,
    }


async def _reviewer_stats(session: AsyncSession, user: User) -> dict:
    mine = ApplicationReview.reviewer_id == user.id
    completed = ApplicationReview.status == ReviewStatus.COMPLETED
    average = await scalar(session, select(func.avg(ApplicationReview.score)).where(mine, completed))
    return {
        "assigned": await _count(session, ApplicationReview.id, mine),
        "completed": await _count(session, ApplicationReview.id, mine, completed),
        "pending": await _count(
            session,
            ApplicationReview.id,
            mine,
            ApplicationReview.status.in_((ReviewStatus.PENDING, ReviewStatus.IN_PROGRESS)),
        ),
        "average_score": round(float(average), 2) if average is not None else None,
    }


async def _sponsor_stats(session: AsyncSession, user: User) -> dict:
    mine = SponsorshipApplication.sponsor_id == user.id
    approved_amount = await scalar(
        session,
        select(func.coalesce(func.sum(SponsorshipApplication.proposed_amount), 0.0)).where(
            mine, SponsorshipApplication.status.in_((SponsorshipStatus.APPROVED, SponsorshipStatus.COMPLETED))
        ),
    )
    return {
        "applications": await _count(session, SponsorshipApplication.id, mine),
        "applications_by_status": await _grouped(session, SponsorshipApplication.status, mine),
        "total_approved_amount": float(approved_amount or 0),
        "active_opportunities": await _count(
            session, SponsorshipOpportunity.id, SponsorshipOpportunity.status == OpportunityStatus.ACTIVE
        ),
    }


async def _admin_stats(session: AsyncSession, user: User) -> dict:
    return {
        "users_by_role": await _grouped(session, User.role),
        "calls_by_status": await _grouped(session, StartupCall.status),
        "applications_by_status": await _grouped(session, StartupCallApplication.status),
        "pending_expenses": await _count(session, Expense.id, Expense.status == ExpenseStatus.PENDING),
        "opportunities_by_status": await _grouped(session, SponsorshipOpportunity.status),
    }


async def _user_stats(session: AsyncSession, user: User) -> dict:
    return {
        "open_calls": await _count(session, StartupCall.id, StartupCall.status == CallStatus.PUBLISHED),
        "active_opportunities": await _count(
            session, SponsorshipOpportunity.id, SponsorshipOpportunity.status == OpportunityStatus.ACTIVE
        ),
    }


ROLE_STATS = {
    Role.ENTREPRENEUR: _entrepreneur_stats,
    Role.REVIEWER: _reviewer_stats,
    Role.SPONSOR: _sponsor_stats,
    Role.ADMIN: _admin_stats,
    Role.USER: _user_stats,
}


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    stats = await ROLE_STATS[user.role](session, user)
    return DashboardStats(role=user.role, stats=stats)
