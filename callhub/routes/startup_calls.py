"""Startup calls endpoint -- programs, entrepreneur applications and approval."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user, get_optional_user, require_admin, require_roles
from callhub.config import DEFAULT_BUDGET_AMOUNT, DEFAULT_BUDGET_SPLIT, DEFAULT_CURRENCY
from callhub.database import get_session
from callhub.models import (
    ApplicationReview,
    ApplicationStatus,
    Budget,
    BudgetCategory,
    CallStatus,
    Event,
    Role,
    SponsorshipOpportunity,
    Startup,
    StartupCall,
    StartupCallApplication,
    StartupStatus,
    User,
    utcnow,
)
from callhub.notifications import ERROR, INFO, SUCCESS, notify, notify_admins
from callhub.routes.common import apply_changes, get_or_404, scalar, scalars
from callhub.schemas import (
    ApplicationCreate,
    ApplicationOut,
    ApplicationStatusUpdate,
    ApprovalResponse,
    StartupCallCreate,
    StartupCallOut,
    StartupCallUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/startup-calls", tags=["startup-calls"])
applications_router = APIRouter(prefix="/applications", tags=["applications"])

NOT_APPLIED = "NOT_APPLIED"


def _visible_statuses(user: Optional[User]) -> Optional[tuple[CallStatus, ...]]:
    """Call statuses the caller may see; ``None`` means all."""
    if user is not None and user.role == Role.ADMIN:
        return None
    if user is None or user.role == Role.ENTREPRENEUR:
        return (CallStatus.PUBLISHED, CallStatus.CLOSED)
    return (CallStatus.PUBLISHED,)


async def _load_call(session: AsyncSession, call_id: str, user: Optional[User]) -> StartupCall:
    call = await get_or_404(session, StartupCall, call_id, "Startup call")
    statuses = _visible_statuses(user)
    if statuses is not None and call.status not in statuses:
        raise HTTPException(status_code=404, detail="Startup call not found")
    return call


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------

@router.get("", response_model=list[StartupCallOut])
async def list_calls(
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    stmt = select(StartupCall).order_by(StartupCall.created_at.desc())
    statuses = _visible_statuses(user)
    if statuses is not None:
        stmt = stmt.where(StartupCall.status.in_(statuses))
    calls = await scalars(session, stmt)

    out = [StartupCallOut.model_validate(c) for c in calls]
    if user is not None and user.role == Role.ENTREPRENEUR:
        rows = await session.execute(
            select(StartupCallApplication.call_id, StartupCallApplication.status).where(
                StartupCallApplication.user_id == user.id
            )
        )
        applied = {call_id: status.value for call_id, status in rows.all()}
        for item in out:
            item.application_status = applied.get(item.id, NOT_APPLIED)
    return out


@router.post("", response_model=StartupCallOut, status_code=201)
async def create_call(
    body: StartupCallCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    call = StartupCall(**body.model_dump(), created_by_id=admin.id)
    if call.status == CallStatus.PUBLISHED:
        call.published_date = utcnow()
    session.add(call)
    await session.commit()
    logger.info("Startup call %s created (%s)", call.id, call.status.value)
    return call


@router.get("/{call_id}", response_model=StartupCallOut)
async def get_call(
    call_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    call = await _load_call(session, call_id, user)
    out = StartupCallOut.model_validate(call)
    if user is not None and user.role == Role.ENTREPRENEUR:
        status = await scalar(
            session,
            select(StartupCallApplication.status).where(
                StartupCallApplication.call_id == call.id, StartupCallApplication.user_id == user.id
            ),
        )
        out.application_status = status.value if status else NOT_APPLIED
    return out


@router.patch("/{call_id}", response_model=StartupCallOut)
async def update_call(
    call_id: str,
    body: StartupCallUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    call = await get_or_404(session, StartupCall, call_id, "Startup call")
    apply_changes(call, body.model_dump(exclude_unset=True, exclude_none=True))
    if call.status == CallStatus.PUBLISHED and call.published_date is None:
        call.published_date = utcnow()
    await session.commit()
    return call


@router.delete("/{call_id}", status_code=204)
async def delete_call(
    call_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    call = await get_or_404(session, StartupCall, call_id, "Startup call")
    applications = await scalar(
        session, select(func.count(StartupCallApplication.id)).where(StartupCallApplication.call_id == call.id)
    )
    if applications:
        raise HTTPException(status_code=409, detail="Cannot delete a startup call that has applications")
    budgets = await scalar(session, select(func.count(Budget.id)).where(Budget.startup_call_id == call.id))
    if budgets:
        raise HTTPException(status_code=409, detail="Cannot delete a startup call that has budgets")

    await session.execute(update(Event).where(Event.startup_call_id == call.id).values(startup_call_id=None))
    await session.execute(
        update(SponsorshipOpportunity)
        .where(SponsorshipOpportunity.startup_call_id == call.id)
        .values(startup_call_id=None)
    )
    await session.delete(call)
    await session.commit()
    logger.info("Startup call %s deleted", call_id)


# ---------------------------------------------------------------------------
# Applications to a call
# ---------------------------------------------------------------------------

@router.get("/{call_id}/applications", response_model=list[ApplicationOut])
async def list_call_applications(
    call_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await get_or_404(session, StartupCall, call_id, "Startup call")
    stmt = (
        select(StartupCallApplication)
        .where(StartupCallApplication.call_id == call_id)
        .order_by(StartupCallApplication.submitted_at.desc())
    )
    if user.role == Role.ENTREPRENEUR:
        stmt = stmt.where(StartupCallApplication.user_id == user.id)
    elif user.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return await scalars(session, stmt)


@router.post("/{call_id}/applications", response_model=ApplicationOut, status_code=201)
async def apply_to_call(
    call_id: str,
    body: ApplicationCreate,
    user: User = Depends(require_roles(Role.ENTREPRENEUR)),
    session: AsyncSession = Depends(get_session),
):
    call = await get_or_404(session, StartupCall, call_id, "Startup call")
    if call.status != CallStatus.PUBLISHED:
        raise HTTPException(status_code=400, detail="This startup call is not open for applications")
    if call.application_deadline < utcnow():
        raise HTTPException(status_code=400, detail="The application deadline for this call has passed")

    existing = await scalar(
        session,
        select(StartupCallApplication.id).where(
            StartupCallApplication.call_id == call.id, StartupCallApplication.user_id == user.id
        ),
    )
    if existing:
        raise HTTPException(status_code=400, detail="You have already applied to this startup call")

    startup_id = await scalar(
        session,
        select(Startup.id).where(Startup.founder_id == user.id).order_by(Startup.created_at).limit(1),
    )
    application = StartupCallApplication(call_id=call.id, user_id=user.id, startup_id=startup_id, **body.model_dump())
    session.add(application)
    await session.flush()
    await notify_admins(
        session,
        "New application",
        f"{body.startup_name} applied to {call.title}",
        link=f"/applications/{application.id}",
    )
    await session.commit()
    logger.info("Application %s submitted to call %s by %s", application.id, call.id, user.id)
    return application


# ---------------------------------------------------------------------------
# Single application
# ---------------------------------------------------------------------------

async def load_application(session: AsyncSession, application_id: str) -> StartupCallApplication:
    return await get_or_404(session, StartupCallApplication, application_id, "Application")


async def approve_application(session: AsyncSession, application: StartupCallApplication) -> tuple[Budget, bool]:
    """Mark approved and make sure the call has a budget; returns ``(budget, created)``."""
    application.status = ApplicationStatus.APPROVED
    if application.startup_id:
        startup = await session.get(Startup, application.startup_id)
        if startup is not None:
            startup.status = StartupStatus.ACCEPTED

    budget = await scalar(
        session, select(Budget).where(Budget.startup_call_id == application.call_id).order_by(Budget.created_at).limit(1)
    )
    if budget is not None:
        logger.info("Budget %s reused for approved application %s", budget.id, application.id)
        return budget, False

    call = await session.get(StartupCall, application.call_id)
    now = utcnow()
    budget = Budget(
        startup_call_id=application.call_id,
        startup_id=application.startup_id,
        title=f"Budget for {call.title}",
        description=f"Auto-generated budget for the approved startup: {application.startup_name}",
        total_amount=DEFAULT_BUDGET_AMOUNT,
        currency=DEFAULT_CURRENCY,
        fiscal_year=str(now.year),
        status="active",
        start_date=now,
        end_date=now + dt.timedelta(days=365),
        categories=[
            BudgetCategory(name=name, description=description, allocated_amount=DEFAULT_BUDGET_AMOUNT * share)
            for name, (description, share) in DEFAULT_BUDGET_SPLIT.items()
        ],
    )
    session.add(budget)
    logger.info("Default budget created for approved application %s", application.id)
    return budget, True


@applications_router.get("/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    application = await load_application(session, application_id)
    if user.role == Role.ADMIN or application.user_id == user.id:
        return application
    assigned = await scalar(
        session,
        select(ApplicationReview.id).where(
            ApplicationReview.application_id == application.id, ApplicationReview.reviewer_id == user.id
        ),
    )
    if not assigned:
        raise HTTPException(status_code=403, detail="You don't have permission to view this application")
    return application


@applications_router.patch("/{application_id}/status", response_model=ApplicationOut)
async def change_application_status(
    application_id: str,
    body: ApplicationStatusUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    application = await load_application(session, application_id)
    if body.status == ApplicationStatus.APPROVED:
        await approve_application(session, application)
    else:
        application.status = body.status

    kind = {ApplicationStatus.APPROVED: SUCCESS, ApplicationStatus.REJECTED: ERROR}.get(body.status, INFO)
    message = f"Your application for {application.startup_name} is now {body.status.value}"
    if body.comment:
        message += f": {body.comment}"
    notify(session, application.user_id, "Application status updated", message, kind,
           link=f"/applications/{application.id}")
    await session.commit()
    return application


@applications_router.post("/{application_id}/withdraw", response_model=ApplicationOut)
async def withdraw_application(
    application_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    application = await load_application(session, application_id)
    if application.user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only withdraw your own application")
    if application.status not in (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW):
        raise HTTPException(status_code=400, detail=f"Cannot withdraw an application that is {application.status.value}")
    application.status = ApplicationStatus.WITHDRAWN
    await session.commit()
    return application


@applications_router.post("/{application_id}/approve", response_model=ApprovalResponse)
async def approve(
    application_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    application = await load_application(session, application_id)
    budget, created = await approve_application(session, application)
    notify(session, application.user_id, "Application approved",
           f"Your application for {application.startup_name} has been approved", SUCCESS,
           link=f"/applications/{application.id}")
    await session.commit()
    return ApprovalResponse(
        message="Application approved and budget assigned successfully",
        application=ApplicationOut.model_validate(application),
        budget_id=budget.id,
        budget_created=created,
    )
