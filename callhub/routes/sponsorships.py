"""Sponsorship endpoint -- funding opportunities and sponsor applications."""

from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user, get_optional_user, require_admin, require_roles
from callhub.database import get_session
from callhub.models import (
    OpportunityStatus,
    Role,
    SponsorshipApplication,
    SponsorshipOpportunity,
    SponsorshipStatus,
    StartupCall,
    User,
    Visibility,
    utcnow,
)
from callhub.notifications import ERROR, INFO, SUCCESS, notify, notify_admins
from callhub.routes.common import execute, get_or_404, reject_nulls, scalar, scalars
from callhub.schemas import (
    ApplicationCheck,
    OpportunityCreate,
    OpportunityOut,
    OpportunityUpdate,
    SponsorshipApplicationOut,
    SponsorshipApply,
    SponsorshipStatusUpdate,
)
from callhub.validation import validate_future

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sponsorship-opportunities", tags=["sponsorship"])
applications_router = APIRouter(prefix="/sponsorship-applications", tags=["sponsorship"])
sponsors_router = APIRouter(prefix="/sponsors", tags=["sponsorship"])

WITHDRAWABLE = (SponsorshipStatus.PENDING, SponsorshipStatus.UNDER_REVIEW)


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "opportunity"


async def _unique_slug(session: AsyncSession, title: str, exclude_id: Optional[str] = None) -> str:
    base = slugify(title)
    stmt = select(SponsorshipOpportunity.slug).where(SponsorshipOpportunity.slug.like(f"{base}%"))
    if exclude_id:
        stmt = stmt.where(SponsorshipOpportunity.id != exclude_id)
    taken = set(await scalars(session, stmt))
    slug, n = base, 2
    while slug in taken:
        slug = f"{base}-{n}"
        n += 1
    return slug


def _is_public(opportunity: SponsorshipOpportunity) -> bool:
    return opportunity.status == OpportunityStatus.ACTIVE and opportunity.visibility == Visibility.PUBLIC


async def _load_visible(session: AsyncSession, opportunity_id: str, user: Optional[User]) -> SponsorshipOpportunity:
    opportunity = await get_or_404(session, SponsorshipOpportunity, opportunity_id, "Sponsorship opportunity")
    if (user is None or user.role != Role.ADMIN) and not _is_public(opportunity):
        raise HTTPException(status_code=404, detail="Sponsorship opportunity not found")
    return opportunity


async def _check_call(session: AsyncSession, call_id: Optional[str]) -> None:
    if call_id and await session.get(StartupCall, call_id) is None:
        raise HTTPException(status_code=400, detail="Startup call not found")


# ---------------------------------------------------------------------------
# Opportunities
# ---------------------------------------------------------------------------

@router.get("", response_model=list[OpportunityOut])
async def list_opportunities(
    status: Optional[OpportunityStatus] = None,
    industry: Optional[str] = None,
    q: Optional[str] = None,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    is_admin = user is not None and user.role == Role.ADMIN
    stmt = select(SponsorshipOpportunity).order_by(SponsorshipOpportunity.created_at.desc())
    if not is_admin:
        stmt = stmt.where(
            SponsorshipOpportunity.status == OpportunityStatus.ACTIVE,
            SponsorshipOpportunity.visibility == Visibility.PUBLIC,
        )
    if status is not None:
        stmt = stmt.where(SponsorshipOpportunity.status == status)
    if industry:
        stmt = stmt.where(SponsorshipOpportunity.industry_focus.ilike(f"%{industry}%"))
    if q:
        stmt = stmt.where(
            or_(SponsorshipOpportunity.title.ilike(f"%{q}%"), SponsorshipOpportunity.description.ilike(f"%{q}%"))
        )
    opportunities = await scalars(session, stmt)
    out = [OpportunityOut.model_validate(o) for o in opportunities]

    if is_admin and out:
        rows = await execute(
            session,
            select(SponsorshipApplication.opportunity_id, func.count(SponsorshipApplication.id))
            .group_by(SponsorshipApplication.opportunity_id),
        )
        counts = dict(rows.all())
        for item in out:
            item.applications_count = counts.get(item.id, 0)
    return out


@router.post("", response_model=OpportunityOut, status_code=201)
async def create_opportunity(
    body: OpportunityCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await _check_call(session, body.startup_call_id)
    opportunity = SponsorshipOpportunity(
        **body.model_dump(),
        slug=await _unique_slug(session, body.title),
        created_by_id=admin.id,
    )
    session.add(opportunity)
    await session.commit()
    logger.info("Sponsorship opportunity %s created (%s)", opportunity.id, opportunity.slug)
    return opportunity


@router.get("/{opportunity_id}", response_model=OpportunityOut)
async def get_opportunity(
    opportunity_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    opportunity = await _load_visible(session, opportunity_id, user)
    await session.execute(
        update(SponsorshipOpportunity)
        .where(SponsorshipOpportunity.id == opportunity.id)
        .values(views_count=SponsorshipOpportunity.views_count + 1)
    )
    await session.commit()
    await session.refresh(opportunity)
    return opportunity


@router.patch("/{opportunity_id}", response_model=OpportunityOut)
async def update_opportunity(
    opportunity_id: str,
    body: OpportunityUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    opportunity = await get_or_404(session, SponsorshipOpportunity, opportunity_id, "Sponsorship opportunity")
    changes = body.model_dump(exclude_unset=True)
    reject_nulls(
        changes, ("title", "description", "benefits", "min_amount", "max_amount", "currency", "status", "visibility")
    )

    min_amount = changes.get("min_amount", opportunity.min_amount)
    max_amount = changes.get("max_amount", opportunity.max_amount)
    if max_amount < min_amount:
        raise HTTPException(status_code=400, detail="Maximum amount must be greater than or equal to minimum amount")
    if changes.get("deadline") is not None:
        validate_future(changes["deadline"], utcnow(), "Deadline must be in the future")
    if "startup_call_id" in changes:
        await _check_call(session, changes["startup_call_id"])
    if "title" in changes and changes["title"] != opportunity.title:
        opportunity.slug = await _unique_slug(session, changes["title"], exclude_id=opportunity.id)

    for field, value in changes.items():
        setattr(opportunity, field, value)
    await session.commit()
    return opportunity


@router.delete("/{opportunity_id}", status_code=204)
async def delete_opportunity(
    opportunity_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    opportunity = await get_or_404(session, SponsorshipOpportunity, opportunity_id, "Sponsorship opportunity")
    applications = await scalar(
        session,
        select(func.count(SponsorshipApplication.id)).where(SponsorshipApplication.opportunity_id == opportunity.id),
    )
    if applications:
        raise HTTPException(status_code=409, detail="Cannot delete an opportunity that has applications")
    await session.delete(opportunity)
    await session.commit()


@router.post("/{opportunity_id}/share")
async def share_opportunity(
    opportunity_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    opportunity = await _load_visible(session, opportunity_id, user)
    await session.execute(
        update(SponsorshipOpportunity)
        .where(SponsorshipOpportunity.id == opportunity.id)
        .values(share_count=SponsorshipOpportunity.share_count + 1)
    )
    await session.commit()
    await session.refresh(opportunity)
    return {"id": opportunity.id, "slug": opportunity.slug, "share_count": opportunity.share_count}


# ---------------------------------------------------------------------------
# Sponsor applications
# ---------------------------------------------------------------------------

@router.post("/{opportunity_id}/apply", response_model=SponsorshipApplicationOut, status_code=201)
async def apply_to_opportunity(
    opportunity_id: str,
    body: SponsorshipApply,
    sponsor: User = Depends(require_roles(Role.SPONSOR)),
    session: AsyncSession = Depends(get_session),
):
    opportunity = await get_or_404(session, SponsorshipOpportunity, opportunity_id, "Sponsorship opportunity")
    if opportunity.visibility != Visibility.PUBLIC:
        raise HTTPException(status_code=404, detail="Sponsorship opportunity not found")
    if opportunity.status != OpportunityStatus.ACTIVE:
        raise HTTPException(status_code=400, detail="This opportunity is not accepting applications")
    if opportunity.deadline is not None and opportunity.deadline < utcnow():
        raise HTTPException(status_code=400, detail="The deadline for this opportunity has passed")
    if not opportunity.min_amount <= body.proposed_amount <= opportunity.max_amount:
        raise HTTPException(
            status_code=400,
            detail=f"Proposed amount must be between {opportunity.min_amount:g} and "
                   f"{opportunity.max_amount:g} {opportunity.currency}",
        )
    existing = await scalar(
        session,
        select(SponsorshipApplication.id).where(
            SponsorshipApplication.opportunity_id == opportunity.id, SponsorshipApplication.sponsor_id == sponsor.id
        ),
    )
    if existing:
        raise HTTPException(status_code=400, detail="You have already applied to this opportunity")

    data = body.model_dump()
    data["currency"] = data["currency"] or opportunity.currency
    application = SponsorshipApplication(opportunity_id=opportunity.id, sponsor_id=sponsor.id, **data)
    session.add(application)
    await notify_admins(
        session,
        "New sponsorship application",
        f"{body.sponsor_name} applied to sponsor {opportunity.title}",
        link=f"/sponsorship-opportunities/{opportunity.id}/applications",
    )
    await session.commit()
    logger.info("Sponsor %s applied to opportunity %s", sponsor.id, opportunity.id)
    return application


@router.get("/{opportunity_id}/check-application", response_model=ApplicationCheck)
async def check_application(
    opportunity_id: str,
    sponsor: User = Depends(require_roles(Role.SPONSOR)),
    session: AsyncSession = Depends(get_session),
):
    await get_or_404(session, SponsorshipOpportunity, opportunity_id, "Sponsorship opportunity")
    application = await scalar(
        session,
        select(SponsorshipApplication).where(
            SponsorshipApplication.opportunity_id == opportunity_id, SponsorshipApplication.sponsor_id == sponsor.id
        ),
    )
    return ApplicationCheck(
        has_applied=application is not None,
        application=SponsorshipApplicationOut.model_validate(application) if application else None,
    )


@router.get("/{opportunity_id}/applications", response_model=list[SponsorshipApplicationOut])
async def list_opportunity_applications(
    opportunity_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await get_or_404(session, SponsorshipOpportunity, opportunity_id, "Sponsorship opportunity")
    return await scalars(
        session,
        select(SponsorshipApplication)
        .where(SponsorshipApplication.opportunity_id == opportunity_id)
        .order_by(SponsorshipApplication.created_at.desc()),
    )


@sponsors_router.get("/me/applications", response_model=list[SponsorshipApplicationOut])
async def my_applications(
    sponsor: User = Depends(require_roles(Role.SPONSOR)),
    session: AsyncSession = Depends(get_session),
):
    return await scalars(
        session,
        select(SponsorshipApplication)
        .where(SponsorshipApplication.sponsor_id == sponsor.id)
        .order_by(SponsorshipApplication.created_at.desc()),
    )


@applications_router.patch("/{application_id}/status", response_model=SponsorshipApplicationOut)
async def change_sponsorship_status(
    application_id: str,
    body: SponsorshipStatusUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    application = await get_or_404(session, SponsorshipApplication, application_id, "Sponsorship application")
    application.status = body.status
    kind = {SponsorshipStatus.APPROVED: SUCCESS, SponsorshipStatus.REJECTED: ERROR}.get(body.status, INFO)
    message = f"Your sponsorship application is now {body.status.value}"
    if body.comment:
        message += f": {body.comment}"
    notify(session, application.sponsor_id, "Sponsorship application updated", message, kind,
           link="/sponsors/me/applications")
    await session.commit()
    return application


@applications_router.post("/{application_id}/withdraw", response_model=SponsorshipApplicationOut)
async def withdraw_sponsorship(
    application_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    application = await get_or_404(session, SponsorshipApplication, application_id, "Sponsorship application")
    if application.sponsor_id != user.id:
        raise HTTPException(status_code=403, detail="You can only withdraw your own application")
    if application.status not in WITHDRAWABLE:
        raise HTTPException(status_code=400, detail=f"Cannot withdraw an application that is {application.status.value}")
    application.status = SponsorshipStatus.WITHDRAWN
    await session.commit()
    return application
