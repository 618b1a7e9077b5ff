"""Reviews endpoint -- reviewer assignment and review submission."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.auth import get_current_user, require_admin, require_roles
from callhub.database import get_session
from callhub.models import (
    ApplicationReview,
    ApplicationStatus,
    ReviewStatus,
    Role,
    StartupCallApplication,
    User,
    utcnow,
)
from callhub.notifications import INFO, SUCCESS, notify, notify_admins
from callhub.routes.common import execute, get_or_404, scalar, scalars
from callhub.routes.startup_calls import load_application
from callhub.schemas import AssignmentOut, ReviewerAssign, ReviewOut, ReviewSubmit

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reviews"])


@router.post("/applications/{application_id}/reviewers", response_model=ReviewOut, status_code=201)
async def assign_reviewer(
    application_id: str,
    body: ReviewerAssign,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    application = await load_application(session, application_id)
    if application.status in (ApplicationStatus.WITHDRAWN, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED):
        raise HTTPException(status_code=400, detail=f"Cannot assign reviewers to a {application.status.value} application")

    reviewer = await get_or_404(session, User, body.reviewer_id, "Reviewer")
    if reviewer.role != Role.REVIEWER:
        raise HTTPException(status_code=400, detail="User is not a reviewer")
    existing = await scalar(
        session,
        select(ApplicationReview.id).where(
            ApplicationReview.application_id == application.id, ApplicationReview.reviewer_id == reviewer.id
        ),
    )
    if existing:
        raise HTTPException(status_code=409, detail="Reviewer is already assigned to this application")

    review = ApplicationReview(application_id=application.id, reviewer_id=reviewer.id, due_date=body.due_date)
    session.add(review)
    application.status = ApplicationStatus.UNDER_REVIEW
    notify(session, reviewer.id, "New review assignment",
           f"You have been assigned to review {application.startup_name}", INFO,
           link="/reviewer/assignments")
    await session.commit()
    logger.info("Reviewer %s assigned to application %s", reviewer.id, application.id)
    return review


@router.get("/applications/{application_id}/reviews", response_model=list[ReviewOut])
async def list_application_reviews(
    application_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Admins see every review; the applicant sees completed ones."""
    application = await load_application(session, application_id)
    stmt = select(ApplicationReview).where(ApplicationReview.application_id == application.id)
    if user.role != Role.ADMIN:
        if application.user_id != user.id:
            raise HTTPException(status_code=403, detail="You don't have permission to view these reviews")
        stmt = stmt.where(ApplicationReview.status == ReviewStatus.COMPLETED)
    return await scalars(session, stmt.order_by(ApplicationReview.assigned_at))


@router.get("/reviewer/assignments", response_model=list[AssignmentOut])
async def my_assignments(
    reviewer: User = Depends(require_roles(Role.REVIEWER)),
    session: AsyncSession = Depends(get_session),
):
    rows = await execute(
        session,
        select(ApplicationReview, StartupCallApplication)
        .join(StartupCallApplication, StartupCallApplication.id == ApplicationReview.application_id)
        .where(ApplicationReview.reviewer_id == reviewer.id)
        .order_by(ApplicationReview.assigned_at.desc()),
    )
    out = []
    for review, application in rows.all():
        item = AssignmentOut.model_validate(review)
        item.startup_name = application.startup_name
        item.call_id = application.call_id
        item.application_status = application.status
        out.append(item)
    return out


@router.post("/reviewer/assignments/{review_id}/start", response_model=ReviewOut)
async def start_review(
    review_id: str,
    reviewer: User = Depends(require_roles(Role.REVIEWER)),
    session: AsyncSession = Depends(get_session),
):
    review = await get_or_404(session, ApplicationReview, review_id, "Review assignment")
    if review.reviewer_id != reviewer.id:
        raise HTTPException(status_code=403, detail="This assignment belongs to another reviewer")
    if review.status != ReviewStatus.PENDING:
        raise HTTPException(status_code=400, detail=f"Cannot start a review that is {review.status.value}")
    review.status = ReviewStatus.IN_PROGRESS
    await session.commit()
    return review


@router.post("/applications/{application_id}/reviews", response_model=ReviewOut)
async def submit_review(
    application_id: str,
    body: ReviewSubmit,
    reviewer: User = Depends(require_roles(Role.REVIEWER)),
    session: AsyncSession = Depends(get_session),
):
    application = await load_application(session, application_id)
    review = await scalar(
        session,
        select(ApplicationReview).where(
            ApplicationReview.application_id == application.id, ApplicationReview.reviewer_id == reviewer.id
        ),
    )
    if review is None:
        raise HTTPException(status_code=403, detail="You are not assigned to review this application")
    if review.status == ReviewStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Review has already been submitted")
    if review.status not in (ReviewStatus.PENDING, ReviewStatus.IN_PROGRESS):
        raise HTTPException(status_code=400, detail=f"Cannot submit a review that is {review.status.value}")

    for field, value in body.model_dump().items():
        setattr(review, field, value)
    review.status = ReviewStatus.COMPLETED
    review.completed_at = utcnow()
    application.reviews_completed = (application.reviews_completed or 0) + 1

    notify(session, application.user_id, "Review received",
           f"A reviewer has completed a review of {application.startup_name}", INFO,
           link=f"/applications/{application.id}")
    if application.reviews_completed >= application.reviews_total:
        await notify_admins(session, "All reviews completed",
                            f"{application.startup_name} has received all {application.reviews_total} reviews",
                            SUCCESS, link=f"/applications/{application.id}")
    await session.commit()
    logger.info("Review %s submitted for application %s", review.id, application.id)
    return review
