"""In-app notifications written alongside the change that triggers them."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.models import Notification, Role, User

logger = logging.getLogger(__name__)

INFO = "INFO"
SUCCESS = "SUCCESS"
ERROR = "ERROR"


def notify(
    session: AsyncSession,
    user_id: str,
    title: str,
    message: str,
    type: str = INFO,
    link: Optional[str] = None,
) -> Notification:
    """Queue a notification on ``session``; the caller commits."""
    note = Notification(user_id=user_id, title=title, message=message, type=type, link=link)
    session.add(note)
    logger.debug("Notification for %s: %s", user_id, title)
    return note


async def notify_admins(
    session: AsyncSession,
    title: str,
    message: str,
    type: str = INFO,
    link: Optional[str] = None,
) -> int:
    admin_ids = (
        await session.execute(
            select(User.id).where(User.role == Role.ADMIN, User.is_disabled.is_(False))
        )
    ).scalars().all()
    for admin_id in admin_ids:
        notify(session, admin_id, title, message, type, link)
    return len(admin_ids)
