"""Gamification bootstrap for newly verified users."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from fitquest.models import Avatar, Progress
from fitquest.services.events import UserVerified

logger = logging.getLogger(__name__)


async def initialize_user_gamification(session: AsyncSession, event: UserVerified) -> None:
    """Create the user's avatar and progress records if they don't exist yet."""
    avatar = (
        await session.execute(select(Avatar).where(Avatar.user_id == event.user_id))
    ).scalar_one_or_none()
    if avatar is None:
        session.add(Avatar(user_id=event.user_id, appearance={}, unlocked_items=[]))

    progress = (
        await session.execute(select(Progress).where(Progress.user_id == event.user_id))
    ).scalar_one_or_none()
    if progress is None:
        session.add(
            Progress(user_id=event.user_id, xp_total=0, level=1, points=0, streak_days=0)
        )

    await session.flush()
    logger.info(f"Initialized gamification for user {event.user_id}")
