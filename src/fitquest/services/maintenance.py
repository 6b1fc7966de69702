"""Cleanup of expired credential rows."""

import logging
from datetime import UTC, datetime

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import delete, select

from fitquest.models import PasswordReset, RefreshToken, VerificationToken

logger = logging.getLogger(__name__)


async def prune_expired_tokens(session: AsyncSession, dry_run: bool = False) -> dict[str, int]:
    """Delete expired verification tokens, refresh tokens and unused password resets.

    Used password resets are left in place: they keep guarding against
    replay until the user requests a new reset.

    Args:
        session: Database session
        dry_run: If True, only count what would be deleted

    Returns:
        Mapping of table name to number of expired rows
    """
    now = datetime.now(UTC)
    targets = {
        VerificationToken.__tablename__: (
            VerificationToken,
            [VerificationToken.expires_at < now],
        ),
        RefreshToken.__tablename__: (
            RefreshToken,
            [RefreshToken.expires_at < now],
        ),
        PasswordReset.__tablename__: (
            PasswordReset,
            [PasswordReset.expires_at < now, PasswordReset.used == False],  # noqa: E712
        ),
    }

    counts: dict[str, int] = {}
    for table, (model, conditions) in targets.items():
        count_stmt = select(func.count()).select_from(model).where(*conditions)
        counts[table] = (await session.execute(count_stmt)).scalar_one()

        if not dry_run and counts[table]:
            await session.execute(delete(model).where(*conditions))

    if not dry_run:
        await session.commit()

    logger.info(f"Expired token rows {'found' if dry_run else 'deleted'}: {counts}")
    return counts
