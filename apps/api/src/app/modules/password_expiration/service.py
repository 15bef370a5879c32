"""
Password Expiration Admin Service

Aggregate statistics and manual extension of a user's password window.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.shared.errors import NotFoundError
from app.modules.users.models import User, UserStatus
from app.modules.users.password_policy import extend_password_expiration as extend_window
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


async def get_expiration_stats(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Counts of approved, expired and soon-expiring users."""
    now = now or datetime.now(UTC)
    stats = await UserRepository.get_expiration_stats(db, now)
    return {**stats, "generated_at": now}


async def extend_password_expiration(
    db: AsyncSession,
    user_id: UUID,
    days: int,
    extended_by: UUID,
    now: datetime | None = None,
) -> User:
    """
    Give a user a fresh password window of `days` from now.

    Clears expiry warnings and restores a user demoted by the sweep
    (pending) to approved. Suspended users stay suspended.

    Raises:
        NotFoundError: If the user does not exist
    """
    now = now or datetime.now(UTC)

    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User")

    extend_window(user, now, days)
    if user.status == UserStatus.PENDING:
        user.status = UserStatus.APPROVED
        logger.info(f"User {user.id} restored to approved by password extension")

    await db.commit()
    logger.info(
        f"Password expiration of user {user.id} extended by {days} day(s) by {extended_by}"
    )
    return user
