"""
User Repository

Database operations for user management.
Emails are stored and looked up lower-cased.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import User, UserStatus

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        name: str,
        role_id: UUID,
        now: datetime,
        expiration_days: int,
        phone: str | None = None,
        status: UserStatus = UserStatus.APPROVED,
    ) -> User:
        """
        Create a new user record with a fresh password window.

        Args:
            db: Database session
            email: Email address (unique, stored lower-cased)
            password_hash: bcrypt hash
            name: Display name
            role_id: Global role
            now: Creation instant, start of the password window
            expiration_days: Length of the password window
            phone: Phone number (optional)
            status: Initial global status

        Returns:
            Created User instance
        """
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            name=name,
            phone=phone,
            role_id=role_id,
            status=status,
            password_changed_at=now,
            password_expires_at=now + timedelta(days=expiration_days),
            password_expiration_warnings=[],
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} ({user.role_name})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        user = await UserRepository.get_by_email(db, email)
        return user is not None

    @staticmethod
    async def record_login(db: AsyncSession, user: User, now: datetime) -> None:
        user.last_login_at = now
        await db.flush()

    @staticmethod
    async def demote_if_approved(db: AsyncSession, user_id: UUID, now: datetime) -> bool:
        """
        Move an approved user whose password has expired to pending.

        Conditional on the current status and expiry, so a user suspended,
        already demoted or who changed their password in the meantime is
        left alone.

        Returns:
            True if this call performed the demotion
        """
        result = await db.execute(
            update(User)
            .where(
                User.id == user_id,
                User.status == UserStatus.APPROVED,
                User.password_expires_at <= now,
            )
            .values(status=UserStatus.PENDING)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def list_expired(db: AsyncSession, now: datetime) -> list[User]:
        """Approved users whose password expired at or before now."""
        result = await db.execute(
            select(User)
            .where(User.status == UserStatus.APPROVED, User.password_expires_at <= now)
            .order_by(User.password_expires_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_expiring(db: AsyncSession, now: datetime, until: datetime) -> list[User]:
        """Approved users whose password expires in (now, until]."""
        result = await db.execute(
            select(User)
            .where(
                User.status == UserStatus.APPROVED,
                User.password_expires_at > now,
                User.password_expires_at <= until,
            )
            .order_by(User.password_expires_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_expiration_stats(db: AsyncSession, now: datetime) -> dict[str, int]:
        """
        Aggregate password expiry counts in a single query.

        Returns:
            Dict with:
            - total_users: approved users
            - expired: users of any status whose password expired
            - expiring_in_7_days: approved users expiring within 7 days
            - expiring_in_30_days: approved users expiring within 30 days
        """
        approved = User.status == UserStatus.APPROVED
        in_7_days = now + timedelta(days=7)
        in_30_days = now + timedelta(days=30)

        query = select(
            func.count(case((approved, 1))).label("total_users"),
            func.count(case((User.password_expires_at <= now, 1))).label("expired"),
            func.count(
                case(
                    (
                        and_(
                            approved,
                            User.password_expires_at > now,
                            User.password_expires_at <= in_7_days,
                        ),
                        1,
                    ),
                )
            ).label("expiring_in_7_days"),
            func.count(
                case(
                    (
                        and_(
                            approved,
                            User.password_expires_at > now,
                            User.password_expires_at <= in_30_days,
                        ),
                        1,
                    ),
                )
            ).label("expiring_in_30_days"),
        )
        row = (await db.execute(query)).one()
        return {
            "total_users": row.total_users,
            "expired": row.expired,
            "expiring_in_7_days": row.expiring_in_7_days,
            "expiring_in_30_days": row.expiring_in_30_days,
        }
