"""
Account Repository

Database operations for account (tenant) management.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.accounts.models import Account

logger = logging.getLogger(__name__)


class AccountRepository:
    """Repository for account database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        name: str,
        legal_name: str,
        address: str,
        contact_email: str,
    ) -> Account:
        """
        Create a new, active account.

        Args:
            db: Database session
            name: Display name
            legal_name: Registered legal name
            address: Postal address
            contact_email: Administrative contact email

        Returns:
            Created Account instance
        """
        account = Account(
            name=name,
            legal_name=legal_name,
            address=address,
            contact_email=contact_email.strip().lower(),
            is_active=True,
        )

        db.add(account)
        await db.flush()
        await db.refresh(account)

        logger.info(f"Created account: {account.id} - {account.name}")
        return account

    @staticmethod
    async def get_by_id(db: AsyncSession, account_id: UUID) -> Account | None:
        result = await db.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()
