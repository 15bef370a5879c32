"""
Association Repository

Database operations for user/account associations.

Resolution (pending -> approved | rejected) is a single conditional UPDATE
guarded by status = 'pending', so of two concurrent resolutions exactly one
succeeds and the other observes the row as already resolved.
"""

import logging
from collections.abc import Collection
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.associations.models import Association, AssociationStatus

logger = logging.getLogger(__name__)


# Approved and rejected are terminal
VALID_STATUS_TRANSITIONS: dict[AssociationStatus, set[AssociationStatus]] = {
    AssociationStatus.PENDING: {AssociationStatus.APPROVED, AssociationStatus.REJECTED},
    AssociationStatus.APPROVED: set(),
    AssociationStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when a resolution targets a status that is not reachable from pending."""

    def __init__(self, new_status: AssociationStatus):
        self.new_status = new_status
        valid = VALID_STATUS_TRANSITIONS[AssociationStatus.PENDING]
        super().__init__(
            f"Invalid status transition: pending -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid)}"
        )


async def create(
    db: AsyncSession,
    *,
    user_id: UUID,
    account_id: UUID,
    role_id: UUID,
    status: AssociationStatus = AssociationStatus.PENDING,
    created_by: UUID | None = None,
    division_id: UUID | None = None,
    resolved_at: datetime | None = None,
) -> Association:
    """
    Create an association.

    Pre-approved associations (account provisioning) pass status=APPROVED
    together with created_by and resolved_at.
    """
    association = Association(
        user_id=user_id,
        account_id=account_id,
        role_id=role_id,
        division_id=division_id,
        status=status,
        created_by=created_by,
        resolved_by=created_by if status != AssociationStatus.PENDING else None,
        resolved_at=resolved_at,
    )
    db.add(association)
    await db.flush()
    await db.refresh(association)

    logger.info(
        f"Created association {association.id}: user {user_id} -> account {account_id} "
        f"({association.role_name}, {status.value})"
    )
    return association


async def get_by_id(db: AsyncSession, association_id: UUID) -> Association | None:
    result = await db.execute(
        select(Association)
        .where(Association.id == association_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_for_user(
    db: AsyncSession,
    user_id: UUID,
    status: AssociationStatus | None = None,
) -> list[Association]:
    """All associations of a user, newest first, optionally filtered by status."""
    query = select(Association).where(Association.user_id == user_id)
    if status is not None:
        query = query.where(Association.status == status)
    result = await db.execute(query.order_by(Association.created_at.desc()))
    return list(result.scalars().all())


async def list_pending(
    db: AsyncSession,
    account_ids: Collection[UUID] | None = None,
) -> list[Association]:
    """
    Pending associations, newest first.

    Args:
        db: Database session
        account_ids: Restrict to these accounts; None means every account
    """
    query = select(Association).where(Association.status == AssociationStatus.PENDING)
    if account_ids is not None:
        if not account_ids:
            return []
        query = query.where(Association.account_id.in_(list(account_ids)))
    result = await db.execute(query.order_by(Association.created_at.desc()))
    return list(result.scalars().all())


async def get_latest_for_user_account(
    db: AsyncSession,
    user_id: UUID,
    account_id: UUID,
) -> Association | None:
    """Most recent association of any status for a (user, account) pair."""
    result = await db.execute(
        select(Association)
        .where(Association.user_id == user_id, Association.account_id == account_id)
        .order_by(Association.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def get_active_for_user_account(
    db: AsyncSession,
    user_id: UUID,
    account_id: UUID,
) -> Association | None:
    """The non-rejected association for a (user, account) pair, if any."""
    result = await db.execute(
        select(Association)
        .where(
            Association.user_id == user_id,
            Association.account_id == account_id,
            Association.status != AssociationStatus.REJECTED,
        )
        .limit(1)
    )
    return result.scalars().first()


async def resolve_if_pending(
    db: AsyncSession,
    association_id: UUID,
    new_status: AssociationStatus,
    resolved_by: UUID,
    now: datetime,
) -> bool:
    """
    Resolve a pending association.

    Returns:
        True if this call performed the transition, False if the
        association does not exist or is no longer pending

    Raises:
        InvalidStatusTransitionError: If new_status is not a resolution
    """
    if new_status not in VALID_STATUS_TRANSITIONS[AssociationStatus.PENDING]:
        raise InvalidStatusTransitionError(new_status)

    result = await db.execute(
        update(Association)
        .where(
            Association.id == association_id,
            Association.status == AssociationStatus.PENDING,
        )
        .values(status=new_status, resolved_by=resolved_by, resolved_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
