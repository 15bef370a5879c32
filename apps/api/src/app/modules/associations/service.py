"""
Association Approval Workflow

Administrators move pending associations to approved or rejected.

1. Listing: super admins see every pending association, account admins only
   those of the accounts they administer, members are refused.
2. Resolution: scope is checked before the transition; the transition itself
   is a conditional update so concurrent resolutions have a single winner
   and the loser receives AlreadyResolvedError.
3. Notification: the user is emailed the decision after the commit.
   Delivery failures are logged and never undo the decision.

Resolving an association has no effect on sessions already issued.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.email import NotificationKind
from app.modules.associations import repository
from app.modules.associations.models import Association, AssociationStatus
from app.modules.associations.policy import (
    Actor,
    Member,
    administered_accounts,
    can_administer,
    resolve_actor,
)
from app.modules.shared.errors import (
    ForbiddenError,
    NotFoundError,
    ServiceError,
)
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


class AlreadyResolvedError(ServiceError):
    """Raised when resolving an association that is no longer pending."""

    def __init__(self, current_status: AssociationStatus):
        self.current_status = current_status
        super().__init__(
            message=f"This association has already been {current_status.value}.",
            error_code="ALREADY_RESOLVED",
            status_code=409,
        )

    def to_detail(self) -> dict[str, Any]:
        return {**super().to_detail(), "status": self.current_status.value}


class ActorNotFoundError(ServiceError):
    """Raised when a token refers to a user that no longer exists."""

    def __init__(self) -> None:
        super().__init__(
            message="Authenticated user no longer exists.",
            error_code="INVALID_TOKEN_CLAIMS",
            status_code=401,
        )


class DuplicateAssociationError(ServiceError):
    """Raised when a (user, account) pair already has a non-rejected association."""

    def __init__(self, message: str = "You already have access or a pending request for this account."):
        super().__init__(
            message=message,
            error_code="DUPLICATE_ASSOCIATION",
            status_code=409,
        )


class InvalidRoleError(ServiceError):
    """Raised when a role is unknown or may not be granted in this context."""

    def __init__(self, role: str):
        self.role = role
        super().__init__(
            message=f"Role '{role}' cannot be assigned here.",
            error_code="INVALID_ROLE",
            status_code=400,
        )


async def check_can_request_access(
    db: AsyncSession,
    user_id: UUID,
    account_id: UUID,
    allow_after_rejection: bool,
) -> None:
    """
    Enforce at most one non-rejected association per (user, account).

    Raises:
        DuplicateAssociationError: If a pending or approved association
            exists, or the last one was rejected and re-requests are disabled
    """
    active = await repository.get_active_for_user_account(db, user_id, account_id)
    if active is not None:
        raise DuplicateAssociationError()

    if not allow_after_rejection:
        latest = await repository.get_latest_for_user_account(db, user_id, account_id)
        if latest is not None and latest.status == AssociationStatus.REJECTED:
            raise DuplicateAssociationError(
                "Your previous request for this account was rejected. "
                "Contact the institution directly."
            )


async def load_actor(db: AsyncSession, user_id: UUID) -> Actor:
    """
    Classify the acting user from current database state.

    Raises:
        ActorNotFoundError: If the user does not exist
    """
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise ActorNotFoundError()
    approved = await repository.list_for_user(db, user.id, AssociationStatus.APPROVED)
    return resolve_actor(user.id, user.role_name, approved)


async def list_pending(db: AsyncSession, actor: Actor) -> list[Association]:
    """
    Pending associations visible to the actor, newest first.

    Raises:
        ForbiddenError: If the actor administers nothing
    """
    if isinstance(actor, Member):
        raise ForbiddenError("Only administrators can list pending associations.")
    return await repository.list_pending(db, administered_accounts(actor))


async def approve(
    db: AsyncSession,
    association_id: UUID,
    actor: Actor,
    now: datetime | None = None,
) -> Association:
    """
    Approve a pending association.

    Raises:
        NotFoundError: If the association does not exist
        ForbiddenError: If the actor does not administer its account
        AlreadyResolvedError: If it is no longer pending
    """
    return await _resolve(db, association_id, actor, AssociationStatus.APPROVED, now)


async def reject(
    db: AsyncSession,
    association_id: UUID,
    actor: Actor,
    now: datetime | None = None,
) -> Association:
    """
    Reject a pending association.

    Raises:
        NotFoundError: If the association does not exist
        ForbiddenError: If the actor does not administer its account
        AlreadyResolvedError: If it is no longer pending
    """
    return await _resolve(db, association_id, actor, AssociationStatus.REJECTED, now)


async def _resolve(
    db: AsyncSession,
    association_id: UUID,
    actor: Actor,
    new_status: AssociationStatus,
    now: datetime | None,
) -> Association:
    now = now or datetime.now(UTC)

    association = await repository.get_by_id(db, association_id)
    if association is None:
        raise NotFoundError("Association")

    if not can_administer(actor, association.account_id):
        logger.warning(
            f"User {actor.user_id} attempted to {new_status.value} association "
            f"{association_id} outside their accounts"
        )
        raise ForbiddenError("You can only manage associations of accounts you administer.")

    if association.status != AssociationStatus.PENDING:
        raise AlreadyResolvedError(association.status)

    won = await repository.resolve_if_pending(db, association_id, new_status, actor.user_id, now)
    if not won:
        # Lost a race with another resolution
        await db.rollback()
        current = await repository.get_by_id(db, association_id)
        if current is None:
            raise NotFoundError("Association")
        raise AlreadyResolvedError(current.status)

    await db.commit()
    resolved = await repository.get_by_id(db, association_id)
    if resolved is None:
        raise NotFoundError("Association")

    logger.info(
        f"Association {association_id} {new_status.value} by {actor.user_id} "
        f"(account {resolved.account_id})"
    )
    return resolved


def resolution_notice(association: Association) -> tuple[str, NotificationKind, dict[str, Any]]:
    """Recipient, kind and template data announcing an association decision."""
    kind = (
        NotificationKind.ASSOCIATION_APPROVED
        if association.status == AssociationStatus.APPROVED
        else NotificationKind.ASSOCIATION_REJECTED
    )
    data = {
        "name": association.user.name,
        "account_name": association.account.name,
        "role": association.role_name,
    }
    return association.user.email, kind, data

