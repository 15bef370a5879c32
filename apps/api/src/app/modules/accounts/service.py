"""
Account Provisioning Service

1. Account creation (super admins): creates the account, its administrator
   user (role adminaccount) and the administrator's pre-approved association
   in one transaction.
2. User provisioning (super admins or admins of the account): grants a user
   a non-privileged role in the account with an approved association,
   creating the user if the email is new.

Provisioned associations skip the approval queue because the acting
administrator is the approver.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.email import NotificationKind
from app.core.security import hash_password
from app.modules.accounts.models import Account
from app.modules.accounts.repository import AccountRepository
from app.modules.accounts.schemas import AccountCreate, AccountUserCreate
from app.modules.associations import repository as association_repository
from app.modules.associations.models import Association, AssociationStatus
from app.modules.associations.policy import (
    PROVISIONABLE_ROLES,
    Actor,
    can_administer,
    can_create_accounts,
)
from app.modules.associations.service import InvalidRoleError, check_can_request_access
from app.modules.roles.models import RoleName
from app.modules.roles.repository import RoleRepository
from app.modules.shared.errors import EmailAlreadyRegisteredError, ForbiddenError, NotFoundError
from app.modules.users.models import User, UserStatus
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionResult:
    account: Account
    user: User
    association: Association
    user_created: bool


async def create_account(
    db: AsyncSession,
    data: AccountCreate,
    actor: Actor,
    settings: Settings,
    now: datetime | None = None,
) -> ProvisionResult:
    """
    Create an account with its administrator.

    Raises:
        ForbiddenError: Actor is not a super admin
        EmailAlreadyRegisteredError: Admin email belongs to an existing user
    """
    now = now or datetime.now(UTC)

    if not can_create_accounts(actor):
        raise ForbiddenError("Only super admins can create accounts.")

    if await UserRepository.email_exists(db, data.admin_email):
        raise EmailAlreadyRegisteredError()

    role = await RoleRepository.get_by_name(db, RoleName.ADMINACCOUNT)
    if role is None:
        raise InvalidRoleError(RoleName.ADMINACCOUNT.value)

    try:
        account = await AccountRepository.create(
            db,
            name=data.name,
            legal_name=data.legal_name,
            address=data.address,
            contact_email=data.admin_email,
        )
        admin = await UserRepository.create(
            db,
            email=data.admin_email,
            password_hash=hash_password(data.admin_password),
            name=data.admin_name or f"Administrator {data.name}",
            role_id=role.id,
            now=now,
            expiration_days=settings.password_expiration_days,
            status=UserStatus.APPROVED,
        )
        association = await association_repository.create(
            db,
            user_id=admin.id,
            account_id=account.id,
            role_id=role.id,
            status=AssociationStatus.APPROVED,
            created_by=actor.user_id,
            resolved_at=now,
        )
    except IntegrityError as e:
        await db.rollback()
        raise EmailAlreadyRegisteredError() from e

    await db.commit()
    logger.info(f"Account {account.id} created by {actor.user_id} with admin {admin.id}")
    return ProvisionResult(account=account, user=admin, association=association, user_created=True)


async def provision_user(
    db: AsyncSession,
    account_id: UUID,
    data: AccountUserCreate,
    actor: Actor,
    settings: Settings,
    now: datetime | None = None,
) -> ProvisionResult:
    """
    Grant a user approved access to an account.

    Raises:
        NotFoundError: Account does not exist or is inactive
        ForbiddenError: Actor does not administer the account
        InvalidRoleError: Role is privileged or unknown
        DuplicateAssociationError: User already has access or a pending request
    """
    now = now or datetime.now(UTC)

    account = await AccountRepository.get_by_id(db, account_id)
    if account is None or not account.is_active:
        raise NotFoundError("Account")

    if not can_administer(actor, account.id):
        raise ForbiddenError("You can only add users to accounts you administer.")

    if data.role not in PROVISIONABLE_ROLES:
        raise InvalidRoleError(data.role)
    role = await RoleRepository.get_by_name(db, data.role)
    if role is None:
        raise InvalidRoleError(data.role)

    user = await UserRepository.get_by_email(db, data.email)
    user_created = user is None
    if user is None:
        try:
            user = await UserRepository.create(
                db,
                email=data.email,
                password_hash=hash_password(data.password),
                name=data.name,
                phone=data.phone,
                role_id=role.id,
                now=now,
                expiration_days=settings.password_expiration_days,
            )
        except IntegrityError as e:
            await db.rollback()
            raise EmailAlreadyRegisteredError() from e
    else:
        # Administrators may re-grant access after a rejection
        await check_can_request_access(db, user.id, account.id, allow_after_rejection=True)

    association = await association_repository.create(
        db,
        user_id=user.id,
        account_id=account.id,
        role_id=role.id,
        status=AssociationStatus.APPROVED,
        created_by=actor.user_id,
        resolved_at=now,
    )
    await db.commit()

    logger.info(
        f"User {user.id} provisioned into account {account.id} as {role.name} by {actor.user_id}"
    )
    return ProvisionResult(
        account=account, user=user, association=association, user_created=user_created
    )


def welcome_notice(result: ProvisionResult) -> tuple[str, NotificationKind, dict[str, Any]]:
    """Recipient, kind and template data welcoming a provisioned user."""
    return (
        result.user.email,
        NotificationKind.ACCOUNT_WELCOME,
        {"name": result.user.name, "account_name": result.account.name},
    )
