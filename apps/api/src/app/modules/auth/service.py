"""
Authentication Service Layer

1. Login: loads the user and their associations, runs the login gate,
   and records the successful login.
2. Mobile registration: creates the user (or reuses an existing one whose
   password matches) and a pending association awaiting approval. Never
   issues a token.
3. Password change: verifies the current password, rotates the hash and
   restarts the expiry window. A user demoted by the expiration sweep is
   restored to approved.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.logging_config import mask_email
from app.core.security import hash_password, verify_password
from app.modules.accounts.models import Account
from app.modules.accounts.repository import AccountRepository
from app.modules.associations import repository as association_repository
from app.modules.associations.models import Association, AssociationStatus
from app.modules.associations.policy import SELF_REGISTRATION_ROLES
from app.modules.associations.service import InvalidRoleError, check_can_request_access
from app.modules.auth.gate import (
    AccountSuspendedError,
    InvalidCredentialsError,
    LoginSuccess,
    evaluate_login,
)
from app.modules.auth.schemas import ChangePasswordRequest, RegisterMobileRequest
from app.modules.roles.repository import RoleRepository
from app.modules.shared.errors import EmailAlreadyRegisteredError, NotFoundError, ServiceError
from app.modules.users.models import User, UserStatus
from app.modules.users.password_policy import apply_new_password
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


class PasswordReuseError(ServiceError):
    def __init__(self) -> None:
        super().__init__(
            message="The new password must be different from the current password.",
            error_code="PASSWORD_REUSE",
            status_code=400,
        )


@dataclass(frozen=True)
class RegistrationResult:
    user: User
    account: Account
    association: Association


async def authenticate(
    db: AsyncSession,
    email: str,
    password: str,
    now: datetime | None = None,
) -> LoginSuccess:
    """
    Authenticate a user through the login gate and record the login.

    Raises:
        InvalidCredentialsError, AccountSuspendedError, PasswordExpiredError,
        PendingApprovalError
    """
    now = now or datetime.now(UTC)

    user = await UserRepository.get_by_email(db, email)
    associations = (
        await association_repository.list_for_user(db, user.id) if user is not None else []
    )

    try:
        result = evaluate_login(user, password, associations, now)
    except ServiceError as e:
        logger.warning(f"Login rejected for {mask_email(email)}: {e.error_code}")
        raise

    await UserRepository.record_login(db, result.user, now)
    await db.commit()

    logger.info(
        f"User logged in: {result.user.id} ({result.user.role_name}, "
        f"{len(result.associations)} approved association(s))"
    )
    return result


async def register_mobile(
    db: AsyncSession,
    data: RegisterMobileRequest,
    settings: Settings,
    now: datetime | None = None,
) -> RegistrationResult:
    """
    Register into an account, creating a pending association.

    A new email creates an approved user with a fresh password window.
    An existing email must present the matching password; the request is
    then a new association for that user.

    Raises:
        InvalidRoleError: Role cannot be self-assigned
        NotFoundError: Account does not exist or is inactive
        EmailAlreadyRegisteredError: Email exists and the password does not match
        AccountSuspendedError: Existing user is suspended
        DuplicateAssociationError: Access already granted or requested
    """
    now = now or datetime.now(UTC)

    if data.role not in SELF_REGISTRATION_ROLES:
        raise InvalidRoleError(data.role)
    role = await RoleRepository.get_by_name(db, data.role)
    if role is None:
        raise InvalidRoleError(data.role)

    account = await AccountRepository.get_by_id(db, data.account_id)
    if account is None or not account.is_active:
        raise NotFoundError("Account")

    user = await UserRepository.get_by_email(db, data.email)
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
            # Concurrent registration with the same email
            await db.rollback()
            raise EmailAlreadyRegisteredError() from e
    else:
        if not verify_password(data.password, user.password_hash):
            logger.warning(f"Registration for existing email {mask_email(data.email)} rejected")
            raise EmailAlreadyRegisteredError()
        if user.status == UserStatus.SUSPENDED:
            raise AccountSuspendedError()
        await check_can_request_access(
            db, user.id, account.id, settings.allow_reregister_after_rejection
        )

    association = await association_repository.create(
        db,
        user_id=user.id,
        account_id=account.id,
        role_id=role.id,
        status=AssociationStatus.PENDING,
        created_by=user.id,
    )
    await db.commit()

    logger.info(f"Registration: user {user.id} requested {role.name} in account {account.id}")
    return RegistrationResult(user=user, account=account, association=association)


async def change_password(
    db: AsyncSession,
    data: ChangePasswordRequest,
    settings: Settings,
    now: datetime | None = None,
) -> User:
    """
    Rotate a user's password.

    Works for expired passwords: this is how a user locked out by expiry
    regains access.

    Raises:
        InvalidCredentialsError: Unknown email or wrong current password
        AccountSuspendedError: User is suspended
        PasswordReuseError: New password equals the current one
    """
    now = now or datetime.now(UTC)

    user = await UserRepository.get_by_email(db, data.email)
    if user is None or not verify_password(data.current_password, user.password_hash):
        logger.warning(f"Password change rejected for {mask_email(data.email)}")
        raise InvalidCredentialsError()

    if user.status == UserStatus.SUSPENDED:
        raise AccountSuspendedError()

    if data.new_password == data.current_password:
        raise PasswordReuseError()

    apply_new_password(user, data.new_password, now, settings.password_expiration_days)

    if user.status == UserStatus.PENDING:
        user.status = UserStatus.APPROVED
        logger.info(f"User {user.id} restored to approved after password change")

    await db.commit()
    logger.info(f"Password changed for user {user.id}")
    return user
