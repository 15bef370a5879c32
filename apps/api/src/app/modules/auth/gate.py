"""
Login Gate

Pure authentication decision over already-loaded state. No I/O, no clock:
the caller supplies the user, their associations and the current instant.

Checks run in a fixed order and the first failure wins:
1. unknown email or wrong password  -> InvalidCredentialsError
2. suspended user                    -> AccountSuspendedError
3. password expired (now >= expiry)  -> PasswordExpiredError
4. globally pending user             -> PendingApprovalError
5. association-exempt role           -> success without associations
6. no approved association           -> PendingApprovalError (with pending details)
7. otherwise                         -> success with the approved associations

Unknown email and wrong password produce the same error so responses do not
reveal which emails are registered.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.core.security import verify_password
from app.modules.associations.models import Association, AssociationStatus
from app.modules.associations.policy import is_exempt_from_association
from app.modules.shared.errors import ServiceError
from app.modules.users.models import User, UserStatus
from app.modules.users.password_policy import is_password_expired


class InvalidCredentialsError(ServiceError):
    def __init__(self) -> None:
        super().__init__(
            message="Invalid email or password.",
            error_code="INVALID_CREDENTIALS",
            status_code=401,
        )


class AccountSuspendedError(ServiceError):
    def __init__(self) -> None:
        super().__init__(
            message="Your account has been suspended. Contact your institution's administrator.",
            error_code="ACCOUNT_SUSPENDED",
            status_code=403,
        )


class PasswordExpiredError(ServiceError):
    def __init__(self) -> None:
        super().__init__(
            message="Your password has expired. Change your password to sign in again.",
            error_code="PASSWORD_EXPIRED",
            status_code=403,
        )


class PendingApprovalError(ServiceError):
    """Raised when the user has no approved access yet."""

    def __init__(self, pending: list[dict[str, Any]] | None = None):
        self.pending = pending or []
        super().__init__(
            message=(
                "Your account is pending approval. "
                "Contact your institution's administrator."
            ),
            error_code="PENDING_APPROVAL",
            status_code=403,
        )

    def to_detail(self) -> dict[str, Any]:
        return {**super().to_detail(), "pending": self.pending}


@dataclass(frozen=True)
class LoginSuccess:
    user: User
    associations: list[Association] = field(default_factory=list)


def pending_details(associations: Sequence[Association]) -> list[dict[str, Any]]:
    """Client-facing summary of a user's pending associations."""
    return [
        {
            "association_id": str(association.id),
            "account_id": str(association.account_id),
            "account_name": association.account.name if association.account else None,
            "role": association.role_name,
            "status": association.status.value,
        }
        for association in associations
        if association.status == AssociationStatus.PENDING
    ]


def evaluate_login(
    user: User | None,
    password: str,
    associations: Sequence[Association],
    now: datetime,
    check_password: Callable[[str, str], bool] | None = None,
) -> LoginSuccess:
    """
    Decide whether a login attempt succeeds.

    Args:
        user: User found by email, or None
        password: Presented password
        associations: All associations of the user (any status)
        now: Current instant (timezone-aware)
        check_password: Password verifier, bcrypt by default

    Returns:
        LoginSuccess with the user's approved associations

    Raises:
        InvalidCredentialsError, AccountSuspendedError, PasswordExpiredError,
        PendingApprovalError
    """
    check_password = check_password or verify_password
    if user is None or not check_password(password, user.password_hash):
        raise InvalidCredentialsError()

    if user.status == UserStatus.SUSPENDED:
        raise AccountSuspendedError()

    if is_password_expired(user, now):
        raise PasswordExpiredError()

    if user.status == UserStatus.PENDING:
        raise PendingApprovalError(pending_details(associations))

    approved = [a for a in associations if a.status == AssociationStatus.APPROVED]

    if is_exempt_from_association(user.role_name):
        return LoginSuccess(user=user, associations=approved)

    if not approved:
        raise PendingApprovalError(pending_details(associations))

    return LoginSuccess(user=user, associations=approved)
