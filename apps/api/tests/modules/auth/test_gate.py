"""
Unit tests for the login gate.

The gate is pure, so these tests use transient model instances and a
stub password checker instead of bcrypt.
"""

from datetime import timedelta

import pytest

from app.modules.associations.models import AssociationStatus
from app.modules.auth.gate import (
    AccountSuspendedError,
    InvalidCredentialsError,
    PasswordExpiredError,
    PendingApprovalError,
    evaluate_login,
)
from app.modules.roles.models import RoleName
from app.modules.users.models import UserStatus


def password_is(expected: str):
    return lambda password, _hash: password == expected


class TestCredentials:
    """Unknown email and wrong password are indistinguishable."""

    def test_unknown_email(self, now):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            evaluate_login(None, "secret", [], now, check_password=password_is("secret"))
        assert exc_info.value.status_code == 401

    def test_wrong_password(self, make_user, now):
        user = make_user()
        with pytest.raises(InvalidCredentialsError) as exc_info:
            evaluate_login(user, "wrong", [], now, check_password=password_is("secret"))
        assert exc_info.value.to_detail() == {
            "code": "INVALID_CREDENTIALS",
            "message": "Invalid email or password.",
        }

    def test_wrong_password_checked_before_suspension(self, make_user, now):
        """A suspended user with the wrong password learns nothing about the account."""
        user = make_user(status=UserStatus.SUSPENDED)
        with pytest.raises(InvalidCredentialsError):
            evaluate_login(user, "wrong", [], now, check_password=password_is("secret"))


class TestUserState:
    """Checks on the global user record."""

    def test_suspended(self, make_user, now):
        user = make_user(status=UserStatus.SUSPENDED)
        with pytest.raises(AccountSuspendedError):
            evaluate_login(user, "secret", [], now, check_password=password_is("secret"))

    def test_suspension_wins_over_expired_password(self, make_user, now):
        user = make_user(status=UserStatus.SUSPENDED, expires_at=now - timedelta(days=1))
        with pytest.raises(AccountSuspendedError):
            evaluate_login(user, "secret", [], now, check_password=password_is("secret"))

    def test_expired_exactly_at_expiry_instant(self, make_user, now):
        user = make_user(expires_at=now)
        with pytest.raises(PasswordExpiredError) as exc_info:
            evaluate_login(user, "secret", [], now, check_password=password_is("secret"))
        assert exc_info.value.error_code == "PASSWORD_EXPIRED"

    def test_not_expired_one_second_before(self, make_user, make_association, now):
        user = make_user(expires_at=now + timedelta(seconds=1))
        approved = make_association(user, status=AssociationStatus.APPROVED)

        result = evaluate_login(
            user, "secret", [approved], now, check_password=password_is("secret")
        )
        assert result.user is user

    def test_superadmin_with_expired_password_is_refused(self, make_user, now):
        user = make_user(role=RoleName.SUPERADMIN, expires_at=now - timedelta(minutes=1))
        with pytest.raises(PasswordExpiredError):
            evaluate_login(user, "secret", [], now, check_password=password_is("secret"))

    def test_pending_user_blocked_even_with_approved_association(
        self, make_user, make_association, now
    ):
        """Global pending status (e.g. after expiry demotion) blocks every account."""
        user = make_user(status=UserStatus.PENDING)
        approved = make_association(user, status=AssociationStatus.APPROVED)

        with pytest.raises(PendingApprovalError):
            evaluate_login(user, "secret", [approved], now, check_password=password_is("secret"))


class TestAssociations:
    """Association checks for non-exempt roles."""

    def test_superadmin_without_associations(self, make_user, now):
        user = make_user(role=RoleName.SUPERADMIN)

        result = evaluate_login(user, "secret", [], now, check_password=password_is("secret"))

        assert result.user is user
        assert result.associations == []

    def test_no_associations_is_pending(self, make_user, now):
        user = make_user()
        with pytest.raises(PendingApprovalError) as exc_info:
            evaluate_login(user, "secret", [], now, check_password=password_is("secret"))
        assert exc_info.value.pending == []

    def test_only_pending_associations_lists_them(self, make_user, make_association, now):
        user = make_user()
        pending = make_association(user)
        rejected = make_association(user, status=AssociationStatus.REJECTED)

        with pytest.raises(PendingApprovalError) as exc_info:
            evaluate_login(
                user, "secret", [pending, rejected], now, check_password=password_is("secret")
            )

        detail = exc_info.value.to_detail()
        assert detail["code"] == "PENDING_APPROVAL"
        assert len(detail["pending"]) == 1
        assert detail["pending"][0]["association_id"] == str(pending.id)
        assert detail["pending"][0]["account_name"] == pending.account.name
        assert detail["pending"][0]["status"] == "pending"

    def test_returns_only_approved_associations(self, make_user, make_association, now):
        user = make_user()
        approved = make_association(user, status=AssociationStatus.APPROVED)
        pending = make_association(user)

        result = evaluate_login(
            user, "secret", [approved, pending], now, check_password=password_is("secret")
        )

        assert result.associations == [approved]
