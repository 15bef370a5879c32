"""
Unit tests for the authentication service layer.

These tests cover:
- Login through the gate and login recording
- Mobile registration for new and existing emails
- Password change, including recovery from an expired password
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.config import Settings
from app.modules.associations.models import AssociationStatus
from app.modules.associations.service import DuplicateAssociationError, InvalidRoleError
from app.modules.auth.gate import (
    AccountSuspendedError,
    InvalidCredentialsError,
    PendingApprovalError,
)
from app.modules.auth.schemas import ChangePasswordRequest, RegisterMobileRequest
from app.modules.auth.service import (
    PasswordReuseError,
    authenticate,
    change_password,
    register_mobile,
)
from app.modules.roles.models import RoleName
from app.modules.shared.errors import EmailAlreadyRegisteredError, NotFoundError
from app.modules.users.models import UserStatus

SERVICE = "app.modules.auth.service"


@pytest.fixture
def settings():
    return Settings(password_expiration_days=90, allow_reregister_after_rejection=True)


@pytest.fixture
def registration(make_account):
    account = make_account()
    data = RegisterMobileRequest(
        email="new.parent@example.com",
        password="secret1",
        name="New Parent",
        account_id=account.id,
        role="familyadmin",
    )
    return data, account


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_success_records_login(self, mock_db, make_user, make_association, now):
        user = make_user()
        approved = make_association(user, status=AssociationStatus.APPROVED)

        with (
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.association_repository") as mock_assoc,
            patch("app.modules.auth.gate.verify_password", return_value=True),
        ):
            mock_users.get_by_email = AsyncMock(return_value=user)
            mock_users.record_login = AsyncMock()
            mock_assoc.list_for_user = AsyncMock(return_value=[approved])

            result = await authenticate(mock_db, user.email, "secret", now)

        assert result.associations == [approved]
        mock_users.record_login.assert_called_once_with(mock_db, user, now)
        mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_email_skips_association_lookup(self, mock_db, now):
        with (
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.association_repository") as mock_assoc,
        ):
            mock_users.get_by_email = AsyncMock(return_value=None)
            mock_assoc.list_for_user = AsyncMock()

            with pytest.raises(InvalidCredentialsError):
                await authenticate(mock_db, "nobody@example.com", "secret", now)

        mock_assoc.list_for_user.assert_not_called()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_pending_association_rejected_without_recording(
        self, mock_db, make_user, make_association, now
    ):
        user = make_user()
        pending = make_association(user)

        with (
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.association_repository") as mock_assoc,
            patch("app.modules.auth.gate.verify_password", return_value=True),
        ):
            mock_users.get_by_email = AsyncMock(return_value=user)
            mock_users.record_login = AsyncMock()
            mock_assoc.list_for_user = AsyncMock(return_value=[pending])

            with pytest.raises(PendingApprovalError):
                await authenticate(mock_db, user.email, "secret", now)

        mock_users.record_login.assert_not_called()


class TestRegisterMobile:
    @pytest.mark.asyncio
    async def test_new_user_gets_pending_association(
        self, mock_db, registration, settings, make_user, make_role, make_association, now
    ):
        data, account = registration
        role = make_role(RoleName.FAMILYADMIN)
        user = make_user(email=data.email)
        association = make_association(user, account=account)

        with (
            patch(f"{SERVICE}.RoleRepository") as mock_roles,
            patch(f"{SERVICE}.AccountRepository") as mock_accounts,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.association_repository") as mock_assoc,
            patch(f"{SERVICE}.hash_password", return_value="hashed"),
        ):
            mock_roles.get_by_name = AsyncMock(return_value=role)
            mock_accounts.get_by_id = AsyncMock(return_value=account)
            mock_users.get_by_email = AsyncMock(return_value=None)
            mock_users.create = AsyncMock(return_value=user)
            mock_assoc.create = AsyncMock(return_value=association)

            result = await register_mobile(mock_db, data, settings, now)

        assert result.user is user
        assert result.association is association
        create_kwargs = mock_users.create.call_args.kwargs
        assert create_kwargs["password_hash"] == "hashed"
        assert create_kwargs["expiration_days"] == 90
        assert create_kwargs["now"] == now
        assert mock_assoc.create.call_args.kwargs["status"] == AssociationStatus.PENDING
        mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_privileged_role_is_refused(self, mock_db, registration, settings):
        data, _ = registration
        data = data.model_copy(update={"role": "adminaccount"})

        with pytest.raises(InvalidRoleError) as exc_info:
            await register_mobile(mock_db, data, settings)

        assert exc_info.value.error_code == "INVALID_ROLE"

    @pytest.mark.asyncio
    async def test_inactive_account_is_not_found(
        self, mock_db, registration, settings, make_role, make_account
    ):
        data, _ = registration
        with (
            patch(f"{SERVICE}.RoleRepository") as mock_roles,
            patch(f"{SERVICE}.AccountRepository") as mock_accounts,
        ):
            mock_roles.get_by_name = AsyncMock(return_value=make_role())
            mock_accounts.get_by_id = AsyncMock(return_value=make_account(is_active=False))

            with pytest.raises(NotFoundError):
                await register_mobile(mock_db, data, settings)

    @pytest.mark.asyncio
    async def test_existing_email_with_wrong_password(
        self, mock_db, registration, settings, make_role, make_user
    ):
        data, account = registration
        with (
            patch(f"{SERVICE}.RoleRepository") as mock_roles,
            patch(f"{SERVICE}.AccountRepository") as mock_accounts,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.verify_password", return_value=False),
        ):
            mock_roles.get_by_name = AsyncMock(return_value=make_role())
            mock_accounts.get_by_id = AsyncMock(return_value=account)
            mock_users.get_by_email = AsyncMock(return_value=make_user(email=data.email))

            with pytest.raises(EmailAlreadyRegisteredError):
                await register_mobile(mock_db, data, settings)

    @pytest.mark.asyncio
    async def test_existing_user_requests_second_account(
        self, mock_db, registration, settings, make_role, make_user, make_association
    ):
        data, account = registration
        user = make_user(email=data.email)
        association = make_association(user, account=account)

        with (
            patch(f"{SERVICE}.RoleRepository") as mock_roles,
            patch(f"{SERVICE}.AccountRepository") as mock_accounts,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.association_repository") as mock_assoc,
            patch(f"{SERVICE}.verify_password", return_value=True),
            patch(f"{SERVICE}.check_can_request_access", new=AsyncMock()) as mock_check,
        ):
            mock_roles.get_by_name = AsyncMock(return_value=make_role())
            mock_accounts.get_by_id = AsyncMock(return_value=account)
            mock_users.get_by_email = AsyncMock(return_value=user)
            mock_users.create = AsyncMock()
            mock_assoc.create = AsyncMock(return_value=association)

            result = await register_mobile(mock_db, data, settings)

        assert result.user is user
        mock_users.create.assert_not_called()
        mock_check.assert_called_once_with(mock_db, user.id, account.id, True)

    @pytest.mark.asyncio
    async def test_duplicate_request_propagates(
        self, mock_db, registration, settings, make_role, make_user
    ):
        data, account = registration
        with (
            patch(f"{SERVICE}.RoleRepository") as mock_roles,
            patch(f"{SERVICE}.AccountRepository") as mock_accounts,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.verify_password", return_value=True),
            patch(
                f"{SERVICE}.check_can_request_access",
                new=AsyncMock(side_effect=DuplicateAssociationError()),
            ),
        ):
            mock_roles.get_by_name = AsyncMock(return_value=make_role())
            mock_accounts.get_by_id = AsyncMock(return_value=account)
            mock_users.get_by_email = AsyncMock(return_value=make_user(email=data.email))

            with pytest.raises(DuplicateAssociationError):
                await register_mobile(mock_db, data, settings)

        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_suspended_existing_user(
        self, mock_db, registration, settings, make_role, make_user
    ):
        data, account = registration
        with (
            patch(f"{SERVICE}.RoleRepository") as mock_roles,
            patch(f"{SERVICE}.AccountRepository") as mock_accounts,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.verify_password", return_value=True),
        ):
            mock_roles.get_by_name = AsyncMock(return_value=make_role())
            mock_accounts.get_by_id = AsyncMock(return_value=account)
            mock_users.get_by_email = AsyncMock(
                return_value=make_user(email=data.email, status=UserStatus.SUSPENDED)
            )

            with pytest.raises(AccountSuspendedError):
                await register_mobile(mock_db, data, settings)

    @pytest.mark.asyncio
    async def test_concurrent_email_insert(
        self, mock_db, registration, settings, make_role
    ):
        data, account = registration
        with (
            patch(f"{SERVICE}.RoleRepository") as mock_roles,
            patch(f"{SERVICE}.AccountRepository") as mock_accounts,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.hash_password", return_value="hashed"),
        ):
            mock_roles.get_by_name = AsyncMock(return_value=make_role())
            mock_accounts.get_by_id = AsyncMock(return_value=account)
            mock_users.get_by_email = AsyncMock(return_value=None)
            mock_users.create = AsyncMock(
                side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))
            )

            with pytest.raises(EmailAlreadyRegisteredError):
                await register_mobile(mock_db, data, settings)

        mock_db.rollback.assert_called_once()


class TestChangePassword:
    @pytest.mark.asyncio
    async def test_expired_password_can_be_changed(self, mock_db, settings, make_user, now):
        user = make_user(status=UserStatus.PENDING, expires_at=now - timedelta(days=2))
        data = ChangePasswordRequest(
            email=user.email, current_password="old-pass", new_password="new-pass"
        )

        with (
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.verify_password", return_value=True),
            patch("app.modules.users.password_policy.hash_password", return_value="new-hash"),
        ):
            mock_users.get_by_email = AsyncMock(return_value=user)

            result = await change_password(mock_db, data, settings, now)

        assert result.status == UserStatus.APPROVED
        assert result.password_hash == "new-hash"
        assert result.password_expires_at == now + timedelta(days=90)
        mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, mock_db, settings, make_user):
        user = make_user()
        data = ChangePasswordRequest(
            email=user.email, current_password="wrong", new_password="new-pass"
        )
        with (
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.verify_password", return_value=False),
        ):
            mock_users.get_by_email = AsyncMock(return_value=user)

            with pytest.raises(InvalidCredentialsError):
                await change_password(mock_db, data, settings)

        assert user.password_hash == "hashed"

    @pytest.mark.asyncio
    async def test_reuse_refused(self, mock_db, settings, make_user):
        user = make_user()
        data = ChangePasswordRequest(
            email=user.email, current_password="same-pass", new_password="same-pass"
        )
        with (
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.verify_password", return_value=True),
        ):
            mock_users.get_by_email = AsyncMock(return_value=user)

            with pytest.raises(PasswordReuseError):
                await change_password(mock_db, data, settings)

    @pytest.mark.asyncio
    async def test_suspended_user_cannot_change(self, mock_db, settings, make_user):
        user = make_user(status=UserStatus.SUSPENDED)
        data = ChangePasswordRequest(
            email=user.email, current_password="old-pass", new_password="new-pass"
        )
        with (
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.verify_password", return_value=True),
        ):
            mock_users.get_by_email = AsyncMock(return_value=user)

            with pytest.raises(AccountSuspendedError):
                await change_password(mock_db, data, settings)

        assert user.status == UserStatus.SUSPENDED
