"""
Shared fixtures: mock sessions and transient ORM instances.

Model instances are built without a database session, so defaults that
SQLAlchemy applies at flush time (id, status, timestamps) are set here.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.core.email import EmailNotifier
from app.modules.accounts.models import Account
from app.modules.associations.models import Association, AssociationStatus
from app.modules.roles.models import Role, RoleName
from app.modules.users.models import User, UserStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def now():
    """Fixed reference instant."""
    return NOW


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def make_role():
    """Factory for Role instances."""

    def _make(name: RoleName | str = RoleName.FAMILYADMIN, level: int = 4) -> Role:
        value = name.value if isinstance(name, RoleName) else name
        return Role(id=uuid4(), name=value, description=f"{value} role", level=level)

    return _make


@pytest.fixture
def make_user(make_role):
    """Factory for User instances with a valid password window."""

    def _make(
        email: str = "parent@example.com",
        role: RoleName | str = RoleName.FAMILYADMIN,
        status: UserStatus = UserStatus.APPROVED,
        password_hash: str = "hashed",
        expires_at: datetime | None = None,
        warnings: list[str] | None = None,
        name: str = "Ana Parent",
    ) -> User:
        role_obj = make_role(role)
        return User(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
            name=name,
            role_id=role_obj.id,
            role=role_obj,
            status=status,
            password_changed_at=NOW - timedelta(days=10),
            password_expires_at=expires_at or NOW + timedelta(days=80),
            password_expiration_warnings=warnings if warnings is not None else [],
        )

    return _make


@pytest.fixture
def make_account():
    """Factory for Account instances."""

    def _make(name: str = "Colegio San Martin", is_active: bool = True) -> Account:
        return Account(
            id=uuid4(),
            name=name,
            legal_name=f"{name} S.A.",
            address="Av. Libertador 100",
            contact_email="admin@sanmartin.edu",
            is_active=is_active,
            created_at=NOW - timedelta(days=30),
        )

    return _make


@pytest.fixture
def make_association(make_role, make_account):
    """Factory for Association instances with loaded relationships."""

    def _make(
        user: User,
        account: Account | None = None,
        role: RoleName | str = RoleName.FAMILYADMIN,
        status: AssociationStatus = AssociationStatus.PENDING,
    ) -> Association:
        account = account or make_account()
        role_obj = make_role(role)
        return Association(
            id=uuid4(),
            user_id=user.id,
            user=user,
            account_id=account.id,
            account=account,
            role_id=role_obj.id,
            role=role_obj,
            status=status,
            created_at=NOW - timedelta(days=1),
        )

    return _make


@pytest.fixture
def mock_notifier():
    """Notifier whose deliveries always succeed."""
    notifier = MagicMock(spec=EmailNotifier)
    notifier.try_send = AsyncMock(return_value=True)
    notifier.send = AsyncMock()
    return notifier
