"""Unit tests for password expiration admin operations."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.modules.password_expiration.service import (
    extend_password_expiration,
    get_expiration_stats,
)
from app.modules.shared.errors import NotFoundError
from app.modules.users.models import UserStatus

USER_REPOSITORY = "app.modules.password_expiration.service.UserRepository"


class TestExtendPasswordExpiration:
    @pytest.mark.asyncio
    async def test_demoted_user_is_restored(self, mock_db, make_user, now):
        user = make_user(
            status=UserStatus.PENDING,
            expires_at=now - timedelta(days=3),
            warnings=[(now - timedelta(days=5)).isoformat()],
        )
        with patch(USER_REPOSITORY) as mock_users:
            mock_users.get_by_id = AsyncMock(return_value=user)

            result = await extend_password_expiration(mock_db, user.id, 30, uuid4(), now)

        assert result.status == UserStatus.APPROVED
        assert result.password_expires_at == now + timedelta(days=30)
        assert result.password_expiration_warnings == []
        mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_suspended_user_stays_suspended(self, mock_db, make_user, now):
        user = make_user(status=UserStatus.SUSPENDED)
        with patch(USER_REPOSITORY) as mock_users:
            mock_users.get_by_id = AsyncMock(return_value=user)

            result = await extend_password_expiration(mock_db, user.id, 90, uuid4(), now)

        assert result.status == UserStatus.SUSPENDED

    @pytest.mark.asyncio
    async def test_unknown_user(self, mock_db):
        with patch(USER_REPOSITORY) as mock_users:
            mock_users.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(NotFoundError):
                await extend_password_expiration(mock_db, uuid4(), 90, uuid4())

        mock_db.commit.assert_not_called()


@pytest.mark.asyncio
async def test_stats_include_generation_time(mock_db, now):
    counts = {"total_users": 4, "expired": 1, "expiring_in_7_days": 2, "expiring_in_30_days": 3}
    with patch(USER_REPOSITORY) as mock_users:
        mock_users.get_expiration_stats = AsyncMock(return_value=counts)

        stats = await get_expiration_stats(mock_db, now)

    assert stats == {**counts, "generated_at": now}
    mock_users.get_expiration_stats.assert_called_once_with(mock_db, now)
