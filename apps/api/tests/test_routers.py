"""
HTTP tests for the API routers.

The application context is replaced with in-memory clients and the service
layer is patched, so these tests cover routing, status codes, error bodies,
rate limiting and background notifications.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.core.auth import AuthenticatedUser, get_current_user
from app.core.config import Settings
from app.core.database import get_db
from app.core.rate_limit import (
    DEFAULT_RULES,
    MemoryRateLimitStore,
    OperationClass,
    RateLimiter,
    RateLimitRule,
)
from app.core.security import create_access_token, decode_token
from app.main import app
from app.modules.associations.models import AssociationStatus
from app.modules.associations.policy import Member, SuperAdmin
from app.modules.associations.router import get_current_actor
from app.modules.associations.service import AlreadyResolvedError
from app.modules.auth.gate import InvalidCredentialsError, LoginSuccess, PendingApprovalError

AUTH_SERVICE = "app.modules.auth.router.service"
ASSOCIATION_SERVICE = "app.modules.associations.router.service"


@pytest.fixture
def limiter():
    return RateLimiter(MemoryRateLimitStore())


@pytest.fixture
def client(mock_db, mock_notifier, limiter):
    app.state.context = SimpleNamespace(
        settings=Settings(),
        notifier=mock_notifier,
        rate_limiter=limiter,
        redis=None,
    )
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def as_actor(actor):
    app.dependency_overrides[get_current_actor] = lambda: actor


def as_user(role: str):
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(
        id=uuid4(), email="caller@example.com", role=role
    )


class TestLogin:
    def test_success_returns_token_and_associations(
        self, client, make_user, make_association
    ):
        user = make_user()
        approved = make_association(user, status=AssociationStatus.APPROVED)

        with patch(f"{AUTH_SERVICE}.authenticate", new=AsyncMock()) as mock_auth:
            mock_auth.return_value = LoginSuccess(user=user, associations=[approved])
            response = client.post(
                "/api/v1/auth/login", json={"email": user.email, "password": "secret"}
            )

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == user.email
        assert body["associations"][0]["account_name"] == approved.account.name
        claims = decode_token(body["token"])
        assert claims["sub"] == str(user.id)
        assert claims["role"] == "familyadmin"

    def test_invalid_credentials(self, client):
        with patch(
            f"{AUTH_SERVICE}.authenticate", new=AsyncMock(side_effect=InvalidCredentialsError())
        ):
            response = client.post(
                "/api/v1/auth/login", json={"email": "a@example.com", "password": "nope"}
            )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"

    def test_pending_approval_lists_pending(self, client):
        pending = [{"association_id": str(uuid4()), "status": "pending"}]
        with patch(
            f"{AUTH_SERVICE}.authenticate",
            new=AsyncMock(side_effect=PendingApprovalError(pending)),
        ):
            response = client.post(
                "/api/v1/auth/login", json={"email": "a@example.com", "password": "secret"}
            )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "PENDING_APPROVAL"
        assert response.json()["detail"]["pending"] == pending

    def test_sixth_attempt_is_rate_limited(self, client):
        with patch(
            f"{AUTH_SERVICE}.authenticate", new=AsyncMock(side_effect=InvalidCredentialsError())
        ) as mock_auth:
            for _ in range(5):
                response = client.post(
                    "/api/v1/auth/login", json={"email": "a@example.com", "password": "x"}
                )
                assert response.status_code == 401

            limited = client.post(
                "/api/v1/auth/login", json={"email": "a@example.com", "password": "x"}
            )
            other_email = client.post(
                "/api/v1/auth/login", json={"email": "b@example.com", "password": "x"}
            )

        assert limited.status_code == 429
        assert limited.headers["Retry-After"] == "900"
        assert limited.json()["detail"]["code"] == "RATE_LIMITED"
        assert other_email.status_code == 401
        # The limited attempt never reached the credential check
        assert mock_auth.await_count == 6

    def test_database_unavailable_is_503(self, client):
        error = OperationalError("SELECT 1", {}, ConnectionRefusedError("refused"))
        with patch(f"{AUTH_SERVICE}.authenticate", new=AsyncMock(side_effect=error)):
            response = client.post(
                "/api/v1/auth/login", json={"email": "a@example.com", "password": "secret"}
            )

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "PERSISTENCE_UNAVAILABLE"

    def test_generic_budget_applies_across_routes(self, client):
        rules = dict(DEFAULT_RULES)
        rules[OperationClass.API_GENERIC] = RateLimitRule(
            window_seconds=60, max_requests=2, message="Too many requests."
        )
        app.state.context.rate_limiter = RateLimiter(MemoryRateLimitStore(), rules=rules)

        with patch(
            f"{AUTH_SERVICE}.authenticate", new=AsyncMock(side_effect=InvalidCredentialsError())
        ) as mock_auth:
            for email in ("a@example.com", "b@example.com"):
                response = client.post(
                    "/api/v1/auth/login", json={"email": email, "password": "x"}
                )
                assert response.status_code == 401

            limited = client.post(
                "/api/v1/auth/login", json={"email": "c@example.com", "password": "x"}
            )

        assert limited.status_code == 429
        assert limited.json()["detail"]["message"] == "Too many requests."
        assert mock_auth.await_count == 2
        # Health checks sit outside the versioned API
        assert client.get("/health").status_code == 200


class TestRegisterMobile:
    def test_registration_is_pending(self, client, make_user, make_association):
        user = make_user()
        association = make_association(user)
        result = SimpleNamespace(user=user, account=association.account, association=association)

        with patch(f"{AUTH_SERVICE}.register_mobile", new=AsyncMock(return_value=result)):
            response = client.post(
                "/api/v1/auth/register-mobile",
                json={
                    "email": user.email,
                    "password": "secret1",
                    "name": user.name,
                    "account_id": str(association.account_id),
                    "role": "familyadmin",
                },
            )

        assert response.status_code == 201
        body = response.json()
        assert body["association"]["status"] == "pending"
        assert "token" not in body

    def test_short_password_is_rejected(self, client):
        response = client.post(
            "/api/v1/auth/register-mobile",
            json={
                "email": "a@example.com",
                "password": "123",
                "name": "A",
                "account_id": str(uuid4()),
                "role": "familyadmin",
            },
        )
        assert response.status_code == 422


class TestAssociations:
    def test_member_cannot_list_pending(self, client):
        as_actor(Member(user_id=uuid4()))

        response = client.get("/api/v1/users/pending-associations")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "FORBIDDEN"

    def test_superadmin_lists_pending(self, client, make_user, make_association):
        as_actor(SuperAdmin(user_id=uuid4()))
        pending = [make_association(make_user()), make_association(make_user())]

        with patch(f"{ASSOCIATION_SERVICE}.list_pending", new=AsyncMock(return_value=pending)):
            response = client.get("/api/v1/users/pending-associations")

        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_approve_sends_notification(
        self, client, mock_notifier, make_user, make_association
    ):
        as_actor(SuperAdmin(user_id=uuid4()))
        association = make_association(make_user(), status=AssociationStatus.APPROVED)

        with patch(f"{ASSOCIATION_SERVICE}.approve", new=AsyncMock(return_value=association)):
            response = client.put(f"/api/v1/users/approve-association/{association.id}")

        assert response.status_code == 200
        assert response.json()["association"]["status"] == "approved"
        mock_notifier.try_send.assert_awaited_once()
        assert mock_notifier.try_send.call_args.args[0] == association.user.email

    def test_already_resolved_is_409(self, client):
        as_actor(SuperAdmin(user_id=uuid4()))

        with patch(
            f"{ASSOCIATION_SERVICE}.reject",
            new=AsyncMock(side_effect=AlreadyResolvedError(AssociationStatus.APPROVED)),
        ):
            response = client.put(f"/api/v1/users/reject-association/{uuid4()}")

        assert response.status_code == 409
        assert response.json()["detail"] == {
            "code": "ALREADY_RESOLVED",
            "message": "This association has already been approved.",
            "status": "approved",
        }

    def test_missing_token(self, client):
        response = client.get("/api/v1/users/pending-associations")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.get(
            "/api/v1/users/pending-associations",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_TOKEN"


class TestAdmin:
    def test_stats_require_superadmin(self, client):
        as_user("adminaccount")

        response = client.get("/api/v1/admin/password-expiration/stats")

        assert response.status_code == 403

    def test_run_sweep(self, client):
        as_user("superadmin")
        checker = MagicMock()
        checker.run_scheduled_check = AsyncMock(
            return_value={
                "started_at": "2026-03-01T12:00:00+00:00",
                "finished_at": "2026-03-01T12:00:01+00:00",
                "expired_count": 1,
                "expiring_soon_count": 2,
                "warnings_sent": 2,
                "notifications_failed": 0,
                "errors": [],
                "skipped": False,
                "cancelled": False,
            }
        )
        app.state.password_checker = checker

        response = client.post("/api/v1/admin/password-expiration/run")

        assert response.status_code == 200
        assert response.json()["expired_count"] == 1

    def test_trigger_unknown_job(self, client):
        token = create_access_token(str(uuid4()), {"role": "superadmin", "email": "s@kiki.app"})

        response = client.post(
            "/api/v1/admin/jobs/missing_job/trigger",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 404

    def test_clear_rate_limit(self, client, limiter):
        as_user("superadmin")
        with patch(
            f"{AUTH_SERVICE}.authenticate", new=AsyncMock(side_effect=InvalidCredentialsError())
        ):
            for _ in range(6):
                client.post(
                    "/api/v1/auth/login", json={"email": "a@example.com", "password": "x"}
                )

        response = client.delete(
            "/api/v1/admin/rate-limits",
            params={"operation": "login", "ip": "testclient", "email": "a@example.com"},
        )

        assert response.status_code == 200
        assert response.json()["cleared"] is True


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
