"""
Authentication Router

Endpoints:
- POST /auth/login - Authenticate and receive an access token
- POST /auth/register-mobile - Request access to an account
- POST /auth/change-password - Rotate the password (also unlocks expired passwords)

Every endpoint is rate limited, and the counter is incremented before any
credential is checked so failed attempts count toward the limit.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import AppContext, get_context
from app.core.database import get_db
from app.core.rate_limit import OperationClass, RateLimiter, client_ip, get_rate_limiter, rate_limit
from app.core.security import create_access_token
from app.modules.associations.schemas import AssociationResponse
from app.modules.auth import service
from app.modules.auth.schemas import (
    AccountSummary,
    ChangePasswordRequest,
    ChangePasswordResponse,
    LoginRequest,
    LoginResponse,
    RegisterMobileRequest,
    RegisterMobileResponse,
    UserResponse,
)
from app.modules.shared.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"description": "INVALID_CREDENTIALS"},
        403: {"description": "ACCOUNT_SUSPENDED, PASSWORD_EXPIRED or PENDING_APPROVAL"},
        429: {"description": "RATE_LIMITED"},
    },
)
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> LoginResponse:
    """
    Authenticate a user and return a JWT access token.

    Login is keyed by client IP and attempted email: five attempts per
    15 minutes, successful or not.
    """
    await limiter.enforce(OperationClass.LOGIN, client_ip(request), credentials.email)

    now = datetime.now(UTC)
    try:
        result = await service.authenticate(db, credentials.email, credentials.password, now)
    except ServiceError as e:
        raise e.to_http() from e

    user = result.user
    token = create_access_token(
        subject=str(user.id),
        additional_claims={"email": user.email, "role": user.role_name, "name": user.name},
    )

    return LoginResponse(
        token=token,
        token_type="bearer",
        user=UserResponse.from_model(user, now),
        associations=[AssociationResponse.from_model(a) for a in result.associations],
    )


@router.post(
    "/register-mobile",
    response_model=RegisterMobileResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(OperationClass.REGISTER))],
)
async def register_mobile(
    data: RegisterMobileRequest,
    db: AsyncSession = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> RegisterMobileResponse:
    """
    Request access to an account.

    The association starts pending; the user can log in into the account
    once an administrator approves it.
    """
    now = datetime.now(UTC)
    try:
        result = await service.register_mobile(db, data, context.settings, now)
    except ServiceError as e:
        raise e.to_http() from e

    return RegisterMobileResponse(
        message="Registration received. An administrator must approve your access.",
        user=UserResponse.from_model(result.user, now),
        account=AccountSummary(id=result.account.id, name=result.account.name),
        association=AssociationResponse.from_model(result.association),
    )


@router.post(
    "/change-password",
    response_model=ChangePasswordResponse,
    dependencies=[Depends(rate_limit(OperationClass.PASSWORD_CHANGE))],
)
async def change_password(
    data: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> ChangePasswordResponse:
    """Change the password with the current one; resets the expiry window."""
    try:
        user = await service.change_password(db, data, context.settings)
    except ServiceError as e:
        raise e.to_http() from e

    return ChangePasswordResponse(
        message="Password changed successfully.",
        password_expires_at=user.password_expires_at,
    )
