"""
Password Expiration Admin Router

Endpoints (super admin only):
- GET /admin/password-expiration/stats - Expiry statistics
- POST /admin/password-expiration/run - Run the sweep now
- POST /admin/users/{id}/extend-password-expiration - Extend a user's window
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_current_superadmin
from app.core.database import get_db
from app.core.rate_limit import OperationClass, rate_limit
from app.modules.password_expiration import service
from app.modules.password_expiration.jobs import PasswordExpirationChecker
from app.modules.password_expiration.schemas import (
    ExpirationStatsResponse,
    ExtendExpirationRequest,
    ExtendExpirationResponse,
    SweepResponse,
)
from app.modules.shared.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(rate_limit(OperationClass.SENSITIVE_GENERIC))])


def get_password_checker(request: Request) -> PasswordExpirationChecker:
    """FastAPI dependency returning the process password expiration checker."""
    return request.app.state.password_checker


@router.get("/password-expiration/stats", response_model=ExpirationStatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> ExpirationStatsResponse:
    """Counts of approved users, expired passwords and passwords expiring soon."""
    stats = await service.get_expiration_stats(db)
    return ExpirationStatsResponse(**stats)


@router.post("/password-expiration/run", response_model=SweepResponse)
async def run_sweep(
    checker: PasswordExpirationChecker = Depends(get_password_checker),
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> SweepResponse:
    """
    Run the password expiration sweep immediately.

    If a sweep is already running the response has skipped=true.
    """
    logger.info(f"Admin {admin.id} triggered the password expiration sweep")
    result = await checker.run_scheduled_check()
    return SweepResponse(**result)


@router.post(
    "/users/{user_id}/extend-password-expiration",
    response_model=ExtendExpirationResponse,
)
async def extend_expiration(
    user_id: UUID,
    data: ExtendExpirationRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> ExtendExpirationResponse:
    """Give a user a fresh password window (default 90 days)."""
    days = (data or ExtendExpirationRequest()).days
    try:
        user = await service.extend_password_expiration(db, user_id, days, admin.id)
    except ServiceError as e:
        raise e.to_http() from e

    return ExtendExpirationResponse(
        message=f"Password expiration extended by {days} day(s).",
        user_id=user.id,
        status=user.status.value,
        password_expires_at=user.password_expires_at,
    )
