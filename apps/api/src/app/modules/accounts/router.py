"""
Account Provisioning Router

Endpoints:
- POST /accounts - Create an account and its administrator (super admin)
- POST /accounts/{id}/users - Add a user to an account (account admin)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import AppContext, get_context
from app.core.database import get_db
from app.core.rate_limit import OperationClass, rate_limit
from app.modules.accounts import service
from app.modules.accounts.schemas import (
    AccountCreate,
    AccountCreateResponse,
    AccountResponse,
    AccountUserCreate,
    AccountUserCreateResponse,
)
from app.modules.associations.policy import Actor
from app.modules.associations.router import get_current_actor
from app.modules.associations.schemas import AssociationResponse
from app.modules.shared.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(rate_limit(OperationClass.SENSITIVE_GENERIC))])


@router.post("", response_model=AccountCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: AccountCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> AccountCreateResponse:
    """Create an account together with its administrator user."""
    try:
        result = await service.create_account(db, data, actor, context.settings)
    except ServiceError as e:
        raise e.to_http() from e

    background_tasks.add_task(context.notifier.try_send, *service.welcome_notice(result))
    return AccountCreateResponse(
        message="Account created.",
        account=AccountResponse.from_model(result.account),
        admin_association=AssociationResponse.from_model(result.association),
    )


@router.post(
    "/{account_id}/users",
    response_model=AccountUserCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_account_user(
    account_id: UUID,
    data: AccountUserCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> AccountUserCreateResponse:
    """Grant a user approved access to an account."""
    try:
        result = await service.provision_user(db, account_id, data, actor, context.settings)
    except ServiceError as e:
        raise e.to_http() from e

    background_tasks.add_task(context.notifier.try_send, *service.welcome_notice(result))
    return AccountUserCreateResponse(
        message="User added to account.",
        user_created=result.user_created,
        association=AssociationResponse.from_model(result.association),
    )
