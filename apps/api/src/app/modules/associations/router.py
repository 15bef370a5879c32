"""
Association Approval Router

Endpoints:
- GET /users/pending-associations - Pending associations in the caller's scope
- PUT /users/approve-association/{id} - Approve a pending association
- PUT /users/reject-association/{id} - Reject a pending association

Security:
- All endpoints require a valid JWT
- Scope (super admin vs account admin) is evaluated from current
  associations, not from token claims
- Resolution endpoints are rate limited as sensitive operations
"""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_current_user
from app.core.context import get_notifier
from app.core.database import get_db
from app.core.email import EmailNotifier
from app.core.rate_limit import OperationClass, rate_limit
from app.modules.associations import service
from app.modules.associations.policy import Actor
from app.modules.associations.schemas import (
    AssociationActionResponse,
    AssociationResponse,
    PendingAssociationsResponse,
)
from app.modules.shared.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_current_actor(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """FastAPI dependency classifying the caller for scope checks."""
    try:
        return await service.load_actor(db, user.id)
    except ServiceError as e:
        raise e.to_http() from e


@router.get("/pending-associations", response_model=PendingAssociationsResponse)
async def list_pending_associations(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> PendingAssociationsResponse:
    """
    List pending associations, newest first.

    Super admins see every account; account admins see only the accounts
    they administer. Members receive 403.
    """
    try:
        associations = await service.list_pending(db, actor)
    except ServiceError as e:
        raise e.to_http() from e

    return PendingAssociationsResponse(
        associations=[AssociationResponse.from_model(a) for a in associations],
        total=len(associations),
    )


@router.put(
    "/approve-association/{association_id}",
    response_model=AssociationActionResponse,
    dependencies=[Depends(rate_limit(OperationClass.SENSITIVE_GENERIC))],
)
async def approve_association(
    association_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
) -> AssociationActionResponse:
    """
    Approve a pending association.

    Errors: 404 NOT_FOUND, 403 FORBIDDEN, 409 ALREADY_RESOLVED.
    """
    try:
        association = await service.approve(db, association_id, actor)
    except ServiceError as e:
        raise e.to_http() from e

    background_tasks.add_task(notifier.try_send, *service.resolution_notice(association))
    return AssociationActionResponse(
        message="Association approved.",
        association=AssociationResponse.from_model(association),
    )


@router.put(
    "/reject-association/{association_id}",
    response_model=AssociationActionResponse,
    dependencies=[Depends(rate_limit(OperationClass.SENSITIVE_GENERIC))],
)
async def reject_association(
    association_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
) -> AssociationActionResponse:
    """
    Reject a pending association.

    Errors: 404 NOT_FOUND, 403 FORBIDDEN, 409 ALREADY_RESOLVED.
    """
    try:
        association = await service.reject(db, association_id, actor)
    except ServiceError as e:
        raise e.to_http() from e

    background_tasks.add_task(notifier.try_send, *service.resolution_notice(association))
    return AssociationActionResponse(
        message="Association rejected.",
        association=AssociationResponse.from_model(association),
    )
