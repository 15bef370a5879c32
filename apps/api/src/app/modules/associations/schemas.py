"""Association schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.modules.associations.models import Association, AssociationStatus


class AssociationResponse(BaseModel):
    """An association with the names clients display."""

    id: UUID
    user_id: UUID
    user_email: str
    user_name: str
    account_id: UUID
    account_name: str
    role: str
    status: AssociationStatus
    created_at: datetime
    resolved_at: datetime | None = None
    resolved_by: UUID | None = None

    @classmethod
    def from_model(cls, association: Association) -> "AssociationResponse":
        return cls(
            id=association.id,
            user_id=association.user_id,
            user_email=association.user.email,
            user_name=association.user.name,
            account_id=association.account_id,
            account_name=association.account.name,
            role=association.role_name,
            status=association.status,
            created_at=association.created_at,
            resolved_at=association.resolved_at,
            resolved_by=association.resolved_by,
        )


class PendingAssociationsResponse(BaseModel):
    """Pending associations visible to the caller."""

    associations: list[AssociationResponse] = Field(default_factory=list)
    total: int


class AssociationActionResponse(BaseModel):
    """Result of approving or rejecting an association."""

    message: str
    association: AssociationResponse
