"""
Association Models

An Association grants a User a Role inside an Account. It is created
pending and resolved once by an administrator; approved and rejected are
terminal.

At most one non-rejected association exists per (user, account). This is
enforced by the service layer, since a rejected row must not block a later
request.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.modules.accounts.models import Account
from app.modules.roles.models import Role
from app.modules.shared import BaseModel
from app.modules.users.models import User


class AssociationStatus(str, Enum):
    """Lifecycle status of an association."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Association(BaseModel):
    """User x Account x Role membership."""

    __tablename__ = "associations"
    __table_args__ = (
        Index("ix_associations_user_account", "user_id", "account_id"),
        Index("ix_associations_status_created_at", "status", "created_at"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    # Divisions are managed outside this service
    division_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )

    status: Mapped[AssociationStatus] = mapped_column(
        ENUM(
            AssociationStatus,
            name="association_status",
            create_type=True,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=AssociationStatus.PENDING,
    )

    # Audit
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    user: Mapped[User] = relationship(User, foreign_keys=[user_id], lazy="selectin")
    account: Mapped[Account] = relationship(Account, lazy="selectin")
    role: Mapped[Role] = relationship(Role, lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<Association(id={self.id}, user_id={self.user_id}, "
            f"account_id={self.account_id}, status={self.status.value})>"
        )

    @property
    def role_name(self) -> str:
        return self.role.name if self.role is not None else ""
