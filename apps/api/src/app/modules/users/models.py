"""
User Models

The User is the global identity. Access to an account is granted separately
through Associations; the global status gates login for every account.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.modules.roles.models import Role
from app.modules.shared import BaseModel


class UserStatus(str, Enum):
    """Global status of a user."""

    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class User(BaseModel):
    """
    User model for authentication and authorization.

    Users are never hard-deleted; suspension is the terminal state.
    A user demoted to PENDING by the password expiration sweep is restored
    to APPROVED when the password is changed or extended.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    phone: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )

    role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    status: Mapped[UserStatus] = mapped_column(
        ENUM(
            UserStatus,
            name="user_status",
            create_type=True,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=UserStatus.APPROVED,
        index=True,
    )

    # Password lifecycle
    password_changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    password_expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    # ISO-8601 timestamps of expiry warnings sent for the current password
    password_expiration_warnings: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    role: Mapped[Role] = relationship(
        Role,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, status={self.status.value})>"

    @property
    def role_name(self) -> str:
        return self.role.name if self.role is not None else ""
