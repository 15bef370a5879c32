"""
Account Models

An Account is a tenant institution (school, club, ...). Users gain access to
an account through an Association.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class Account(BaseModel):
    """Tenant institution."""

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    legal_name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    address: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    # Administrative contact; the admin user is created with this email
    contact_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name={self.name}, active={self.is_active})>"
