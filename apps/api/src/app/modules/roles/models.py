"""
Role Models

Roles are immutable reference data seeded at startup.
A lower level means more privilege.
"""

from enum import Enum

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class RoleName(str, Enum):
    """Role names known to the system."""

    SUPERADMIN = "superadmin"
    ADMINACCOUNT = "adminaccount"
    COORDINADOR = "coordinador"
    FAMILYADMIN = "familyadmin"
    FAMILYVIEWER = "familyviewer"
    COLABORADOR = "colaborador"


class Role(BaseModel):
    """Global role referenced by users and associations."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Role(name={self.name}, level={self.level})>"
