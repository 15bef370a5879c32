"""
Role Repository

Lookup and seeding of role reference data.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.roles.models import Role, RoleName

logger = logging.getLogger(__name__)

DEFAULT_ROLES: dict[RoleName, tuple[str, int]] = {
    RoleName.SUPERADMIN: ("Platform super administrator with full access", 1),
    RoleName.ADMINACCOUNT: ("Account administrator with full access within the account", 2),
    RoleName.COORDINADOR: ("Group coordinator managing users and families", 3),
    RoleName.COLABORADOR: ("Collaborator supporting coordinators within an account", 3),
    RoleName.FAMILYADMIN: ("Family administrator managing their family group", 4),
    RoleName.FAMILYVIEWER: ("Family member with read-only access", 5),
}


class RoleRepository:
    """Repository for role database operations."""

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str | RoleName) -> Role | None:
        value = name.value if isinstance(name, RoleName) else name
        result = await db.execute(select(Role).where(Role.name == value))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Role]:
        result = await db.execute(select(Role).order_by(Role.level, Role.name))
        return list(result.scalars().all())

    @staticmethod
    async def seed_defaults(db: AsyncSession) -> int:
        """
        Insert any missing default roles.

        Existing roles are left untouched. The caller commits.

        Returns:
            Number of roles created
        """
        existing = {role.name for role in await RoleRepository.list_all(db)}
        created = 0
        for name, (description, level) in DEFAULT_ROLES.items():
            if name.value in existing:
                continue
            db.add(Role(name=name.value, description=description, level=level))
            created += 1

        if created:
            await db.flush()
            logger.info(f"Seeded {created} role(s)")
        return created
