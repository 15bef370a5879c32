"""
Seed Roles and Super Admin

Seeds the role reference data and creates the initial super admin user.
Safe to run repeatedly: existing roles and users are left untouched.

Usage:
    cd apps/api
    SUPERADMIN_EMAIL=admin@kiki.app SUPERADMIN_PASSWORD=... python scripts/seed_superadmin.py
"""

import asyncio
import os
import sys
from datetime import UTC, datetime
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from app.core.config import settings
from app.core.database import create_engine, create_session_maker
from app.core.security import hash_password
from app.modules.roles.models import RoleName
from app.modules.roles.repository import RoleRepository
from app.modules.users.models import UserStatus
from app.modules.users.repository import UserRepository


async def seed_superadmin(email: str, password: str, name: str) -> None:
    """Seed roles, then create the super admin if it doesn't exist."""
    engine = create_engine(settings)
    session_maker = create_session_maker(engine)

    try:
        async with session_maker() as db:
            created = await RoleRepository.seed_defaults(db)
            print(f"Roles seeded: {created} new")

            existing_user = await UserRepository.get_by_email(db, email)
            if existing_user:
                await db.commit()
                print(f"Super admin already exists: {existing_user.email}")
                print(f"  ID: {existing_user.id}")
                print(f"  Role: {existing_user.role_name}")
                return

            role = await RoleRepository.get_by_name(db, RoleName.SUPERADMIN)
            admin_user = await UserRepository.create(
                db,
                email=email,
                password_hash=hash_password(password),
                name=name,
                role_id=role.id,
                now=datetime.now(UTC),
                expiration_days=settings.password_expiration_days,
                status=UserStatus.APPROVED,
            )
            await db.commit()

            print("Super admin created successfully!")
            print(f"  Email: {admin_user.email}")
            print(f"  Name: {admin_user.name}")
            print(f"  ID: {admin_user.id}")
            print(f"  Password expires: {admin_user.password_expires_at.isoformat()}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    admin_email = os.environ.get("SUPERADMIN_EMAIL")
    admin_password = os.environ.get("SUPERADMIN_PASSWORD")
    if not admin_email or not admin_password:
        sys.exit("SUPERADMIN_EMAIL and SUPERADMIN_PASSWORD must be set")

    asyncio.run(
        seed_superadmin(
            admin_email,
            admin_password,
            os.environ.get("SUPERADMIN_NAME", "Super Admin"),
        )
    )
