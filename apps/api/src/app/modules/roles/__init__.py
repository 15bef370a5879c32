"""
Roles module - Role reference data.
"""

from app.modules.roles.models import Role, RoleName
from app.modules.roles.repository import DEFAULT_ROLES, RoleRepository

__all__ = ["DEFAULT_ROLES", "Role", "RoleName", "RoleRepository"]
