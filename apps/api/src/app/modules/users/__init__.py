"""
Users module - User identity and password lifecycle.
"""

from app.modules.users.models import User, UserStatus
from app.modules.users.repository import UserRepository, normalize_email

__all__ = ["User", "UserRepository", "UserStatus", "normalize_email"]
