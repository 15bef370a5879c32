"""
Core module - Configuration, database, security, rate limiting and utilities.
"""

from app.core.config import Settings, get_settings, settings
from app.core.database import Base, get_db
from app.core.security import (
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    # Config
    "Settings",
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    # Security
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_token",
]
