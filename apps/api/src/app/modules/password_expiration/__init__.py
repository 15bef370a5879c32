"""
Password expiration module - Periodic sweep and admin tooling.
"""

from app.modules.password_expiration.jobs import (
    JOB_ID_PASSWORD_EXPIRATION_CHECK,
    PasswordExpirationChecker,
    register_password_expiration_jobs,
)
from app.modules.password_expiration.router import router

__all__ = [
    "JOB_ID_PASSWORD_EXPIRATION_CHECK",
    "PasswordExpirationChecker",
    "register_password_expiration_jobs",
    "router",
]
