"""
Accounts module - Tenant institutions and their provisioning.
"""

from app.modules.accounts.models import Account
from app.modules.accounts.repository import AccountRepository

__all__ = ["Account", "AccountRepository"]
