"""
Associations module - User/account memberships and their approval workflow.
"""

from app.modules.associations.models import Association, AssociationStatus
from app.modules.associations.router import router

__all__ = ["Association", "AssociationStatus", "router"]
