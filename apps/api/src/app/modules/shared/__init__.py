"""
Shared module - ORM base model and service errors.
"""

from app.modules.shared.errors import (
    EmailAlreadyRegisteredError,
    ForbiddenError,
    NotFoundError,
    NotificationDeliveryFailedError,
    PersistenceUnavailableError,
    ServiceError,
)
from app.modules.shared.models import BaseModel

__all__ = [
    "BaseModel",
    "EmailAlreadyRegisteredError",
    "ForbiddenError",
    "NotFoundError",
    "NotificationDeliveryFailedError",
    "PersistenceUnavailableError",
    "ServiceError",
]
