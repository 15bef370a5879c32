"""
Service Errors

Every domain error carries a stable error_code so clients can branch
without string-matching messages, and the HTTP status routers map it to.
"""

from typing import Any

from fastapi import HTTPException


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> dict[str, Any]:
        """Response body for this error."""
        return {"code": self.error_code, "message": self.message}

    def to_http(self) -> HTTPException:
        """Convert to an HTTPException for the router layer."""
        return HTTPException(status_code=self.status_code, detail=self.to_detail())


class NotFoundError(ServiceError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str = "Resource", error_code: str = "NOT_FOUND"):
        super().__init__(
            message=f"{entity} not found",
            error_code=error_code,
            status_code=404,
        )


class ForbiddenError(ServiceError):
    """Raised when the acting user lacks scope for an operation."""

    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
        )


class PersistenceUnavailableError(ServiceError):
    """Raised when the database cannot be reached or timed out. Retryable."""

    def __init__(self, message: str = "The service is temporarily unavailable. Please retry."):
        super().__init__(
            message=message,
            error_code="PERSISTENCE_UNAVAILABLE",
            status_code=503,
        )


class NotificationDeliveryFailedError(ServiceError):
    """Raised when an email could not be delivered after all retries."""

    def __init__(self, to_email: str, reason: str):
        self.to_email = to_email
        self.reason = reason
        super().__init__(
            message=f"Notification delivery failed: {reason}",
            error_code="NOTIFICATION_DELIVERY_FAILED",
            status_code=502,
        )


class EmailAlreadyRegisteredError(ServiceError):
    """Raised when an email belongs to an existing user and cannot be reused here."""

    def __init__(self) -> None:
        super().__init__(
            message="This email is already registered.",
            error_code="EMAIL_ALREADY_REGISTERED",
            status_code=409,
        )
