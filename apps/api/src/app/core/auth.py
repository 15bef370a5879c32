"""
Authentication Dependencies

FastAPI dependencies that validate the bearer JWT issued at login and
expose the caller as an AuthenticatedUser.

Tokens are only issued by the login gate, so a valid token means the user
passed every login check at issue time. Approval or suspension after issue
does not revoke a token; authorization decisions that depend on account
scope re-read associations from the database.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import decode_token

logger = logging.getLogger(__name__)

SUPERADMIN_ROLE = "superadmin"

security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


@dataclass
class AuthenticatedUser:
    """
    Caller identity taken from JWT claims.

    Attributes:
        id: User ID ("sub" claim)
        email: User's email address
        role: Global role name
        name: Display name
    """

    id: UUID
    email: str
    role: str
    name: str | None = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == SUPERADMIN_ROLE

    def __str__(self) -> str:
        return f"AuthenticatedUser(id={self.id}, email={self.email}, role={self.role})"


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def user_from_token(token: str) -> AuthenticatedUser:
    """
    Validate a JWT and build the caller identity from its claims.

    Raises:
        HTTPException 401: If the token is invalid, expired, not an access
            token, or missing claims
    """
    payload = decode_token(token)
    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type", "access") != "access":
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id = UUID(payload["sub"])
    except (KeyError, ValueError, TypeError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e

    return AuthenticatedUser(
        id=user_id,
        email=payload.get("email", ""),
        role=payload.get("role", ""),
        name=payload.get("name"),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthenticatedUser:
    """
    FastAPI dependency returning the authenticated caller.

    Usage:
        @router.get("/endpoint")
        async def endpoint(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    user = user_from_token(credentials.credentials)
    logger.debug(f"Authenticated {user}")
    return user


async def get_current_superadmin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    """
    FastAPI dependency requiring the superadmin role.

    Raises:
        HTTPException 403: If the caller is not a superadmin
    """
    if not user.is_superadmin:
        logger.warning(
            f"Access denied: user {user.id} has role '{user.role}', '{SUPERADMIN_ROLE}' required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "FORBIDDEN",
                "message": "Super admin access is required for this endpoint.",
            },
        )
    return user


__all__ = [
    "AuthenticatedUser",
    "SUPERADMIN_ROLE",
    "get_current_superadmin",
    "get_current_user",
    "user_from_token",
]
