"""Authentication schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.modules.associations.schemas import AssociationResponse
from app.modules.users.models import User
from app.modules.users.password_policy import days_until_password_expiration

MIN_PASSWORD_LENGTH = 6


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """User as returned to clients."""

    id: UUID
    email: str
    name: str
    phone: str | None = None
    role: str
    status: str
    password_expires_at: datetime
    days_until_password_expiration: int
    last_login_at: datetime | None = None

    @classmethod
    def from_model(cls, user: User, now: datetime) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            role=user.role_name,
            status=user.status.value,
            password_expires_at=user.password_expires_at,
            days_until_password_expiration=days_until_password_expiration(user, now),
            last_login_at=user.last_login_at,
        )


class LoginResponse(BaseModel):
    """Login response schema."""

    token: str
    token_type: str = "bearer"
    user: UserResponse
    associations: list[AssociationResponse] = Field(default_factory=list)


class RegisterMobileRequest(BaseModel):
    """Self-registration into an account from the mobile app."""

    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    account_id: UUID
    role: str = Field(..., min_length=1, max_length=50)
    phone: str | None = Field(None, max_length=30)


class AccountSummary(BaseModel):
    id: UUID
    name: str


class RegisterMobileResponse(BaseModel):
    """Registration result. No token: the association must be approved first."""

    message: str
    user: UserResponse
    account: AccountSummary
    association: AssociationResponse


class ChangePasswordRequest(BaseModel):
    """Self-service password change."""

    email: EmailStr
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)


class ChangePasswordResponse(BaseModel):
    message: str
    password_expires_at: datetime
