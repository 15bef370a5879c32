"""Account schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.modules.accounts.models import Account
from app.modules.associations.schemas import AssociationResponse

MIN_PASSWORD_LENGTH = 6


class AccountCreate(BaseModel):
    """New account with its administrator."""

    name: str = Field(..., min_length=2, max_length=100)
    legal_name: str = Field(..., min_length=2, max_length=150)
    address: str = Field(..., min_length=1, max_length=200)
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    admin_name: str | None = Field(None, max_length=200)


class AccountUserCreate(BaseModel):
    """User to provision into an account."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    role: str = Field(..., min_length=1, max_length=50)
    # Only used when the email is new
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    phone: str | None = Field(None, max_length=30)


class AccountResponse(BaseModel):
    id: UUID
    name: str
    legal_name: str
    address: str
    contact_email: str
    is_active: bool
    created_at: datetime

    @classmethod
    def from_model(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            legal_name=account.legal_name,
            address=account.address,
            contact_email=account.contact_email,
            is_active=account.is_active,
            created_at=account.created_at,
        )


class AccountCreateResponse(BaseModel):
    message: str
    account: AccountResponse
    admin_association: AssociationResponse


class AccountUserCreateResponse(BaseModel):
    message: str
    user_created: bool
    association: AssociationResponse
