from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from tourdesk.core.auth.models import UserRole
from tourdesk.shared.schemas import BaseSchema


def _check_full_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Full name must be at least 2 characters")
    return v


def _check_password(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    return v


class UserCreate(BaseSchema):
    """Schema for creating a staff account."""

    email: EmailStr
    password: str
    full_name: str = Field(..., max_length=100)
    phone: str | None = Field(None, max_length=30)
    designation: str | None = Field(None, max_length=50)
    role: UserRole = UserRole.USER

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        return _check_full_name(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class UserUpdate(BaseSchema):
    """Schema for updating a staff account."""

    email: EmailStr | None = None
    full_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=30)
    designation: str | None = Field(None, max_length=50)
    role: UserRole | None = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str | None) -> str | None:
        return _check_full_name(v) if v is not None else v


class SetPassword(BaseSchema):
    """Password reset by an admin."""

    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class ChangeOwnPassword(BaseSchema):
    """Schema for user changing their own password."""

    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password(v)


class UserResponse(BaseSchema):
    """Schema for user response."""

    id: int
    email: str
    full_name: str
    phone: str | None
    designation: str | None
    role: str
    is_active: bool
    last_login_at: datetime | None
    login_attempts: int = 0
    is_locked: bool = False
    locked_until: datetime | None = None
    created_at: datetime
    updated_at: datetime


class UserListFilters(BaseSchema):
    """Filters for user list."""

    role: UserRole | None = None
    is_active: bool | None = None
    search: str | None = None  # Search by name or email
    page: int = 1
    limit: int = 20
