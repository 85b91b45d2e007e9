from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from tourdesk.shared.schemas import BaseSchema


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseSchema):
    """Fields staff may change on their own account."""

    full_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=30)

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Full name must be at least 2 characters")
        return v


class TokenResponse(BaseSchema):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseSchema):
    refresh_token: str


class UserResponse(BaseSchema):
    """Staff account as returned by the API (never includes the password hash)."""

    id: int
    email: str
    full_name: str
    phone: str | None
    designation: str | None
    role: str
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime
    updated_at: datetime


class LoginResponse(BaseSchema):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
