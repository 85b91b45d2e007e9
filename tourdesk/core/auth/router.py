from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.auth.dependencies import CurrentUser
from tourdesk.core.auth.schemas import (
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RefreshRequest,
    TokenResponse,
    UserResponse,
)
from tourdesk.core.auth.service import AuthService
from tourdesk.core.database import get_db
from tourdesk.shared.schemas import MessageResponse, SuccessResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/login", response_model=SuccessResponse[LoginResponse])
async def login(
    request: Request,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange staff credentials for an access/refresh token pair."""
    user, access_token, refresh_token = await AuthService(db).authenticate(
        email=data.email,
        password=data.password,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    return SuccessResponse(
        data=LoginResponse(
            user=UserResponse.model_validate(user),
            access_token=access_token,
            refresh_token=refresh_token,
        ),
        message="Login successful",
    )


@router.post("/refresh", response_model=SuccessResponse[TokenResponse])
async def refresh_tokens(
    data: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    access_token, refresh_token = await AuthService(db).refresh_tokens(data.refresh_token)

    return SuccessResponse(
        data=TokenResponse(access_token=access_token, refresh_token=refresh_token),
        message="Tokens refreshed",
    )


@router.get("/me", response_model=SuccessResponse[UserResponse])
async def get_current_user_info(current_user: CurrentUser):
    return SuccessResponse(
        data=UserResponse.model_validate(current_user),
        message="User info retrieved",
    )


@router.put("/profile", response_model=SuccessResponse[UserResponse])
async def update_profile(
    data: ProfileUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Update own name and phone."""
    user = await AuthService(db).update_profile(
        current_user, full_name=data.full_name, phone=data.phone
    )
    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="Profile updated",
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Record the logout in the audit trail; the client discards its tokens."""
    await AuthService(db).logout(
        current_user,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return MessageResponse(message="Logged out")
