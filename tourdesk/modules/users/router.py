from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.auth.dependencies import AdminUser, CurrentUser
from tourdesk.core.auth.models import UserRole
from tourdesk.core.database import get_db
from tourdesk.core.exceptions import NotFoundError
from tourdesk.modules.users.schemas import (
    ChangeOwnPassword,
    SetPassword,
    UserCreate,
    UserListFilters,
    UserResponse,
    UserUpdate,
)
from tourdesk.modules.users.service import UserService
from tourdesk.shared.schemas import PaginatedResponse, SuccessResponse
from tourdesk.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=ApiResponse[PaginatedResponse[UserResponse]])
async def list_users(
    current_user: AdminUser,
    role: UserRole | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List staff accounts. Admin only."""
    service = UserService(db)

    filters = UserListFilters(
        role=role,
        is_active=is_active,
        search=search,
        page=page,
        limit=limit,
    )

    users, total = await service.list_users(filters)

    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[UserResponse.model_validate(u) for u in users],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.post("/me/change-password", response_model=SuccessResponse[UserResponse])
async def change_own_password(
    data: ChangeOwnPassword,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """
    Change own password.

    Requires current password for verification.
    """
    service = UserService(db)
    user = await service.change_own_password(
        user_id=current_user.id,
        current_password=data.current_password,
        new_password=data.new_password,
    )

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="Password changed successfully",
    )


@router.get("/{user_id}", response_model=SuccessResponse[UserResponse])
async def get_user(
    user_id: int,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Get user by ID. Admin only."""
    service = UserService(db)
    user = await service.get_by_id(user_id)

    if not user:
        raise NotFoundError("User", user_id)

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="User retrieved",
    )


@router.post("", response_model=SuccessResponse[UserResponse], status_code=201)
async def create_user(
    data: UserCreate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Create a staff account. Admin only."""
    service = UserService(db)
    user = await service.create(data, created_by_id=current_user.id)

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="User created successfully",
    )


@router.put("/{user_id}", response_model=SuccessResponse[UserResponse])
async def update_user(
    user_id: int,
    data: UserUpdate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Update user data. Admin only."""
    service = UserService(db)
    user = await service.update(user_id, data, updated_by_id=current_user.id)

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="User updated successfully",
    )


@router.post("/{user_id}/deactivate", response_model=SuccessResponse[UserResponse])
async def deactivate_user(
    user_id: int,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a user. Admin only; admins cannot deactivate themselves."""
    service = UserService(db)
    user = await service.deactivate(user_id, deactivated_by_id=current_user.id)

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="User deactivated",
    )


@router.post("/{user_id}/activate", response_model=SuccessResponse[UserResponse])
async def activate_user(
    user_id: int,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Activate a user. Admin only."""
    service = UserService(db)
    user = await service.activate(user_id, activated_by_id=current_user.id)

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="User activated",
    )


@router.post("/{user_id}/set-password", response_model=SuccessResponse[UserResponse])
async def set_user_password(
    user_id: int,
    data: SetPassword,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Reset a user's password. Admin only."""
    service = UserService(db)
    user = await service.set_password(user_id, data.password, set_by_id=current_user.id)

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="Password set successfully",
    )


@router.post("/{user_id}/unlock", response_model=SuccessResponse[UserResponse])
async def unlock_user(
    user_id: int,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Clear a failed-login lockout. Admin only."""
    user = await UserService(db).unlock(user_id, unlocked_by_id=current_user.id)

    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="User account unlocked",
    )
