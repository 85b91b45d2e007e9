from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.audit.schemas import AdminStats, AuditLogResponse, SecurityOverview
from tourdesk.core.audit.security import get_admin_stats, get_security_overview
from tourdesk.core.audit.service import list_audit_entries
from tourdesk.core.auth.dependencies import AdminUser
from tourdesk.core.database import get_db
from tourdesk.shared.schemas import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/audit", response_model=ApiResponse[PaginatedResponse[AuditLogResponse]])
async def list_audit_log(
    current_user: AdminUser,
    entity_type: str | None = Query(None),
    action: str | None = Query(None),
    user_id: int | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Audit trail of logins and changes. Admin only."""
    rows, total = await list_audit_entries(
        db,
        date_from=date_from,
        date_to=date_to,
        user_id=user_id,
        entity_type=entity_type,
        action=action,
        page=page,
        limit=limit,
    )
    items = [
        AuditLogResponse.model_validate(entry).model_copy(update={"user_full_name": full_name})
        for entry, full_name in rows
    ]
    return ApiResponse(
        data=PaginatedResponse.create(items=items, total=total, page=page, limit=limit),
    )


@router.get("/stats", response_model=ApiResponse[AdminStats])
async def admin_stats(
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Staff account and login statistics. Admin only."""
    return ApiResponse(data=await get_admin_stats(db))


@router.get("/security", response_model=ApiResponse[SecurityOverview])
async def security_overview(
    current_user: AdminUser,
    hours: int = Query(24, ge=1, le=720),
    db: AsyncSession = Depends(get_db),
):
    """Failed logins, locked accounts and account events. Admin only."""
    return ApiResponse(data=await get_security_overview(db, hours=hours))
