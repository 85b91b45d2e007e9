"""Account and login statistics for the admin area."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.audit.models import AuditLog
from tourdesk.core.audit.schemas import (
    AdminStats,
    AuditLogResponse,
    LockedAccount,
    RoleCounts,
    SecurityOverview,
    SecurityStats,
    SecuritySummary,
    UserStats,
)
from tourdesk.core.audit.service import AuditAction
from tourdesk.core.auth.models import User, UserRole
from tourdesk.core.config import settings

SECURITY_ACTIONS = (
    AuditAction.LOGIN_FAILED.value,
    AuditAction.ACCOUNT_LOCK.value,
    AuditAction.ACCOUNT_UNLOCK.value,
    AuditAction.ACTIVATE.value,
    AuditAction.DEACTIVATE.value,
)


async def _count(session: AsyncSession, model, *conditions) -> int:
    stmt = select(func.count()).select_from(model).where(*conditions)
    return (await session.execute(stmt)).scalar_one()


async def _audit_entries(
    session: AsyncSession, *conditions, limit: int = 100
) -> list[AuditLogResponse]:
    stmt = (
        select(AuditLog, User.full_name)
        .outerjoin(User, AuditLog.user_id == User.id)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return [
        AuditLogResponse.model_validate(entry).model_copy(update={"user_full_name": full_name})
        for entry, full_name in result.all()
    ]


async def get_admin_stats(session: AsyncSession, now: datetime | None = None) -> AdminStats:
    """Account counts by state and role plus recent login failures."""
    now = now or datetime.now(timezone.utc)
    day_ago = now - timedelta(hours=24)

    role_rows = await session.execute(select(User.role, func.count()).group_by(User.role))
    by_role = {role: count for role, count in role_rows.all()}

    total = await _count(session, User)
    active = await _count(session, User, User.is_active.is_(True))

    users = UserStats(
        total=total,
        active=active,
        inactive=total - active,
        by_role=RoleCounts(**{r.value: by_role.get(r.value, 0) for r in UserRole}),
        recent_registrations=await _count(
            session, User, User.created_at >= now - timedelta(days=30)
        ),
        recently_active=await _count(
            session, User, User.last_login_at >= now - timedelta(days=7)
        ),
        locked_accounts=await _count(session, User, User.locked_until > now),
    )
    security = SecurityStats(
        failed_logins=await _count(
            session,
            AuditLog,
            AuditLog.action == AuditAction.LOGIN_FAILED.value,
            AuditLog.created_at >= day_ago,
        ),
        account_locks=await _count(
            session,
            AuditLog,
            AuditLog.action == AuditAction.ACCOUNT_LOCK.value,
            AuditLog.created_at >= day_ago,
        ),
        audit_events=await _count(
            session, AuditLog, AuditLog.created_at >= now - timedelta(days=30)
        ),
    )
    return AdminStats(users=users, security=security, environment=settings.app_env)


async def get_security_overview(
    session: AsyncSession, hours: int = 24, now: datetime | None = None
) -> SecurityOverview:
    """Failed logins, currently locked accounts and account events of the last ``hours``."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(hours=hours)

    failed_logins = await _audit_entries(
        session,
        AuditLog.action == AuditAction.LOGIN_FAILED.value,
        AuditLog.created_at >= since,
    )
    recent_events = await _audit_entries(
        session,
        AuditLog.action.in_(SECURITY_ACTIONS),
        AuditLog.created_at >= since,
    )
    locked = await session.execute(
        select(User).where(User.locked_until > now).order_by(User.locked_until.desc())
    )
    locked_accounts = [LockedAccount.model_validate(u) for u in locked.scalars().all()]

    return SecurityOverview(
        hours=hours,
        failed_logins=failed_logins,
        locked_accounts=locked_accounts,
        recent_events=recent_events,
        summary=SecuritySummary(
            failed_logins_count=len(failed_logins),
            locked_accounts_count=len(locked_accounts),
            recent_events_count=len(recent_events),
        ),
    )
