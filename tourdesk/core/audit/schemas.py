from datetime import datetime
from typing import Any

from tourdesk.shared.schemas import BaseSchema


class AuditLogResponse(BaseSchema):
    id: int
    user_id: int | None
    user_full_name: str | None = None
    action: str
    entity_type: str
    entity_id: int
    entity_identifier: str | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    comment: str | None
    ip_address: str | None
    created_at: datetime


class RoleCounts(BaseSchema):
    admin: int = 0
    manager: int = 0
    user: int = 0


class UserStats(BaseSchema):
    total: int
    active: int
    inactive: int
    by_role: RoleCounts
    recent_registrations: int  # created in the last 30 days
    recently_active: int  # logged in during the last 7 days
    locked_accounts: int


class SecurityStats(BaseSchema):
    failed_logins: int  # last 24 hours
    account_locks: int  # last 24 hours
    audit_events: int  # last 30 days


class AdminStats(BaseSchema):
    users: UserStats
    security: SecurityStats
    environment: str


class LockedAccount(BaseSchema):
    id: int
    email: str
    full_name: str
    role: str
    login_attempts: int
    locked_until: datetime | None


class SecuritySummary(BaseSchema):
    failed_logins_count: int
    locked_accounts_count: int
    recent_events_count: int


class SecurityOverview(BaseSchema):
    hours: int
    failed_logins: list[AuditLogResponse]
    locked_accounts: list[LockedAccount]
    recent_events: list[AuditLogResponse]
    summary: SecuritySummary
