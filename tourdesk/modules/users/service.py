from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.audit import AuditAction, create_audit_log
from tourdesk.core.auth.models import User
from tourdesk.core.auth.password import hash_password, verify_password
from tourdesk.core.auth.service import AuthService
from tourdesk.core.exceptions import AuthenticationError, DuplicateError, NotFoundError, ValidationError
from tourdesk.modules.users.schemas import UserCreate, UserListFilters, UserUpdate

_TRACKED_FIELDS = ("email", "full_name", "phone", "designation", "role")


class UserService:
    """Service for staff account management."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get user by email (case-insensitive)."""
        stmt = select(User).where(User.email == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_raise(self, user_id: int) -> User:
        user = await self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def list_users(
        self, filters: UserListFilters
    ) -> tuple[list[User], int]:
        """
        List users with filters and pagination.

        Returns:
            Tuple of (users list, total count)
        """
        stmt = select(User)
        count_stmt = select(func.count(User.id))

        if filters.role:
            stmt = stmt.where(User.role == filters.role.value)
            count_stmt = count_stmt.where(User.role == filters.role.value)

        if filters.is_active is not None:
            stmt = stmt.where(User.is_active == filters.is_active)
            count_stmt = count_stmt.where(User.is_active == filters.is_active)

        if filters.search:
            search_term = f"%{filters.search}%"
            search_filter = or_(
                User.full_name.ilike(search_term),
                User.email.ilike(search_term),
            )
            stmt = stmt.where(search_filter)
            count_stmt = count_stmt.where(search_filter)

        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar_one()

        offset = (filters.page - 1) * filters.limit
        stmt = stmt.order_by(User.full_name).offset(offset).limit(filters.limit)

        result = await self.session.execute(stmt)
        users = list(result.scalars().all())

        return users, total

    async def create(self, data: UserCreate, created_by_id: int) -> User:
        """Create a staff account."""
        user = await AuthService(self.session).create_user(
            email=data.email,
            password=data.password,
            full_name=data.full_name,
            role=data.role,
            phone=data.phone,
            designation=data.designation,
            created_by_id=created_by_id,
        )
        await self.session.refresh(user)
        return user

    async def update(
        self,
        user_id: int,
        data: UserUpdate,
        updated_by_id: int,
    ) -> User:
        """Update user data."""
        user = await self._get_or_raise(user_id)
        old_values = {name: getattr(user, name) for name in _TRACKED_FIELDS}

        if data.email and data.email.lower() != user.email:
            existing = await self.get_by_email(data.email)
            if existing:
                raise DuplicateError("User", "email", data.email)
            user.email = data.email.lower()

        if data.full_name is not None:
            user.full_name = data.full_name

        if data.phone is not None:
            user.phone = data.phone

        if data.designation is not None:
            user.designation = data.designation

        if data.role is not None:
            if user.id == updated_by_id and data.role.value != user.role:
                raise ValidationError("Cannot change your own role", field="role")
            user.role = data.role.value

        await self.session.flush()
        await self.session.refresh(user)

        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=updated_by_id,
            entity_identifier=user.email,
            old_values=old_values,
            new_values={name: getattr(user, name) for name in _TRACKED_FIELDS},
        )

        return user

    async def deactivate(self, user_id: int, deactivated_by_id: int) -> User:
        """Deactivate a user; deactivated users cannot log in or refresh tokens."""
        user = await self._get_or_raise(user_id)

        if user.id == deactivated_by_id:
            raise ValidationError("Cannot deactivate your own account")

        if not user.is_active:
            raise ValidationError("User is already deactivated")

        user.is_active = False
        await self.session.flush()
        await self.session.refresh(user)

        await create_audit_log(
            session=self.session,
            action=AuditAction.DEACTIVATE,
            entity_type="User",
            entity_id=user.id,
            user_id=deactivated_by_id,
            entity_identifier=user.email,
            old_values={"is_active": True},
            new_values={"is_active": False},
            comment="User deactivated",
        )

        return user

    async def activate(self, user_id: int, activated_by_id: int) -> User:
        """Activate a user."""
        user = await self._get_or_raise(user_id)

        if user.is_active:
            raise ValidationError("User is already active")

        user.is_active = True
        await self.session.flush()
        await self.session.refresh(user)

        await create_audit_log(
            session=self.session,
            action=AuditAction.ACTIVATE,
            entity_type="User",
            entity_id=user.id,
            user_id=activated_by_id,
            entity_identifier=user.email,
            old_values={"is_active": False},
            new_values={"is_active": True},
            comment="User activated",
        )

        return user

    async def unlock(self, user_id: int, unlocked_by_id: int) -> User:
        """Lift a failed-login lockout before it expires."""
        user = await self._get_or_raise(user_id)

        if not user.is_locked:
            raise ValidationError("User account is not locked")

        old_values = {"login_attempts": user.login_attempts, "locked_until": user.locked_until}
        user.login_attempts = 0
        user.locked_until = None
        await self.session.flush()
        await self.session.refresh(user)

        await create_audit_log(
            session=self.session,
            action=AuditAction.ACCOUNT_UNLOCK,
            entity_type="User",
            entity_id=user.id,
            user_id=unlocked_by_id,
            entity_identifier=user.email,
            old_values=old_values,
            new_values={"login_attempts": 0, "locked_until": None},
            comment="Unlocked by admin",
        )

        return user

    async def set_password(self, user_id: int, new_password: str, set_by_id: int) -> User:
        """Reset a user's password (by admin)."""
        user = await self._get_or_raise(user_id)

        user.password_hash = hash_password(new_password)
        await self.session.flush()
        await self.session.refresh(user)

        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=set_by_id,
            entity_identifier=user.email,
            comment="Password reset by admin",
        )

        return user

    async def change_own_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
    ) -> User:
        """Change own password (requires current password)."""
        user = await self._get_or_raise(user_id)

        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = hash_password(new_password)
        await self.session.flush()
        await self.session.refresh(user)

        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            entity_identifier=user.email,
            comment="Password changed by user",
        )

        return user
