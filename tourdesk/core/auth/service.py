import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.auth.jwt import create_access_token, create_refresh_token, decode_token
from tourdesk.core.auth.models import User, UserRole
from tourdesk.core.auth.password import hash_password, verify_password
from tourdesk.core.audit import AuditAction, create_audit_log
from tourdesk.core.config import settings
from tourdesk.core.exceptions import AuthenticationError, DuplicateError

logger = logging.getLogger(__name__)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password: str,
        full_name: str,
        role: UserRole,
        phone: str | None = None,
        designation: str | None = None,
        created_by_id: int | None = None,
    ) -> User:
        """Create a staff account with a hashed password."""
        existing = await self.get_user_by_email(email)
        if existing:
            raise DuplicateError("User", "email", email)

        user = User(
            email=email.lower(),
            password_hash=hash_password(password),
            full_name=full_name,
            phone=phone,
            designation=designation,
            role=role.value,
            is_active=True,
        )

        self.session.add(user)
        await self.session.flush()

        await create_audit_log(
            session=self.session,
            action=AuditAction.CREATE,
            entity_type="User",
            entity_id=user.id,
            user_id=created_by_id,
            entity_identifier=user.email,
            new_values={"email": user.email, "role": user.role, "full_name": user.full_name},
        )

        return user

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[User, str, str]:
        """
        Authenticate user and return tokens.

        Returns:
            Tuple of (user, access_token, refresh_token)

        Raises:
            AuthenticationError: If credentials are invalid or the account is locked
        """
        user = await self.get_user_by_email(email)
        now = datetime.now(timezone.utc)

        if not user:
            logger.info("Failed login for unknown %s from %s", email, ip_address or "unknown")
            raise AuthenticationError("Invalid email or password")

        if user.is_locked_at(now):
            logger.warning("Login refused for locked account %s", user.email)
            raise AuthenticationError(
                "Account is temporarily locked due to multiple failed login attempts"
            )

        if not verify_password(password, user.password_hash):
            await self._register_failed_login(user, now, ip_address, user_agent)
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("User account is deactivated")

        user.login_attempts = 0
        user.locked_until = None
        user.last_login_at = now
        await self.session.flush()

        access_token = create_access_token(user.id, user.role)
        refresh_token = create_refresh_token(user.id)

        await create_audit_log(
            session=self.session,
            action=AuditAction.LOGIN,
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            entity_identifier=user.email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return user, access_token, refresh_token

    async def _register_failed_login(
        self,
        user: User,
        now: datetime,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        """
        Count a wrong password and lock the account once the limit is reached.

        Committed before the caller raises, so the count survives the
        request's rollback.
        """
        if user.locked_until is not None:
            # Previous lock has expired
            user.locked_until = None
            user.login_attempts = 0
        user.login_attempts += 1

        await create_audit_log(
            session=self.session,
            action=AuditAction.LOGIN_FAILED,
            entity_type="User",
            entity_id=user.id,
            user_id=None,
            entity_identifier=user.email,
            new_values={"login_attempts": user.login_attempts},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(
            "Failed login %d for %s from %s", user.login_attempts, user.email, ip_address or "unknown"
        )

        if user.login_attempts >= settings.max_login_attempts:
            user.locked_until = now + timedelta(minutes=settings.lockout_minutes)
            await create_audit_log(
                session=self.session,
                action=AuditAction.ACCOUNT_LOCK,
                entity_type="User",
                entity_id=user.id,
                entity_identifier=user.email,
                new_values={"locked_until": user.locked_until},
                comment=f"Locked after {user.login_attempts} failed logins",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            logger.warning("Locked account %s until %s", user.email, user.locked_until)

        await self.session.commit()

    async def refresh_tokens(self, refresh_token: str) -> tuple[str, str]:
        """
        Issue a new token pair for a valid refresh token.

        Raises:
            AuthenticationError: If refresh token is invalid
        """
        payload = decode_token(refresh_token, token_type="refresh")

        user = await self.get_user_by_id(int(payload["sub"]))

        if not user:
            raise AuthenticationError("User not found")

        if not user.is_active:
            raise AuthenticationError("User account is deactivated")

        return create_access_token(user.id, user.role), create_refresh_token(user.id)

    async def update_profile(
        self, user: User, full_name: str | None = None, phone: str | None = None
    ) -> User:
        """Update the caller's own name and phone. Email and role stay admin-managed."""
        old_values = {"full_name": user.full_name, "phone": user.phone}
        if full_name is not None:
            user.full_name = full_name
        if phone is not None:
            user.phone = phone or None

        await self.session.flush()
        await self.session.refresh(user)

        await create_audit_log(
            session=self.session,
            action=AuditAction.UPDATE,
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            entity_identifier=user.email,
            old_values=old_values,
            new_values={"full_name": user.full_name, "phone": user.phone},
            comment="Profile updated by user",
        )
        return user

    async def logout(
        self, user: User, ip_address: str | None = None, user_agent: str | None = None
    ) -> None:
        """Record a logout. Tokens are stateless and expire on their own."""
        await create_audit_log(
            session=self.session,
            action=AuditAction.LOGOUT,
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            entity_identifier=user.email,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("User %s logged out", user.email)
