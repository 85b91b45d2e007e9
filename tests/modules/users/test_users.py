from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.audit import AuditAction, AuditLog
from tourdesk.core.auth.models import UserRole
from tourdesk.core.auth.password import verify_password
from tourdesk.core.auth.service import AuthService
from tourdesk.core.exceptions import AuthenticationError, DuplicateError, NotFoundError, ValidationError
from tourdesk.modules.users.schemas import UserCreate, UserListFilters, UserUpdate
from tourdesk.modules.users.service import UserService


async def _admin_id(db_session: AsyncSession) -> int:
    admin = await AuthService(db_session).create_user(
        email="owner@tourdesk.io",
        password="Pass12345",
        full_name="Agency Owner",
        role=UserRole.ADMIN,
    )
    return admin.id


class TestUserService:
    """Tests for UserService."""

    async def test_create_user(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)

        user = await service.create(
            UserCreate(
                email="Desk@TourDesk.io",
                password="Password123",
                full_name="  Rina Ghosh ",
                designation="Reservations",
                role=UserRole.MANAGER,
            ),
            created_by_id=admin_id,
        )

        assert user.id is not None
        assert user.email == "desk@tourdesk.io"
        assert user.full_name == "Rina Ghosh"
        assert user.role == "manager"
        assert user.designation == "Reservations"
        assert user.is_active is True

    async def test_create_user_duplicate_email(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)
        data = UserCreate(email="desk@tourdesk.io", password="Password123", full_name="Rina Ghosh")

        await service.create(data, created_by_id=admin_id)

        with pytest.raises(DuplicateError):
            await service.create(data, created_by_id=admin_id)

    async def test_short_password_rejected(self):
        with pytest.raises(ValueError):
            UserCreate(email="desk@tourdesk.io", password="short", full_name="Rina Ghosh")

    async def test_list_users_with_filters(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)
        for email, name, role in [
            ("a@tourdesk.io", "Amit Paul", UserRole.MANAGER),
            ("b@tourdesk.io", "Bela Sen", UserRole.USER),
            ("c@tourdesk.io", "Chandan Roy", UserRole.USER),
        ]:
            await service.create(
                UserCreate(email=email, password="Password123", full_name=name, role=role),
                created_by_id=admin_id,
            )

        users, total = await service.list_users(UserListFilters(role=UserRole.USER))
        assert total == 2
        assert [u.full_name for u in users] == ["Bela Sen", "Chandan Roy"]

        users, total = await service.list_users(UserListFilters(search="amit"))
        assert total == 1
        assert users[0].email == "a@tourdesk.io"

        users, total = await service.list_users(UserListFilters(page=2, limit=3))
        assert total == 4
        assert len(users) == 1

    async def test_update_user(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)
        user = await service.create(
            UserCreate(email="desk@tourdesk.io", password="Password123", full_name="Rina Ghosh"),
            created_by_id=admin_id,
        )

        updated = await service.update(
            user.id,
            UserUpdate(full_name="Rina Ghosh Das", role=UserRole.MANAGER),
            updated_by_id=admin_id,
        )

        assert updated.full_name == "Rina Ghosh Das"
        assert updated.role == "manager"

        result = await db_session.execute(
            select(AuditLog).where(
                AuditLog.action == AuditAction.UPDATE.value, AuditLog.entity_id == user.id
            )
        )
        entry = result.scalar_one()
        assert entry.old_values["role"] == "user"
        assert entry.new_values["role"] == "manager"

    async def test_update_duplicate_email(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)
        user = await service.create(
            UserCreate(email="desk@tourdesk.io", password="Password123", full_name="Rina Ghosh"),
            created_by_id=admin_id,
        )

        with pytest.raises(DuplicateError):
            await service.update(user.id, UserUpdate(email="owner@tourdesk.io"), updated_by_id=admin_id)

    async def test_cannot_change_own_role(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)

        with pytest.raises(ValidationError):
            await UserService(db_session).update(
                admin_id, UserUpdate(role=UserRole.USER), updated_by_id=admin_id
            )

    async def test_update_not_found(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await UserService(db_session).update(999, UserUpdate(full_name="Nobody"), updated_by_id=1)

    async def test_deactivate_and_activate(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)
        user = await service.create(
            UserCreate(email="desk@tourdesk.io", password="Password123", full_name="Rina Ghosh"),
            created_by_id=admin_id,
        )

        user = await service.deactivate(user.id, deactivated_by_id=admin_id)
        assert user.is_active is False

        with pytest.raises(ValidationError):
            await service.deactivate(user.id, deactivated_by_id=admin_id)

        with pytest.raises(AuthenticationError):
            await AuthService(db_session).authenticate("desk@tourdesk.io", "Password123")

        user = await service.activate(user.id, activated_by_id=admin_id)
        assert user.is_active is True

    async def test_cannot_deactivate_self(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)

        with pytest.raises(ValidationError):
            await UserService(db_session).deactivate(admin_id, deactivated_by_id=admin_id)

    async def test_unlock(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)
        user = await service.create(
            UserCreate(email="desk@tourdesk.io", password="Password123", full_name="Rina Ghosh"),
            created_by_id=admin_id,
        )

        with pytest.raises(ValidationError):
            await service.unlock(user.id, unlocked_by_id=admin_id)

        user.login_attempts = 5
        user.locked_until = datetime.now(timezone.utc) + timedelta(minutes=30)
        await db_session.flush()

        user = await service.unlock(user.id, unlocked_by_id=admin_id)

        assert user.login_attempts == 0
        assert user.locked_until is None
        assert not user.is_locked
        await AuthService(db_session).authenticate("desk@tourdesk.io", "Password123")

    async def test_change_own_password(self, db_session: AsyncSession):
        admin_id = await _admin_id(db_session)
        service = UserService(db_session)

        with pytest.raises(AuthenticationError):
            await service.change_own_password(admin_id, "WrongPass1", "NewPass12345")

        user = await service.change_own_password(admin_id, "Pass12345", "NewPass12345")
        assert verify_password("NewPass12345", user.password_hash)


class TestUserEndpoints:
    async def test_admin_creates_user(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/users",
            json={
                "email": "desk@tourdesk.io",
                "password": "Password123",
                "full_name": "Rina Ghosh",
                "role": "manager",
            },
            headers=admin_headers,
        )

        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["role"] == "manager"
        assert "password_hash" not in data
        assert data["updated_at"] is not None

    async def test_manager_cannot_manage_users(self, client: AsyncClient, manager_headers: dict):
        response = await client.get("/api/v1/users", headers=manager_headers)
        assert response.status_code == 403

    async def test_update_user_role(
        self, client: AsyncClient, db_session: AsyncSession, admin_headers: dict
    ):
        employee = await AuthService(db_session).create_user(
            email="employee@tourdesk.io",
            password="Pass12345",
            full_name="Employee",
            role=UserRole.USER,
        )

        response = await client.put(
            f"/api/v1/users/{employee.id}",
            json={"role": "manager"},
            headers=admin_headers,
        )

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["id"] == employee.id
        assert data["role"] == "manager"

    async def test_list_and_get(self, client: AsyncClient, admin_headers: dict):
        listed = await client.get("/api/v1/users", params={"role": "admin"}, headers=admin_headers)
        assert listed.status_code == 200
        items = listed.json()["data"]["items"]
        assert [u["email"] for u in items] == ["admin@tourdesk.io"]

        fetched = await client.get(f"/api/v1/users/{items[0]['id']}", headers=admin_headers)
        assert fetched.json()["data"]["full_name"] == "Admin User"

        missing = await client.get("/api/v1/users/9999", headers=admin_headers)
        assert missing.status_code == 404

    async def test_deactivated_user_token_rejected(
        self, client: AsyncClient, db_session: AsyncSession, admin_headers: dict
    ):
        auth = AuthService(db_session)
        employee = await auth.create_user(
            email="employee@tourdesk.io",
            password="Pass12345",
            full_name="Employee",
            role=UserRole.MANAGER,
        )
        _, token, _ = await auth.authenticate("employee@tourdesk.io", "Pass12345")

        response = await client.post(
            f"/api/v1/users/{employee.id}/deactivate", headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 401

    async def test_unlock_endpoint(
        self, client: AsyncClient, db_session: AsyncSession, admin_headers: dict
    ):
        employee = await AuthService(db_session).create_user(
            email="employee@tourdesk.io",
            password="Pass12345",
            full_name="Employee",
            role=UserRole.MANAGER,
        )
        employee.login_attempts = 5
        employee.locked_until = datetime.now(timezone.utc) + timedelta(minutes=30)
        await db_session.flush()

        listed = await client.get(f"/api/v1/users/{employee.id}", headers=admin_headers)
        assert listed.json()["data"]["is_locked"] is True

        response = await client.post(f"/api/v1/users/{employee.id}/unlock", headers=admin_headers)

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["is_locked"] is False
        assert data["login_attempts"] == 0

        again = await client.post(f"/api/v1/users/{employee.id}/unlock", headers=admin_headers)
        assert again.status_code == 422
