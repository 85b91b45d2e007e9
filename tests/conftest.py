from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tourdesk.core.auth.models import UserRole
from tourdesk.core.auth.service import AuthService
from tourdesk.core.database.base import Base
from tourdesk.core.database import get_db
from tourdesk.main import app

# In-memory SQLite shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
test_async_session = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# pysqlite's implicit transactions break SAVEPOINT; emit BEGIN ourselves
@event.listens_for(test_engine.sync_engine, "connect")
def _disable_implicit_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    async with test_async_session() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


async def _login_headers(
    db_session: AsyncSession, email: str, role: UserRole
) -> dict[str, str]:
    auth = AuthService(db_session)
    await auth.create_user(
        email=email,
        password="Pass12345",
        full_name=f"{role.value.title()} User",
        role=role,
    )
    _, token, _ = await auth.authenticate(email, "Pass12345")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_headers(db_session: AsyncSession) -> dict[str, str]:
    return await _login_headers(db_session, "admin@tourdesk.io", UserRole.ADMIN)


@pytest.fixture
async def manager_headers(db_session: AsyncSession) -> dict[str, str]:
    return await _login_headers(db_session, "manager@tourdesk.io", UserRole.MANAGER)


@pytest.fixture
async def user_headers(db_session: AsyncSession) -> dict[str, str]:
    return await _login_headers(db_session, "user@tourdesk.io", UserRole.USER)
