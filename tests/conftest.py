import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from roster.auth.models import User
from roster.auth.schemas import Principal
from roster.core.config import settings
from roster.core.enums import Role
from roster.core.models import Tenant
from roster.db.session import Base, get_db
from roster.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite schema per test, with foreign keys enforced."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override the FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def make_user(
    db: AsyncSession,
    email: str,
    role: Role = Role.INSTRUCTOR,
    tenant: Optional[Tenant] = None,
) -> Principal:
    user = User(
        full_name=email.split("@")[0].title(),
        email=email,
        role=role.value,
        tenant_id=tenant.id if tenant else None,
    )
    db.add(user)
    await db.commit()
    return Principal(id=user.id, role=role, tenant_id=user.tenant_id)


def sign_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    """Sign a bearer token the way the external credential issuer does."""
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode({"sub": subject, "exp": expire}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth_headers(principal: Principal) -> dict:
    token = sign_token(str(principal.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def tenant_one(db_session: AsyncSession) -> Tenant:
    tenant = Tenant(name="North University")
    db_session.add(tenant)
    await db_session.commit()
    return tenant


@pytest.fixture()
async def tenant_two(db_session: AsyncSession) -> Tenant:
    tenant = Tenant(name="South College")
    db_session.add(tenant)
    await db_session.commit()
    return tenant


@pytest.fixture()
async def admin(db_session: AsyncSession, tenant_one: Tenant) -> Principal:
    return await make_user(db_session, "admin@north.edu", Role.ADMIN, tenant_one)


@pytest.fixture()
async def instructor_x(db_session: AsyncSession, tenant_one: Tenant) -> Principal:
    return await make_user(db_session, "x@north.edu", Role.INSTRUCTOR, tenant_one)


@pytest.fixture()
async def instructor_y(db_session: AsyncSession, tenant_one: Tenant) -> Principal:
    return await make_user(db_session, "y@north.edu", Role.INSTRUCTOR, tenant_one)


@pytest.fixture()
async def instructor_south(db_session: AsyncSession, tenant_two: Tenant) -> Principal:
    return await make_user(db_session, "z@south.edu", Role.INSTRUCTOR, tenant_two)


@pytest.fixture()
async def instructor_untenanted(db_session: AsyncSession) -> Principal:
    return await make_user(db_session, "legacy@example.com", Role.INSTRUCTOR, None)
