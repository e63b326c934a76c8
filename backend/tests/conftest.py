"""Shared pytest fixtures for the factory RBAC test suite.

Provides:
- A fresh file-backed async SQLite database per test
- AsyncSession factory and a session for arranging data
- FastAPI test client (httpx.AsyncClient) wired to the test database
- Seeded roles/permissions and users holding them
- Auth helpers (JWT bearer headers)

Fixtures end by committing, because the app under test reads and writes
through its own sessions and an open SQLite transaction would lock it out.
"""

import os
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Override settings BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")

from core.security import create_access_token, hash_password  # noqa: E402
from db.base import Base  # noqa: E402
from db.database import create_db_engine, create_session_factory  # noqa: E402

TEST_PASSWORD = "TestPassword123!"

# Hashed once and shared by every fixture user
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Async engine over a throwaway SQLite file with all tables created."""
    engine = create_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and asserting data directly."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app(session_factory):
    """FastAPI app whose ``get_db`` dependency uses the test database."""
    from app.dependencies import get_db
    from app.main import create_app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_app = create_app()
    test_app.dependency_overrides[get_db] = override_get_db
    yield test_app
    test_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Test data fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def seeded(db_session) -> dict:
    """Permission catalog and the Admin/Manager/Viewer roles, keyed by role name."""
    from core.rbac_seed import apply_seed
    from services.role_service import RoleService

    await apply_seed(db_session)
    svc = RoleService(db_session)
    roles = {name: await svc.get_by_name(name) for name in ("Admin", "Manager", "Viewer")}
    await db_session.commit()
    return roles


@pytest.fixture
def make_user(db_session):
    """Factory creating a committed user holding the given roles."""
    from db.models.user import User
    from db.models.user_role import UserRole

    async def _make(*roles, username: Optional[str] = None, is_active: bool = True):
        suffix = uuid4().hex[:8]
        user = User(
            id=str(uuid4()),
            username=username or f"user_{suffix}",
            email=f"{username or 'user'}-{suffix}@example.com",
            password_hash=_PASSWORD_HASH,
            full_name="Test User",
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.flush()
        for role in roles:
            db_session.add(UserRole(user_id=user.id, role_id=role.id, is_active=True))
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def admin_user(make_user, seeded):
    return await make_user(seeded["Admin"], username="admin")


@pytest_asyncio.fixture
async def viewer_user(make_user, seeded):
    return await make_user(seeded["Viewer"], username="viewer")


@pytest.fixture
def user_password() -> str:
    """Plain password of every user built by ``make_user``."""
    return TEST_PASSWORD


def bearer(user) -> dict:
    """Authorization header carrying a valid access token for ``user``."""
    token = create_access_token(user_id=user.id, username=user.username)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_for():
    """Build bearer headers for any user."""
    return bearer


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return bearer(admin_user)


@pytest.fixture
def viewer_headers(viewer_user) -> dict:
    return bearer(viewer_user)
