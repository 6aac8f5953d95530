"""Integration test fixtures: in-memory app, async client, role-based auth."""

import os

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-integration-tests"

import jacms.database as db_mod
import jacms.dependencies as dep_mod

TEST_USERS = {
    "admin": ("admin@example.com", "SUPER_ADMIN"),
    "editor": ("editor@example.com", "EDITOR"),
    "viewer": ("viewer@example.com", "USER"),
}
TEST_PASSWORD = "secret-pass"


def _reset_singletons():
    """Reset all module-level singletons so each test session starts clean."""
    db_mod._engine = None
    db_mod._session_factory = None
    dep_mod._config_instance = None
    dep_mod._post_service = None
    dep_mod._category_service = None
    dep_mod._category_template_service = None
    dep_mod._tags_service = None
    dep_mod._menu_service = None
    dep_mod._dashboard_service = None
    dep_mod._dashboard_settings_service = None
    dep_mod._notification_service = None
    dep_mod._user_service = None
    dep_mod._category_rules_service = None


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_app():
    """Create test app with in-memory database (shared via StaticPool)."""
    _reset_singletons()

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Inject into database module BEFORE app import
    db_mod._engine = engine
    factory = async_sessionmaker(engine, expire_on_commit=False)
    db_mod._session_factory = factory

    dep_mod.get_app_config()

    from jacms.main import app
    from jacms.models.base import Base
    from jacms.models.category import Category
    from jacms.models.user import User
    from jacms.services.posts import UNCATEGORIZED_SLUG
    from jacms.utils.security import hash_password

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with factory() as session:
        for username, (email, role) in TEST_USERS.items():
            session.add(User(
                email=email,
                username=username,
                password_hash=hash_password(TEST_PASSWORD),
                role=role,
            ))
        session.add(Category(name="Uncategorized", slug=UNCATEGORIZED_SLUG))
        await session.commit()

    yield app

    await engine.dispose()
    _reset_singletons()


@pytest_asyncio.fixture(loop_scope="session")
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _login(client, username: str) -> dict:
    resp = await client.post(
        "/api/auth/login",
        json={"username": username, "password": TEST_PASSWORD},
    )
    assert resp.status_code == 200, f"Login failed: {resp.text}"
    token = resp.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(loop_scope="session")
async def admin_headers(client):
    """Auth headers for the SUPER_ADMIN user."""
    return await _login(client, "admin")


@pytest_asyncio.fixture(loop_scope="session")
async def editor_headers(client):
    return await _login(client, "editor")


@pytest_asyncio.fixture(loop_scope="session")
async def viewer_headers(client):
    return await _login(client, "viewer")
