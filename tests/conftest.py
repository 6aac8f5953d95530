"""Shared test fixtures."""

import os
import tempfile

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="jacms-logs-"))

from jacms.models.base import Base


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test, shared across sessions via StaticPool."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def sample_csv():
    """Two-level category export as written by export_to_csv."""
    return (
        "id,name,description,slug,meta_title,meta_description,meta_keywords,"
        "is_active,parent_id,sort_order,icon,color,created_at,updated_at\n"
        "c-1,Technology,All things tech,technology,,,,true,,1,cpu,#111111,,\n"
        "c-2,Python,,python,,,,true,c-1,2,,#222222,,\n"
        "c-3,Archive,Old posts,archive,,,,false,,3,,,,\n"
    )
