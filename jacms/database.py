"""Async engine, session factory and schema creation."""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .config import JaCmsConfig
from .models import Base
from .utils.logging import get_logger

logger = get_logger("database")

_engine = None
_session_factory = None


def _engine_options(database_url: str) -> dict:
    """SQLite needs cross-thread connections; an in-memory database must share one."""
    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url:
        options["poolclass"] = StaticPool
    return options


def get_engine(config: JaCmsConfig):
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            config.database_url,
            echo=config.debug,
            **_engine_options(config.database_url),
        )
    return _engine


def get_session_factory(config: JaCmsConfig) -> async_sessionmaker[AsyncSession]:
    """Shared session factory; services open one short-lived session per call."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(config), expire_on_commit=False)
    return _session_factory


async def create_tables(config: JaCmsConfig) -> None:
    async with get_engine(config).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("tables_created", dialect=config.database_url.split(":", 1)[0], tables=len(Base.metadata.tables))


async def get_session(config: JaCmsConfig) -> AsyncIterator[AsyncSession]:
    async with get_session_factory(config)() as session:
        yield session


async def close_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
