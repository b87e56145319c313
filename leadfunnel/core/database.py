"""
Database configuration and session management
"""

from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import SQLModel
import structlog

from leadfunnel.core.config import get_settings

logger = structlog.get_logger(__name__)


def create_engine_from_url(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create async engine, upgrading plain postgres URLs to asyncpg"""
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return create_async_engine(url, echo=echo, future=True, **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None


def get_session_maker() -> async_sessionmaker:
    """Lazily build the process-wide session factory from settings"""
    global _engine, _session_maker
    if _session_maker is None:
        settings = get_settings()
        _engine = create_engine_from_url(settings.DATABASE_URL, echo=settings.DEBUG)
        _session_maker = create_session_maker(_engine)
    return _session_maker


async def init_db(engine: AsyncEngine) -> None:
    """Create database tables (tests and local development only)"""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created")


async def ping(session_maker: async_sessionmaker) -> bool:
    """Round-trip a trivial query"""
    async with session_maker() as session:
        await session.execute(text("SELECT 1"))
    return True


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency to get database session"""
    async with request.app.state.session_maker() as session:
        yield session
