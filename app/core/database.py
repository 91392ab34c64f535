"""
Database Module
Async SQLAlchemy with SQLite (dev) / PostgreSQL (prod) support.

The statute cache and the case store both take a session factory
explicitly; nothing in the screening pipeline reaches for a global
connection on its own.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from app.core.config import get_settings


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# Engine and session factory (lazy initialization)
_engine = None
_async_session_factory = None


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine with pooling suited to the backend.

    - PostgreSQL: queue pool with pre-ping
    - SQLite: NullPool (no concurrent connection sharing)
    """
    if "sqlite" in database_url:
        pool_config = {
            "poolclass": NullPool,
            "connect_args": {"check_same_thread": False},
        }
    else:
        pool_config = {
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
        }
    return create_async_engine(database_url, echo=echo, **pool_config)


def get_engine() -> AsyncEngine:
    """Get or create the application engine from settings."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url, echo=settings.debug)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the application session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_factory


async def init_db():
    """Create all tables. Call this on startup."""
    # Register models on Base.metadata
    from app.models import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Dispose the engine. Call this on shutdown."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None

