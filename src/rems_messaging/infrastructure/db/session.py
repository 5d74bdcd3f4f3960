from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from rems_messaging.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    """Pooled asyncpg engine. One per process; the API, worker and scripts each build their own."""
    return create_async_engine(
        config.database_url,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=config.DB_POOL_RECYCLE,
    )


engine = build_engine(settings)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
