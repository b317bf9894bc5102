"""Postgres engine/session factory and the shared Redis connection."""

import logging

from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.core.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.async_database_url,
    echo=settings.app_env == "development",
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
    # Supabase pooler (pgbouncer, transaction mode) rejects prepared statements
    connect_args={"statement_cache_size": 0},
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

redis = Redis.from_url(settings.redis_url, decode_responses=True)


async def check_connections() -> dict[str, str]:
    """Ping Redis and Postgres; returns ``{"redis": "ok"|"error", "database": ...}``."""
    checks = {}
    try:
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as e:
        logger.warning("Redis health check failed: %s", e)
        checks["redis"] = "error"
    try:
        async with async_session() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        checks["database"] = "error"
    return checks


async def close_connections() -> None:
    await redis.aclose()
    await engine.dispose()
