"""Async SQLAlchemy engine and sessions for QuotaHub.

The engine is built from DB_URL and the DB_POOL_* settings. Services open
their own transactions with session.begin(); the background reset job takes
sessions from AsyncSessionLocal directly instead of going through get_db.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from quotahub.config import AppSettings, settings


def build_engine(app_settings: AppSettings) -> AsyncEngine:
    return create_async_engine(
        app_settings.DB_URL,
        echo=app_settings.DB_ECHO,
        pool_size=app_settings.DB_POOL_SIZE,
        max_overflow=app_settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


async_engine: AsyncEngine = build_engine(settings)

AsyncSessionLocal: sessionmaker[AsyncSession] = sessionmaker(  # type: ignore[type-arg]
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session, rolling back if the handler raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
