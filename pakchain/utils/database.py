"""Engine and session factory for services and operator scripts."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from pakchain.config.settings import settings


def create_engine(null_pool: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    Args:
        null_pool: Disable pooling (one-shot scripts)
    """
    if null_pool:
        return create_async_engine(
            settings.async_database_url,
            echo=settings.database_echo,
            poolclass=NullPool,
        )
    return create_async_engine(
        settings.async_database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )


def create_session_maker(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create a session maker bound to ``engine``."""
    if engine is None:
        engine = create_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
