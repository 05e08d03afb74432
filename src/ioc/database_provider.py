"""
Database provider for dependency injection.

This module provides database-related dependencies including:
- Config (from container context)
- AsyncEngine (singleton)
- SessionMaker (singleton)

The database is optional: it backs the account check and error-log
persistence, both disabled unless configured. The engine connects lazily,
so building it without a reachable database is harmless.
"""

from typing import AsyncIterable

from dishka import Provider, Scope, from_context, provide
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, AsyncEngine, create_async_engine

from src.core.config import Config


class DatabaseProvider(Provider):
    """
    Provider for database-related dependencies.

    Manages:
    - APP scope: Engine and SessionMaker (singletons)
    """

    # Config injected from application context at startup
    config = from_context(provides=Config, scope=Scope.APP)

    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterable[AsyncEngine]:
        """
        Create and provide SQLAlchemy async engine.

        Args:
            config: Application configuration

        Yields:
            AsyncEngine configured with connection pooling, disposed on shutdown
        """
        engine = create_async_engine(
            config.db_url,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_timeout=20,
            max_overflow=0,
        )
        try:
            yield engine
        finally:
            await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_maker(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        """
        Create and provide session maker factory.

        Args:
            engine: SQLAlchemy async engine

        Returns:
            async_sessionmaker configured for the application
        """
        return async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
