"""
Repository provider for dependency injection.

This module provides all repository dependencies.
"""

from dishka import Provider, Scope, provide
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.repositories.auth_repository import AuthRepository
from src.repositories.error_log_repository import ErrorLogRepository


class RepositoryProvider(Provider):
    """
    Provider for repository dependencies.

    Both repositories open their own short-lived sessions, so they are
    singletons built on the session factory.
    """

    @provide(scope=Scope.APP)
    def get_auth_repository(self, session_maker: async_sessionmaker[AsyncSession]) -> AuthRepository:
        """
        Provide AuthRepository.

        Args:
            session_maker: Session factory

        Returns:
            AuthRepository instance
        """
        return AuthRepository(session_maker)

    @provide(scope=Scope.APP)
    def get_error_log_repository(
        self, session_maker: async_sessionmaker[AsyncSession]
    ) -> ErrorLogRepository:
        return ErrorLogRepository(session_maker)
