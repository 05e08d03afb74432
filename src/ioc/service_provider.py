"""
Service provider for dependency injection.
"""

from dishka import Provider, Scope, provide

from src.api.security.pipeline import RequestSecurityPipeline
from src.core.config import Config
from src.core.security import JWTTokenVerifier, TokenVerifier
from src.repositories.auth_repository import AuthRepository
from src.repositories.error_log_repository import ErrorLogRepository
from src.services.auth_service import AuthService
from src.services.csrf_service import CSRFService
from src.services.error_handler import (
    CriticalErrorNotifier,
    ErrorHandler,
    LoggingCriticalErrorNotifier,
)
from src.services.input_sanitizer import InputSanitizer
from src.services.rate_limiter_service import RateLimiterService


class ServiceProvider(Provider):
    """
    Provider for service dependencies.

    Every security service is stateless apart from the rate-limit store, so
    they are all APP-scoped singletons.
    """

    @provide(scope=Scope.APP)
    def get_token_verifier(self, config: Config) -> TokenVerifier:
        return JWTTokenVerifier(config)

    @provide(scope=Scope.APP)
    def get_auth_service(
        self,
        config: Config,
        token_verifier: TokenVerifier,
        auth_repository: AuthRepository,
    ) -> AuthService:
        """Account checks only run when enabled and a database is configured."""
        verify_account = config.AUTH_VERIFY_ACCOUNT and config.database_configured
        return AuthService(
            config,
            token_verifier,
            auth_repository if verify_account else None,
        )

    @provide(scope=Scope.APP)
    def get_csrf_service(self, config: Config) -> CSRFService:
        return CSRFService(config)

    @provide(scope=Scope.APP)
    def get_input_sanitizer(self) -> InputSanitizer:
        return InputSanitizer()

    @provide(scope=Scope.APP)
    def get_critical_error_notifier(self) -> CriticalErrorNotifier:
        return LoggingCriticalErrorNotifier()

    @provide(scope=Scope.APP)
    def get_error_handler(
        self,
        config: Config,
        error_log_repository: ErrorLogRepository,
        notifier: CriticalErrorNotifier,
    ) -> ErrorHandler:
        """High/critical errors are persisted only when enabled and a database is configured."""
        persist = config.ERROR_LOG_PERSISTENCE_ENABLED and config.database_configured
        return ErrorHandler(
            config,
            error_log_repository if persist else None,
            notifier,
        )

    @provide(scope=Scope.APP)
    def get_security_pipeline(
        self,
        config: Config,
        rate_limiter_service: RateLimiterService,
        auth_service: AuthService,
        csrf_service: CSRFService,
        input_sanitizer: InputSanitizer,
    ) -> RequestSecurityPipeline:
        return RequestSecurityPipeline(
            config,
            rate_limiter_service,
            auth_service,
            csrf_service,
            input_sanitizer,
        )
