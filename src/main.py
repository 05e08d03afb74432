"""
Main FastAPI application with logging, security and error handling setup.
"""

from contextlib import asynccontextmanager
from typing import Optional

from dishka import AsyncContainer, make_async_container
from dishka.integrations import fastapi as fastapi_integration
from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from src.api.error_handlers import register_exception_handlers
from src.api.middlewares.request_context import RequestContextMiddleware
from src.api.v1.auth import router as auth_router
from src.api.v1.rate_limits import router as rate_limits_router
from src.api.v1.security import router as security_router
from src.api.v1.validation import router as validation_router
from src.core.config import config, Config
from src.core.errors import ErrorCode, create_error
from src.core.logging import get_logger, setup_logging
from src.db.database import check_db_connection
from src.ioc import AppProvider
from src.services.rate_limiter_service import RateLimiterService

setup_logging(
    level="DEBUG" if config.DEBUG else "INFO",
    json_logs=not config.DEBUG,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_config: Config = await app.state.dishka_container.get(Config)
    logger.info(
        "application_startup",
        app_name=app_config.APP_NAME,
        environment=app_config.ENVIRONMENT,
    )

    try:
        # Resolve the store at startup so a bad backend fails fast
        await app.state.dishka_container.get(RateLimiterService)

        if app_config.database_configured:
            engine = await app.state.dishka_container.get(AsyncEngine)
            if not await check_db_connection(engine):
                logger.warning("startup_database_unreachable")
    except Exception as exc:
        logger.error(
            "startup_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )
        raise

    yield

    await app.state.dishka_container.close()
    logger.info("application_shutdown", app_name=app_config.APP_NAME)


health_router = APIRouter(route_class=DishkaRoute, tags=["Health"])


@health_router.get("/health")
async def health_check(app_config: FromDishka[Config]):
    return {"status": "healthy", "service": app_config.APP_NAME}


@health_router.get("/health/ready")
async def readiness_check(
    app_config: FromDishka[Config],
    rate_limiter: FromDishka[RateLimiterService],
):
    if not await rate_limiter.is_healthy():
        logger.error("readiness_check_failed_rate_limit_store_unreachable")
        raise create_error(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Rate limit store unreachable",
            "Service temporarily unavailable. Please try again later.",
        )
    return {"status": "ready", "service": app_config.APP_NAME, "rate_limit_store": "connected"}


def create_app(container: Optional[AsyncContainer] = None, app_config: Config = config) -> FastAPI:
    """
    Build the application.

    Args:
        container: Pre-built Dishka container (tests pass one with their own
            context); defaults to ``AppProvider`` over *app_config*
        app_config: Configuration used for app-level settings
    """
    container = container or make_async_container(AppProvider(), context={Config: app_config})

    app = FastAPI(
        title=app_config.APP_NAME,
        description="Request security pipeline for the admin back-office API",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_integration.setup_dishka(container, app)

    app.add_middleware(RequestContextMiddleware)
    if app_config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_config.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", app_config.CSRF_HEADER_NAME],
            expose_headers=[
                "X-Request-ID",
                "X-Error-Code",
                "Retry-After",
                "X-RateLimit-Limit",
                "X-RateLimit-Remaining",
                "X-RateLimit-Level",
                app_config.CSRF_HEADER_NAME,
            ],
            max_age=86400,
        )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(security_router, prefix="/api/v1", tags=["Security"])
    app.include_router(auth_router, prefix="/api/v1", tags=["Authentication"])
    app.include_router(rate_limits_router, prefix="/api/v1", tags=["Rate Limits"])
    app.include_router(validation_router, prefix="/api/v1", tags=["Validation"])
    return app


app = create_app()
