"""
Security dependency for FastAPI endpoints.
"""

from typing import Awaitable, Callable, Optional, TYPE_CHECKING

from fastapi import Request, Response

from src.api.security.pipeline import RequestSecurityPipeline, SecurityContext, SecurityOptions
from src.core.logging import get_logger

if TYPE_CHECKING:
    from dishka import AsyncContainer

logger = get_logger(__name__)


def require_security(
    options: SecurityOptions,
) -> Callable[[Request, Response], Awaitable[SecurityContext]]:
    """
    Build a dependency that runs the security pipeline with *options*.

    Headers and cookies the pipeline produces are set on FastAPI's
    sub-response and merged into the handler's response; failures are raised
    as ``AppError`` and rendered by the registered exception handlers.

    Example:
        >>> @router.get("/me")
        >>> async def me(ctx: Annotated[SecurityContext, Depends(require_security(SecurityPresets.CUSTOMER))]):
        >>>     return {"id": ctx.principal.id}
    """

    async def security_dependency(request: Request, response: Response) -> SecurityContext:
        container: Optional["AsyncContainer"] = getattr(request.state, "dishka_container", None)
        if container is None:
            logger.error("dishka_container_not_found", path=request.url.path)
            raise RuntimeError("Dishka container not found on request state")

        pipeline: RequestSecurityPipeline = await container.get(RequestSecurityPipeline)
        context = await pipeline.process(request, response, options)

        logger.debug(
            "request_security_passed",
            path=request.url.path,
            stages=[stage.value for stage in context.completed_stages],
        )
        return context

    return security_dependency
