"""
Request context middleware: request id and structured logging context.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.logging import bind_context, clear_context, get_logger
from src.services.shared.request_helpers import generate_request_id, get_client_ip

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, bind it to the log context and echo it back."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        request_id = generate_request_id()
        request.state.request_id = request_id

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=get_client_ip(request),
        )

        try:
            response = await call_next(request)
            response.headers.setdefault(REQUEST_ID_HEADER, request_id)
            logger.debug("request_completed", status_code=response.status_code)
            return response
        finally:
            clear_context()
