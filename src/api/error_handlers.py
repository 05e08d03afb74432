"""
FastAPI exception handlers routing every failure through ErrorHandler.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.errors import AppError, ErrorCode, create_error
from src.services.error_handler import ErrorHandler

HTTP_STATUS_TO_CODE = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTHENTICATION_REQUIRED,
    403: ErrorCode.ACCESS_DENIED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    408: ErrorCode.TIMEOUT_ERROR,
    409: ErrorCode.RESOURCE_CONFLICT,
    413: ErrorCode.VALIDATION_ERROR,
    415: ErrorCode.INVALID_INPUT_FORMAT,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


async def _error_handler(request: Request) -> ErrorHandler:
    return await request.app.state.dishka_container.get(ErrorHandler)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    handler = await _error_handler(request)
    return await handler.handle_error(exc, request)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    error = create_error(
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        "Please check your input and try again",
        {"errors": fields},
    )
    handler = await _error_handler(request)
    return await handler.handle_error(error, request)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_STATUS_TO_CODE.get(
        exc.status_code,
        ErrorCode.INTERNAL_SERVER_ERROR if exc.status_code >= 500 else ErrorCode.VALIDATION_ERROR,
    )
    error = create_error(
        code,
        str(exc.detail),
        str(exc.detail) if exc.status_code < 500 else None,
        headers=exc.headers,
    )
    error.status_code = exc.status_code
    handler = await _error_handler(request)
    return await handler.handle_error(error, request)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    handler = await _error_handler(request)
    return await handler.handle_error(exc, request)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
