"""
Tests for the error taxonomy and the ErrorHandler formatting funnel.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.errors import (
    AppError,
    ErrorCode,
    ErrorSeverity,
    access_denied,
    create_error,
    csrf_validation_failed,
    rate_limit_exceeded,
    token_expired,
    validation_error,
)
from src.dtos.error_dto import ErrorDetailsDTO
from src.repositories.error_log_repository import ErrorLogRepository
from src.services.error_handler import (
    GENERIC_USER_MESSAGE,
    REDACTED,
    ErrorHandler,
    redact_sensitive,
)


def _body(response) -> dict:
    return json.loads(response.body)


def _request(path="/api/v1/orders", method="POST", request_id="req_TEST", principal=None):
    request = MagicMock()
    request.url.path = path
    request.method = method
    request.headers = {"user-agent": "pytest", "x-forwarded-for": "203.0.113.9, 10.0.0.1"}
    request.state.request_id = request_id
    request.state.principal = principal
    request.client.host = "127.0.0.1"
    return request


@pytest.fixture
def mock_error_log_repository():
    return AsyncMock(spec=ErrorLogRepository)


@pytest.fixture
def mock_notifier():
    notifier = MagicMock()
    notifier.notify = AsyncMock()
    return notifier


class TestErrorTaxonomy:
    """Status and severity come from the static code table."""

    def test_create_error_uses_mapping(self):
        error = create_error(ErrorCode.RESOURCE_NOT_FOUND, "Order not found")

        assert error.status_code == 404
        assert error.severity == ErrorSeverity.LOW
        assert error.is_operational is True

    @pytest.mark.parametrize("error,status,code", [
        (validation_error("bad"), 400, ErrorCode.VALIDATION_ERROR),
        (token_expired(), 401, ErrorCode.TOKEN_EXPIRED),
        (access_denied(), 403, ErrorCode.ACCESS_DENIED),
        (csrf_validation_failed(), 403, ErrorCode.CSRF_VALIDATION_FAILED),
        (rate_limit_exceeded(), 429, ErrorCode.RATE_LIMIT_EXCEEDED),
    ])
    def test_factories(self, error, status, code):
        assert error.code == code
        assert error.status_code == status
        assert error.user_message

    def test_rate_limit_error_carries_headers(self):
        error = rate_limit_exceeded(headers={"Retry-After": "60"})

        assert error.headers == {"Retry-After": "60"}


class TestHandleError:
    """Tests for ErrorHandler.handle_error."""

    @pytest.mark.asyncio
    async def test_production_envelope_hides_internals(self, prod_config):
        handler = ErrorHandler(prod_config)
        error = create_error(ErrorCode.VALIDATION_ERROR, "field x failed regex", "Please check your input", {"x": 1})

        response = await handler.handle_error(error, _request())

        assert response.status_code == 400
        assert _body(response) == {
            "success": False,
            "error": "VALIDATION_ERROR",
            "message": "Please check your input",
        }
        assert response.headers["X-Request-ID"] == "req_TEST"
        assert response.headers["X-Error-Code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_development_envelope_includes_details(self, dev_config):
        handler = ErrorHandler(dev_config)
        error = create_error(ErrorCode.VALIDATION_ERROR, "field x failed", details={"field": "x"})

        response = await handler.handle_error(error, _request())
        body = _body(response)

        assert body["message"] == "field x failed"
        assert body["details"] == {"field": "x"}
        assert body["requestId"] == "req_TEST"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal_server_error(self, prod_config):
        handler = ErrorHandler(prod_config)

        response = await handler.handle_error(RuntimeError("db password=hunter2 leaked"), _request())
        body = _body(response)

        assert response.status_code == 500
        assert body["error"] == "INTERNAL_SERVER_ERROR"
        assert body["message"] == GENERIC_USER_MESSAGE
        assert "hunter2" not in response.body.decode()

    @pytest.mark.asyncio
    async def test_unexpected_exception_in_development_shows_message(self, dev_config):
        handler = ErrorHandler(dev_config)

        response = await handler.handle_error(RuntimeError("boom"), _request())
        body = _body(response)

        assert response.status_code == 500
        assert {k: body[k] for k in ("success", "error", "message")} == {
            "success": False,
            "error": "INTERNAL_SERVER_ERROR",
            "message": "boom",
        }
        assert body["details"] is None

    @pytest.mark.asyncio
    async def test_error_headers_are_copied(self, prod_config):
        handler = ErrorHandler(prod_config)
        error = rate_limit_exceeded(headers={"Retry-After": "30", "X-RateLimit-Limit": "5"})

        response = await handler.handle_error(error, _request())

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"
        assert response.headers["X-RateLimit-Limit"] == "5"

    @pytest.mark.asyncio
    async def test_details_are_redacted_in_development(self, dev_config):
        handler = ErrorHandler(dev_config)
        error = validation_error("bad", {"email": "a@b.co", "password": "secret1", "nested": {"authToken": "t"}})

        body = _body(await handler.handle_error(error, _request()))

        assert body["details"] == {
            "email": "a@b.co",
            "password": REDACTED,
            "nested": {"authToken": REDACTED},
        }

    @pytest.mark.asyncio
    async def test_without_request_generates_request_id(self, prod_config):
        handler = ErrorHandler(prod_config)

        response = await handler.handle_error(validation_error("bad"))

        assert response.headers["X-Request-ID"].startswith("req_")


class TestEscalationAndPersistence:
    """Critical escalation and high/critical persistence."""

    @pytest.mark.asyncio
    async def test_critical_errors_notify(self, prod_config, mock_notifier):
        handler = ErrorHandler(prod_config, notifier=mock_notifier)
        error = create_error(ErrorCode.DATABASE_CONNECTION_ERROR, "pool exhausted")

        response = await handler.handle_error(error, _request())

        assert response.status_code == 503
        mock_notifier.notify.assert_awaited_once()
        details = mock_notifier.notify.call_args.args[0]
        assert isinstance(details, ErrorDetailsDTO)
        assert details.severity == ErrorSeverity.CRITICAL
        assert details.ip == "203.0.113.9"

    @pytest.mark.asyncio
    async def test_non_critical_errors_do_not_notify(self, prod_config, mock_notifier):
        handler = ErrorHandler(prod_config, notifier=mock_notifier)

        await handler.handle_error(validation_error("bad"), _request())

        mock_notifier.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_high_severity_errors_are_persisted(self, prod_config, mock_error_log_repository):
        handler = ErrorHandler(prod_config, mock_error_log_repository)

        await handler.handle_error(RuntimeError("boom"), _request(method="DELETE"))

        mock_error_log_repository.create.assert_awaited_once()
        record = mock_error_log_repository.create.call_args.args[0]
        assert record.code == ErrorCode.INTERNAL_SERVER_ERROR
        assert record.method == "DELETE"
        assert record.stack_trace and "RuntimeError" in record.stack_trace

    @pytest.mark.asyncio
    async def test_low_severity_errors_are_not_persisted(self, prod_config, mock_error_log_repository):
        handler = ErrorHandler(prod_config, mock_error_log_repository)

        await handler.handle_error(validation_error("bad"), _request())

        mock_error_log_repository.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_change_response(self, prod_config, mock_error_log_repository):
        mock_error_log_repository.create.side_effect = ConnectionError("db down")
        handler = ErrorHandler(prod_config, mock_error_log_repository)

        response = await handler.handle_error(RuntimeError("boom"), _request())

        assert response.status_code == 500
        assert _body(response)["error"] == "INTERNAL_SERVER_ERROR"

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_change_response(self, prod_config, mock_notifier):
        mock_notifier.notify.side_effect = RuntimeError("pager down")
        handler = ErrorHandler(prod_config, notifier=mock_notifier)

        response = await handler.handle_error(
            create_error(ErrorCode.DATABASE_CONNECTION_ERROR, "pool exhausted"), _request()
        )

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_user_id_taken_from_authenticated_principal(self, prod_config, mock_error_log_repository):
        principal = MagicMock(id="user-42")
        handler = ErrorHandler(prod_config, mock_error_log_repository)

        await handler.handle_error(RuntimeError("boom"), _request(principal=principal))

        assert mock_error_log_repository.create.call_args.args[0].user_id == "user-42"


class TestWithErrorHandler:
    """Tests for the with_error_handler decorator."""

    @pytest.mark.asyncio
    async def test_passes_through_results(self, prod_config):
        handler = ErrorHandler(prod_config)

        @handler.with_error_handler
        async def ok(request):
            return "done"

        assert await ok(_request()) == "done"

    @pytest.mark.asyncio
    async def test_converts_exceptions(self, prod_config):
        handler = ErrorHandler(prod_config)

        @handler.with_error_handler
        async def fails(request):
            raise access_denied("nope")

        response = await fails(_request())

        assert response.status_code == 403
        assert _body(response)["error"] == "ACCESS_DENIED"


class TestRedactSensitive:
    def test_lists_and_nested_values(self):
        value = {"items": [{"api_key": "k", "name": "n"}], "Cookie": "c"}

        assert redact_sensitive(value) == {"items": [{"api_key": REDACTED, "name": "n"}], "Cookie": REDACTED}

    def test_scalars_pass_through(self):
        assert redact_sensitive("plain") == "plain"
