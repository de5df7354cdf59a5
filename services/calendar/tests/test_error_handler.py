"""
Tests for the provider error envelope and error classification.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from services.calendar.core.clients.errors import (
    classify_error,
    parse_google_error,
    parse_microsoft_error,
)
from services.calendar.models import ResponseStatus
from services.calendar.providers.base import requires_response, with_error_handler
from services.calendar.schemas import EventResponse
from services.common.http_errors import ErrorCode, ProviderError


class TestWithErrorHandler:
    """Test the with_error_handler envelope."""

    @pytest.mark.asyncio
    async def test_success_passes_result_through(self):
        """Test that a successful call returns its result unchanged."""
        result = object()
        fn = AsyncMock(return_value=result)

        assert await with_error_handler("calendars", fn) is result
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_is_wrapped(self):
        """Test that any exception becomes a ProviderError with its cause."""
        cause = RuntimeError("boom")

        with pytest.raises(ProviderError) as exc_info:
            await with_error_handler(
                "createEvent",
                AsyncMock(side_effect=cause),
                context={"calendar_id": "cal-1"},
                provider="google",
            )

        error = exc_info.value
        assert error.operation == "createEvent"
        assert error.original_error is cause
        assert error.__cause__ is cause
        assert error.context == {"calendar_id": "cal-1"}
        assert error.provider == "google"
        assert error.error_code == ErrorCode.PROVIDER_ERROR
        assert error.message.startswith("Failed to createEvent")

    @pytest.mark.asyncio
    async def test_failure_is_logged(self):
        """Test that the failure is logged with the operation name."""
        with patch("services.calendar.providers.base.logger") as mock_logger:
            with pytest.raises(ProviderError):
                await with_error_handler("events", AsyncMock(side_effect=ValueError("bad")))

        message = mock_logger.error.call_args.args[0]
        assert message.startswith("Failed to events")
        assert "bad" in message

    @pytest.mark.asyncio
    async def test_provider_error_not_double_wrapped(self):
        """Test that a ProviderError raised inside is re-raised as is."""
        inner = ProviderError("Failed to calendars", operation="calendars")

        with pytest.raises(ProviderError) as exc_info:
            await with_error_handler("updateEvent", AsyncMock(side_effect=inner))

        assert exc_info.value is inner

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        """Test that cancellation is not converted into a ProviderError."""
        with pytest.raises(asyncio.CancelledError):
            await with_error_handler(
                "events", AsyncMock(side_effect=asyncio.CancelledError())
            )

    @pytest.mark.asyncio
    async def test_http_status_error_classified(self, http_status_error):
        """Test that HTTP failures carry status, code, body and Retry-After."""
        error = http_status_error(
            429,
            {"error": {"code": "TooManyRequests", "message": "Slow down"}},
            headers={"Retry-After": "17"},
        )

        with pytest.raises(ProviderError) as exc_info:
            await with_error_handler(
                "events", AsyncMock(side_effect=error), provider="microsoft"
            )

        provider_error = exc_info.value
        assert provider_error.status_code == 429
        assert provider_error.error_code == ErrorCode.MICROSOFT_RATE_LIMITED
        assert provider_error.retry_after == 17
        assert "TooManyRequests" in provider_error.response_body

    @pytest.mark.asyncio
    async def test_is_called_once(self):
        """Test that the envelope never retries."""
        fn = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ProviderError):
            await with_error_handler("calendars", fn, provider="google")

        assert fn.await_count == 1


class TestRequiresResponse:
    def test_requires_response(self):
        assert requires_response(None) is False
        assert requires_response(EventResponse()) is False
        assert requires_response(EventResponse(status=ResponseStatus.DECLINED)) is True


class TestClassifyError:
    """Test classification of provider failures."""

    def test_timeout(self):
        result = classify_error(httpx.ReadTimeout("slow"), "google")

        assert result["code"] == ErrorCode.PROVIDER_TIMEOUT
        assert result["status_code"] == 504

    def test_transport_error(self):
        result = classify_error(httpx.ConnectError("refused"), "microsoft")

        assert result["code"] == ErrorCode.PROVIDER_UNAVAILABLE
        assert result["status_code"] == 503

    def test_other_error(self):
        result = classify_error(ValueError("no self attendee"), "google")

        assert result["code"] == ErrorCode.PROVIDER_ERROR
        assert "no self attendee" in result["message"]

    def test_unparseable_retry_after(self, http_status_error):
        error = http_status_error(429, "", headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"})

        assert classify_error(error, "google")["retry_after"] is None

    def test_unknown_provider(self, http_status_error):
        result = classify_error(http_status_error(500, "oops"), None)

        assert result["code"] == ErrorCode.PROVIDER_ERROR
        assert result["message"] == "HTTP 500: oops"


class TestParseMicrosoftError:
    @pytest.mark.parametrize(
        "status_code, code, message, expected",
        [
            (401, "InvalidAuthenticationToken", "JWT is not well formed", ErrorCode.MICROSOFT_TOKEN_MALFORMED),
            (401, "InvalidAuthenticationToken", "Lifetime validation failed, the token is expired.", ErrorCode.MICROSOFT_TOKEN_EXPIRED),
            (401, "InvalidAuthenticationToken", "Access token validation failure.", ErrorCode.MICROSOFT_AUTH_FAILED),
            (401, "Other", "Nope", ErrorCode.MICROSOFT_AUTH_ERROR),
            (403, "ErrorAccessDenied", "Access is denied.", ErrorCode.MICROSOFT_ACCESS_DENIED),
            (403, "Forbidden", "Forbidden", ErrorCode.MICROSOFT_ACCESS_FORBIDDEN),
            (404, "ErrorItemNotFound", "The specified object was not found.", ErrorCode.MICROSOFT_NOT_FOUND),
            (429, "TooManyRequests", "Slow down", ErrorCode.MICROSOFT_RATE_LIMITED),
            (503, "ServiceNotAvailable", "Try later", ErrorCode.MICROSOFT_SERVICE_ERROR),
            (400, "ErrorInvalidRequest", "Bad filter", ErrorCode.MICROSOFT_API_ERROR),
        ],
    )
    def test_codes(self, status_code, code, message, expected):
        body = '{"error": {"code": "%s", "message": "%s"}}' % (code, message)

        _, error_code = parse_microsoft_error(body, status_code)

        assert error_code == expected

    def test_non_json_body(self):
        message, error_code = parse_microsoft_error("<html>gateway</html>", 502)

        assert error_code == ErrorCode.MICROSOFT_SERVICE_ERROR
        assert "502" in message


class TestParseGoogleError:
    def _body(self, message, reason="", status=""):
        return (
            '{"error": {"code": 0, "message": "%s", "status": "%s", '
            '"errors": [{"reason": "%s"}]}}' % (message, status, reason)
        )

    def test_expired_token(self):
        _, code = parse_google_error(self._body("Token has been expired or revoked."), 401)
        assert code == ErrorCode.GOOGLE_TOKEN_EXPIRED

    def test_invalid_credentials(self):
        _, code = parse_google_error(self._body("Invalid Credentials"), 401)
        assert code == ErrorCode.GOOGLE_AUTH_FAILED

    def test_quota_exceeded(self):
        _, code = parse_google_error(self._body("Quota", reason="quotaExceeded"), 403)
        assert code == ErrorCode.GOOGLE_QUOTA_EXCEEDED

    def test_insufficient_permissions(self):
        _, code = parse_google_error(
            self._body("Request had insufficient permissions.", reason="insufficientPermissions"),
            403,
        )
        assert code == ErrorCode.GOOGLE_INSUFFICIENT_PERMISSIONS

    def test_not_found_and_gone(self):
        assert parse_google_error(self._body("Not Found"), 404)[1] == ErrorCode.GOOGLE_NOT_FOUND
        assert parse_google_error(self._body("Deleted"), 410)[1] == ErrorCode.GOOGLE_NOT_FOUND

    def test_rate_limited_and_service_error(self):
        assert parse_google_error("", 429)[1] == ErrorCode.GOOGLE_RATE_LIMITED
        assert parse_google_error(self._body("Backend Error"), 500)[1] == ErrorCode.GOOGLE_SERVICE_ERROR

    def test_string_error(self):
        message, code = parse_google_error('{"error": "invalid_grant"}', 400)

        assert code == ErrorCode.GOOGLE_API_ERROR
        assert "invalid_grant" in message
