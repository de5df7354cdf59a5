"""
Error types shared by the calendar services.

Provider adapters raise exactly one error type, :class:`ProviderError`.
It carries a provider-specific :class:`ErrorCode`, the HTTP status a
transport layer should answer with, and enough context (operation,
provider, raw response body, Retry-After) to decide whether to re-auth,
back off or give up.

Example:
>>> from services.common.http_errors import ProviderError, ErrorCode
>>> error = ProviderError(
...     message="Failed to events: Microsoft Graph rate limit exceeded.",
...     provider="microsoft",
...     operation="events",
...     code=ErrorCode.MICROSOFT_RATE_LIMITED,
...     retry_after=30,
...     context={"calendar_id": "AAMkAD..."},
... )
>>> error.to_error_response().details["code"]
'MICROSOFT_RATE_LIMITED'

Error codes are ALL_CAPS; provider-specific ones are prefixed with the
provider name (GOOGLE_, MICROSOFT_).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from services.common.logging_config import request_id_var


class ErrorCode(str, Enum):
    """Machine-readable error codes, exposed as ``details["code"]``."""

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Provider call failed without a provider-specific diagnosis
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"  # transport failure
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"

    # Google Calendar API
    GOOGLE_AUTH_FAILED = "GOOGLE_AUTH_FAILED"
    GOOGLE_TOKEN_EXPIRED = "GOOGLE_TOKEN_EXPIRED"
    GOOGLE_AUTH_ERROR = "GOOGLE_AUTH_ERROR"
    GOOGLE_INSUFFICIENT_SCOPES = "GOOGLE_INSUFFICIENT_SCOPES"
    GOOGLE_INSUFFICIENT_PERMISSIONS = "GOOGLE_INSUFFICIENT_PERMISSIONS"
    GOOGLE_ACCESS_DENIED = "GOOGLE_ACCESS_DENIED"
    GOOGLE_NOT_FOUND = "GOOGLE_NOT_FOUND"
    GOOGLE_QUOTA_EXCEEDED = "GOOGLE_QUOTA_EXCEEDED"
    GOOGLE_RATE_LIMITED = "GOOGLE_RATE_LIMITED"
    GOOGLE_SERVICE_ERROR = "GOOGLE_SERVICE_ERROR"
    GOOGLE_API_ERROR = "GOOGLE_API_ERROR"

    # Microsoft Graph
    MICROSOFT_TOKEN_MALFORMED = "MICROSOFT_TOKEN_MALFORMED"
    MICROSOFT_TOKEN_EXPIRED = "MICROSOFT_TOKEN_EXPIRED"
    MICROSOFT_AUTH_FAILED = "MICROSOFT_AUTH_FAILED"
    MICROSOFT_AUTH_ERROR = "MICROSOFT_AUTH_ERROR"
    MICROSOFT_ACCESS_FORBIDDEN = "MICROSOFT_ACCESS_FORBIDDEN"
    MICROSOFT_ACCESS_DENIED = "MICROSOFT_ACCESS_DENIED"
    MICROSOFT_NOT_FOUND = "MICROSOFT_NOT_FOUND"
    MICROSOFT_RATE_LIMITED = "MICROSOFT_RATE_LIMITED"
    MICROSOFT_SERVICE_ERROR = "MICROSOFT_SERVICE_ERROR"
    MICROSOFT_API_ERROR = "MICROSOFT_API_ERROR"


class ErrorResponse(BaseModel):
    """
    Standardized error response model.

    Attributes:
        type: Error type categorization (e.g., "provider_error")
        message: Human-readable error message
        details: Optional dictionary containing additional error context
        timestamp: ISO 8601 timestamp of when the error occurred
        request_id: Unique identifier for tracing and debugging purposes
    """

    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


def _current_request_id() -> str:
    request_id = request_id_var.get()
    if request_id and request_id != "uninitialized":
        return request_id
    return str(uuid.uuid4())


class CalendarServiceException(Exception):
    """
    Base exception class for calendar service errors.

    Attributes:
        message: Human-readable error message
        details: Dictionary containing additional error context
        error_type: Categorization of the error (provider_error, etc.)
        error_code: Specific error code from the ErrorCode enum
        status_code: HTTP status code a transport layer should return
        timestamp: ISO 8601 timestamp when error occurred
        request_id: Identifier for request tracing, taken from the logging
            context when one is bound
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: str = "internal_error",
        error_code: Optional[ErrorCode] = None,
        status_code: int = 500,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_type = error_type
        self.error_code = error_code
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.request_id = request_id or _current_request_id()
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """
        Convert exception to ErrorResponse Pydantic model.

        Includes the error code in details if present.
        """
        details = {
            **self.details,
            **({"code": self.error_code.value} if self.error_code else {}),
        }
        return ErrorResponse(
            type=self.error_type,
            message=self.message,
            details=details if details else None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )


class ProviderError(CalendarServiceException):
    """
    Exception for calendar provider failures.

    Raised by the provider adapters' error envelope, and only there, when a
    call to Google Calendar or Microsoft Graph fails. The failure is
    classified by the operation it happened in; the underlying exception is
    kept on ``original_error`` and chained as ``__cause__``.

    Attributes:
        operation: Name of the adapter operation that failed (e.g. "events")
        original_error: The exception raised by the provider call
        context: Optional free-form context supplied by the adapter
        provider: Name of the external provider (google, microsoft)
        response_body: Raw response body from the provider (for debugging)
        retry_after: Seconds to wait before retrying (from rate limit headers)

    Examples:
        >>> error = ProviderError(
        ...     "Failed to calendars: Google token has expired",
        ...     provider="google",
        ...     operation="calendars",
        ...     code=ErrorCode.GOOGLE_TOKEN_EXPIRED,
        ...     status_code=401,
        ... )
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        status_code: int = 502,
        response_body: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        provider_details = details or {}
        if provider:
            provider_details["provider"] = provider
        if operation:
            provider_details["operation"] = operation
        if context:
            provider_details["context"] = context
        if original_error is not None:
            provider_details["error_type"] = type(original_error).__name__
        if response_body:
            provider_details["response_body"] = response_body
        if retry_after is not None:
            provider_details["retry_after"] = retry_after
        super().__init__(
            message=message,
            details=provider_details,
            error_type="provider_error",
            error_code=code,
            status_code=status_code,
        )
        self.provider = provider
        self.operation = operation
        self.original_error = original_error
        self.context = context or {}
        self.response_body = response_body
        self.retry_after = retry_after


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Convert any exception to a standardized ErrorResponse.

    Service exceptions keep their own payload; anything else becomes a
    generic internal error without leaking its message.
    """
    if isinstance(exc, CalendarServiceException):
        return exc.to_error_response()

    return ErrorResponse(
        type="internal_error",
        message="An unexpected error occurred",
        details={
            "code": ErrorCode.INTERNAL_ERROR.value,
            "exception_type": type(exc).__name__,
        },
        timestamp=datetime.now(timezone.utc).isoformat(),
        request_id=_current_request_id(),
    )
