"""
Provider error parsing.

Turns Microsoft Graph and Google API error bodies into readable messages
and provider-specific error codes, and describes any failed provider call
as the keyword arguments of a ProviderError.
"""

import json
from typing import Any, Dict, Optional, Tuple

import httpx

from services.common.http_errors import ErrorCode

ParsedError = Tuple[str, ErrorCode]


def _read_microsoft_error(response_text: str) -> Optional[Tuple[str, str]]:
    """``(code, message)`` from a Graph error body, or None if it is not one."""
    try:
        error = json.loads(response_text).get("error", {})
        return str(error.get("code", "")), str(error.get("message", ""))
    except (json.JSONDecodeError, AttributeError):
        return None


def _read_google_error(response_text: str) -> Optional[Tuple[str, str]]:
    """
    ``(reasons, message)`` from a Google error body, or None if it is not one.

    ``reasons`` joins the error status and every ``errors[].reason``.
    """
    try:
        error = json.loads(response_text).get("error", {})
        # OAuth endpoints return the error as a plain string
        if not isinstance(error, dict):
            return "", str(error)
        reasons = [str(error.get("status", ""))]
        reasons.extend(str(item.get("reason", "")) for item in error.get("errors") or [])
        return " ".join(reasons), str(error.get("message", ""))
    except (json.JSONDecodeError, AttributeError):
        return None


def parse_microsoft_error(response_text: str, status_code: int) -> ParsedError:
    """
    Parse a Microsoft Graph error response.

    Args:
        response_text: Raw response body from Microsoft Graph
        status_code: HTTP status code

    Returns:
        Tuple of (readable error message, provider-specific error code)
    """
    parsed = _read_microsoft_error(response_text)
    code, message = parsed or ("", "")
    detail = message or f"HTTP {status_code}"

    if status_code == 401:
        if "InvalidAuthenticationToken" in code:
            if "JWT is not well formed" in message or "no dots" in message:
                return (
                    "Microsoft access token is malformed. Obtain a new token.",
                    ErrorCode.MICROSOFT_TOKEN_MALFORMED,
                )
            if "Lifetime validation failed" in message or "expired" in message.lower():
                return (
                    "Microsoft access token has expired. Obtain a new token.",
                    ErrorCode.MICROSOFT_TOKEN_EXPIRED,
                )
            return f"Microsoft authentication failed: {message}", ErrorCode.MICROSOFT_AUTH_FAILED
        if "TokenExpired" in code:
            return (
                "Microsoft access token has expired. Obtain a new token.",
                ErrorCode.MICROSOFT_TOKEN_EXPIRED,
            )
        if parsed is None:
            return "Microsoft authentication failed.", ErrorCode.MICROSOFT_AUTH_FAILED
        return f"Microsoft authentication error: {message}", ErrorCode.MICROSOFT_AUTH_ERROR

    if status_code == 403:
        if "Forbidden" in code:
            return (
                "Access to the Microsoft calendar is forbidden.",
                ErrorCode.MICROSOFT_ACCESS_FORBIDDEN,
            )
        return f"Microsoft access denied: {detail}", ErrorCode.MICROSOFT_ACCESS_DENIED

    if status_code == 404:
        return f"Microsoft calendar resource not found: {detail}", ErrorCode.MICROSOFT_NOT_FOUND
    if status_code == 429:
        return "Microsoft Graph rate limit exceeded.", ErrorCode.MICROSOFT_RATE_LIMITED
    if status_code >= 500:
        return f"Microsoft service error: {detail}", ErrorCode.MICROSOFT_SERVICE_ERROR
    return (
        f"Microsoft API error ({code or status_code}): {detail}",
        ErrorCode.MICROSOFT_API_ERROR,
    )


def parse_google_error(response_text: str, status_code: int) -> ParsedError:
    """
    Parse a Google Calendar API error response.

    Args:
        response_text: Raw response body from Google
        status_code: HTTP status code

    Returns:
        Tuple of (readable error message, provider-specific error code)
    """
    parsed = _read_google_error(response_text)
    reasons, message = parsed or ("", "")
    detail = message or f"HTTP {status_code}"

    if status_code == 401:
        if "Token has been expired" in message:
            return (
                "Google access token has expired. Obtain a new token.",
                ErrorCode.GOOGLE_TOKEN_EXPIRED,
            )
        if parsed is None or "Invalid Credentials" in message or "unauthorized" in message.lower():
            return "Google authentication failed.", ErrorCode.GOOGLE_AUTH_FAILED
        if "insufficient authentication scopes" in message.lower():
            return (
                "Google token lacks the calendar scopes.",
                ErrorCode.GOOGLE_INSUFFICIENT_SCOPES,
            )
        return f"Google authentication error: {message}", ErrorCode.GOOGLE_AUTH_ERROR

    if status_code == 403:
        if "quotaExceeded" in reasons or "rateLimitExceeded" in reasons:
            return "Google Calendar quota exceeded.", ErrorCode.GOOGLE_QUOTA_EXCEEDED
        if "insufficientPermissions" in reasons or "forbidden" in message.lower():
            return (
                "Insufficient permissions for the Google calendar.",
                ErrorCode.GOOGLE_INSUFFICIENT_PERMISSIONS,
            )
        return f"Google access denied: {detail}", ErrorCode.GOOGLE_ACCESS_DENIED

    # 410 is returned for deleted events
    if status_code in (404, 410):
        return f"Google calendar resource not found: {detail}", ErrorCode.GOOGLE_NOT_FOUND
    if status_code == 429:
        return "Google Calendar rate limit exceeded.", ErrorCode.GOOGLE_RATE_LIMITED
    if status_code >= 500:
        return f"Google service error: {detail}", ErrorCode.GOOGLE_SERVICE_ERROR
    return f"Google API error: {detail}", ErrorCode.GOOGLE_API_ERROR


def _parse_retry_after(response: httpx.Response) -> Optional[int]:
    retry_after_header = response.headers.get("Retry-After")
    if not retry_after_header:
        return None
    try:
        return int(retry_after_header)
    except ValueError:
        # HTTP-date form is not interpreted
        return None


def classify_error(error: BaseException, provider: Optional[str]) -> Dict[str, Any]:
    """
    Describe a failed provider call as ProviderError keyword arguments.

    Returns:
        Dict with ``message``, ``code`` and ``status_code``, plus
        ``response_body`` and ``retry_after`` for HTTP status errors.
    """
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        if provider == "microsoft":
            message, code = parse_microsoft_error(response.text, response.status_code)
        elif provider == "google":
            message, code = parse_google_error(response.text, response.status_code)
        else:
            message = f"HTTP {response.status_code}: {response.text}"
            code = ErrorCode.PROVIDER_ERROR
        return {
            "message": message,
            "code": code,
            "status_code": response.status_code,
            "response_body": response.text,
            "retry_after": _parse_retry_after(response),
        }

    if isinstance(error, httpx.TimeoutException):
        return {
            "message": f"Request timeout: {error}",
            "code": ErrorCode.PROVIDER_TIMEOUT,
            "status_code": 504,
        }

    if isinstance(error, httpx.RequestError):
        return {
            "message": f"Request failed: {error}",
            "code": ErrorCode.PROVIDER_UNAVAILABLE,
            "status_code": 503,
        }

    return {
        "message": f"Unexpected error: {error}",
        "code": ErrorCode.PROVIDER_ERROR,
        "status_code": 502,
    }
