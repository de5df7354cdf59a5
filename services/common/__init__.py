"""
Common utilities and configurations for the calendar services.
"""

from services.common.http_errors import (
    CalendarServiceException,
    ErrorCode,
    ErrorResponse,
    ProviderError,
    exception_to_response,
)
from services.common.logging_config import get_logger, setup_service_logging

__all__ = [
    "CalendarServiceException",
    "ErrorCode",
    "ErrorResponse",
    "ProviderError",
    "exception_to_response",
    "get_logger",
    "setup_service_logging",
]
