"""
Centralized logging configuration for the calendar services.

Logging goes through structlog and ends in the stdlib root logger, so
provider adapters and third-party libraries share one handler. Two context
variables travel with each provider call:

- ``request_id_var``: correlation ID, forwarded to providers as X-Request-ID
- ``account_id_var``: the provider account an adapter operates on

Usage:
    from services.common.logging_config import get_logger, setup_service_logging

    setup_service_logging(
        service_name="calendar-providers",
        log_level="INFO",
        log_format="json"
    )
    logger = get_logger(__name__)
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog

# Context variables for request-specific data
request_id_var: ContextVar[str] = ContextVar("request_id", default="uninitialized")
account_id_var: ContextVar[str] = ContextVar("account_id", default="anonymous")

# Keys rendered in the fixed part of a text log line
_TEXT_LINE_KEYS = frozenset(
    ("timestamp", "level", "logger", "event", "service", "request_id", "account_id")
)
_MAX_VALUE_LENGTH = 150


def _bound(value: Optional[str], unset: str) -> Optional[str]:
    return value if value and value != unset else None


@contextmanager
def log_context(
    request_id: Optional[str] = None, account_id: Optional[str] = None
) -> Iterator[None]:
    """
    Bind request and account IDs for the duration of a block.

    Arguments left as None keep their current value. Previous values are
    restored on exit, also when the block raises.
    """
    tokens = []
    if request_id is not None:
        tokens.append((request_id_var, request_id_var.set(request_id)))
    if account_id is not None:
        tokens.append((account_id_var, account_id_var.set(account_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class RequestContextFilter(logging.Filter):
    """Copy request context and service name onto stdlib log records."""

    def __init__(self, service_name: str = "unknown"):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.account_id = account_id_var.get()
        if not hasattr(record, "service_name"):
            record.service_name = self.service_name
        return True


def add_request_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Add request and account ID to all log entries."""
    request_id = _bound(request_id_var.get(), "uninitialized")
    account_id = _bound(account_id_var.get(), "anonymous")
    if request_id:
        event_dict["request_id"] = request_id
    if account_id:
        event_dict["account_id"] = account_id
    return event_dict


def add_service_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Derive the service from logger names like ``services.calendar.providers``."""
    parts = event_dict.get("logger", "").split(".")
    if len(parts) >= 2 and parts[0] == "services":
        event_dict["service"] = parts[1]
    return event_dict


class EnhancedTextRenderer:
    """
    Human-readable single-line renderer for local debugging.

    Format: ``<timestamp> [<service>] [<LEVEL>] [<req>] <logger> - <message>``
    followed by the account and any extra key=value context.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name

    @staticmethod
    def _request_tag(request_id: Optional[str]) -> str:
        request_id = _bound(request_id, "uninitialized")
        if not request_id:
            return ""
        # Last 4 characters are enough to follow one call through the logs
        return f"[{request_id[-4:]}]"

    @staticmethod
    def _format_value(key: str, value: Any) -> str:
        if isinstance(value, (str, int, float, bool)):
            return f"{key}={value}"
        return f"{key}={str(value)[:_MAX_VALUE_LENGTH]}..."

    def __call__(
        self,
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> str:
        logger_name = event_dict.get("logger", "")
        if logger_name.startswith("services."):
            logger_name = logger_name[len("services.") :]

        message = event_dict.get("event", "")
        account_id = _bound(event_dict.get("account_id"), "anonymous")
        if account_id:
            message = f"{message} | Account: {account_id}"

        parts = [
            event_dict.get("timestamp", ""),
            f"[{event_dict.get('service', self.service_name)}]",
            f"[{event_dict.get('level', 'INFO').upper()}]",
            self._request_tag(event_dict.get("request_id")),
            logger_name,
            f"- {message}",
        ]

        extra_context = [
            self._format_value(key, value)
            for key, value in event_dict.items()
            if key not in _TEXT_LINE_KEYS
        ]
        if extra_context:
            parts.append(f" | {', '.join(extra_context)}")

        return " ".join(filter(None, parts))


def setup_service_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Set up logging configuration for a service.

    Args:
        service_name: Name of the service (e.g., "calendar-providers")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Format type ("json" or "text")
    """
    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = EnhancedTextRenderer(service_name)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            add_request_context,
            add_service_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # structlog output is already rendered
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(RequestContextFilter(service_name))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[handler],
        force=True,
    )

    # Per-request lines come from our own client
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    get_logger(__name__).info(
        f"Logging configured for {service_name}",
        log_level=log_level,
        log_format=log_format,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance, usually with ``__name__``."""
    return structlog.get_logger(name)
