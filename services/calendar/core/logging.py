from typing import Optional

from services.calendar.core.settings import Settings, get_settings
from services.common.logging_config import setup_service_logging


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Set up structured logging for the calendar providers from settings."""
    settings = settings or get_settings()
    setup_service_logging(
        service_name=settings.SERVICE_NAME,
        log_level=settings.LOG_LEVEL,
        log_format=settings.LOG_FORMAT,
    )
