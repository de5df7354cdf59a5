"""
Calendar provider adapters and the factory that selects one per account.
"""

from typing import Any, Union

from services.calendar.models import Provider
from services.calendar.providers.base import (
    CalendarProvider,
    requires_response,
    with_error_handler,
)
from services.calendar.providers.google_calendar import GoogleCalendarProvider
from services.calendar.providers.microsoft_graph import MicrosoftCalendarProvider
from services.common.logging_config import get_logger

logger = get_logger(__name__)

_PROVIDERS = {
    Provider.GOOGLE: GoogleCalendarProvider,
    Provider.MICROSOFT: MicrosoftCalendarProvider,
}


def create_calendar_provider(
    provider: Union[str, Provider],
    access_token: str,
    account_id: str,
    **kwargs: Any,
) -> CalendarProvider:
    """
    Create the adapter for a provider account.

    Args:
        provider: Provider name ('google', 'microsoft') or Provider enum
        access_token: OAuth access token for the account
        account_id: Account the adapter operates on
        **kwargs: Passed to the adapter (``client``, ``rate_limiter``)

    Raises:
        ValueError: For an unknown provider
    """
    # Normalize provider to enum
    if isinstance(provider, str):
        try:
            provider = Provider(provider.lower())
        except ValueError:
            raise ValueError(
                f"Invalid provider: {provider}. Must be 'google' or 'microsoft'"
            )

    logger.debug(f"Creating {provider.value} calendar provider for account {account_id}")
    return _PROVIDERS[provider](access_token, account_id, **kwargs)


__all__ = [
    "CalendarProvider",
    "GoogleCalendarProvider",
    "MicrosoftCalendarProvider",
    "create_calendar_provider",
    "requires_response",
    "with_error_handler",
]
