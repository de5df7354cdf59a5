"""
Provider contract and error envelope.

Every adapter operation runs through :func:`with_error_handler`, which is
the only place a :class:`ProviderError` is created. Adapters implement the
underscore-prefixed primitives; the public operations, including the
two-step ``update_event`` transition, live here.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    TypeVar,
)

from services.calendar.core.clients.base import ProviderClient, RateLimiter
from services.calendar.core.clients.errors import classify_error
from services.calendar.models import Provider, ResponseStatus
from services.calendar.schemas import (
    Calendar,
    CalendarEvent,
    CreateCalendarInput,
    CreateEventInput,
    EventResponse,
    UpdateCalendarInput,
    UpdateEventInput,
)
from services.common.http_errors import ProviderError
from services.common.logging_config import get_logger, log_context

logger = get_logger(__name__)

T = TypeVar("T")


async def with_error_handler(
    operation: str,
    fn: Callable[[], Awaitable[T]],
    context: Optional[Dict[str, Any]] = None,
    provider: Optional[str] = None,
) -> T:
    """
    Await ``fn`` and convert any failure into a ProviderError.

    Args:
        operation: Operation name recorded on the error, e.g. "events"
        fn: Zero-argument coroutine factory performing the provider call
        context: Extra context recorded on the error
        provider: Provider name used to classify HTTP failures

    Returns:
        Whatever ``fn`` returns, unchanged

    Raises:
        ProviderError: Wrapping the original exception, which is also
            chained as ``__cause__``. A ProviderError raised by ``fn`` is
            re-raised as is.
    """
    try:
        return await fn()
    except ProviderError:
        raise
    except Exception as e:
        logger.error(
            f"Failed to {operation}: {type(e).__name__}: {e}",
            provider=provider,
            operation=operation,
            context=context,
        )
        classification = classify_error(e, provider)
        message = classification.pop("message")
        raise ProviderError(
            message=f"Failed to {operation}: {message}",
            provider=provider,
            operation=operation,
            original_error=e,
            context=context,
            **classification,
        ) from e


def requires_response(response: Optional[EventResponse]) -> bool:
    """Whether an RSVP has to be submitted for ``response``."""
    return response is not None and response.status != ResponseStatus.UNKNOWN


class CalendarProvider(ABC):
    """
    Uniform async calendar operations over one provider account.

    An adapter owns one HTTP client, authenticated with the access token it
    was constructed with, for its whole lifetime.
    """

    provider: Provider

    def __init__(
        self,
        access_token: str,
        account_id: str,
        client: Optional[ProviderClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Args:
            access_token: OAuth access token, used as is and never refreshed
            account_id: Account the adapter operates on
            client: HTTP client to use instead of the provider's default
            rate_limiter: Awaited before every request, keyed by account ID
        """
        self.account_id = account_id
        self.client: ProviderClient = client or self._create_client(access_token)
        self.rate_limiter = rate_limiter

    @abstractmethod
    def _create_client(self, access_token: str) -> ProviderClient:
        """Build the default HTTP client for this provider."""

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "CalendarProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def _acquire(self) -> None:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire(self.account_id)

    # Rate-limited HTTP verbs
    async def _get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        await self._acquire()
        return await self.client.get(endpoint, params=params, headers=headers)

    async def _post(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        await self._acquire()
        return await self.client.post(endpoint, json_data=json_data, params=params)

    async def _patch(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        await self._acquire()
        return await self.client.patch(endpoint, json_data=json_data, params=params)

    async def _delete(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        await self._acquire()
        return await self.client.delete(endpoint, params=params)

    async def _with_error_handler(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        with log_context(account_id=self.account_id):
            return await with_error_handler(
                operation, fn, context=context, provider=self.provider.value
            )

    # Provider primitives
    @abstractmethod
    async def _calendars(self) -> List[Calendar]: ...

    @abstractmethod
    async def _create_calendar(self, data: CreateCalendarInput) -> Calendar: ...

    @abstractmethod
    async def _update_calendar(
        self, calendar_id: str, data: UpdateCalendarInput
    ) -> Calendar: ...

    @abstractmethod
    async def _delete_calendar(self, calendar_id: str) -> None: ...

    @abstractmethod
    async def _events(
        self,
        calendar: Calendar,
        time_min: datetime,
        time_max: datetime,
        time_zone: str,
    ) -> List[CalendarEvent]: ...

    @abstractmethod
    async def _create_event(
        self, calendar: Calendar, event: CreateEventInput
    ) -> CalendarEvent: ...

    @abstractmethod
    async def _update_event(
        self, calendar: Calendar, event_id: str, event: UpdateEventInput
    ) -> CalendarEvent: ...

    @abstractmethod
    async def _delete_event(self, calendar_id: str, event_id: str) -> None: ...

    @abstractmethod
    async def _respond_to_event(
        self, calendar_id: str, event_id: str, response: EventResponse
    ) -> None: ...

    async def _respond_after_update(
        self, calendar: Calendar, updated: CalendarEvent, response: EventResponse
    ) -> CalendarEvent:
        """Submit the RSVP that follows an update; returns the event as it now stands."""
        await self._respond_to_event(calendar.id, updated.id, response)
        return updated.model_copy(update={"response": response})

    # Public operations
    async def calendars(self) -> List[Calendar]:
        return await self._with_error_handler("calendars", self._calendars)

    async def create_calendar(self, data: CreateCalendarInput) -> Calendar:
        return await self._with_error_handler(
            "createCalendar", lambda: self._create_calendar(data)
        )

    async def update_calendar(
        self, calendar_id: str, data: UpdateCalendarInput
    ) -> Calendar:
        return await self._with_error_handler(
            "updateCalendar",
            lambda: self._update_calendar(calendar_id, data),
            context={"calendar_id": calendar_id},
        )

    async def delete_calendar(self, calendar_id: str) -> None:
        await self._with_error_handler(
            "deleteCalendar",
            lambda: self._delete_calendar(calendar_id),
            context={"calendar_id": calendar_id},
        )

    async def events(
        self,
        calendar: Calendar,
        time_min: datetime,
        time_max: datetime,
        time_zone: str = "UTC",
    ) -> List[CalendarEvent]:
        """
        Events of ``calendar`` between ``time_min`` and ``time_max``.

        Naive bounds are read as wall times in ``time_zone``; returned events
        are expressed in ``time_zone``.
        """
        return await self._with_error_handler(
            "events",
            lambda: self._events(calendar, time_min, time_max, time_zone),
            context={"calendar_id": calendar.id},
        )

    async def create_event(
        self, calendar: Calendar, event: CreateEventInput
    ) -> CalendarEvent:
        return await self._with_error_handler(
            "createEvent",
            lambda: self._create_event(calendar, event),
            context={"calendar_id": calendar.id},
        )

    async def update_event(
        self, calendar: Calendar, event_id: str, event: UpdateEventInput
    ) -> CalendarEvent:
        """
        Update an event, then submit the account's response if one is given.

        The two steps are sequential and wrapped separately; the error's
        ``context["step"]`` tells which one failed. A failed response step
        does not undo the update.
        """
        context = {"calendar_id": calendar.id, "event_id": event_id}
        updated = await self._with_error_handler(
            "updateEvent",
            lambda: self._update_event(calendar, event_id, event),
            context={**context, "step": "update"},
        )
        response = event.response
        if response is None or not requires_response(response):
            return updated

        return await self._with_error_handler(
            "updateEvent",
            lambda: self._respond_after_update(calendar, updated, response),
            context={**context, "step": "response"},
        )

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        await self._with_error_handler(
            "deleteEvent",
            lambda: self._delete_event(calendar_id, event_id),
            context={"calendar_id": calendar_id, "event_id": event_id},
        )

    async def response_to_event(
        self, calendar_id: str, event_id: str, response: EventResponse
    ) -> None:
        """Submit an RSVP; ``unknown`` means no action and makes no request."""
        if not requires_response(response):
            return
        await self._with_error_handler(
            "responseToEvent",
            lambda: self._respond_to_event(calendar_id, event_id, response),
            context={"calendar_id": calendar_id, "event_id": event_id},
        )
