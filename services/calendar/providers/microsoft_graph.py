"""
Microsoft Graph calendar adapter.
"""

from datetime import datetime
from typing import List

from services.calendar.core.clients.base import ProviderClient
from services.calendar.core.clients.microsoft import (
    MicrosoftGraphClient,
    escape_odata_string_literal,
)
from services.calendar.core.normalizer.common import format_utc, localize, resolve_time_zone
from services.calendar.core.normalizer.microsoft import (
    CALENDAR_SELECT_FIELDS,
    calendar_path,
    event_path,
    event_response_body,
    event_response_path,
    parse_microsoft_calendar,
    parse_microsoft_event,
    to_microsoft_calendar,
    to_microsoft_event,
)
from services.calendar.core.settings import get_settings
from services.calendar.models import Provider
from services.calendar.providers.base import CalendarProvider
from services.calendar.schemas import (
    Calendar,
    CalendarEvent,
    CreateCalendarInput,
    CreateEventInput,
    EventResponse,
    UpdateCalendarInput,
    UpdateEventInput,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)


class MicrosoftCalendarProvider(CalendarProvider):
    """Calendar operations over Microsoft Graph (Outlook calendars)."""

    provider = Provider.MICROSOFT

    def _create_client(self, access_token: str) -> ProviderClient:
        return MicrosoftGraphClient(access_token, self.account_id)

    async def _calendars(self) -> List[Calendar]:
        data = await self._get("/me/calendars", params={"$select": CALENDAR_SELECT_FIELDS})
        calendars = [
            parse_microsoft_calendar(item, self.account_id, fallback_index=index)
            for index, item in enumerate((data or {}).get("value", []))
        ]
        logger.info(
            f"Retrieved {len(calendars)} Microsoft calendars for account {self.account_id}"
        )
        return calendars

    async def _create_calendar(self, data: CreateCalendarInput) -> Calendar:
        created = await self._post("/me/calendars", json_data=to_microsoft_calendar(data))
        return parse_microsoft_calendar(created, self.account_id)

    async def _update_calendar(
        self, calendar_id: str, data: UpdateCalendarInput
    ) -> Calendar:
        updated = await self._patch(
            calendar_path(calendar_id), json_data=to_microsoft_calendar(data)
        )
        return parse_microsoft_calendar(updated, self.account_id)

    async def _delete_calendar(self, calendar_id: str) -> None:
        await self._delete(calendar_path(calendar_id))

    async def _events(
        self,
        calendar: Calendar,
        time_min: datetime,
        time_max: datetime,
        time_zone: str,
    ) -> List[CalendarEvent]:
        tz = resolve_time_zone(time_zone)
        start = escape_odata_string_literal(format_utc(localize(time_min, tz)))
        end = escape_odata_string_literal(format_utc(localize(time_max, tz)))

        params = {
            "$filter": f"start/dateTime ge '{start}' and end/dateTime le '{end}'",
            "$orderby": "start/dateTime",
            "$top": get_settings().MAX_EVENTS_PER_CALENDAR,
        }
        headers = {"Prefer": f'outlook.timezone="{time_zone}"'}

        data = await self._get(
            f"{calendar_path(calendar.id)}/events", params=params, headers=headers
        )
        events = [
            parse_microsoft_event(item, self.account_id, calendar, time_zone)
            for item in (data or {}).get("value", [])
        ]
        logger.info(
            f"Retrieved {len(events)} Microsoft events from calendar {calendar.id}"
        )
        return events

    async def _create_event(
        self, calendar: Calendar, event: CreateEventInput
    ) -> CalendarEvent:
        created = await self._post(
            f"{calendar_path(calendar.id)}/events", json_data=to_microsoft_event(event)
        )
        return parse_microsoft_event(created, self.account_id, calendar, event.time_zone)

    async def _update_event(
        self, calendar: Calendar, event_id: str, event: UpdateEventInput
    ) -> CalendarEvent:
        updated = await self._patch(
            event_path(calendar.id, event_id), json_data=to_microsoft_event(event)
        )
        return parse_microsoft_event(updated, self.account_id, calendar, event.time_zone)

    async def _delete_event(self, calendar_id: str, event_id: str) -> None:
        await self._delete(event_path(calendar_id, event_id))

    async def _respond_to_event(
        self, calendar_id: str, event_id: str, response: EventResponse
    ) -> None:
        await self._post(
            event_response_path(event_id, response.status),
            json_data=event_response_body(response),
        )
        logger.info(
            f"Responded {response.status.value} to Microsoft event {event_id} "
            f"in calendar {calendar_id}"
        )
