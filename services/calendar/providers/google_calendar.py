"""
Google Calendar adapter.
"""

from datetime import datetime
from typing import Any, Dict, List

from services.calendar.core.clients.base import ProviderClient
from services.calendar.core.clients.google import GoogleCalendarClient
from services.calendar.core.normalizer.common import format_utc, localize, resolve_time_zone
from services.calendar.core.normalizer.google import (
    CALENDARS_PATH,
    apply_google_response,
    calendar_list_path,
    calendar_path,
    event_path,
    events_path,
    parse_google_calendar,
    parse_google_event,
    send_updates_param,
    to_google_calendar,
    to_google_event,
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


class GoogleCalendarProvider(CalendarProvider):
    """Calendar operations over the Google Calendar API v3."""

    provider = Provider.GOOGLE

    def _create_client(self, access_token: str) -> ProviderClient:
        return GoogleCalendarClient(access_token, self.account_id)

    async def _calendars(self) -> List[Calendar]:
        data = await self._get(calendar_list_path())
        calendars = [
            parse_google_calendar(item, self.account_id, fallback_index=index)
            for index, item in enumerate((data or {}).get("items", []))
        ]
        logger.info(
            f"Retrieved {len(calendars)} Google calendars for account {self.account_id}"
        )
        return calendars

    async def _create_calendar(self, data: CreateCalendarInput) -> Calendar:
        created = await self._post(CALENDARS_PATH, json_data=to_google_calendar(data))
        return parse_google_calendar(created, self.account_id)

    async def _update_calendar(
        self, calendar_id: str, data: UpdateCalendarInput
    ) -> Calendar:
        updated = await self._patch(
            calendar_path(calendar_id), json_data=to_google_calendar(data)
        )
        return parse_google_calendar(updated, self.account_id)

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
        params = {
            "timeMin": format_utc(localize(time_min, tz)),
            "timeMax": format_utc(localize(time_max, tz)),
            "timeZone": time_zone,
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": get_settings().MAX_EVENTS_PER_CALENDAR,
        }

        data = await self._get(events_path(calendar.id), params=params)
        events = [
            parse_google_event(item, self.account_id, calendar, time_zone)
            for item in (data or {}).get("items", [])
        ]
        logger.info(f"Retrieved {len(events)} Google events from calendar {calendar.id}")
        return events

    async def _create_event(
        self, calendar: Calendar, event: CreateEventInput
    ) -> CalendarEvent:
        created = await self._post(events_path(calendar.id), json_data=to_google_event(event))
        return parse_google_event(created, self.account_id, calendar, event.time_zone)

    async def _update_event(
        self, calendar: Calendar, event_id: str, event: UpdateEventInput
    ) -> CalendarEvent:
        params = None
        if event.response is not None:
            params = {"sendUpdates": send_updates_param(event.response.send_update)}
        updated = await self._patch(
            event_path(calendar.id, event_id),
            json_data=to_google_event(event),
            params=params,
        )
        return parse_google_event(updated, self.account_id, calendar, event.time_zone)

    async def _delete_event(self, calendar_id: str, event_id: str) -> None:
        await self._delete(event_path(calendar_id, event_id))

    async def _patch_response(
        self, calendar_id: str, event: Dict[str, Any], response: EventResponse
    ) -> Any:
        attendees = apply_google_response(event, response)
        return await self._patch(
            event_path(calendar_id, event["id"]),
            json_data={"attendees": attendees},
            params={"sendUpdates": send_updates_param(response.send_update)},
        )

    async def _respond_to_event(
        self, calendar_id: str, event_id: str, response: EventResponse
    ) -> None:
        current = await self._get(event_path(calendar_id, event_id))
        await self._patch_response(calendar_id, current, response)
        logger.info(
            f"Responded {response.status.value} to Google event {event_id} "
            f"in calendar {calendar_id}"
        )

    async def _respond_after_update(
        self, calendar: Calendar, updated: CalendarEvent, response: EventResponse
    ) -> CalendarEvent:
        # The PATCH result already carries the attendee list
        raw_event = {
            "id": updated.id,
            "attendees": updated.provider_data.get("attendees", []),
        }
        patched = await self._patch_response(calendar.id, raw_event, response)
        return parse_google_event(patched, self.account_id, calendar, updated.time_zone)
