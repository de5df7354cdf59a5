"""
Google Calendar normalization.

Translates Google calendarList entries and event resources to the unified
models and back. Unlike Graph, Google records the account's invitation
response on its own attendee entry, so RSVPs are attendee-list updates.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from services.calendar.core.colors import assign_color
from services.calendar.core.normalizer.common import (
    convert_to_zone,
    localize,
    parse_datetime,
    parse_optional_datetime,
    resolve_time_zone,
    safe_log_raw_data,
    time_zone_name,
)
from services.calendar.models import (
    AttendeeType,
    EventAvailability,
    EventVisibility,
    Provider,
    ResponseStatus,
)
from services.calendar.schemas import (
    Attendee,
    Calendar,
    CalendarEvent,
    CalendarOwner,
    CreateCalendarInput,
    CreateEventInput,
    EventOrganizer,
    EventResponse,
    Recurrence,
    UpdateCalendarInput,
    UpdateEventInput,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)

CALENDARS_PATH = "/calendar/v3/calendars"

_READ_ONLY_ROLES = {"reader", "freeBusyReader"}

_RESPONSE_STATUSES = {
    "accepted": ResponseStatus.ACCEPTED,
    "declined": ResponseStatus.DECLINED,
    "tentative": ResponseStatus.TENTATIVE,
    "needsAction": ResponseStatus.UNKNOWN,
}
_GOOGLE_RESPONSE_STATUSES = {value: key for key, value in _RESPONSE_STATUSES.items()}

_TRANSPARENCY_TO_AVAILABILITY = {
    "opaque": EventAvailability.BUSY,
    "transparent": EventAvailability.FREE,
}
_AVAILABILITY_TO_TRANSPARENCY = {
    value: key for key, value in _TRANSPARENCY_TO_AVAILABILITY.items()
}


def calendar_list_path() -> str:
    return "/calendar/v3/users/me/calendarList"


def calendar_path(calendar_id: str) -> str:
    # Secondary calendar ids contain '@' and '#'
    return f"{CALENDARS_PATH}/{quote(calendar_id, safe='')}"


def events_path(calendar_id: str) -> str:
    return f"{calendar_path(calendar_id)}/events"


def event_path(calendar_id: str, event_id: str) -> str:
    return f"{events_path(calendar_id)}/{quote(event_id, safe='')}"


def parse_google_response_status(status: Optional[str]) -> ResponseStatus:
    return _RESPONSE_STATUSES.get(status or "", ResponseStatus.UNKNOWN)


def to_google_response_status(status: Union[ResponseStatus, str]) -> str:
    return _GOOGLE_RESPONSE_STATUSES[ResponseStatus(status)]


def send_updates_param(send_update: bool) -> str:
    return "all" if send_update else "none"


# Calendars
def parse_google_calendar(
    calendar: Dict[str, Any], account_id: str, fallback_index: int = 0
) -> Calendar:
    """
    Convert a calendarList entry (or a bare calendar resource) into a unified
    Calendar. Calendar resources carry no access role and are the account's own.
    """
    calendar_id = calendar["id"]
    access_role = calendar.get("accessRole", "owner")

    owner = None
    if access_role == "owner" and "@" in calendar_id:
        owner = CalendarOwner(email=calendar_id)

    provider_data = {
        key: calendar[key]
        for key in ("accessRole", "colorId", "etag", "foregroundColor", "hidden", "selected")
        if key in calendar
    }

    return Calendar(
        id=calendar_id,
        account_id=account_id,
        provider=Provider.GOOGLE,
        name=calendar.get("summaryOverride") or calendar.get("summary") or "",
        description=calendar.get("description"),
        color=calendar.get("backgroundColor") or assign_color(fallback_index),
        is_default=bool(calendar.get("primary", False)),
        is_read_only=access_role in _READ_ONLY_ROLES,
        time_zone=calendar.get("timeZone"),
        owner=owner,
        provider_data=provider_data,
    )


def to_google_calendar(
    data: Union[CreateCalendarInput, UpdateCalendarInput],
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if data.name is not None:
        payload["summary"] = data.name
    if data.description is not None:
        payload["description"] = data.description
    if data.time_zone is not None:
        payload["timeZone"] = data.time_zone
    if data.color is not None:
        # Colors live on the calendarList entry, not the calendar
        logger.debug("Google calendar resources do not support color, dropping it")
    return payload


# Events
def _parse_google_datetime(
    data: Dict[str, Any], default_time_zone: Optional[str]
) -> tuple[datetime, bool]:
    """Parse a Google start/end object; returns ``(instant, all_day)``."""
    if data.get("dateTime"):
        return parse_datetime(data["dateTime"], data.get("timeZone") or default_time_zone), False
    if data.get("date"):
        zone = data.get("timeZone") or default_time_zone
        return parse_datetime(data["date"], zone), True
    raise ValueError("Missing 'dateTime' or 'date' in Google event time")


def _parse_attendees(event: Dict[str, Any]) -> List[Attendee]:
    attendees = []
    for attendee_data in event.get("attendees") or []:
        if attendee_data.get("resource"):
            attendee_type = AttendeeType.RESOURCE
        elif attendee_data.get("optional"):
            attendee_type = AttendeeType.OPTIONAL
        else:
            attendee_type = AttendeeType.REQUIRED
        attendees.append(
            Attendee(
                email=attendee_data.get("email"),
                name=attendee_data.get("displayName"),
                status=parse_google_response_status(attendee_data.get("responseStatus")),
                type=attendee_type,
                is_organizer=bool(attendee_data.get("organizer", False)),
                is_self=bool(attendee_data.get("self", False)),
                comment=attendee_data.get("comment"),
            )
        )
    return attendees


def _parse_response(event: Dict[str, Any], attendees: List[Attendee]) -> Optional[EventResponse]:
    for attendee in attendees:
        if attendee.is_self:
            return EventResponse(status=attendee.status, comment=attendee.comment)
    if (event.get("organizer") or {}).get("self"):
        return EventResponse(status=ResponseStatus.ACCEPTED)
    return None


def parse_google_event(
    event: Dict[str, Any],
    account_id: str,
    calendar: Calendar,
    time_zone: Optional[str] = None,
) -> CalendarEvent:
    """
    Convert a raw Google Calendar API event into a unified CalendarEvent.

    Args:
        event: Raw JSON event resource
        account_id: Account the event belongs to
        calendar: Calendar the event was read from
        time_zone: Zone to express timed events in

    Returns:
        CalendarEvent: Unified calendar event model

    Raises:
        ValueError: If required fields are missing from the event
    """
    try:
        event_id = event.get("id")
        if not event_id:
            raise ValueError("Missing required field 'id' in Google Calendar response")

        start_data = event.get("start") or {}
        default_zone = start_data.get("timeZone") or time_zone or calendar.time_zone
        start, all_day = _parse_google_datetime(start_data, default_zone)
        end, _ = _parse_google_datetime(event.get("end") or {}, default_zone)

        event_time_zone = default_zone or time_zone_name(start.tzinfo)
        if time_zone and not all_day:
            start = convert_to_zone(start, time_zone)
            end = convert_to_zone(end, time_zone)
            event_time_zone = time_zone

        organizer = None
        organizer_data = event.get("organizer") or {}
        if organizer_data:
            organizer = EventOrganizer(
                email=organizer_data.get("email"), name=organizer_data.get("displayName")
            )

        attendees = _parse_attendees(event)
        recurrence = None
        if event.get("recurrence"):
            recurrence = Recurrence(rules=event["recurrence"])

        visibility = None
        if event.get("visibility"):
            visibility = EventVisibility(event["visibility"])

        provider_data = {
            key: event[key]
            for key in (
                "etag",
                "iCalUID",
                "status",
                "hangoutLink",
                "conferenceData",
                "eventType",
                "colorId",
                "sequence",
            )
            if key in event
        }
        # Kept raw so RSVPs can rewrite the attendee list without a refetch
        if event.get("attendees"):
            provider_data["attendees"] = event["attendees"]

        return CalendarEvent(
            id=event_id,
            calendar_id=calendar.id,
            account_id=account_id,
            provider=Provider.GOOGLE,
            title=event.get("summary"),
            description=event.get("description"),
            location=event.get("location"),
            start=start,
            end=end,
            all_day=all_day,
            time_zone=event_time_zone,
            attendees=attendees,
            organizer=organizer,
            response=_parse_response(event, attendees),
            recurrence=recurrence,
            recurring_event_id=event.get("recurringEventId"),
            url=event.get("htmlLink"),
            visibility=visibility,
            availability=_TRANSPARENCY_TO_AVAILABILITY.get(event.get("transparency") or ""),
            read_only=calendar.is_read_only,
            created_at=parse_optional_datetime(event.get("created")),
            updated_at=parse_optional_datetime(event.get("updated")),
            provider_data=provider_data,
        )
    except Exception as e:
        logger.error(f"Failed to normalize Google Calendar event: {e}")
        logger.error(f"Safe raw data: {safe_log_raw_data(event)}")
        raise


def _format_google_datetime(
    value: datetime, all_day: bool, time_zone: Optional[str]
) -> Dict[str, Any]:
    zone_name = time_zone or time_zone_name(value.tzinfo) or "UTC"
    local = localize(value, resolve_time_zone(zone_name))
    if all_day:
        return {"date": local.date().isoformat()}
    return {"dateTime": local.isoformat(), "timeZone": zone_name}


def to_google_event(event: Union[CreateEventInput, UpdateEventInput]) -> Dict[str, Any]:
    """
    Build a Google event payload from a unified input.

    Only fields present on the input are written. All-day events use
    ``date`` values; the end date is passed through as given, exclusive as
    Google expects.
    """
    payload: Dict[str, Any] = {}
    all_day = bool(event.all_day)

    if event.title is not None:
        payload["summary"] = event.title
    if event.description is not None:
        payload["description"] = event.description
    if event.location is not None:
        payload["location"] = event.location
    if event.start is not None:
        payload["start"] = _format_google_datetime(event.start, all_day, event.time_zone)
    if event.end is not None:
        payload["end"] = _format_google_datetime(event.end, all_day, event.time_zone)
    if event.attendees is not None:
        attendees = []
        for attendee in event.attendees:
            attendee_data: Dict[str, Any] = {"email": attendee.email}
            if attendee.name:
                attendee_data["displayName"] = attendee.name
            if attendee.type == AttendeeType.OPTIONAL:
                attendee_data["optional"] = True
            elif attendee.type == AttendeeType.RESOURCE:
                attendee_data["resource"] = True
            attendees.append(attendee_data)
        payload["attendees"] = attendees
    if event.recurrence is not None:
        payload["recurrence"] = list(event.recurrence.rules)
    if event.visibility is not None:
        payload["visibility"] = event.visibility.value
    if event.availability is not None:
        transparency = _AVAILABILITY_TO_TRANSPARENCY.get(event.availability)
        if transparency is None:
            logger.debug(
                f"Google events do not support availability '{event.availability.value}'"
            )
        else:
            payload["transparency"] = transparency

    return payload


def apply_google_response(
    event: Dict[str, Any], response: EventResponse
) -> List[Dict[str, Any]]:
    """
    Return the event's attendee list with the ``self`` attendee's response
    replaced.

    Raises:
        ValueError: If the account is not among the event's attendees.
    """
    attendees = [dict(attendee) for attendee in event.get("attendees") or []]
    for attendee in attendees:
        if attendee.get("self"):
            attendee["responseStatus"] = to_google_response_status(response.status)
            if response.comment is not None:
                attendee["comment"] = response.comment
            return attendees
    raise ValueError(f"Account is not an attendee of event '{event.get('id')}'")
