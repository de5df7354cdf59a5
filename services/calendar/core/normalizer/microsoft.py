"""
Microsoft Graph normalization.

Translates Graph calendar and event resources to the unified models and
back, and builds the REST paths the Microsoft adapter calls. Graph records
invitation responses through dedicated action endpoints rather than through
the event body, so the response status never appears in a PATCH payload.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from services.calendar.core.colors import assign_color
from services.calendar.core.normalizer.common import (
    convert_to_zone,
    format_rrule,
    format_wall_time,
    parse_datetime,
    parse_optional_datetime,
    parse_rrule,
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
    CalendarPermission,
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

# Graph's calendar listing returns incomplete resources without $select
CALENDAR_SELECT_FIELDS = (
    "id,name,isDefaultCalendar,canEdit,hexColor,isRemovable,owner,calendarPermissions"
)

_RESPONSE_ACTIONS = {
    ResponseStatus.ACCEPTED: "accept",
    ResponseStatus.DECLINED: "decline",
    ResponseStatus.TENTATIVE: "tentativelyAccept",
}

_RESPONSE_STATUSES = {
    "accepted": ResponseStatus.ACCEPTED,
    "organizer": ResponseStatus.ACCEPTED,
    "declined": ResponseStatus.DECLINED,
    "tentativelyAccepted": ResponseStatus.TENTATIVE,
}

_SENSITIVITY_TO_VISIBILITY = {
    "normal": EventVisibility.DEFAULT,
    "personal": EventVisibility.PRIVATE,
    "private": EventVisibility.PRIVATE,
    "confidential": EventVisibility.CONFIDENTIAL,
}

_VISIBILITY_TO_SENSITIVITY = {
    EventVisibility.DEFAULT: "normal",
    EventVisibility.PUBLIC: "normal",
    EventVisibility.PRIVATE: "private",
    EventVisibility.CONFIDENTIAL: "confidential",
}

_SHOW_AS_TO_AVAILABILITY = {
    "free": EventAvailability.FREE,
    "tentative": EventAvailability.TENTATIVE,
    "busy": EventAvailability.BUSY,
    "oof": EventAvailability.OUT_OF_OFFICE,
}

_AVAILABILITY_TO_SHOW_AS = {value: key for key, value in _SHOW_AS_TO_AVAILABILITY.items()}

_WEEKDAYS = {
    "sunday": "SU",
    "monday": "MO",
    "tuesday": "TU",
    "wednesday": "WE",
    "thursday": "TH",
    "friday": "FR",
    "saturday": "SA",
}
_WEEKDAY_NAMES = {value: key for key, value in _WEEKDAYS.items()}

_WEEK_INDEX = {"first": "1", "second": "2", "third": "3", "fourth": "4", "last": "-1"}
_WEEK_INDEX_NAMES = {value: key for key, value in _WEEK_INDEX.items()}

# Emission order of RRULE parts produced from a Graph pattern
_RRULE_ORDER = (
    "FREQ",
    "INTERVAL",
    "BYDAY",
    "BYMONTHDAY",
    "BYMONTH",
    "BYSETPOS",
    "WKST",
    "COUNT",
    "UNTIL",
)
_SUPPORTED_RRULE_PARTS = set(_RRULE_ORDER)


# Path builders
def calendar_path(calendar_id: str) -> str:
    return f"/me/calendars/{quote(calendar_id, safe='')}"


def event_path(calendar_id: str, event_id: str) -> str:
    return f"{calendar_path(calendar_id)}/events/{quote(event_id, safe='')}"


def event_response_status_path(status: Union[ResponseStatus, str]) -> str:
    """
    Graph action segment recording an invitation response.

    Raises:
        ValueError: For ``unknown``, which has no action.
    """
    action = _RESPONSE_ACTIONS.get(ResponseStatus(status))
    if action is None:
        raise ValueError(f"No Microsoft response action for status '{status}'")
    return action


def event_response_path(event_id: str, status: Union[ResponseStatus, str]) -> str:
    return f"/me/events/{quote(event_id, safe='')}/{event_response_status_path(status)}"


def event_response_body(response: EventResponse) -> Dict[str, Any]:
    return {"comment": response.comment, "sendResponse": response.send_update}


# Calendars
def parse_microsoft_calendar(
    calendar: Dict[str, Any], account_id: str, fallback_index: int = 0
) -> Calendar:
    """
    Convert a Graph calendar resource into a unified Calendar.

    Args:
        calendar: Raw Graph calendar resource
        account_id: Account the calendar belongs to
        fallback_index: Palette index used when Graph reports no hexColor

    Returns:
        Calendar: Unified calendar model
    """
    owner_data = calendar.get("owner") or {}
    owner = None
    if owner_data:
        owner = CalendarOwner(
            email=owner_data.get("address"), name=owner_data.get("name")
        )

    permissions = []
    for permission in calendar.get("calendarPermissions") or []:
        email_address = permission.get("emailAddress") or {}
        permissions.append(
            CalendarPermission(
                email=email_address.get("address"),
                name=email_address.get("name"),
                role=permission.get("role") or "none",
                allowed_roles=permission.get("allowedRoles") or [],
                is_removable=permission.get("isRemovable", True),
            )
        )

    provider_data = {
        key: calendar[key]
        for key in ("isRemovable", "changeKey", "color", "canShare", "canViewPrivateItems")
        if key in calendar
    }

    return Calendar(
        id=calendar["id"],
        account_id=account_id,
        provider=Provider.MICROSOFT,
        name=calendar.get("name") or "",
        color=calendar.get("hexColor") or assign_color(fallback_index),
        is_default=bool(calendar.get("isDefaultCalendar", False)),
        is_read_only=not calendar.get("canEdit", True),
        owner=owner,
        permissions=permissions,
        provider_data=provider_data,
    )


def to_microsoft_calendar(
    data: Union[CreateCalendarInput, UpdateCalendarInput],
) -> Dict[str, Any]:
    """Graph calendars only carry a writable name; other fields are dropped."""
    payload: Dict[str, Any] = {}
    if data.name is not None:
        payload["name"] = data.name
    dropped = [
        field
        for field in ("description", "time_zone", "color")
        if getattr(data, field) is not None
    ]
    if dropped:
        logger.debug(f"Microsoft calendars do not support fields: {dropped}")
    return payload


# Events
def parse_microsoft_response_status(response: Optional[str]) -> ResponseStatus:
    return _RESPONSE_STATUSES.get(response or "", ResponseStatus.UNKNOWN)


def parse_microsoft_date_time(data: Dict[str, Any]) -> datetime:
    """Convert a Graph ``dateTimeTimeZone`` pair into an aware datetime."""
    if not data.get("dateTime"):
        raise ValueError("Missing required field 'dateTime' in Microsoft date")
    return parse_datetime(data["dateTime"], data.get("timeZone"))


def parse_microsoft_recurrence(
    recurrence: Optional[Dict[str, Any]],
) -> Optional[Recurrence]:
    """Convert a Graph recurrence pattern and range into an RRULE."""
    if not recurrence:
        return None
    pattern = recurrence.get("pattern") or {}
    recurrence_range = recurrence.get("range") or {}
    pattern_type = pattern.get("type")

    parts: Dict[str, str] = {}
    if pattern_type == "daily":
        parts["FREQ"] = "DAILY"
    elif pattern_type == "weekly":
        parts["FREQ"] = "WEEKLY"
    elif pattern_type in ("absoluteMonthly", "relativeMonthly"):
        parts["FREQ"] = "MONTHLY"
    elif pattern_type in ("absoluteYearly", "relativeYearly"):
        parts["FREQ"] = "YEARLY"
    else:
        logger.debug(f"Unsupported Microsoft recurrence pattern: {pattern_type}")
        return None

    interval = pattern.get("interval") or 1
    if interval != 1:
        parts["INTERVAL"] = str(interval)

    days = [_WEEKDAYS[day] for day in pattern.get("daysOfWeek") or [] if day in _WEEKDAYS]
    if pattern_type in ("weekly", "relativeMonthly", "relativeYearly") and days:
        parts["BYDAY"] = ",".join(days)
    if pattern_type in ("absoluteMonthly", "absoluteYearly") and pattern.get("dayOfMonth"):
        parts["BYMONTHDAY"] = str(pattern["dayOfMonth"])
    if pattern_type in ("absoluteYearly", "relativeYearly") and pattern.get("month"):
        parts["BYMONTH"] = str(pattern["month"])
    if pattern_type in ("relativeMonthly", "relativeYearly"):
        parts["BYSETPOS"] = _WEEK_INDEX.get(pattern.get("index") or "first", "1")
    first_day = pattern.get("firstDayOfWeek")
    if pattern_type == "weekly" and first_day and first_day != "sunday":
        parts["WKST"] = _WEEKDAYS[first_day]

    range_type = recurrence_range.get("type")
    if range_type == "numbered" and recurrence_range.get("numberOfOccurrences"):
        parts["COUNT"] = str(recurrence_range["numberOfOccurrences"])
    elif range_type == "endDate" and recurrence_range.get("endDate"):
        parts["UNTIL"] = recurrence_range["endDate"].replace("-", "")

    ordered = {key: parts[key] for key in _RRULE_ORDER if key in parts}
    return Recurrence(rules=[format_rrule(ordered)])


def _single_rrule_value(parts: Dict[str, str], key: str, default: int, high: int) -> int:
    """
    First value of a list-valued RRULE part, within ``1..high``.

    Graph takes a single day of month and month. Extra values are dropped
    and negative or malformed ones fall back to ``default``.
    """
    raw = parts.get(key)
    if not raw:
        return default
    first, *rest = raw.split(",")
    if rest:
        logger.debug(f"Dropping {key} values unsupported by Microsoft: {rest}")
    try:
        value = int(first)
    except ValueError:
        value = 0
    if not 1 <= value <= high:
        logger.debug(f"Unsupported {key} value for Microsoft: {first}, using {default}")
        return default
    return value


def _parse_until(value: str) -> date:
    return datetime.strptime(value[:8], "%Y%m%d").date()


def to_microsoft_recurrence(
    recurrence: Recurrence, start: datetime, time_zone: str
) -> Optional[Dict[str, Any]]:
    """
    Convert an RRULE into a Graph recurrence pattern and range.

    Parts Graph cannot express (and non-RRULE lines such as EXDATE) are
    dropped. Frequencies below a day yield no recurrence.
    """
    rrule = recurrence.rrule
    if rrule is None:
        logger.debug("Recurrence without RRULE is not supported by Microsoft")
        return None
    parts = parse_rrule(rrule)

    unsupported = sorted(set(parts) - _SUPPORTED_RRULE_PARTS)
    extra_lines = [rule for rule in recurrence.rules if not rule.upper().startswith("RRULE:")]
    if unsupported or extra_lines:
        logger.debug(
            f"Dropping recurrence parts unsupported by Microsoft: {unsupported + extra_lines}"
        )

    local_start = convert_to_zone(start, time_zone)
    freq = parts.get("FREQ")
    pattern: Dict[str, Any] = {"interval": int(parts.get("INTERVAL", "1"))}

    by_day = [day for day in parts.get("BYDAY", "").split(",") if day]
    week_index = parts.get("BYSETPOS")
    # 1MO / -1FR style BYDAY carries the week index inline
    days: List[str] = []
    for day in by_day:
        code = day[-2:].upper()
        prefix = day[:-2]
        if prefix and week_index is None:
            week_index = prefix
        if code in _WEEKDAY_NAMES:
            days.append(_WEEKDAY_NAMES[code])

    if freq == "DAILY":
        pattern["type"] = "daily"
    elif freq == "WEEKLY":
        pattern["type"] = "weekly"
        pattern["daysOfWeek"] = days or [local_start.strftime("%A").lower()]
        pattern["firstDayOfWeek"] = _WEEKDAY_NAMES.get(parts.get("WKST", "SU"), "sunday")
    elif freq in ("MONTHLY", "YEARLY"):
        relative = bool(days)
        kind = "Monthly" if freq == "MONTHLY" else "Yearly"
        pattern["type"] = ("relative" if relative else "absolute") + kind
        if relative:
            pattern["daysOfWeek"] = days
            pattern["index"] = _WEEK_INDEX_NAMES.get(week_index or "1", "first")
        else:
            pattern["dayOfMonth"] = _single_rrule_value(parts, "BYMONTHDAY", local_start.day, 31)
        if freq == "YEARLY":
            pattern["month"] = _single_rrule_value(parts, "BYMONTH", local_start.month, 12)
    else:
        logger.debug(f"Unsupported recurrence frequency for Microsoft: {freq}")
        return None

    recurrence_range: Dict[str, Any] = {
        "startDate": local_start.date().isoformat(),
        "recurrenceTimeZone": time_zone,
    }
    if "COUNT" in parts:
        recurrence_range["type"] = "numbered"
        recurrence_range["numberOfOccurrences"] = int(parts["COUNT"])
    elif "UNTIL" in parts:
        recurrence_range["type"] = "endDate"
        recurrence_range["endDate"] = _parse_until(parts["UNTIL"]).isoformat()
    else:
        recurrence_range["type"] = "noEnd"

    return {"pattern": pattern, "range": recurrence_range}


def _parse_attendees(event: Dict[str, Any]) -> List[Attendee]:
    organizer_email = (
        ((event.get("organizer") or {}).get("emailAddress") or {}).get("address") or ""
    ).lower()
    attendees = []
    for attendee_data in event.get("attendees") or []:
        email_address = attendee_data.get("emailAddress") or {}
        status = attendee_data.get("status") or {}
        email = email_address.get("address")
        is_organizer = status.get("response") == "organizer" or (
            bool(email) and email.lower() == organizer_email
        )
        try:
            attendee_type = AttendeeType(attendee_data.get("type") or "required")
        except ValueError:
            attendee_type = AttendeeType.REQUIRED
        attendees.append(
            Attendee(
                email=email,
                name=email_address.get("name"),
                status=parse_microsoft_response_status(status.get("response")),
                type=attendee_type,
                is_organizer=is_organizer,
                is_self=is_organizer and bool(event.get("isOrganizer")),
            )
        )
    return attendees


def parse_microsoft_event(
    event: Dict[str, Any],
    account_id: str,
    calendar: Calendar,
    time_zone: Optional[str] = None,
) -> CalendarEvent:
    """
    Convert a Graph event resource into a unified CalendarEvent.

    Args:
        event: Raw Graph event resource
        account_id: Account the event belongs to
        calendar: Calendar the event was read from
        time_zone: Zone to express timed events in; defaults to the zone
            Graph reported for the event

    Returns:
        CalendarEvent: Unified calendar event model

    Raises:
        ValueError: If required fields are missing from the event
    """
    try:
        event_id = event.get("id")
        if not event_id:
            raise ValueError("Missing required field 'id' in Microsoft event")

        start_data = event.get("start") or {}
        end_data = event.get("end") or {}
        start = parse_microsoft_date_time(start_data)
        end = parse_microsoft_date_time(end_data)
        all_day = bool(event.get("isAllDay", False))

        event_time_zone = time_zone_name(resolve_time_zone(start_data.get("timeZone")))
        # All-day events stay anchored to midnight in their own zone
        if time_zone and not all_day:
            start = convert_to_zone(start, time_zone)
            end = convert_to_zone(end, time_zone)
            event_time_zone = time_zone

        organizer = None
        organizer_address = (event.get("organizer") or {}).get("emailAddress") or {}
        if organizer_address:
            organizer = EventOrganizer(
                email=organizer_address.get("address"),
                name=organizer_address.get("name"),
            )

        response = None
        response_data = event.get("responseStatus") or {}
        if response_data:
            response = EventResponse(
                status=parse_microsoft_response_status(response_data.get("response")),
                send_update=bool(event.get("responseRequested", True)),
            )

        body = event.get("body") or {}
        location = (event.get("location") or {}).get("displayName") or None

        provider_data = {
            key: event[key]
            for key in (
                "iCalUId",
                "changeKey",
                "type",
                "isCancelled",
                "isOrganizer",
                "onlineMeeting",
                "onlineMeetingUrl",
                "categories",
                "importance",
            )
            if key in event
        }
        if event.get("recurrence"):
            provider_data["recurrence"] = event["recurrence"]

        return CalendarEvent(
            id=event_id,
            calendar_id=calendar.id,
            account_id=account_id,
            provider=Provider.MICROSOFT,
            title=event.get("subject"),
            description=body.get("content") or event.get("bodyPreview") or None,
            location=location,
            start=start,
            end=end,
            all_day=all_day,
            time_zone=event_time_zone,
            attendees=_parse_attendees(event),
            organizer=organizer,
            response=response,
            recurrence=parse_microsoft_recurrence(event.get("recurrence")),
            recurring_event_id=event.get("seriesMasterId"),
            url=event.get("webLink"),
            visibility=_SENSITIVITY_TO_VISIBILITY.get(event.get("sensitivity") or ""),
            availability=_SHOW_AS_TO_AVAILABILITY.get(event.get("showAs") or ""),
            read_only=calendar.is_read_only,
            created_at=parse_optional_datetime(event.get("createdDateTime")),
            updated_at=parse_optional_datetime(event.get("lastModifiedDateTime")),
            provider_data=provider_data,
        )
    except Exception as e:
        logger.error(f"Failed to normalize Microsoft event: {e}")
        logger.error(f"Safe raw data: {safe_log_raw_data(event)}")
        raise


def _event_time_zone(event: Union[CreateEventInput, UpdateEventInput]) -> Optional[str]:
    if event.time_zone:
        return event.time_zone
    reference = event.start or event.end
    if reference is not None and reference.tzinfo is not None:
        return time_zone_name(reference.tzinfo)
    return None


def to_microsoft_event(
    event: Union[CreateEventInput, UpdateEventInput],
) -> Dict[str, Any]:
    """
    Build a Graph event payload from a unified input.

    Only fields present on the input are written, so the same function
    serves create (POST) and partial update (PATCH). The invitation
    response is never part of the payload.
    """
    payload: Dict[str, Any] = {}
    time_zone = _event_time_zone(event) or "UTC"

    if event.title is not None:
        payload["subject"] = event.title
    if event.description is not None:
        payload["body"] = {"contentType": "text", "content": event.description}
    if event.location is not None:
        payload["location"] = {"displayName": event.location}
    if event.start is not None:
        date_time, zone = format_wall_time(event.start, time_zone)
        payload["start"] = {"dateTime": date_time, "timeZone": zone}
    if event.end is not None:
        date_time, zone = format_wall_time(event.end, time_zone)
        payload["end"] = {"dateTime": date_time, "timeZone": zone}
    if event.all_day is not None:
        payload["isAllDay"] = event.all_day
    if event.attendees is not None:
        payload["attendees"] = [
            {
                "emailAddress": {
                    "address": attendee.email,
                    "name": attendee.name or attendee.email,
                },
                "type": attendee.type.value,
            }
            for attendee in event.attendees
        ]
    if event.recurrence is not None:
        if event.start is None:
            logger.debug("Recurrence update without start time dropped for Microsoft")
        else:
            recurrence = to_microsoft_recurrence(event.recurrence, event.start, time_zone)
            if recurrence is not None:
                payload["recurrence"] = recurrence
    if event.visibility is not None:
        payload["sensitivity"] = _VISIBILITY_TO_SENSITIVITY[event.visibility]
    if event.availability is not None:
        payload["showAs"] = _AVAILABILITY_TO_SHOW_AS[event.availability]

    return payload
