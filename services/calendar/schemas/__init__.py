from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pytz
from pydantic import BaseModel, Field, field_validator, model_validator

from services.calendar.models import (
    AttendeeType,
    EventAvailability,
    EventVisibility,
    Provider,
    ResponseStatus,
)


def _require_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and (
        value.tzinfo is None or value.tzinfo.utcoffset(value) is None
    ):
        raise ValueError("datetime must be timezone-aware")
    return value


def _validate_time_zone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        pytz.timezone(value)
    except pytz.exceptions.UnknownTimeZoneError as e:
        raise ValueError(f"Unknown time zone: {value}") from e
    return value


# Unified Calendar Models
class CalendarOwner(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class CalendarPermission(BaseModel):
    """A sharing grant on a calendar."""

    email: Optional[str] = None
    name: Optional[str] = None
    role: str
    allowed_roles: List[str] = Field(default_factory=list)
    is_removable: bool = True


class Calendar(BaseModel):
    id: str
    account_id: str
    provider: Provider
    name: str
    description: Optional[str] = None
    color: str = Field(..., min_length=1, description="Native or assigned color")
    is_default: bool = False
    is_read_only: bool = False
    time_zone: Optional[str] = None
    owner: Optional[CalendarOwner] = None
    permissions: List[CalendarPermission] = Field(default_factory=list)
    # Provider fields without a canonical counterpart
    provider_data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> Tuple[Provider, str, str]:
        """Identity of the calendar across providers and accounts."""
        return (self.provider, self.account_id, self.id)


class Attendee(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    status: ResponseStatus = ResponseStatus.UNKNOWN
    type: AttendeeType = AttendeeType.REQUIRED
    is_organizer: bool = False
    is_self: bool = False
    comment: Optional[str] = None


class EventOrganizer(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class EventResponse(BaseModel):
    """
    The current account's answer to a meeting invitation.

    Used both on events (the recorded answer) and as the input of an RSVP
    submission, where ``send_update`` controls whether the organizer is
    notified.
    """

    status: ResponseStatus = ResponseStatus.UNKNOWN
    comment: Optional[str] = None
    send_update: bool = True


ResponseToEventInput = EventResponse


class Recurrence(BaseModel):
    """RFC 5545 recurrence lines, e.g. ``RRULE:FREQ=WEEKLY;BYDAY=MO``."""

    rules: List[str] = Field(default_factory=list)

    @field_validator("rules")
    @classmethod
    def strip_rules(cls, v: List[str]) -> List[str]:
        rules = [rule.strip() for rule in v if rule and rule.strip()]
        if not rules:
            raise ValueError("recurrence requires at least one rule")
        return rules

    @property
    def rrule(self) -> Optional[str]:
        """The first RRULE line without its ``RRULE:`` prefix."""
        for rule in self.rules:
            if rule.upper().startswith("RRULE:"):
                return rule[len("RRULE:") :]
        return None


class CalendarEvent(BaseModel):
    id: str
    calendar_id: str
    account_id: str
    provider: Provider
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start: datetime
    end: datetime
    all_day: bool = False
    time_zone: Optional[str] = None
    attendees: List[Attendee] = Field(default_factory=list)
    organizer: Optional[EventOrganizer] = None
    response: Optional[EventResponse] = None
    recurrence: Optional[Recurrence] = None
    recurring_event_id: Optional[str] = None
    url: Optional[str] = None
    visibility: Optional[EventVisibility] = None
    availability: Optional[EventAvailability] = None
    read_only: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Raw provider fields passed through untouched
    provider_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("start", "end")
    @classmethod
    def validate_aware(cls, v: datetime) -> datetime:
        return _require_aware(v)  # type: ignore[return-value]

    @model_validator(mode="after")
    def validate_ordering(self) -> "CalendarEvent":
        if self.start > self.end:
            raise ValueError(
                f"event start must not be after end. Got start: {self.start}, end: {self.end}"
            )
        return self


# Inputs
class CreateCalendarInput(BaseModel):
    """Request model for creating calendars."""

    name: str = Field(..., min_length=1, max_length=255, description="Calendar name")
    description: Optional[str] = None
    time_zone: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: Optional[str]) -> Optional[str]:
        return _validate_time_zone(v)


class UpdateCalendarInput(BaseModel):
    """Request model for updating calendars. Unset fields are left untouched."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    time_zone: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: Optional[str]) -> Optional[str]:
        return _validate_time_zone(v)


class AttendeeInput(BaseModel):
    email: str = Field(..., min_length=3)
    name: Optional[str] = None
    type: AttendeeType = AttendeeType.REQUIRED

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"Invalid attendee email: {v}")
        return v.strip()


class _EventInputBase(BaseModel):
    title: Optional[str] = Field(None, max_length=255, description="Event title")
    description: Optional[str] = None
    location: Optional[str] = None
    time_zone: Optional[str] = Field(
        None, description="IANA zone the start/end wall times are expressed in"
    )
    recurrence: Optional[Recurrence] = None
    visibility: Optional[EventVisibility] = None
    availability: Optional[EventAvailability] = None
    response: Optional[EventResponse] = None

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: Optional[str]) -> Optional[str]:
        return _validate_time_zone(v)

    @model_validator(mode="after")
    def validate_times(self) -> "_EventInputBase":
        start = getattr(self, "start", None)
        end = getattr(self, "end", None)
        _require_aware(start)
        _require_aware(end)
        if start is not None and end is not None and start > end:
            raise ValueError(
                f"start must not be after end. Got start: {start}, end: {end}"
            )
        return self


class CreateEventInput(_EventInputBase):
    """Request model for creating calendar events."""

    start: datetime = Field(..., description="Event start time")
    end: datetime = Field(..., description="Event end time")
    all_day: bool = Field(False, description="Whether this is an all-day event")
    attendees: List[AttendeeInput] = Field(default_factory=list)


class UpdateEventInput(_EventInputBase):
    """Request model for updating calendar events. Unset fields are left untouched."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    all_day: Optional[bool] = None
    attendees: Optional[List[AttendeeInput]] = None


__all__ = [
    "Attendee",
    "AttendeeInput",
    "Calendar",
    "CalendarEvent",
    "CalendarOwner",
    "CalendarPermission",
    "CreateCalendarInput",
    "CreateEventInput",
    "EventOrganizer",
    "EventResponse",
    "Recurrence",
    "ResponseToEventInput",
    "UpdateCalendarInput",
    "UpdateEventInput",
]
