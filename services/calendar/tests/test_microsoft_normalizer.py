"""
Unit tests for Microsoft Graph normalization.
"""

from datetime import datetime, timezone

import pytest
import pytz

from services.calendar.core.colors import assign_color
from services.calendar.core.normalizer.microsoft import (
    calendar_path,
    event_path,
    event_response_body,
    event_response_path,
    event_response_status_path,
    parse_microsoft_calendar,
    parse_microsoft_event,
    parse_microsoft_recurrence,
    to_microsoft_calendar,
    to_microsoft_event,
    to_microsoft_recurrence,
)
from services.calendar.models import (
    AttendeeType,
    EventAvailability,
    EventVisibility,
    Provider,
    ResponseStatus,
)
from services.calendar.schemas import (
    AttendeeInput,
    CreateCalendarInput,
    CreateEventInput,
    EventResponse,
    Recurrence,
    UpdateEventInput,
)

BERLIN = pytz.timezone("Europe/Berlin")


def graph_event(**overrides):
    event = {
        "id": "AAMkAD-evt",
        "subject": "Planning",
        "body": {"contentType": "text", "content": "Agenda"},
        "start": {"dateTime": "2024-03-04T09:00:00.0000000", "timeZone": "Europe/Berlin"},
        "end": {"dateTime": "2024-03-04T10:00:00.0000000", "timeZone": "Europe/Berlin"},
        "isAllDay": False,
        "location": {"displayName": "Room 1"},
        "attendees": [
            {
                "emailAddress": {"address": "boss@example.com", "name": "Boss"},
                "type": "required",
                "status": {"response": "accepted", "time": "2024-03-01T10:00:00Z"},
            },
            {
                "emailAddress": {"address": "me@example.com", "name": "Me"},
                "type": "optional",
                "status": {"response": "tentativelyAccepted"},
            },
        ],
        "organizer": {"emailAddress": {"address": "Boss@example.com", "name": "Boss"}},
        "responseStatus": {"response": "tentativelyAccepted", "time": "2024-03-01T10:00:00Z"},
        "seriesMasterId": "AAMkAD-master",
        "sensitivity": "private",
        "showAs": "oof",
        "webLink": "https://outlook.office365.com/owa/?itemid=AAMkAD-evt",
        "iCalUId": "ical-1",
        "changeKey": "ck-1",
        "type": "occurrence",
        "isCancelled": False,
        "createdDateTime": "2024-03-01T08:00:00.1234567Z",
        "lastModifiedDateTime": "2024-03-02T08:00:00Z",
    }
    event.update(overrides)
    return event


class TestPaths:
    def test_calendar_and_event_paths(self):
        assert calendar_path("cal-1") == "/me/calendars/cal-1"
        assert event_path("cal-1", "evt-1") == "/me/calendars/cal-1/events/evt-1"

    @pytest.mark.parametrize(
        "status, action",
        [
            (ResponseStatus.ACCEPTED, "accept"),
            (ResponseStatus.DECLINED, "decline"),
            (ResponseStatus.TENTATIVE, "tentativelyAccept"),
        ],
    )
    def test_response_actions(self, status, action):
        assert event_response_status_path(status) == action
        assert event_response_path("evt-1", status) == f"/me/events/evt-1/{action}"

    def test_unknown_status_has_no_action(self):
        with pytest.raises(ValueError):
            event_response_status_path(ResponseStatus.UNKNOWN)

    def test_ids_are_percent_encoded(self):
        assert calendar_path("AAMk/cal=") == "/me/calendars/AAMk%2Fcal%3D"
        assert (
            event_path("AAMk/cal=", "AAMk+evt/1=")
            == "/me/calendars/AAMk%2Fcal%3D/events/AAMk%2Bevt%2F1%3D"
        )
        assert (
            event_response_path("AAMk/evt=", ResponseStatus.ACCEPTED)
            == "/me/events/AAMk%2Fevt%3D/accept"
        )

    def test_response_path_accepts_plain_strings(self):
        assert event_response_path("evt-1", "declined") == "/me/events/evt-1/decline"

    def test_response_body(self):
        body = event_response_body(
            EventResponse(status=ResponseStatus.ACCEPTED, comment="See you", send_update=False)
        )

        assert body == {"comment": "See you", "sendResponse": False}


class TestParseMicrosoftCalendar:
    def test_native_fields(self):
        calendar = parse_microsoft_calendar(
            {
                "id": "cal-1",
                "name": "Calendar",
                "isDefaultCalendar": True,
                "canEdit": True,
                "hexColor": "#ff8c00",
                "isRemovable": False,
                "changeKey": "ck",
                "owner": {"name": "Me", "address": "me@example.com"},
                "calendarPermissions": [
                    {
                        "emailAddress": {"name": "Boss", "address": "boss@example.com"},
                        "role": "write",
                        "allowedRoles": ["read", "write"],
                        "isRemovable": True,
                    }
                ],
            },
            "acct-1",
            fallback_index=4,
        )

        assert calendar.provider == Provider.MICROSOFT
        assert calendar.account_id == "acct-1"
        assert calendar.color == "#ff8c00"
        assert calendar.is_default is True
        assert calendar.is_read_only is False
        assert calendar.owner.email == "me@example.com"
        assert calendar.permissions[0].role == "write"
        assert calendar.permissions[0].allowed_roles == ["read", "write"]
        assert calendar.provider_data == {"isRemovable": False, "changeKey": "ck"}

    @pytest.mark.parametrize("hex_color", [None, ""])
    def test_color_falls_back_to_palette(self, hex_color):
        data = {"id": "cal-2", "name": "Birthdays", "canEdit": False}
        if hex_color is not None:
            data["hexColor"] = hex_color

        calendar = parse_microsoft_calendar(data, "acct-1", fallback_index=5)

        assert calendar.color == assign_color(5)
        assert calendar.is_read_only is True
        assert calendar.owner is None

    @pytest.mark.parametrize("hex_color", ["#ff8c00", None])
    def test_parsing_is_idempotent(self, hex_color):
        data = {"id": "cal-3", "name": "Team", "canEdit": True}
        if hex_color is not None:
            data["hexColor"] = hex_color

        first = parse_microsoft_calendar(data, "acct-1", fallback_index=2)
        second = parse_microsoft_calendar(data, "acct-1", fallback_index=2)

        assert first == second
        assert first.color

    def test_to_microsoft_calendar_keeps_name_only(self):
        payload = to_microsoft_calendar(
            CreateCalendarInput(name="Team", description="d", color="#123456")
        )

        assert payload == {"name": "Team"}


class TestParseMicrosoftEvent:
    def test_full_event(self, microsoft_calendar):
        event = parse_microsoft_event(graph_event(), "acct-ms", microsoft_calendar)

        assert event.id == "AAMkAD-evt"
        assert event.calendar_id == microsoft_calendar.id
        assert event.provider == Provider.MICROSOFT
        assert event.title == "Planning"
        assert event.description == "Agenda"
        assert event.location == "Room 1"
        assert event.start == datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)
        assert event.end == datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)
        assert event.time_zone == "Europe/Berlin"
        assert event.response.status == ResponseStatus.TENTATIVE
        assert event.recurring_event_id == "AAMkAD-master"
        assert event.visibility == EventVisibility.PRIVATE
        assert event.availability == EventAvailability.OUT_OF_OFFICE
        assert event.url.endswith("AAMkAD-evt")
        assert event.created_at == datetime(
            2024, 3, 1, 8, 0, 0, 123456, tzinfo=timezone.utc
        )
        assert event.provider_data["iCalUId"] == "ical-1"
        assert event.provider_data["type"] == "occurrence"

    def test_attendees(self, microsoft_calendar):
        event = parse_microsoft_event(graph_event(), "acct-ms", microsoft_calendar)

        boss, me = event.attendees
        assert boss.email == "boss@example.com"
        assert boss.status == ResponseStatus.ACCEPTED
        assert boss.is_organizer is True
        assert me.type == AttendeeType.OPTIONAL
        assert me.status == ResponseStatus.TENTATIVE
        assert me.is_organizer is False
        assert event.organizer.email == "Boss@example.com"

    @pytest.mark.parametrize(
        "graph_response, expected",
        [
            ("accepted", ResponseStatus.ACCEPTED),
            ("declined", ResponseStatus.DECLINED),
            ("tentativelyAccepted", ResponseStatus.TENTATIVE),
            ("notResponded", ResponseStatus.UNKNOWN),
            ("none", ResponseStatus.UNKNOWN),
        ],
    )
    def test_response_status_mapping(self, microsoft_calendar, graph_response, expected):
        event = parse_microsoft_event(
            graph_event(responseStatus={"response": graph_response}),
            "acct-ms",
            microsoft_calendar,
        )

        assert event.response.status == expected

    def test_missing_response_status(self, microsoft_calendar):
        data = graph_event()
        del data["responseStatus"]

        assert parse_microsoft_event(data, "acct-ms", microsoft_calendar).response is None

    def test_requested_time_zone(self, microsoft_calendar):
        event = parse_microsoft_event(
            graph_event(), "acct-ms", microsoft_calendar, time_zone="America/New_York"
        )

        assert event.time_zone == "America/New_York"
        assert event.start.hour == 3
        assert event.start == datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)

    def test_windows_time_zone_name(self, microsoft_calendar):
        data = graph_event(
            start={"dateTime": "2024-07-01T09:00:00.0000000", "timeZone": "Pacific Standard Time"},
            end={"dateTime": "2024-07-01T10:00:00.0000000", "timeZone": "Pacific Standard Time"},
        )

        event = parse_microsoft_event(data, "acct-ms", microsoft_calendar)

        assert event.time_zone == "America/Los_Angeles"
        assert event.start == datetime(2024, 7, 1, 16, 0, tzinfo=timezone.utc)

    def test_unknown_time_zone_falls_back_to_utc(self, microsoft_calendar):
        data = graph_event(
            start={"dateTime": "2024-07-01T09:00:00", "timeZone": "Atlantis Time"},
            end={"dateTime": "2024-07-01T10:00:00", "timeZone": "Atlantis Time"},
        )

        event = parse_microsoft_event(data, "acct-ms", microsoft_calendar)

        assert event.start == datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc)

    def test_all_day_event_keeps_its_midnight(self, microsoft_calendar):
        data = graph_event(
            isAllDay=True,
            start={"dateTime": "2024-03-04T00:00:00.0000000", "timeZone": "UTC"},
            end={"dateTime": "2024-03-05T00:00:00.0000000", "timeZone": "UTC"},
        )

        event = parse_microsoft_event(data, "acct-ms", microsoft_calendar, "Europe/Berlin")

        assert event.all_day is True
        assert event.start == datetime(2024, 3, 4, tzinfo=timezone.utc)
        assert event.time_zone == "UTC"

    def test_read_only_follows_calendar(self, microsoft_calendar):
        calendar = microsoft_calendar.model_copy(update={"is_read_only": True})

        assert parse_microsoft_event(graph_event(), "acct-ms", calendar).read_only is True

    def test_missing_id_raises(self, microsoft_calendar):
        with pytest.raises(ValueError, match="Missing required field 'id'"):
            parse_microsoft_event(graph_event(id=None), "acct-ms", microsoft_calendar)


class TestMicrosoftRecurrence:
    def test_weekly_pattern_to_rrule(self):
        recurrence = parse_microsoft_recurrence(
            {
                "pattern": {
                    "type": "weekly",
                    "interval": 2,
                    "daysOfWeek": ["monday", "wednesday"],
                    "firstDayOfWeek": "sunday",
                },
                "range": {"type": "endDate", "startDate": "2024-03-04", "endDate": "2024-06-30"},
            }
        )

        assert recurrence.rules == ["RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;UNTIL=20240630"]

    def test_relative_monthly_pattern_to_rrule(self):
        recurrence = parse_microsoft_recurrence(
            {
                "pattern": {
                    "type": "relativeMonthly",
                    "interval": 1,
                    "daysOfWeek": ["friday"],
                    "index": "last",
                },
                "range": {"type": "numbered", "numberOfOccurrences": 5},
            }
        )

        assert recurrence.rules == ["RRULE:FREQ=MONTHLY;BYDAY=FR;BYSETPOS=-1;COUNT=5"]

    def test_absolute_yearly_pattern_to_rrule(self):
        recurrence = parse_microsoft_recurrence(
            {
                "pattern": {"type": "absoluteYearly", "interval": 1, "dayOfMonth": 15, "month": 3},
                "range": {"type": "noEnd", "startDate": "2024-03-15"},
            }
        )

        assert recurrence.rules == ["RRULE:FREQ=YEARLY;BYMONTHDAY=15;BYMONTH=3"]

    def test_unknown_pattern_dropped(self):
        assert parse_microsoft_recurrence({"pattern": {"type": "hourly"}}) is None
        assert parse_microsoft_recurrence(None) is None

    def test_rrule_to_weekly_pattern(self):
        start = BERLIN.localize(datetime(2024, 3, 4, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=["RRULE:FREQ=WEEKLY;BYDAY=MO,WE;COUNT=10"]),
            start,
            "Europe/Berlin",
        )

        assert recurrence == {
            "pattern": {
                "interval": 1,
                "type": "weekly",
                "daysOfWeek": ["monday", "wednesday"],
                "firstDayOfWeek": "sunday",
            },
            "range": {
                "startDate": "2024-03-04",
                "recurrenceTimeZone": "Europe/Berlin",
                "type": "numbered",
                "numberOfOccurrences": 10,
            },
        }

    def test_rrule_with_inline_week_index(self):
        start = BERLIN.localize(datetime(2024, 3, 1, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=["RRULE:FREQ=MONTHLY;BYDAY=1FR;UNTIL=20241231T000000Z"]),
            start,
            "Europe/Berlin",
        )

        assert recurrence["pattern"]["type"] == "relativeMonthly"
        assert recurrence["pattern"]["daysOfWeek"] == ["friday"]
        assert recurrence["pattern"]["index"] == "first"
        assert recurrence["range"]["type"] == "endDate"
        assert recurrence["range"]["endDate"] == "2024-12-31"

    def test_monthly_defaults_to_start_day(self):
        start = BERLIN.localize(datetime(2024, 3, 15, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=["RRULE:FREQ=MONTHLY"]), start, "Europe/Berlin"
        )

        assert recurrence["pattern"] == {
            "interval": 1,
            "type": "absoluteMonthly",
            "dayOfMonth": 15,
        }
        assert recurrence["range"]["type"] == "noEnd"

    def test_unsupported_parts_dropped(self):
        start = BERLIN.localize(datetime(2024, 3, 4, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=["RRULE:FREQ=DAILY;BYHOUR=9;INTERVAL=2", "EXDATE:20240305T080000Z"]),
            start,
            "Europe/Berlin",
        )

        assert recurrence["pattern"] == {"interval": 2, "type": "daily"}
        assert recurrence["range"]["type"] == "noEnd"

    def test_multiple_month_days_keep_first(self):
        start = BERLIN.localize(datetime(2024, 3, 15, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=["RRULE:FREQ=MONTHLY;BYMONTHDAY=1,15"]), start, "Europe/Berlin"
        )

        assert recurrence["pattern"] == {
            "interval": 1,
            "type": "absoluteMonthly",
            "dayOfMonth": 1,
        }

    def test_multiple_months_keep_first(self):
        start = BERLIN.localize(datetime(2024, 3, 15, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=["RRULE:FREQ=YEARLY;BYMONTHDAY=15;BYMONTH=1,6"]),
            start,
            "Europe/Berlin",
        )

        assert recurrence["pattern"]["type"] == "absoluteYearly"
        assert recurrence["pattern"]["dayOfMonth"] == 15
        assert recurrence["pattern"]["month"] == 1

    @pytest.mark.parametrize("month_day", ["-1", "0", "32", "last"])
    def test_invalid_month_day_uses_start_day(self, month_day):
        start = BERLIN.localize(datetime(2024, 3, 15, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=[f"RRULE:FREQ=MONTHLY;BYMONTHDAY={month_day}"]),
            start,
            "Europe/Berlin",
        )

        assert recurrence["pattern"]["dayOfMonth"] == 15

    def test_invalid_month_uses_start_month(self):
        start = BERLIN.localize(datetime(2024, 3, 15, 9, 0))

        recurrence = to_microsoft_recurrence(
            Recurrence(rules=["RRULE:FREQ=YEARLY;BYMONTH=13,-2"]), start, "Europe/Berlin"
        )

        assert recurrence["pattern"]["month"] == 3
        assert recurrence["pattern"]["dayOfMonth"] == 15

    def test_sub_daily_frequency_dropped(self):
        start = BERLIN.localize(datetime(2024, 3, 4, 9, 0))

        assert (
            to_microsoft_recurrence(Recurrence(rules=["RRULE:FREQ=HOURLY"]), start, "UTC")
            is None
        )
        assert (
            to_microsoft_recurrence(Recurrence(rules=["EXDATE:20240305"]), start, "UTC")
            is None
        )


class TestToMicrosoftEvent:
    def test_only_present_fields_written(self):
        payload = to_microsoft_event(UpdateEventInput(title="Renamed"))

        assert payload == {"subject": "Renamed"}

    def test_response_never_written(self):
        payload = to_microsoft_event(
            UpdateEventInput(
                location="Room 2",
                response=EventResponse(status=ResponseStatus.ACCEPTED),
            )
        )

        assert payload == {"location": {"displayName": "Room 2"}}

    def test_times_written_as_wall_time(self):
        payload = to_microsoft_event(
            CreateEventInput(
                title="Standup",
                start=datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc),
                end=datetime(2024, 3, 4, 8, 15, tzinfo=timezone.utc),
                time_zone="Europe/Berlin",
            )
        )

        assert payload["start"] == {"dateTime": "2024-03-04T09:00:00", "timeZone": "Europe/Berlin"}
        assert payload["end"] == {"dateTime": "2024-03-04T09:15:00", "timeZone": "Europe/Berlin"}
        assert payload["isAllDay"] is False
        assert payload["attendees"] == []

    def test_zone_taken_from_datetime(self):
        payload = to_microsoft_event(
            UpdateEventInput(start=BERLIN.localize(datetime(2024, 3, 4, 9, 0)))
        )

        assert payload["start"] == {"dateTime": "2024-03-04T09:00:00", "timeZone": "Europe/Berlin"}

    def test_round_trip(self, microsoft_calendar):
        data = CreateEventInput(
            title="Design review",
            description="Bring sketches",
            location="Room 3",
            start=BERLIN.localize(datetime(2024, 3, 4, 9, 0)),
            end=BERLIN.localize(datetime(2024, 3, 4, 10, 30)),
            time_zone="Europe/Berlin",
            attendees=[
                AttendeeInput(email="a@example.com", name="A", type=AttendeeType.OPTIONAL)
            ],
            recurrence=Recurrence(rules=["RRULE:FREQ=WEEKLY;BYDAY=MO;COUNT=4"]),
            visibility=EventVisibility.PRIVATE,
            availability=EventAvailability.FREE,
        )

        native = {**to_microsoft_event(data), "id": "created-1"}
        event = parse_microsoft_event(native, "acct-ms", microsoft_calendar)

        assert event.title == data.title
        assert event.description == data.description
        assert event.location == data.location
        assert event.start == data.start
        assert event.end == data.end
        assert event.all_day is False
        assert event.time_zone == "Europe/Berlin"
        assert [(a.email, a.name, a.type) for a in event.attendees] == [
            ("a@example.com", "A", AttendeeType.OPTIONAL)
        ]
        assert event.recurrence.rules == data.recurrence.rules
        assert event.visibility == data.visibility
        assert event.availability == data.availability
