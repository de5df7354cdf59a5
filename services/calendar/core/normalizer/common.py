"""
Helpers shared by the provider normalizers: time zone resolution, instant
parsing and formatting, RRULE handling and log-safe payload summaries.
"""

from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional

import pytz
from dateutil import parser as date_parser

from services.common.logging_config import get_logger

logger = get_logger(__name__)

# Outlook mailboxes configured with Windows zone names still report them in
# event payloads even when an IANA zone is requested.
WINDOWS_TO_IANA: Dict[str, str] = {
    "UTC": "UTC",
    "Coordinated Universal Time": "UTC",
    "GMT Standard Time": "Europe/London",
    "Greenwich Standard Time": "Atlantic/Reykjavik",
    "W. Europe Standard Time": "Europe/Berlin",
    "Romance Standard Time": "Europe/Paris",
    "Central Europe Standard Time": "Europe/Budapest",
    "Central European Standard Time": "Europe/Warsaw",
    "E. Europe Standard Time": "Europe/Chisinau",
    "FLE Standard Time": "Europe/Kiev",
    "Russian Standard Time": "Europe/Moscow",
    "Eastern Standard Time": "America/New_York",
    "Central Standard Time": "America/Chicago",
    "Mountain Standard Time": "America/Denver",
    "US Mountain Standard Time": "America/Phoenix",
    "Pacific Standard Time": "America/Los_Angeles",
    "Alaskan Standard Time": "America/Anchorage",
    "Hawaiian Standard Time": "Pacific/Honolulu",
    "Atlantic Standard Time": "America/Halifax",
    "E. South America Standard Time": "America/Sao_Paulo",
    "India Standard Time": "Asia/Kolkata",
    "China Standard Time": "Asia/Shanghai",
    "Tokyo Standard Time": "Asia/Tokyo",
    "Singapore Standard Time": "Asia/Singapore",
    "AUS Eastern Standard Time": "Australia/Sydney",
    "New Zealand Standard Time": "Pacific/Auckland",
}


def resolve_time_zone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA or Windows zone name to a tzinfo.

    Unrecognized names resolve to UTC so that a provider quirk never yields a
    naive timestamp.
    """
    if not name:
        return pytz.utc
    try:
        return pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        pass
    iana_name = WINDOWS_TO_IANA.get(name)
    if iana_name:
        return pytz.timezone(iana_name)
    logger.warning(f"Unknown time zone '{name}', falling back to UTC")
    return pytz.utc


def time_zone_name(tz: tzinfo) -> Optional[str]:
    """IANA name of a tzinfo (``zone`` for pytz, ``key`` for zoneinfo), if it has one."""
    name = getattr(tz, "zone", None) or getattr(tz, "key", None)
    if name:
        return name
    if tz.utcoffset(None) == timezone.utc.utcoffset(None):
        return "UTC"
    return None


def localize(value: datetime, tz: tzinfo) -> datetime:
    """Attach ``tz`` to a naive wall time, or convert an aware one into ``tz``."""
    if value.tzinfo is None:
        if hasattr(tz, "localize"):
            return tz.localize(value)
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def parse_datetime(value: str, time_zone: Optional[str] = None) -> datetime:
    """
    Parse an ISO 8601 timestamp into an aware datetime.

    Naive timestamps are wall times in ``time_zone`` (UTC when absent).
    Fractional seconds beyond microseconds are truncated.
    """
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        return localize(parsed, resolve_time_zone(time_zone))
    return parsed


def parse_optional_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_datetime(value)
    except (ValueError, OverflowError):
        logger.warning(f"Failed to parse datetime: {value}")
        return None


def convert_to_zone(value: datetime, time_zone: Optional[str]) -> datetime:
    """Express an aware instant in ``time_zone``; unchanged when no zone is given."""
    if not time_zone:
        return value
    return value.astimezone(resolve_time_zone(time_zone))


def format_utc(value: datetime) -> str:
    """Format an aware instant as ``YYYY-MM-DDTHH:MM:SSZ``."""
    if value.tzinfo is None:
        raise ValueError("Cannot format a naive datetime as a UTC instant")
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_wall_time(value: datetime, time_zone: Optional[str]) -> tuple[str, str]:
    """
    Split an aware instant into a local wall time and its zone name.

    Returns ``(dateTime, timeZone)`` where ``dateTime`` carries no offset.
    """
    zone_name = time_zone or (value.tzinfo and time_zone_name(value.tzinfo)) or "UTC"
    local = localize(value, resolve_time_zone(zone_name))
    return local.replace(tzinfo=None).isoformat(timespec="seconds"), zone_name


# RRULE helpers
def parse_rrule(rule: str) -> Dict[str, str]:
    """Split ``RRULE:FREQ=WEEKLY;BYDAY=MO`` (prefix optional) into its parts."""
    if rule.upper().startswith("RRULE:"):
        rule = rule[len("RRULE:") :]
    parts: Dict[str, str] = {}
    for item in rule.split(";"):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        parts[key.strip().upper()] = value.strip()
    return parts


def format_rrule(parts: Dict[str, str]) -> str:
    """Inverse of :func:`parse_rrule`; FREQ always comes first."""
    ordered: List[str] = []
    if "FREQ" in parts:
        ordered.append(f"FREQ={parts['FREQ']}")
    ordered.extend(f"{key}={value}" for key, value in parts.items() if key != "FREQ")
    return "RRULE:" + ";".join(ordered)


_SAFE_EVENT_KEYS = {
    "id",
    "calendarId",
    "iCalUId",
    "iCalUID",
    "start",
    "end",
    "isAllDay",
    "isCancelled",
    "status",
    "type",
    "seriesMasterId",
    "recurringEventId",
    "showAs",
    "transparency",
    "sensitivity",
    "visibility",
}


def safe_log_raw_data(raw_data: Dict[str, Any], max_content_length: int = 100) -> str:
    """
    Summarize a raw provider payload for logs without exposing its content.

    Structural fields are kept; titles, bodies and attendee addresses are
    replaced by their shape.
    """
    safe_data: Dict[str, Any] = {}
    for key, value in raw_data.items():
        if key in _SAFE_EVENT_KEYS:
            safe_data[key] = value
        elif key in ("attendees", "calendarPermissions"):
            size = len(value) if isinstance(value, list) else 0
            safe_data[key] = f"<{size} entries>"
        elif isinstance(value, dict):
            safe_data[key] = f"<dict keys={sorted(value.keys())}>"
        elif isinstance(value, str) and len(value) > max_content_length:
            safe_data[key] = f"<str len={len(value)}>"
        else:
            safe_data[key] = f"<{type(value).__name__}>"
    return str(safe_data)
